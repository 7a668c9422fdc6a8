"""Publishing each service's API description to the public API catalogue."""

from __future__ import annotations

import json
import os
import subprocess
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import requests

PUBLISH_URL = "https://api.m3o.com/publicapi/Publish"
_TIMEOUT = 60

_STRING_FIELDS = {
    "name": "name",
    "category": "category",
    "description": "description",
    "icon": "icon",
    "open_api_json": "open_api_json",
    "examples_json": "examples_json",
    "postman_json": "postman_json",
}


@dataclass
class PublicAPI:
    """The catalogue entry for one service."""

    name: str = ""
    category: str = ""
    description: str = ""
    icon: str = ""
    open_api_json: str = ""
    pricing: dict[str, int] = field(default_factory=dict)
    examples_json: str = ""
    postman_json: str = ""

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-ready mapping, leaving out optional fields that are empty."""
        data: dict[str, Any] = {"name": self.name}
        if self.category:
            data["category"] = self.category
        data["description"] = self.description
        if self.icon:
            data["icon"] = self.icon
        data["open_api_json"] = self.open_api_json
        if self.pricing:
            data["pricing"] = dict(self.pricing)
        if self.examples_json:
            data["examples_json"] = self.examples_json
        if self.postman_json:
            data["postman_json"] = self.postman_json
        return data


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_pricing(value: Any) -> dict[str, int]:
    if not isinstance(value, Mapping):
        return {}
    return {str(key): price for key, price in value.items() if _is_int(price)}


def _load_public_api(raw: bytes) -> PublicAPI:
    """Read a catalogue entry, ignoring anything that does not fit."""
    api = PublicAPI()
    try:
        data = json.loads(raw)
    except ValueError:
        return api
    if not isinstance(data, dict):
        return api
    for key, value in data.items():
        wanted = key.casefold()
        if wanted == "pricing":
            api.pricing = _parse_pricing(value)
            continue
        attr = _STRING_FIELDS.get(wanted)
        if attr is not None and isinstance(value, str):
            setattr(api, attr, value)
    return api


def _read_optional(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except OSError:
        return None


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


def build_public_api(service_dir: str | os.PathLike, service_name: str) -> PublicAPI:
    """Assemble the catalogue entry for a service from the files in its directory.

    The README and an OpenAPI spec are required; ``publicapi.json``,
    ``examples.json``, ``pricing.json`` and ``postman.json`` are used when present.
    """
    directory = Path(service_dir)
    readme = (directory / "README.md").read_bytes()

    try:
        spec_raw = (directory / f"api-{service_name}.json").read_bytes()
    except OSError:
        spec_raw = (directory / "api-protobuf.json").read_bytes()

    spec = json.loads(spec_raw)
    if spec is not None and not isinstance(spec, dict):
        raise ValueError("openapi spec is not a JSON object")

    raw = _read_optional(directory / "publicapi.json")
    api = _load_public_api(raw) if raw is not None else PublicAPI()

    if not api.name:
        api.name = service_name
    if not api.description:
        api.description = _decode(readme)
    if not api.open_api_json:
        api.open_api_json = _decode(spec_raw)

    examples = _read_optional(directory / "examples.json")
    if examples:
        api.examples_json = _decode(examples)

    pricing_raw = _read_optional(directory / "pricing.json")
    if pricing_raw:
        try:
            api.pricing = _parse_pricing(json.loads(pricing_raw))
        except ValueError:
            api.pricing = {}

    postman = _read_optional(directory / "postman.json")
    if postman:
        api.postman_json = _decode(postman)

    return api


def publish_api(api: PublicAPI, token: str, url: str = PUBLISH_URL) -> None:
    """Send a catalogue entry; raises RuntimeError with the reply if it is refused."""
    resp = requests.post(
        url,
        data=json.dumps({"api": api.to_json()}),
        headers={"Authorization": "Bearer " + token},
        timeout=_TIMEOUT,
    )
    if resp.status_code != 200:
        raise RuntimeError(resp.text)


def _run(command: list[str], cwd: Path) -> subprocess.CompletedProcess:
    return subprocess.run(command, cwd=cwd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT)


def main(argv: Sequence[str] | None = None) -> int:
    """Build and publish the catalogue entry of every service in a directory."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("usage: publisher <services-dir>", file=sys.stderr)
        return 2

    try:
        entries = sorted(Path(args[0]).iterdir(), key=lambda p: p.name)
    except OSError as exc:
        print(exc, file=sys.stderr)
        return 1

    work_dir = Path.cwd()
    token = os.environ.get("MICRO_ADMIN_TOKEN", "")

    for entry in entries:
        if not entry.is_dir() or entry.name.startswith("."):
            continue
        service_dir = work_dir / entry.name
        try:
            names = {p.name for p in service_dir.iterdir()}
        except OSError as exc:
            print("Failed to read service dir", exc)
            return 1
        if "skip" in names:
            continue

        print("Processing folder", service_dir)
        print(service_dir)
        try:
            made = _run(["make", "api"], service_dir)
        except OSError as exc:
            print("Failed to make api", exc)
            return 1
        if made.returncode != 0:
            print("Failed to make api", _decode(made.stdout or b""))
            return 1

        service_name = entry.name
        try:
            postman = _run(
                ["openapi2postmanv2", "-s", f"api-{service_name}.json", "-o", "postman.json"],
                service_dir,
            )
        except OSError as exc:
            print(f"Failed to generate postman collection {exc}")
            return 1
        if postman.returncode != 0:
            print(
                f"Failed to generate postman collection {_decode(postman.stdout or b'')} "
                f"exit status {postman.returncode}"
            )
            return 1

        try:
            api = build_public_api(service_dir, service_name)
        except OSError as exc:
            print("Failed to read service files", exc)
            return 1
        except ValueError as exc:
            print("Failed to unmarshal", exc)
            return 1

        try:
            publish_api(api, token)
        except (RuntimeError, requests.RequestException) as exc:
            print("Failed to save data to publicapi service", exc)
            return 1
    return 0