"""Generation of TypeScript client types from OpenAPI specs, and release bumping."""

from __future__ import annotations

import json
import os
import re
import shutil
import stat
import subprocess
import sys
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import semver

_WORD = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z0-9]+|[A-Z]+[0-9]*")
_SIMPLE_TYPES = ("string", "number", "boolean")
_NPM_PACKAGE = "@micro/services"


def snake_case(name: str) -> str:
    """Convert camelCase, PascalCase or delimited names to snake_case."""
    return "_".join(word.lower() for word in _WORD.findall(name))


def _properties_to_ts(props: Mapping[str, Any], level: int) -> str:
    indent = "  " * level
    lines = []
    for key in sorted(props):
        prop = props[key] or {}
        name = snake_case(key)
        kind = prop.get("type")
        if kind == "object":
            body = _properties_to_ts(prop.get("properties") or {}, level + 1)
            line = f"{name}?: {{\n{body}{indent}}};"
        elif kind == "array":
            items = prop.get("items") or {}
            item_props = items.get("properties") or {}
            if not item_props:
                line = f"{name}?: {items.get('type', '')}[];"
            else:
                body = _properties_to_ts(item_props, level + 1)
                line = f"{name}?: {{\n{body}{indent}}}[];"
        elif kind in _SIMPLE_TYPES:
            line = f"{name}?: {kind};"
        else:
            line = ""
        lines.append(f"{indent}{line}\n")
    return "".join(lines)


def schema_to_ts(title: str, schema: Mapping[str, Any]) -> str:
    """Render an OpenAPI object schema as a TypeScript interface."""
    body = _properties_to_ts(schema.get("properties") or {}, 1)
    return f"export interface {title} {{\n{body}}}"


def _parse_version(text: str) -> semver.Version:
    return semver.Version.parse(text.strip().removeprefix("v"), optional_minor_and_patch=True)


def next_version(versions: Iterable[str]) -> str:
    """Return the patch release after the highest of ``versions`` (0.0.1 if none)."""
    latest = max((_parse_version(v) for v in versions), default=semver.Version(0, 0, 0))
    if latest.prerelease:
        return str(semver.Version(latest.major, latest.minor, latest.patch))
    return str(latest.bump_patch())


def copy_file(src: str | os.PathLike, dst: str | os.PathLike) -> None:
    """Copy ``src`` to ``dst``, hard-linking where possible.

    Nothing happens if both already name the same file.
    """
    src_stat = os.stat(src)
    if not stat.S_ISREG(src_stat.st_mode):
        raise ValueError(f"non-regular source file {os.fspath(src)} ({stat.filemode(src_stat.st_mode)})")
    try:
        dst_stat = os.stat(dst)
    except FileNotFoundError:
        pass
    else:
        if not stat.S_ISREG(dst_stat.st_mode):
            raise ValueError(
                f"non-regular destination file {os.fspath(dst)} ({stat.filemode(dst_stat.st_mode)})"
            )
        if os.path.samestat(src_stat, dst_stat):
            return
    try:
        os.link(src, dst)
        return
    except OSError:
        pass
    with open(src, "rb") as reader, open(dst, "wb") as writer:
        shutil.copyfileobj(reader, writer)
        writer.flush()
        os.fsync(writer.fileno())


def _private_opener(path: str, flags: int) -> int:
    return os.open(path, flags, 0o600)


def _find_spec(names: Sequence[str]) -> str | None:
    candidates = [n for n in names if "api" in n and n.endswith(".json")]
    return candidates[-1] if candidates else None


def generate_clients(services_dir: str | os.PathLike, work_dir: str | os.PathLike) -> list[Path]:
    """Append TypeScript interfaces for each service to ``clients/ts/<service>/index.ts``.

    Service names come from the directories in ``services_dir``; their files
    are read from ``work_dir``. Services holding a ``skip`` file are left out.
    Returns the index files written to.
    """
    work = Path(work_dir)
    ts_path = work / "clients" / "ts"
    written: list[Path] = []
    entries = sorted(Path(services_dir).iterdir(), key=lambda p: p.name)
    for entry in entries:
        if not entry.is_dir() or entry.name.startswith("."):
            continue
        service_dir = work / entry.name
        names = sorted(p.name for p in service_dir.iterdir())
        if "skip" in names:
            continue
        spec_name = _find_spec(names)
        print(service_dir / spec_name if spec_name else "")
        print("Processing folder", service_dir)
        if spec_name is None:
            raise FileNotFoundError(f"no openapi json spec in {service_dir}")

        spec = json.loads((service_dir / spec_name).read_text())
        schemas = (spec.get("components") or {}).get("schemas") or {}
        content = "".join(schema_to_ts(name, schema) + "\n\n" for name, schema in schemas.items())

        out_dir = ts_path / entry.name
        out_dir.mkdir(parents=True, exist_ok=True)
        index = out_dir / "index.ts"
        with open(index, "a", opener=_private_opener) as fh:
            fh.write(content)
        with open(ts_path / "index.ts", "a", opener=_private_opener):
            pass
        written.append(index)
    return written


def _fetch_versions(ts_path: Path) -> list[str]:
    result = subprocess.run(
        ["npm", "show", _NPM_PACKAGE, "--time", "--json"],
        cwd=ts_path,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )
    output = result.stdout or b""
    if result.returncode != 0:
        raise RuntimeError(f"Failed to get versions of NPM package {output.decode(errors='replace')}")
    if not output:
        return []
    try:
        return list(json.loads(output).get("versions") or [])
    except ValueError as exc:
        raise RuntimeError(f"Failed to unmarshal versions {output.decode(errors='replace')}") from exc


def main(argv: Sequence[str] | None = None) -> int:
    """Generate clients for the services listed in a directory and bump the package version."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("usage: tsgen <services-dir>", file=sys.stderr)
        return 2

    work_dir = Path.cwd()
    ts_path = work_dir / "clients" / "ts"
    try:
        generate_clients(args[0], work_dir)
    except (OSError, ValueError) as exc:
        print("Failed to generate clients", exc)
        return 1

    token = os.environ.get("NPM_TOKEN", "")
    try:
        with open(ts_path / ".npmrc", "a", opener=_private_opener) as fh:
            if not token:
                print("No NPM_TOKEN env found")
                return 1
            fh.write("\n//npm.pkg.github.com/:_authToken=" + token)
    except OSError as exc:
        print("Failed to open npmrc", exc)
        return 1

    try:
        versions = _fetch_versions(ts_path)
    except OSError as exc:
        print("Failed to get versions of NPM package", exc)
        return 1
    except RuntimeError as exc:
        print(exc)
        return 1

    try:
        new_version = next_version(versions)
    except (ValueError, TypeError) as exc:
        print("Failed to parse semver", exc)
        return 1

    print("Bumping to ", new_version)
    package_json = ts_path / "package.json"
    try:
        text = package_json.read_text()
        package_json.write_text(re.sub(r"1.0.1", new_version, text))
    except OSError as exc:
        print("Failed to bump package version", exc)
        return 1
    return 0