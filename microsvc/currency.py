"""Currency codes, exchange rates and conversions from an exchange-rate API."""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import requests

from .errors import bad_request, internal_server_error

DEFAULT_TTL = 5 * 60
_HOUR = 60 * 60
_DAY = 24 * _HOUR
_DATE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)

_log = logging.getLogger(__name__)


class ExpiringCache:
    """A thread-safe in-memory cache whose entries expire.

    ``None`` is returned for missing or expired keys, so ``None`` is not
    cached meaningfully.
    """

    def __init__(self, default_ttl: float = DEFAULT_TTL) -> None:
        self.default_ttl = default_ttl
        self._items: dict[str, tuple[Any, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        """Return the live value for ``key``, or None."""
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            value, expires = item
            if expires is not None and time.monotonic() >= expires:
                del self._items[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store ``value``; ``ttl`` None means the default, <= 0 means never expire."""
        if ttl is None:
            ttl = self.default_ttl
        expires = time.monotonic() + ttl if ttl > 0 else None
        with self._lock:
            self._items[key] = (value, expires)


@dataclass(frozen=True)
class Code:
    """A currency code and the currency's name."""

    name: str
    currency: str


@dataclass(frozen=True)
class ConvertResult:
    from_code: str
    to_code: str
    rate: float
    amount: float


def _as_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _byte_length(text: str) -> int:
    return len(text.encode("utf-8"))


def _format_amount(amount: float) -> str:
    """Format a float the shortest way, switching to exponent form for large or tiny values."""
    value = Decimal(repr(float(amount)))
    exponent = value.adjusted()
    if -4 <= exponent < 21:
        text = format(value, "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text
    mantissa, _, exp = format(value.normalize(), "e").partition("e")
    sign = exp[0] if exp[:1] in ("+", "-") else "+"
    digits = exp.lstrip("+-").rjust(2, "0")
    return f"{mantissa}e{sign}{digits}"


def _validate_code(code: str) -> None:
    if not code:
        raise bad_request("currency.rates", "missing code")
    if _byte_length(code) != 3:
        raise bad_request("currency.rates", "code is invalid")


class Currency:
    """Exchange-rate lookups, cached for a while.

    ``api`` is the base URL of the exchange-rate API, including its key.
    """

    def __init__(self, api: str, cache: ExpiringCache | None = None) -> None:
        self.api = api
        self.cache = cache if cache is not None else ExpiringCache(DEFAULT_TTL)

    def _fetch(self, url: str, error_id: str, detail: str, what: str, unmarshal_id: str | None = None) -> dict:
        try:
            resp = requests.get(url, timeout=30)
        except requests.RequestException as exc:
            _log.error("Failed to get %s: %s", what, exc)
            raise internal_server_error(error_id, detail) from exc
        if resp.status_code != 200:
            _log.error("Failed to get %s (non 200): %d %s", what, resp.status_code, resp.text)
            raise internal_server_error(error_id, detail)
        try:
            data = resp.json()
        except ValueError as exc:
            _log.error("Failed to unmarshal %s: %s", what, exc)
            raise internal_server_error(unmarshal_id or error_id, detail) from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            _log.error("Failed to unmarshal %s: not an object", what)
            raise internal_server_error(unmarshal_id or error_id, detail)
        return data

    @staticmethod
    def _rates_from(data: dict, error_id: str, detail: str) -> dict[str, float]:
        rates = data.get("conversion_rates")
        if not isinstance(rates, dict):
            _log.error("Failed to convert rates to a mapping")
            raise internal_server_error(error_id, detail)
        return {code: _as_float(rate) for code, rate in rates.items()}

    def codes(self) -> list[Code]:
        """Return the supported currency codes."""
        cached = self.cache.get("codes")
        if cached is not None:
            return list(cached)

        data = self._fetch(f"{self.api}/codes", "currency.codes", "failed to get codes", "codes")
        supported = data.get("supported_codes")
        if not isinstance(supported, list):
            _log.error("Failed to convert supported codes to a list")
            raise internal_server_error("currency.rates", "failed to get rates")

        codes = []
        for entry in supported:
            try:
                name, currency = entry[0], entry[1]
            except (TypeError, IndexError, KeyError) as exc:
                raise internal_server_error("currency.codes", "failed to get codes") from exc
            if not isinstance(name, str) or not isinstance(currency, str):
                raise internal_server_error("currency.codes", "failed to get codes")
            codes.append(Code(name=name, currency=currency))

        self.cache.set("codes", tuple(codes), _HOUR)
        return codes

    def rates(self, code: str) -> dict[str, float]:
        """Return the latest rates from ``code`` to every other currency."""
        _validate_code(code)
        key = "rates:" + code
        cached = self.cache.get(key)
        if cached is not None:
            return dict(cached)

        data = self._fetch(f"{self.api}/latest/{code}", "currency.rates", "failed to get rates", "rates")
        rates = self._rates_from(data, "currency.rates", "failed to get rates")
        self.cache.set(key, dict(rates))
        return rates

    def history(self, code: str, date: str) -> dict[str, float]:
        """Return the rates from ``code`` on ``date`` (YYYY-MM-DD)."""
        _validate_code(code)
        if not date:
            raise bad_request("currency.history", "missing date")
        if not _DATE.search(date):
            raise bad_request("currency.history", "invalid date")

        key = "history:" + code + date
        cached = self.cache.get(key)
        if cached is not None:
            return dict(cached)

        year, month, day = date.split("-")[:3]
        url = f"{self.api}/history/{code}/{year}/{month}/{day}"
        data = self._fetch(url, "currency.history", "failed to get history", "historic rates")
        rates = self._rates_from(data, "currency.history", "failed to get history")
        self.cache.set(key, dict(rates), _DAY)
        return rates

    def convert(self, from_code: str, to_code: str, amount: float = 0.0) -> ConvertResult:
        """Return the rate between two currencies, and the converted amount if one is given."""
        if _byte_length(from_code) != 3:
            raise bad_request("currency.convert", "invalid from code")
        if _byte_length(to_code) != 3:
            raise bad_request("currency.convert", "invalid to code")

        key = "pair:" + from_code + to_code
        url = f"{self.api}/pair/{from_code}/{to_code}"

        if amount == 0:
            rate = self.cache.get(key)
            if rate is not None:
                return ConvertResult(from_code, to_code, rate, 0.0)

        if amount > 0:
            url = f"{url}/{_format_amount(amount)}"

        data = self._fetch(url, "currency.convert", "failed to convert", "conversion", unmarshal_id="currency.convet")
        rate = _as_float(data.get("conversion_rate"))
        converted = _as_float(data.get("conversion_result"))

        self.cache.set(key, rate)
        return ConvertResult(from_code, to_code, rate, converted)