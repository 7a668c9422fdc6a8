"""Cryptocurrency and foreign-exchange market data from a market-data API."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar

import requests

from .errors import bad_request, internal_server_error

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_TIMEOUT = 30

_log = logging.getLogger(__name__)

_T = TypeVar("_T")


class _DecodeError(ValueError):
    """A response body that does not have the expected shape."""


@dataclass(frozen=True)
class Article:
    """A news article about a symbol."""

    title: str = ""
    description: str = ""
    url: str = ""
    source: str = ""
    date: str = ""


@dataclass(frozen=True)
class Quote:
    """The last quote for a symbol; sizes are only reported for crypto."""

    symbol: str = ""
    ask_price: float = 0.0
    bid_price: float = 0.0
    ask_size: float = 0.0
    bid_size: float = 0.0
    timestamp: str = ""


@dataclass(frozen=True)
class History:
    """The previous day's open, high, low and close."""

    symbol: str = ""
    open: float = 0.0
    close: float = 0.0
    high: float = 0.0
    low: float = 0.0
    date: str = ""
    volume: float = 0.0


@dataclass(frozen=True)
class Price:
    """The last traded price of a symbol."""

    symbol: str = ""
    price: float = 0.0


def _object(value: Any) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _DecodeError("expected a JSON object")
    return value


def _field(obj: Mapping[str, Any], name: str) -> Any:
    """Return the value of ``name``, matching keys without regard to case; the last match wins."""
    wanted = name.casefold()
    found = None
    for key, value in obj.items():
        if key.casefold() == wanted:
            found = value
    return found


def _float(obj: Mapping[str, Any], name: str) -> float:
    value = _field(obj, name)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _DecodeError(f"field {name!r} is not a number")
    return float(value)


def _str(obj: Mapping[str, Any], name: str) -> str:
    value = _field(obj, name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _DecodeError(f"field {name!r} is not a string")
    return value


def _list(obj: Mapping[str, Any], name: str) -> list[Any]:
    value = _field(obj, name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise _DecodeError(f"field {name!r} is not a list")
    return value


def _from_millis(timestamp: float) -> datetime:
    try:
        return _EPOCH + timedelta(milliseconds=int(timestamp))
    except (OverflowError, ValueError) as exc:
        raise _DecodeError(f"timestamp out of range: {timestamp}") from exc


def _format_date(timestamp: float) -> str:
    moment = _from_millis(timestamp)
    return f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"


def _format_rfc3339_nano(timestamp: float) -> str:
    """Format a millisecond timestamp in UTC, dropping trailing zeros of the fraction."""
    moment = _from_millis(timestamp)
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    return text + "Z"


def _decode_history(symbol: str, data: Any) -> History:
    body = _object(data)
    results = _list(body, "results")
    if len(results) != 1:
        return History()
    result = _object(results[0])
    return History(
        symbol=symbol,
        open=_float(result, "o"),
        close=_float(result, "c"),
        high=_float(result, "h"),
        low=_float(result, "l"),
        date=_format_date(_float(result, "t")),
        volume=_float(result, "v"),
    )


def _decode_price(symbol: str, data: Any) -> Price:
    if data is None or not isinstance(data, dict):
        raise _DecodeError("expected a JSON object")
    value = data.get("price")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _DecodeError("price is missing or not a number")
    return Price(symbol=symbol, price=float(value))


class _MarketData:
    """Common request handling for a market-data service."""

    _service = ""
    _history_path = ""
    _quote_path = ""
    _price_path = ""

    def __init__(self, api: str, key: str) -> None:
        self.api = api
        self.key = key

    def _require_symbol(self, symbol: str, operation: str) -> None:
        if not symbol:
            raise bad_request(f"{self._service}.{operation}", "invalid symbol")

    def _fetch(
        self,
        path: str,
        symbol: str,
        what: str,
        decode: Callable[[Any], _T],
        request_id: str,
        status_id: str,
        decode_id: str,
    ) -> _T:
        detail = f"failed to get {what}"
        uri = f"{self.api}{path}{symbol}?apikey={self.key}"
        try:
            resp = requests.get(uri, timeout=_TIMEOUT)
        except requests.RequestException as exc:
            _log.error("Failed to get %s: %s", what, exc)
            raise internal_server_error(request_id, detail) from exc
        if resp.status_code != 200:
            _log.error("Failed to get %s (non 200): %d %s", what, resp.status_code, resp.text)
            raise internal_server_error(status_id, detail)
        try:
            return decode(resp.json())
        except ValueError as exc:
            _log.error("Failed to unmarshal %s: %s", what, exc)
            raise internal_server_error(decode_id, detail) from exc

    def _fetch_one(self, operation: str, path: str, symbol: str, what: str, decode: Callable[[Any], _T]) -> _T:
        error_id = f"{self._service}.{operation}"
        return self._fetch(path, symbol, what, decode, error_id, error_id, error_id)

    def history(self, symbol: str) -> History:
        """Return the previous close for ``symbol``; empty unless exactly one result comes back."""
        self._require_symbol(symbol, "history")
        return self._fetch_one(
            "history", self._history_path, symbol, "history", lambda data: _decode_history(symbol, data)
        )

    def price(self, symbol: str) -> Price:
        """Return the last traded price of ``symbol``."""
        self._require_symbol(symbol, "price")
        return self._fetch(
            self._price_path,
            symbol,
            "price",
            lambda data: _decode_price(symbol, data),
            request_id=f"{self._service}.trade",
            status_id=f"{self._service}.quote",
            decode_id=f"{self._service}.price",
        )

    def _decode_quote(self, data: Any) -> Quote:
        body = _object(data)
        return Quote(
            symbol=_str(body, "symbol"),
            ask_price=_float(body, "ask"),
            bid_price=_float(body, "bid"),
            timestamp=_format_rfc3339_nano(_float(body, "timestamp")),
        )

    def quote(self, symbol: str) -> Quote:
        """Return the last quote for ``symbol``."""
        self._require_symbol(symbol, "quote")
        return self._fetch_one("quote", self._quote_path, symbol, "quote", self._decode_quote)


class Crypto(_MarketData):
    """Cryptocurrency news, quotes, prices and history."""

    _service = "crypto"
    _history_path = "agg/crypto/prev-close/"
    _quote_path = "last/quote/crypto/"
    _price_path = "last/crypto/"

    def __init__(self, api: str, key: str) -> None:
        super().__init__(api, key)

    def _decode_quote(self, data: Any) -> Quote:
        body = _object(data)
        return Quote(
            symbol=_str(body, "symbol"),
            ask_price=_float(body, "ask"),
            bid_price=_float(body, "bid"),
            ask_size=_float(body, "asize"),
            bid_size=_float(body, "bsize"),
            timestamp=_format_rfc3339_nano(_float(body, "timestamp")),
        )

    def news(self, symbol: str) -> list[Article]:
        """Return recent news articles about ``symbol``."""
        self._require_symbol(symbol, "news")

        def decode(data: Any) -> list[Article]:
            body = _object(data)
            articles = []
            for item in _list(body, "news"):
                if item is None:
                    articles.append(Article())
                    continue
                entry = _object(item)
                articles.append(
                    Article(
                        title=_str(entry, "title"),
                        description=_str(entry, "description"),
                        url=_str(entry, "url"),
                        source=_str(entry, "source"),
                        date=_str(entry, "date"),
                    )
                )
            return articles

        return self._fetch_one("news", "news/cryptocurrency/", symbol, "news", decode)

    def history(self, symbol: str) -> History:
        """Return the previous close for ``symbol``; empty unless exactly one result comes back."""
        return super().history(symbol)

    def quote(self, symbol: str) -> Quote:
        """Return the last quote for ``symbol``, with sizes."""
        return super().quote(symbol)

    def price(self, symbol: str) -> Price:
        """Return the last traded price of ``symbol``."""
        return super().price(symbol)


class Forex(_MarketData):
    """Foreign-exchange quotes, prices and history."""

    _service = "forex"
    _history_path = "agg/forex/prev-close/"
    _quote_path = "last/forex/"
    _price_path = "last/trade/forex/"

    def __init__(self, api: str, key: str) -> None:
        super().__init__(api, key)

    def history(self, symbol: str) -> History:
        """Return the previous close for ``symbol``; empty unless exactly one result comes back."""
        return super().history(symbol)

    def quote(self, symbol: str) -> Quote:
        """Return the last quote for ``symbol``, without sizes."""
        return super().quote(symbol)

    def price(self, symbol: str) -> Price:
        """Return the last traded price of ``symbol``."""
        return super().price(symbol)