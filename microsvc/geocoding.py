"""Address lookup and reverse geocoding through a maps geocoding API."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import requests

from .errors import ServiceError, bad_request, internal_server_error

DEFAULT_BASE_URL = "https://maps.googleapis.com"
_GEOCODE_PATH = "/maps/api/geocode/json"
_TIMEOUT = 30
_ACCEPTED_STATUSES = ("OK", "ZERO_RESULTS")

ERR_DOWNSTREAM = internal_server_error("MAP_ERROR", "Unable to connect to map provider")
ERR_NO_RESULTS = bad_request("NO_RESULTS", "Unable to geocode address, no results found")
ERR_MISSING_LATITUDE = bad_request("MISSING_LATITUDE", "Missing latitude")
ERR_MISSING_LONGITUDE = bad_request("MISSING_LONGITUDE", "Missing longitude")

_log = logging.getLogger(__name__)


@dataclass
class Address:
    """A postal address."""

    line_one: str = ""
    line_two: str = ""
    city: str = ""
    country: str = ""
    postcode: str = ""


@dataclass
class Location:
    """A point given by latitude and longitude."""

    latitude: float = 0.0
    longitude: float = 0.0


def _fresh(error: ServiceError) -> ServiceError:
    return ServiceError(error.id, error.code, error.detail)


def lookup_query(address: str = "", city: str = "", postcode: str = "", country: str = "") -> str:
    """Join the non-blank, trimmed parts of an address with commas."""
    parts = (part.strip() for part in (address, city, postcode, country))
    return ", ".join(part for part in parts if part)


def serialize_result(result: Mapping[str, Any]) -> tuple[Address, Location]:
    """Turn one geocoding result into an address and a location."""
    address = Address()
    street = number = ""
    for component in result.get("address_components") or []:
        long_name = component.get("long_name") or ""
        for kind in component.get("types") or []:
            if kind == "street_number":
                number = long_name
            elif kind == "route":
                street = long_name
            elif kind == "neighborhood":
                address.line_two = long_name
            elif kind == "country":
                address.country = long_name
            elif kind == "postal_code":
                address.postcode = long_name
            elif kind == "postal_town":
                address.city = long_name
    address.line_one = " ".join([number, street])

    point = ((result.get("geometry") or {}).get("location")) or {}
    location = Location(
        latitude=float(point.get("lat") or 0.0),
        longitude=float(point.get("lng") or 0.0),
    )
    return address, location


class Geocoding:
    """Looks up addresses and reverse-geocodes coordinates."""

    def __init__(self, api_key: str, base_url: str = DEFAULT_BASE_URL) -> None:
        if not api_key:
            raise ValueError("Missing required config: google.apikey")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def _first_result(self, params: dict[str, str]) -> Mapping[str, Any]:
        query = {**params, "key": self.api_key}
        try:
            resp = requests.get(self.base_url + _GEOCODE_PATH, params=query, timeout=_TIMEOUT)
        except requests.RequestException as exc:
            _log.error("Error geocoding: %s", exc)
            raise _fresh(ERR_DOWNSTREAM) from exc
        if resp.status_code != 200:
            _log.error("Error geocoding: status %d %s", resp.status_code, resp.text)
            raise _fresh(ERR_DOWNSTREAM)
        try:
            data = resp.json()
        except ValueError as exc:
            _log.error("Error geocoding: %s", exc)
            raise _fresh(ERR_DOWNSTREAM) from exc
        if not isinstance(data, dict) or data.get("status") not in _ACCEPTED_STATUSES:
            _log.error("Error geocoding: unexpected response %r", data)
            raise _fresh(ERR_DOWNSTREAM)
        results = data.get("results") or []
        if not results:
            raise _fresh(ERR_NO_RESULTS)
        return results[0]

    def lookup(
        self, address: str = "", city: str = "", postcode: str = "", country: str = ""
    ) -> tuple[Address, Location]:
        """Normalise an address and find its coordinates."""
        result = self._first_result({"address": lookup_query(address, city, postcode, country)})
        return serialize_result(result)

    def reverse(self, latitude: float, longitude: float) -> tuple[Address, Location]:
        """Find the address at a pair of coordinates."""
        if latitude == 0.0:
            raise _fresh(ERR_MISSING_LATITUDE)
        if longitude == 0.0:
            raise _fresh(ERR_MISSING_LONGITUDE)
        result = self._first_result({"latlng": f"{latitude:f},{longitude:f}"})
        return serialize_result(result)