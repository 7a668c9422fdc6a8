"""Errors raised by service handlers, carrying an HTTP status code."""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any


class ServiceError(Exception):
    """An error with a service id, an HTTP status code and a detail message."""

    def __init__(self, id: str, code: int, detail: str) -> None:
        super().__init__(id, code, detail)
        self.id = id
        self.code = code
        self.detail = detail

    @property
    def status(self) -> str:
        """The reason phrase for the status code."""
        try:
            return HTTPStatus(self.code).phrase
        except ValueError:
            return ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "detail": self.detail,
            "status": self.status,
        }

    def __str__(self) -> str:
        return json.dumps(self.to_dict())

    def __repr__(self) -> str:
        return f"ServiceError(id={self.id!r}, code={self.code!r}, detail={self.detail!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ServiceError):
            return NotImplemented
        return (self.id, self.code, self.detail) == (other.id, other.code, other.detail)

    def __hash__(self) -> int:
        return hash((self.id, self.code, self.detail))


def bad_request(id: str, detail: str) -> ServiceError:
    """An error for a request the caller got wrong."""
    return ServiceError(id, HTTPStatus.BAD_REQUEST.value, detail)


def internal_server_error(id: str, detail: str) -> ServiceError:
    """An error for a failure inside the service or its providers."""
    return ServiceError(id, HTTPStatus.INTERNAL_SERVER_ERROR.value, detail)


def not_found(id: str, detail: str) -> ServiceError:
    """An error for something that does not exist."""
    return ServiceError(id, HTTPStatus.NOT_FOUND.value, detail)