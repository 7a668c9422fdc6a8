"""Sending e-mail through a transactional mail API."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import requests

from .errors import bad_request, internal_server_error

DEFAULT_ENDPOINT = "https://api.sendgrid.com/v3/mail/send"

_log = logging.getLogger(__name__)


class _DeliveryError(Exception):
    pass


@dataclass(frozen=True)
class SendgridConfig:
    """The API key and the address mail is sent from."""

    key: str = ""
    email_from: str = ""


def build_message(
    config: SendgridConfig,
    from_name: str,
    to: str,
    subject: str,
    text_body: str = "",
    html_body: str = "",
    reply_to: str = "",
) -> dict[str, Any]:
    """Build the JSON body of a send request."""
    content = []
    if text_body:
        content.append({"type": "text/plain", "value": text_body})
    if html_body:
        content.append({"type": "text/html", "value": html_body})
    return {
        "from": {"email": config.email_from, "name": from_name},
        "reply_to": {"email": reply_to or config.email_from},
        "subject": subject,
        "content": content,
        "personalizations": [{"to": [{"email": to}]}],
    }


class Email:
    """Validates and sends e-mail."""

    def __init__(self, config: SendgridConfig, endpoint: str = DEFAULT_ENDPOINT) -> None:
        if not config.key:
            raise ValueError("Sendgrid API key not configured")
        self.config = config
        self.endpoint = endpoint

    def send(
        self,
        from_name: str,
        to: str,
        subject: str,
        text_body: str = "",
        html_body: str = "",
        reply_to: str = "",
    ) -> None:
        """Send one message; at least one of the bodies is required."""
        if not from_name:
            raise bad_request("email.send.validation", "Missing from address")
        if not to:
            raise bad_request("email.send.validation", "Missing to address")
        if not subject:
            raise bad_request("email.send.validation", "Missing subject")
        if not text_body and not html_body:
            raise bad_request("email.send.validation", "Missing email body")

        message = build_message(self.config, from_name, to, subject, text_body, html_body, reply_to)
        try:
            self._deliver(message)
        except (requests.RequestException, _DeliveryError) as exc:
            _log.error("Error sending email: %s", exc)
            raise internal_server_error("email.sendemail", "Error sending email") from exc

    def _deliver(self, message: dict[str, Any]) -> None:
        headers = {
            "Authorization": "Bearer " + self.config.key,
            "Content-Type": "application/json",
        }
        resp = requests.post(self.endpoint, data=json.dumps(message), headers=headers, timeout=30)
        if not 200 <= resp.status_code <= 299:
            raise _DeliveryError(f"could not send email, error: {resp.text}")