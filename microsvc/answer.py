"""Instant answers to free-text questions from a search engine's answer API."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import requests

from .errors import bad_request, internal_server_error

DEFAULT_API_URL = "https://api.duckduckgo.com/"
IMAGE_BASE_URL = "https://duckduckgo.com"
NO_ANSWER = "Sorry I don't know 😞"
RELATED_PREFIX = "Don't have an answer for that but here's a related topic: "

_log = logging.getLogger(__name__)


@dataclass
class QuestionResponse:
    """An answer with an optional link and image."""

    answer: str = ""
    url: str = ""
    image: str = ""


def _text(mapping: Mapping[str, Any], key: str) -> str:
    value = mapping.get(key)
    return value if isinstance(value, str) else ""


def answer_from_result(result: Mapping[str, Any]) -> QuestionResponse:
    """Build an answer from a decoded instant-answer API result."""
    abstract = _text(result, "Abstract")
    abstract_text = _text(result, "AbstractText")
    abstract_url = _text(result, "AbstractURL")
    image = _text(result, "Image")
    topics = result.get("RelatedTopics") or []
    topic: Mapping[str, Any] | None = topics[0] if topics else None
    if topic is not None and not isinstance(topic, Mapping):
        topic = {}

    if abstract:
        answer = abstract
    elif abstract_text:
        answer = abstract_text
    elif topic is not None:
        answer = RELATED_PREFIX + _text(topic, "Text")
    else:
        return QuestionResponse(answer=NO_ANSWER)

    response = QuestionResponse(answer=answer)

    if abstract_url and (abstract or abstract_text):
        response.url = abstract_url
    elif topic is not None:
        response.url = _text(topic, "FirstURL")

    if image:
        response.image = IMAGE_BASE_URL + image
    elif topic is not None:
        icon = topic.get("Icon")
        icon_url = _text(icon, "URL") if isinstance(icon, Mapping) else ""
        response.image = IMAGE_BASE_URL + icon_url

    return response


class Answer:
    """Answers questions by querying an instant-answer API."""

    def __init__(self, api_url: str = DEFAULT_API_URL) -> None:
        self.api_url = api_url

    def question(self, query: str) -> QuestionResponse:
        """Look up ``query`` and return the best answer found."""
        if not query:
            raise bad_request("answer.question", "need a question")
        try:
            resp = requests.get(
                self.api_url,
                params={"q": query, "format": "json"},
                timeout=30,
            )
            resp.raise_for_status()
            result = resp.json()
        except (requests.RequestException, ValueError) as exc:
            _log.error("Failed to query answer API: %s", exc)
            raise internal_server_error("answer.question", str(exc)) from exc
        if not isinstance(result, Mapping):
            raise internal_server_error("answer.question", "unexpected response from answer API")
        return answer_from_result(result)