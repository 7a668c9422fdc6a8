"""Service handlers for records queries, rates, markets, geocoding, answers and e-mail, with OpenAPI tooling."""

__version__ = "0.1.0"

__all__ = [
    "answer",
    "currency",
    "dbquery",
    "errors",
    "geocoding",
    "mailer",
    "markets",
    "publisher",
    "tsgen",
]