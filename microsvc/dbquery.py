"""Lexing and parsing of the record store's small query language."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

QUOTE_ESCAPE = str(0x10FFFF)
SINGLE_QUOTE_ESCAPE = str(0x10FFFE)
BACKTICK_ESCAPE = str(0x10FFFD)

_INT64_MAX = 2**63 - 1


class TokenType(IntEnum):
    IGNORE = 0
    # nouns
    AND = 1
    INT = 2
    FIELD_NAME = 3
    STRING = 4
    BOOL_TRUE = 5
    BOOL_FALSE = 6
    # operators
    EQUALS = 7
    NOT_EQUALS = 8
    LESS_THAN = 9
    GREATER_THAN = 10
    LESS_THAN_EQUALS = 11
    GREATER_THAN_EQUALS = 12

    @property
    def is_operator(self) -> bool:
        return self >= TokenType.EQUALS


_OP_SYMBOLS = {
    TokenType.EQUALS: "==",
    TokenType.NOT_EQUALS: "!=",
    TokenType.LESS_THAN: "<",
    TokenType.GREATER_THAN: ">",
    TokenType.LESS_THAN_EQUALS: "<=",
    TokenType.GREATER_THAN_EQUALS: ">=",
}

_EXPRESSIONS = [
    (re.compile(pattern), kind)
    for pattern, kind in (
        (r"[ ]+", TokenType.IGNORE),
        (r"==", TokenType.EQUALS),
        (r"!=", TokenType.NOT_EQUALS),
        (r"false", TokenType.BOOL_FALSE),
        (r"true", TokenType.BOOL_TRUE),
        (r"and", TokenType.AND),
        (r"<=", TokenType.LESS_THAN_EQUALS),
        (r">=", TokenType.GREATER_THAN_EQUALS),
        (r"<", TokenType.LESS_THAN),
        (r">", TokenType.GREATER_THAN),
        (r"[0-9]+", TokenType.INT),
        (r'"(?:[^"\\]|\\.)*"', TokenType.STRING),
        (r'`(?:[^"\\]|\\.)*`', TokenType.STRING),
        (r"'(?:[^\"\\]|\\.)*'", TokenType.STRING),
        (r"[<>!=+\-|&*/A-Za-z][A-Za-z0-9_.]*", TokenType.FIELD_NAME),
    )
]


class QueryError(ValueError):
    """A query that cannot be lexed or parsed."""


@dataclass(frozen=True)
class Token:
    type: TokenType
    text: str
    position: int = 0


@dataclass
class Query:
    """One comparison: a field, an operator and a value."""

    field: str = ""
    op: TokenType = TokenType.IGNORE
    value: Any = None


def lex(text: str) -> list[Token]:
    """Split a query into tokens, dropping whitespace.

    At each position the first expression that matches wins.
    """
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        for pattern, kind in _EXPRESSIONS:
            match = pattern.match(text, pos)
            if match and match.end() > pos:
                if kind is not TokenType.IGNORE:
                    tokens.append(Token(kind, match.group(), pos))
                pos = match.end()
                break
        else:
            raise QueryError(f"unexpected character {text[pos]!r} at position {pos}")
    return tokens


def _require_equality(op: TokenType, what: str) -> None:
    if op not in (TokenType.EQUALS, TokenType.NOT_EQUALS):
        raise QueryError(f"operator '{_OP_SYMBOLS.get(op, '')}' can't be used with {what}")


def _unquote(text: str) -> str:
    if len(text) < 2:
        raise QueryError(f"string literal too short: '{text}'")
    return (
        text[1:-1]
        .replace(QUOTE_ESCAPE, '"')
        .replace(SINGLE_QUOTE_ESCAPE, "'")
        .replace(BACKTICK_ESCAPE, "`")
    )


def parse(q: str) -> list[Query]:
    """Parse a query such as ``a == 12 and name != "x"`` into comparisons."""
    if QUOTE_ESCAPE in q:
        raise QueryError("query contains illegal max rune")
    q = q.replace('""', QUOTE_ESCAPE).replace("``", SINGLE_QUOTE_ESCAPE).replace("''", BACKTICK_ESCAPE)

    tokens = lex(q)
    queries: list[Query] = []
    current = Query()
    last = len(tokens) - 1
    for index, token in enumerate(tokens):
        if token.type is TokenType.AND:
            queries.append(current)
            current = Query()
            continue
        if token.type.is_operator:
            current.op = token.type
            continue

        if token.type is TokenType.FIELD_NAME:
            current.field = token.text
        elif token.type is TokenType.STRING:
            _require_equality(current.op, "strings")
            current.value = _unquote(token.text)
        elif token.type is TokenType.BOOL_TRUE:
            _require_equality(current.op, "bools")
            current.value = True
        elif token.type is TokenType.BOOL_FALSE:
            _require_equality(current.op, "bools")
            current.value = False
        elif token.type is TokenType.INT:
            number = int(token.text)
            if number > _INT64_MAX:
                raise QueryError(f"integer out of range: {token.text}")
            current.value = number

        if index == last:
            queries.append(current)
    return queries


def correct_field_name(s: str) -> str:
    """Map a (possibly dotted) field name onto its JSON column expression."""
    if s == "id":
        return s
    return "data" + "".join(f" ->> '{part}'" for part in s.split("."))