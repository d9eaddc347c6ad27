"""Normalized query grammar.

The aggregator sends queries such as::

    keyword: {(calico OR "tortoise shell") AND cats} AND date: {1987 TO 1990}

A query is a sequence of field criteria (``field: {value}``) joined by the
boolean connectives AND / OR / NOT and grouped with parentheses. This module
turns the raw string into a flat token list in a single left-to-right pass;
upstream-specific rewriting happens in the source compilers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from WorldcatPool.core.errors import QueryValidationError

CRITERION = "criterion"
CONNECTIVE = "connective"
LPAREN = "lparen"
RPAREN = "rparen"
TEXT = "text"

_RE_FIELD = re.compile(r"([A-Za-z_]+)\s*:\s*\{")
_RE_CONNECTIVE = re.compile(r"(AND|OR|NOT)(?![A-Za-z0-9_])")


@dataclass(frozen=True, slots=True)
class Token:
    """One lexical unit of a normalized query.

    Attributes:
        kind: One of criterion/connective/lparen/rparen/text.
        text: Source text of the token.
        field: Lower-cased field name (criterion tokens only).
        value: Stripped text between the braces (criterion tokens only).
        closed: False when a criterion runs to end of input without ``}``.
    """

    kind: str
    text: str
    field: str = ""
    value: str = ""
    closed: bool = True


def tokenize(query: str) -> list[Token]:
    """Split a normalized query into tokens.

    A criterion value extends to the nearest ``}`` after its opening brace.
    Quoted phrases outside criteria are kept intact inside text tokens.

    Args:
        query: Raw normalized query.

    Returns:
        Tokens in source order. Whitespace between tokens is dropped.
    """
    tokens: list[Token] = []
    buf: list[str] = []
    pos = 0
    size = len(query)

    def flush() -> None:
        text = "".join(buf).strip()
        buf.clear()
        if text:
            tokens.append(Token(kind=TEXT, text=text))

    while pos < size:
        ch = query[pos]
        at_boundary = pos == 0 or not (query[pos - 1].isalnum() or query[pos - 1] == "_")

        if ch == '"':
            end = query.find('"', pos + 1)
            end = size - 1 if end == -1 else end
            buf.append(query[pos : end + 1])
            pos = end + 1
            continue

        if at_boundary:
            match = _RE_FIELD.match(query, pos)
            if match:
                flush()
                close = query.find("}", match.end())
                closed = close != -1
                stop = close if closed else size
                tokens.append(
                    Token(
                        kind=CRITERION,
                        text=query[pos : stop + 1] if closed else query[pos:],
                        field=match.group(1).lower(),
                        value=query[match.end() : stop].strip(),
                        closed=closed,
                    )
                )
                pos = stop + 1
                continue

            match = _RE_CONNECTIVE.match(query, pos)
            if match:
                flush()
                tokens.append(Token(kind=CONNECTIVE, text=match.group(1)))
                pos = match.end()
                continue

        if ch in "()":
            flush()
            tokens.append(Token(kind=LPAREN if ch == "(" else RPAREN, text=ch))
            pos += 1
            continue

        buf.append(ch)
        pos += 1

    flush()
    return tokens


def render(tokens: Sequence[Token]) -> str:
    """Join tokens back into a query string.

    Tokens are separated by single spaces, except directly inside
    parentheses.
    """
    out = ""
    for token in tokens:
        if out and not out.endswith("(") and token.kind != RPAREN:
            out += " "
        out += token.text
    return out


def criteria(tokens: Sequence[Token]) -> list[Token]:
    """Return criterion tokens only."""
    return [t for t in tokens if t.kind == CRITERION]


def validate(query: str) -> None:
    """Check a query against the normalized grammar.

    This is a structural check only: balanced parentheses and quotes, closed
    criteria, and at least one criterion.

    Raises:
        QueryValidationError: When the query is malformed.
    """
    if not query or not query.strip():
        raise QueryValidationError("Query must not be empty")
    if query.count('"') % 2:
        raise QueryValidationError("Unbalanced quotes in query")

    tokens = tokenize(query)
    depth = 0
    for token in tokens:
        if token.kind == LPAREN:
            depth += 1
        elif token.kind == RPAREN:
            depth -= 1
            if depth < 0:
                raise QueryValidationError("Unbalanced parentheses in query")
        elif token.kind == CRITERION:
            if not token.closed:
                raise QueryValidationError(f"Unterminated {token.field} criterion")
            if token.value.count("(") != token.value.count(")"):
                raise QueryValidationError(f"Unbalanced parentheses in {token.field} criterion")
    if depth != 0:
        raise QueryValidationError("Unbalanced parentheses in query")
    if not criteria(tokens):
        raise QueryValidationError("Query must include at least one field criterion")
