"""WorldCat query compiler.

Compiles a normalized aggregator query into the active WorldCat dialect.

Rules
- Criteria for journal titles, full text and series cannot be searched in
  WorldCat and are rejected before any rewriting.
- ``date`` criteria accept four shapes, each year must have 4 digits:

  ====================  ==================  ======================
  criterion             discovery           sru
  ====================  ==================  ======================
  ``{1987}``            ``yr:1987``         ``srw.yr = 1987``
  ``{AFTER 2010}``      ``yr:2010-``        ``srw.yr > 2010``
  ``{BEFORE 1990}``     ``yr:-1990``        ``srw.yr < 1990``
  ``{1987 TO 1990}``    ``yr:1987-1990``    ``srw.yr >= 1987 and srw.yr <= 1990``
  ====================  ==================  ======================

- keyword / title / author / subject / identifier become dialect prefixes.
- A lone numeric keyword also searches the identifier index.
- A query made of date criteria only is answered with no results.
- The operator's own holdings are always excluded.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable
from urllib.parse import quote_plus

from WorldcatPool.core.errors import DegenerateQueryError, MalformedDateError, UnsupportedCriterionError
from WorldcatPool.core.models import Pagination, SortSpec
from WorldcatPool.core.query import CONNECTIVE, CRITERION, TEXT, Token, criteria, render, tokenize
from WorldcatPool.sources.worldcat.dialect import DISCOVERY, SUPPORTED_FIELDS, QueryDialect
from WorldcatPool.utils.log import log

DEFAULT_UNSUPPORTED_FIELDS = ("journal_title", "fulltext", "series")

_RE_YEAR = re.compile(r"\d{4}")
_RE_INTEGER = re.compile(r"[+-]?\d+")
_RE_AFTER = re.compile(r"^AFTER\b\s*(.*)$")
_RE_BEFORE = re.compile(r"^BEFORE\b\s*(.*)$")
_RE_RANGE = re.compile(r"^(.*?)\s*\bTO\b\s*(.*)$")


@dataclass(frozen=True, slots=True)
class UpstreamQuery:
    """Compiled upstream search request.

    Attributes:
        query: Upstream query string (not yet URL-escaped).
        sort: Upstream sort token.
        offset: 1-based upstream offset.
        limit: Number of records requested.
        dialect: Dialect the query was compiled for.
        no_results: True when the query must not be sent upstream and an
            empty, successful result set is the answer.
    """

    query: str
    sort: str
    offset: int
    limit: int
    dialect: QueryDialect = DISCOVERY
    no_results: bool = False

    @property
    def encoded(self) -> str:
        """URL-escaped query string."""
        return quote_plus(self.query)

    def params(self) -> dict[str, str]:
        """Build upstream request parameters using the dialect's names."""
        names = self.dialect.params
        return {
            names["query"]: self.query,
            names["offset"]: str(self.offset),
            names["limit"]: str(self.limit),
            names["sort"]: self.sort,
        }


def sort_key(sort: SortSpec, dialect: QueryDialect = DISCOVERY) -> str:
    """Return the upstream sort token for a sort request."""
    return dialect.sort_key(sort)


@dataclass(frozen=True, slots=True)
class QueryTranslator:
    """Translate normalized queries into one WorldCat dialect.

    Attributes:
        dialect: Target upstream dialect.
        excluded_holdings: Holding-location codes never to return.
        unsupported_fields: Criteria rejected as not implemented.
    """

    dialect: QueryDialect = DISCOVERY
    excluded_holdings: tuple[str, ...] = ()
    unsupported_fields: tuple[str, ...] = DEFAULT_UNSUPPORTED_FIELDS

    def translate(
        self,
        query: str,
        *,
        sort: SortSpec = SortSpec(),
        pagination: Pagination = Pagination(start=0, rows=20),
    ) -> UpstreamQuery:
        """Compile a normalized query.

        Args:
            query: Query in the normalized grammar, already validated.
            sort: Requested ordering.
            pagination: Requested zero-based window.

        Returns:
            The compiled upstream query.

        Raises:
            UnsupportedCriterionError: For journal title, full text or series
                criteria, or any unknown field.
            MalformedDateError: When a year is not exactly 4 digits.
            DegenerateQueryError: When nothing searchable remains.
        """
        tokens = tokenize(query)
        self._reject_unsupported(tokens)

        rewritten: list[Token] = []
        searchable: list[Token] = []
        has_date = False
        for token in tokens:
            if token.kind == CRITERION:
                if token.field == "date":
                    has_date = True
                    rewritten.append(Token(kind=TEXT, text=self.convert_date(token.value)))
                else:
                    searchable.append(token)
                    rewritten.append(Token(kind=TEXT, text=self._convert_field(token)))
            elif token.kind == TEXT:
                text = token.text.replace("{", "").replace("}", "").strip()
                if text:
                    rewritten.append(Token(kind=TEXT, text=text))
            else:
                rewritten.append(token)

        parsed = render(rewritten).strip()
        log.debug("WorldCat parsed query: %s", parsed)

        keyword_prefix = self.dialect.prefix("keyword")
        if parsed in (keyword_prefix.strip(), (keyword_prefix + "*").strip()):
            raise DegenerateQueryError()

        lone = _lone_criterion(tokens)
        if lone is not None and lone.field == "keyword" and _RE_INTEGER.fullmatch(lone.value):
            log.info("%s looks like a keyword query for an identifier; add identifier search", parsed)
            parsed += f" OR {self.dialect.prefix('identifier')}{lone.value}"

        no_results = has_date and not searchable
        if no_results:
            log.info("Date-only query is not supported by WorldCat; no results: %s", query)

        for clause in self._exclusions():
            parsed += f" {clause}"

        return UpstreamQuery(
            query=parsed,
            sort=self.dialect.sort_key(sort),
            offset=pagination.start + 1,
            limit=pagination.rows,
            dialect=self.dialect,
            no_results=no_results,
        )

    def convert_date(self, value: str) -> str:
        """Rewrite the value of one date criterion into the dialect.

        Raises:
            MalformedDateError: When a year is not exactly 4 digits.
        """
        text = value.strip()

        match = _RE_AFTER.match(text)
        if match:
            return self.dialect.date_after.format(year=_extract_year(match.group(1)))

        match = _RE_BEFORE.match(text)
        if match:
            return self.dialect.date_before.format(year=_extract_year(match.group(1)))

        match = _RE_RANGE.match(text)
        if match:
            start = _extract_year(match.group(1), side="start")
            end = _extract_year(match.group(2), side="end")
            return self.dialect.date_range.format(start=start, end=end)

        return self.dialect.date_exact.format(year=_extract_year(text))

    def _convert_field(self, token: Token) -> str:
        value = token.value.replace("{", "").replace("}", "").strip()
        if self.dialect.group_values and _needs_grouping(value):
            value = f"({value})"
        return f"{self.dialect.prefix(token.field)}{value}"

    def _reject_unsupported(self, tokens: Iterable[Token]) -> None:
        for token in tokens:
            if token.kind == CRITERION:
                if token.field in self.unsupported_fields:
                    raise UnsupportedCriterionError(token.field)
                if token.field != "date" and token.field not in SUPPORTED_FIELDS:
                    raise UnsupportedCriterionError(token.field)
            elif token.kind == TEXT:
                for field in self.unsupported_fields:
                    if re.search(rf"(?<![A-Za-z_]){field}\s*:", token.text):
                        raise UnsupportedCriterionError(field)

    def _exclusions(self) -> list[str]:
        return [self.dialect.exclusion.format(code=code) for code in self.excluded_holdings]


def _extract_year(text: str, *, side: str | None = None) -> str:
    """Return the 4-digit year at the start of a date token.

    Anything from the first ``-`` on (month/day parts) is ignored.
    """
    token = text.strip()
    year = token.split("-", 1)[0].strip()
    if not _RE_YEAR.fullmatch(year):
        raise MalformedDateError(token, side)
    return year


def _lone_criterion(tokens: list[Token]) -> Token | None:
    """Return the only criterion when the query has nothing else to search."""
    found = criteria(tokens)
    if len(found) != 1:
        return None
    if any(t.kind in (CONNECTIVE, TEXT) for t in tokens):
        return None
    return found[0]


def _needs_grouping(value: str) -> bool:
    """Return True when a multi-word value is not already one unit."""
    if not any(ch.isspace() for ch in value):
        return False
    if value.startswith('"') and value.endswith('"') and value.count('"') == 2:
        return False
    if value.startswith("(") and value.endswith(")"):
        depth = 0
        for idx, ch in enumerate(value):
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0 and idx != len(value) - 1:
                    return True
        return False
    return True
