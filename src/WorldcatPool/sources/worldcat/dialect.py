"""WorldCat query dialects.

Everything that changes between upstream API versions lives here as data:
field prefixes, date range templates, the institution exclusion clause, the
sort-key table and the request parameter names. Upgrading the upstream API
is a matter of adding a dialect, not editing the translator.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from WorldcatPool.core.models import SortSpec

SUPPORTED_FIELDS = ("keyword", "title", "author", "subject", "identifier")

# Sort ids advertised by /identify, as the aggregator sends them back.
SORT_ALIASES = MappingProxyType(
    {
        "sortrelevance": "relevance",
        "sortdatepublished": "date",
        "sorttitle": "title",
        "sortauthor": "author",
    }
)


@dataclass(frozen=True, slots=True)
class QueryDialect:
    """Upstream query syntax for one WorldCat API version.

    Attributes:
        name: Dialect identifier used in configuration.
        prefixes: Normalized field name to upstream prefix token.
        date_exact: Template for an exact year, ``{year}`` placeholder.
        date_after: Template for ``AFTER year``.
        date_before: Template for ``BEFORE year``.
        date_range: Template for ``year TO year``, ``{start}``/``{end}``.
        exclusion: Template for one holding-location exclusion, ``{code}``.
        sort_keys: ``(sort_id, order)`` to upstream sort token. An empty
            order matches any order for that sort id.
        default_sort: Sort token used when no table entry matches.
        params: Logical request parameter to upstream parameter name.
        brief_format: Payload format of search results (json or xml).
        group_values: Whether multi-word criterion values are wrapped in
            parentheses so the prefix applies to the whole value.
    """

    name: str
    prefixes: Mapping[str, str]
    date_exact: str
    date_after: str
    date_before: str
    date_range: str
    exclusion: str
    sort_keys: Mapping[tuple[str, str], str]
    default_sort: str
    params: Mapping[str, str]
    brief_format: str
    group_values: bool = False

    def prefix(self, field: str) -> str:
        return self.prefixes[field]

    def sort_key(self, sort: SortSpec) -> str:
        """Translate a sort request into the upstream sort token."""
        sort_id = (sort.sort_id or "").strip().lower()
        sort_id = SORT_ALIASES.get(sort_id, sort_id)
        order = (sort.order or "").strip().lower()
        token = self.sort_keys.get((sort_id, order))
        if token is None:
            token = self.sort_keys.get((sort_id, ""))
        return token if token is not None else self.default_sort


DISCOVERY = QueryDialect(
    name="discovery",
    prefixes=MappingProxyType(
        {
            "keyword": "kw:",
            "title": "ti:",
            "author": "au:",
            "subject": "su:",
            "identifier": "no:",
        }
    ),
    date_exact="yr:{year}",
    date_after="yr:{year}-",
    date_before="yr:-{year}",
    date_range="yr:{start}-{end}",
    exclusion="NOT li:{code}",
    sort_keys=MappingProxyType(
        {
            ("relevance", ""): "bestMatch",
            ("title", ""): "title",
            ("date", "asc"): "publicationDateAsc",
            ("date", "desc"): "publicationDateDesc",
        }
    ),
    default_sort="bestMatch",
    params=MappingProxyType({"query": "q", "offset": "offset", "limit": "limit", "sort": "orderBy"}),
    brief_format="json",
    group_values=True,
)

SRU = QueryDialect(
    name="sru",
    prefixes=MappingProxyType(
        {
            "keyword": "srw.kw all ",
            "title": "srw.ti all ",
            "author": "srw.au all ",
            "subject": "srw.su all ",
            "identifier": "srw.bn = ",
        }
    ),
    date_exact="srw.yr = {year}",
    date_after="srw.yr > {year}",
    date_before="srw.yr < {year}",
    date_range="srw.yr >= {start} and srw.yr <= {end}",
    exclusion="NOT srw.li = {code}",
    sort_keys=MappingProxyType(
        {
            ("author", "asc"): "Author",
            ("author", "desc"): "Author,,0",
            ("author", ""): "Author,,0",
            ("title", "asc"): "Title",
            ("title", "desc"): "Title,,0",
            ("title", ""): "Title,,0",
            ("date", "asc"): "Date",
            ("date", "desc"): "Date,,0",
            ("date", ""): "Date,,0",
        }
    ),
    default_sort="relevance",
    params=MappingProxyType(
        {"query": "query", "offset": "startRecord", "limit": "maximumRecords", "sort": "sortKeys"}
    ),
    brief_format="xml",
)

_DIALECTS: dict[str, QueryDialect] = {d.name: d for d in (DISCOVERY, SRU)}


def get_dialect(name: str) -> QueryDialect:
    """Look up a built-in dialect by name.

    Raises:
        ValueError: If the dialect is unknown.
    """
    dialect = _DIALECTS.get(name.strip().lower())
    if dialect is None:
        raise ValueError(f"Unknown query dialect: {name}")
    return dialect


def dialect_names() -> tuple[str, ...]:
    return tuple(_DIALECTS.keys())
