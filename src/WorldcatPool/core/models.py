from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence


@dataclass(frozen=True, slots=True)
class SortSpec:
    """Requested result ordering.

    Attributes:
        sort_id: One of relevance/date/title/author. Empty means relevance.
        order: ``asc`` or ``desc``.
    """

    sort_id: str = ""
    order: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"sort_id": self.sort_id, "order": self.order}


@dataclass(frozen=True, slots=True)
class Pagination:
    """Zero-based result window with the upstream total when known."""

    start: int = 0
    rows: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"start": self.start, "rows": self.rows, "total": self.total}


@dataclass(frozen=True, slots=True)
class SearchRequest:
    """Normalized search request sent by the aggregator.

    Attributes:
        query: Query in the normalized grammar, e.g. ``keyword: {cats}``.
        pagination: Requested window (``start`` is zero-based).
        sort: Requested ordering.
        filters: Facet filters. WorldCat cannot filter, so any filter means
            an empty result set.
    """

    query: str
    pagination: Pagination = Pagination(start=0, rows=20)
    sort: SortSpec = SortSpec()
    filters: Sequence[Any] = ()


@dataclass(frozen=True, slots=True)
class RecordField:
    """One labeled value of a normalized record.

    Empty optional attributes are omitted from the JSON form; an empty
    ``visibility`` means "basic" and an empty ``type`` means "text".
    """

    name: str
    label: str
    value: str
    type: str = ""
    visibility: str = ""
    display: str = ""
    provider: str = ""
    citation_part: str = ""
    separator: str = ""

    def to_dict(self) -> dict[str, str]:
        out = {"name": self.name, "label": self.label, "value": self.value}
        for key in ("type", "visibility", "display", "provider", "citation_part", "separator"):
            value = getattr(self, key)
            if value:
                out[key] = value
        return out


@dataclass(frozen=True, slots=True)
class Record:
    fields: Sequence[RecordField]

    def to_dict(self) -> dict[str, Any]:
        return {"fields": [f.to_dict() for f in self.fields]}


@dataclass(frozen=True, slots=True)
class Group:
    """Result group keyed by the upstream record id. Always one record."""

    value: str
    count: int
    records: Sequence[Record] = ()

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"value": self.value, "count": self.count}
        if self.records:
            out["record_list"] = [r.to_dict() for r in self.records]
        return out


@dataclass(frozen=True, slots=True)
class PoolResult:
    """Search response envelope returned to the aggregator."""

    pagination: Pagination
    sort: SortSpec
    groups: Sequence[Group] = ()
    elapsed_ms: int = 0
    confidence: str = "low"
    status_code: int = 200
    status_msg: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "elapsed_ms": self.elapsed_ms,
            "pagination": self.pagination.to_dict(),
            "sort": self.sort.to_dict(),
            "group_list": [g.to_dict() for g in self.groups],
            "confidence": self.confidence,
            "status_code": self.status_code,
        }
        if self.status_msg:
            out["status_msg"] = self.status_msg
        return out
