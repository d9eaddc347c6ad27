"""Request bodies accepted by the pool HTTP API."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from WorldcatPool.core.models import Pagination, SearchRequest, SortSpec


class PaginationBody(BaseModel):
    """Requested result window; ``start`` is zero-based."""
    start: int = Field(default=0, ge=0)
    rows: int = Field(default=20, ge=0)


class SortBody(BaseModel):
    sort_id: str = ""
    order: str = ""


class SearchBody(BaseModel):
    """Aggregator search request."""
    query: str
    pagination: PaginationBody = Field(default_factory=PaginationBody)
    sort: SortBody = Field(default_factory=SortBody)
    filters: Optional[List[Any]] = None

    def to_request(self) -> SearchRequest:
        return SearchRequest(
            query=self.query,
            pagination=Pagination(start=self.pagination.start, rows=self.pagination.rows),
            sort=SortSpec(sort_id=self.sort.sort_id, order=self.sort.order),
            filters=tuple(self.filters or ()),
        )
