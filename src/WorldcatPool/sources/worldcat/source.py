"""WorldCat source adapter."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping

from WorldcatPool.core.errors import EnrichmentFailure, PoolError
from WorldcatPool.core.models import Group, Pagination, PoolResult, Record, RecordField, SearchRequest, SortSpec
from WorldcatPool.core.query import validate
from WorldcatPool.sources.worldcat.client import WorldcatApiClient
from WorldcatPool.sources.worldcat.parser import FieldMapper, parse_brief_response
from WorldcatPool.sources.worldcat.query import QueryTranslator
from WorldcatPool.utils.log import log

DEFAULT_SORT = SortSpec(sort_id="relevance", order="desc")


@dataclass(slots=True)
class WorldcatSource:
    """WorldCat-backed pool that returns normalized result envelopes."""

    client: WorldcatApiClient
    translator: QueryTranslator
    mapper: FieldMapper
    name: str = "worldcat"

    def search(self, request: SearchRequest) -> PoolResult:
        """Search WorldCat and normalize the result set.

        Args:
            request: Normalized search request.

        Returns:
            Result envelope. Filtered and date-only searches return an empty,
            successful envelope without calling WorldCat.

        Raises:
            PoolError: For invalid queries and upstream failures.
        """
        started = time.monotonic()
        sort = request.sort if request.sort.sort_id else DEFAULT_SORT
        log.info("Raw query: %s, %s %s", request.query, request.pagination, request.sort)

        # WorldCat does not support filtering
        if request.filters or "filter:" in request.query:
            log.info("Filters specified in search, return no matches")
            return PoolResult(pagination=Pagination(), sort=sort)

        validate(request.query)
        upstream = self.translator.translate(request.query, sort=request.sort, pagination=request.pagination)
        if upstream.no_results:
            return PoolResult(pagination=Pagination(start=request.pagination.start), sort=sort)

        log.info("Final parsed query: %s", upstream.query)
        payload = self.client.search(upstream)
        response = parse_brief_response(payload, upstream.dialect.brief_format)

        groups = [
            Group(value=record.id, count=1, records=(Record(fields=self.mapper.map_brief(record)),))
            for record in response.records
        ]
        elapsed_ms = int((time.monotonic() - started) * 1000)
        log.info("Search completed: total=%d rows=%d elapsed=%dms", response.total, len(groups), elapsed_ms)
        return PoolResult(
            pagination=Pagination(start=request.pagination.start, rows=len(groups), total=response.total),
            sort=sort,
            groups=groups,
            elapsed_ms=elapsed_ms,
            confidence="medium" if response.total > 0 else "low",
        )

    def get_resource(self, oclc_number: str) -> list[RecordField]:
        """Fetch one detailed record, enriched with its format when possible.

        Raises:
            PoolError: When the detailed record cannot be fetched or parsed.
        """
        log.info("Resource %s details requested", oclc_number)
        fields = self.mapper.map_detailed(self.client.fetch_bib(oclc_number))
        try:
            fields.extend(self._enrichment(oclc_number))
        except EnrichmentFailure as error:
            log.warning("Unable to get general format for %s: %s", oclc_number, error)
        return fields

    def close(self) -> None:
        """Close resources held by the WorldCat source adapter.
        """
        self.client.close()

    def _enrichment(self, oclc_number: str) -> list[RecordField]:
        log.info("Lookup generalFormat for %s", oclc_number)
        try:
            payload: Mapping[str, Any] = self.client.fetch_format(oclc_number)
        except PoolError as error:
            raise EnrichmentFailure(error.message) from error

        general = payload.get("generalFormat")
        specific = payload.get("specificFormat")
        if not isinstance(general, str) and not isinstance(specific, str):
            raise EnrichmentFailure("format response has no generalFormat/specificFormat")
        general = general if isinstance(general, str) else ""
        specific = specific if isinstance(specific, str) else ""
        log.info("Item %s has format %s:%s", oclc_number, general, specific)
        return self.mapper.map_enrichment(general, specific)
