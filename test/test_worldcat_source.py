"""Tests for WorldcatSource request orchestration."""

import json
import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import requests

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from WorldcatPool.core.errors import QueryValidationError, UpstreamRequestError
from WorldcatPool.core.models import Pagination, SearchRequest, SortSpec
from WorldcatPool.sources.worldcat.client import WorldcatApiClient
from WorldcatPool.sources.worldcat.parser import FieldMapper
from WorldcatPool.sources.worldcat.query import QueryTranslator
from WorldcatPool.sources.worldcat.source import WorldcatSource


class _StubClient:
    def __init__(self, *, payload: bytes = b"", bib: dict | None = None, fmt=None) -> None:
        self.payload = payload
        self.bib = bib or {}
        self.fmt = fmt
        self.searches = []
        self.closed = False

    def search(self, upstream):
        self.searches.append(upstream)
        return self.payload

    def fetch_bib(self, oclc_number: str) -> dict:
        return self.bib

    def fetch_format(self, oclc_number: str) -> dict:
        if isinstance(self.fmt, Exception):
            raise self.fmt
        return self.fmt

    def close(self) -> None:
        self.closed = True


def _payload(total: int, ids: list) -> bytes:
    return json.dumps(
        {"numberOfRecords": total, "briefRecords": [{"oclcNumber": i, "title": f"Title {i}"} for i in ids]}
    ).encode("utf-8")


def _source(client: _StubClient) -> WorldcatSource:
    return WorldcatSource(
        client=client,
        translator=QueryTranslator(excluded_holdings=("VAL",)),
        mapper=FieldMapper(),
    )


class TestSearch(unittest.TestCase):
    def test_search_builds_groups(self) -> None:
        client = _StubClient(payload=_payload(57, ["1", "2"]))
        result = _source(client).search(
            SearchRequest(query="keyword: {cats}", pagination=Pagination(start=20, rows=2))
        )
        self.assertEqual(len(client.searches), 1)
        self.assertEqual(client.searches[0].query, "kw:cats NOT li:VAL")
        self.assertEqual(client.searches[0].offset, 21)
        self.assertEqual([g.value for g in result.groups], ["1", "2"])
        self.assertTrue(all(g.count == 1 and len(g.records) == 1 for g in result.groups))
        self.assertEqual(result.pagination, Pagination(start=20, rows=2, total=57))
        self.assertEqual(result.confidence, "medium")
        self.assertEqual(result.status_code, 200)

    def test_default_sort_is_echoed(self) -> None:
        result = _source(_StubClient(payload=_payload(0, []))).search(SearchRequest(query="title: {x}"))
        self.assertEqual(result.sort, SortSpec("relevance", "desc"))
        self.assertEqual(result.confidence, "low")

    def test_requested_sort_is_echoed(self) -> None:
        client = _StubClient(payload=_payload(0, []))
        result = _source(client).search(SearchRequest(query="title: {x}", sort=SortSpec("date", "asc")))
        self.assertEqual(result.sort, SortSpec("date", "asc"))
        self.assertEqual(client.searches[0].sort, "publicationDateAsc")

    def test_filters_short_circuit(self) -> None:
        client = _StubClient()
        source = _source(client)
        for request in (
            SearchRequest(query="keyword: {cats}", filters=({"facet_id": "x"},)),
            SearchRequest(query="keyword: {cats} AND filter: {FilterFormat.Book}"),
        ):
            with self.subTest(request=request):
                result = source.search(request)
                self.assertEqual(list(result.groups), [])
                self.assertEqual(result.pagination.total, 0)
                self.assertEqual(result.status_code, 200)
        self.assertEqual(client.searches, [])

    def test_date_only_query_is_empty_success(self) -> None:
        client = _StubClient()
        result = _source(client).search(SearchRequest(query="date: {1987 TO 1990}"))
        self.assertEqual(client.searches, [])
        self.assertEqual(list(result.groups), [])
        self.assertEqual(result.status_code, 200)

    def test_invalid_query_raises(self) -> None:
        with self.assertRaises(QueryValidationError):
            _source(_StubClient()).search(SearchRequest(query="keyword: {cats"))

    def test_result_dict_shape(self) -> None:
        result = _source(_StubClient(payload=_payload(1, ["9"]))).search(SearchRequest(query="keyword: {cats}"))
        data = result.to_dict()
        self.assertEqual(
            set(data), {"elapsed_ms", "pagination", "sort", "group_list", "confidence", "status_code"}
        )
        self.assertEqual(data["pagination"], {"start": 0, "rows": 1, "total": 1})
        self.assertEqual(data["group_list"][0]["value"], "9")
        fields = data["group_list"][0]["record_list"][0]["fields"]
        self.assertEqual(fields[0], {
            "name": "id",
            "label": "Identifier",
            "value": "9",
            "type": "identifier",
            "display": "optional",
            "citation_part": "id",
        })
        self.assertNotIn("status_msg", data)


class TestGetResource(unittest.TestCase):
    def test_enriched_resource(self) -> None:
        client = _StubClient(
            bib={"identifier": {"oclcNumber": "5"}},
            fmt={"generalFormat": "Book", "specificFormat": "Digital"},
        )
        fields = _source(client).get_resource("5")
        self.assertEqual([f.name for f in fields][-2:], ["general_format", "specific_format"])
        self.assertEqual(fields[-1].value, "Digital")

    def test_missing_specific_format(self) -> None:
        client = _StubClient(bib={"identifier": {"oclcNumber": "5"}}, fmt={"generalFormat": "Book"})
        fields = _source(client).get_resource("5")
        self.assertEqual([f.name for f in fields if f.type == "format"], ["general_format"])

    def test_enrichment_failure_is_absorbed(self) -> None:
        for fmt in (UpstreamRequestError(404, "not found"), {"unexpected": True}):
            with self.subTest(fmt=fmt):
                client = _StubClient(bib={"identifier": {"oclcNumber": "5"}}, fmt=fmt)
                with self.assertLogs("WorldcatPool", level="WARNING"):
                    fields = _source(client).get_resource("5")
                self.assertEqual([f.name for f in fields], ["id", "availability", "worldcat_url"])

    def test_transport_error_in_format_lookup_is_absorbed(self) -> None:
        bib = MagicMock(status_code=200, content=b'{"identifier": {"oclcNumber": "42"}}', text="")

        def get(url, **kwargs):
            if url.startswith("https://wc.example/formats"):
                raise requests.TooManyRedirects("redirect loop")
            return bib

        session = MagicMock()
        session.get.side_effect = get
        auth = MagicMock()
        auth.token.return_value = "tok"
        client = WorldcatApiClient(
            search_url="https://wc.example/brief-bibs",
            bib_url="https://wc.example/bibs",
            format_url="https://wc.example/formats",
            auth=auth,
            session=session,
        )
        with self.assertLogs("WorldcatPool", level="WARNING"):
            fields = _source(client).get_resource("42")
        self.assertEqual([f.name for f in fields], ["id", "availability", "worldcat_url"])

    def test_bib_failure_propagates(self) -> None:
        class _FailingClient(_StubClient):
            def fetch_bib(self, oclc_number: str) -> dict:
                raise UpstreamRequestError(404, "no such record")

        with self.assertRaises(UpstreamRequestError) as ctx:
            _source(_FailingClient()).get_resource("5")
        self.assertEqual(ctx.exception.status_code, 404)

    def test_close(self) -> None:
        client = _StubClient()
        _source(client).close()
        self.assertTrue(client.closed)


if __name__ == "__main__":
    unittest.main()
