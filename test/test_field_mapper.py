"""Tests for WorldCat response parsing and field mapping."""

import json
import sys
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from WorldcatPool.core.errors import UpstreamFormatError
from WorldcatPool.sources.worldcat.parser import BriefRecord, FieldMapper, parse_brief_response

_SRU_XML = """<?xml version="1.0" encoding="UTF-8"?>
<searchRetrieveResponse xmlns="http://www.loc.gov/zing/srw/">
  <version>1.1</version>
  <numberOfRecords>2</numberOfRecords>
  <records>
    <record>
      <recordSchema>info:srw/schema/1/dc</recordSchema>
      <recordData>
        <oclcdcs xmlns:dc="http://purl.org/dc/elements/1.1/">
          <dc:title>Dune / Frank Herbert</dc:title>
          <dc:creator>Herbert, Frank.</dc:creator>
          <dc:date>1965</dc:date>
          <dc:language>eng</dc:language>
          <dc:identifier>9780441013593</dc:identifier>
          <dc:identifier>https://babel.hathitrust.org/cgi/pt?id=1</dc:identifier>
          <dc:description>A desert planet.</dc:description>
          <dc:description>Sequel follows.</dc:description>
          <dc:subject>Science fiction</dc:subject>
          <dc:publisher>Chilton Books</dc:publisher>
          <dc:format>Book</dc:format>
          <dc:type>Text</dc:type>
          <oclcterms:recordIdentifier xmlns:oclcterms="http://purl.org/oclc/terms/">123</oclcterms:recordIdentifier>
        </oclcdcs>
      </recordData>
    </record>
    <record>
      <recordData>
        <oclcdcs>
          <recordIdentifier>456</recordIdentifier>
        </oclcdcs>
      </recordData>
    </record>
  </records>
</searchRetrieveResponse>
"""

_DISCOVERY_JSON = {
    "numberOfRecords": 1312,
    "briefRecords": [
        {
            "oclcNumber": "123",
            "title": "Dune",
            "creator": "Frank Herbert",
            "date": "1965",
            "language": "eng",
            "generalFormat": "Book",
            "specificFormat": "PrintBook",
            "publisher": "Chilton Books",
            "publicationPlace": "Philadelphia",
            "isbns": ["9780441013593", "0441013597"],
        },
        "not a record",
    ],
}


def _detailed_record() -> dict:
    return {
        "identifier": {"oclcNumber": "123", "isbns": ["9780441013593"]},
        "title": {
            "mainTitles": [{"text": "Dune / Frank Herbert."}],
            "seriesTitles": [{"seriesTitle": "Dune chronicles"}],
        },
        "contributor": {
            "creators": [{"firstName": {"text": "Frank"}, "secondName": {"text": "Herbert"}}],
            "contributors": [{"nonPersonName": {"text": "Chilton Books"}}],
        },
        "subjects": [{"subjectName": {"text": "Science fiction"}}, {"subjectName": {"text": "Arrakis"}}],
        "publishers": [{"publisherName": {"text": "Chilton Books"}, "publicationPlace": "Philadelphia"}],
        "date": {"publicationDate": "1965"},
        "language": {"itemLanguage": "eng"},
        "format": {"generalFormat": "Book", "materialTypes": ["fic"]},
        "description": {"summaries": [{"text": "A desert planet."}]},
        "note": {"generalNotes": [{"text": "First edition."}]},
        "digitalAccessAndLocations": [
            {"uri": "https://babel.hathitrust.org/cgi/pt?id=1"},
            {"uri": "https://api.overdrive.com/v1/collections/x"},
            {"uri": "http://ebooks.example.edu/[institution]/dune"},
            {"uri": "https://archive.example.org/dune"},
        ],
    }


def _names(fields) -> list:
    return [f.name for f in fields]


def _values(fields, name: str) -> list:
    return [f.value for f in fields if f.name == name]


class TestParseBriefResponse(unittest.TestCase):
    def test_sru_xml(self) -> None:
        response = parse_brief_response(_SRU_XML.encode("utf-8"), "xml")
        self.assertEqual(response.total, 2)
        self.assertEqual([r.id for r in response.records], ["123", "456"])
        first = response.records[0]
        self.assertEqual(first.titles, ("Dune / Frank Herbert",))
        self.assertEqual(first.identifiers, ("9780441013593", "https://babel.hathitrust.org/cgi/pt?id=1"))
        self.assertEqual(first.descriptions, ("A desert planet.", "Sequel follows."))
        self.assertEqual(first.formats, ("Book",))

    def test_discovery_json(self) -> None:
        response = parse_brief_response(json.dumps(_DISCOVERY_JSON), "json")
        self.assertEqual(response.total, 1312)
        self.assertEqual(len(response.records), 1)
        record = response.records[0]
        self.assertEqual(record.id, "123")
        self.assertEqual(record.creators, ("Frank Herbert",))
        self.assertEqual(record.identifiers, ("9780441013593", "0441013597"))
        self.assertEqual(record.types, ("PrintBook",))
        self.assertEqual(record.places, ("Philadelphia",))

    def test_empty_json_result(self) -> None:
        response = parse_brief_response(b'{"numberOfRecords": 0}', "json")
        self.assertEqual(response.total, 0)
        self.assertEqual(list(response.records), [])

    def test_invalid_payloads(self) -> None:
        cases = [
            (b"<html>oops", "xml"),
            (b"<diagnostics/>", "xml"),
            (b"not json", "json"),
            (b"[1, 2]", "json"),
            (b'{"briefRecords": "x"}', "json"),
            (b"{}", "yaml"),
        ]
        for payload, fmt in cases:
            with self.subTest(payload=payload, fmt=fmt):
                with self.assertRaises(UpstreamFormatError) as ctx:
                    parse_brief_response(payload, fmt)
                self.assertEqual(ctx.exception.status_code, 500)


class TestMapBrief(unittest.TestCase):
    def setUp(self) -> None:
        self.mapper = FieldMapper()

    def test_field_order(self) -> None:
        record = parse_brief_response(_SRU_XML.encode("utf-8"), "xml").records[0]
        fields = self.mapper.map_brief(record)
        self.assertEqual(
            _names(fields),
            [
                "id",
                "publication_date",
                "language",
                "title",
                "isbn",
                "access_url",
                "availability",
                "author",
                "subject",
                "description",
                "publisher",
                "format",
                "type",
                "worldcat_url",
            ],
        )
        self.assertEqual(_values(fields, "title"), ["Dune"])
        self.assertEqual(_values(fields, "description"), ["A desert planet. Sequel follows."])
        self.assertEqual(_values(fields, "worldcat_url"), ["https://www.worldcat.org/oclc/123"])

    def test_access_url_provider(self) -> None:
        record = BriefRecord(id="1", identifiers=("https://babel.hathitrust.org/cgi/pt?id=1",))
        fields = self.mapper.map_brief(record)
        links = [f for f in fields if f.name == "access_url"]
        self.assertEqual(len(links), 1)
        self.assertEqual(links[0].provider, "hathitrust")
        self.assertEqual(_values(fields, "availability"), ["Online"])

    def test_no_access_url_is_by_request(self) -> None:
        fields = self.mapper.map_brief(BriefRecord(id="1", identifiers=("9780441013593",)))
        self.assertEqual(_values(fields, "availability"), ["By Request"])
        self.assertEqual(_values(fields, "isbn"), ["9780441013593"])

    def test_author_entities_unescaped(self) -> None:
        fields = self.mapper.map_brief(BriefRecord(id="1", creators=("O&amp;apos;Brien, Flann",)))
        self.assertEqual(_values(fields, "author"), ["O'Brien, Flann"])

    def test_minimal_record(self) -> None:
        fields = self.mapper.map_brief(BriefRecord(id="456"))
        self.assertEqual(_names(fields), ["id", "availability", "worldcat_url"])

    def test_record_without_id(self) -> None:
        fields = self.mapper.map_brief(BriefRecord(id="", titles=("Untitled",)))
        self.assertEqual(_names(fields), ["title", "availability"])

    def test_citation_parts(self) -> None:
        record = parse_brief_response(json.dumps(_DISCOVERY_JSON), "json").records[0]
        parts = {f.name: f.citation_part for f in self.mapper.map_brief(record) if f.citation_part}
        self.assertEqual(parts["id"], "id")
        self.assertEqual(parts["title"], "title")
        self.assertEqual(parts["author"], "author")
        self.assertEqual(parts["isbn"], "serial_number")
        self.assertEqual(parts["publisher"], "publisher")
        self.assertEqual(parts["publication_date"], "published_date")
        self.assertEqual(parts["published_location"], "published_location")


class TestMapDetailed(unittest.TestCase):
    def setUp(self) -> None:
        self.mapper = FieldMapper()

    def test_full_record(self) -> None:
        fields = self.mapper.map_detailed(_detailed_record())
        self.assertEqual(
            _names(fields),
            [
                "id",
                "publication_date",
                "language",
                "title",
                "isbn",
                "access_url",
                "access_url",
                "availability",
                "author",
                "author",
                "subject",
                "subject",
                "description",
                "publisher",
                "published_location",
                "format",
                "type",
                "series",
                "note",
                "worldcat_url",
            ],
        )
        self.assertEqual(_values(fields, "title"), ["Dune"])
        self.assertEqual(_values(fields, "author"), ["Frank Herbert", "Chilton Books"])
        self.assertEqual(_values(fields, "series"), ["Dune chronicles"])
        self.assertEqual(_values(fields, "note"), ["First edition."])

    def test_invalid_urls_dropped_and_classified(self) -> None:
        fields = self.mapper.map_detailed(_detailed_record())
        links = [(f.value, f.provider) for f in fields if f.name == "access_url"]
        self.assertEqual(
            links,
            [
                ("https://babel.hathitrust.org/cgi/pt?id=1", "hathitrust"),
                ("https://archive.example.org/dune", "worldcat"),
            ],
        )

    def test_missing_optional_sections(self) -> None:
        record = _detailed_record()
        del record["title"]["seriesTitles"]
        del record["note"]
        record["contributor"] = "unexpected"
        record["subjects"] = None
        fields = self.mapper.map_detailed(record)
        self.assertNotIn("series", _names(fields))
        self.assertNotIn("note", _names(fields))
        self.assertNotIn("author", _names(fields))
        self.assertNotIn("subject", _names(fields))

    def test_missing_title_never_raises(self) -> None:
        fields = self.mapper.map_detailed({"identifier": {"oclcNumber": "9"}})
        self.assertEqual(_names(fields), ["id", "availability", "worldcat_url"])

    def test_physical_description_fallback(self) -> None:
        record = _detailed_record()
        record["description"] = {"physicalDescription": "412 pages"}
        self.assertEqual(_values(self.mapper.map_detailed(record), "description"), ["412 pages"])

    def test_custom_record_url_and_rules(self) -> None:
        mapper = FieldMapper(
            provider_rules=(("archive.example", "archive"),),
            record_url="https://search.worldcat.org/title/{id}",
            default_provider="wc",
        )
        fields = mapper.map_detailed(_detailed_record())
        providers = [f.provider for f in fields if f.name == "access_url"]
        self.assertEqual(providers, ["wc", "archive"])
        self.assertEqual(_values(fields, "worldcat_url"), ["https://search.worldcat.org/title/123"])


class TestMapEnrichment(unittest.TestCase):
    def test_both_formats(self) -> None:
        fields = FieldMapper().map_enrichment("Book", "Digital")
        self.assertEqual([(f.name, f.value, f.display) for f in fields], [
            ("general_format", "Book", "optional"),
            ("specific_format", "Digital", "optional"),
        ])

    def test_blank_formats_skipped(self) -> None:
        self.assertEqual(FieldMapper().map_enrichment("", "  "), [])

    def test_classify_provider(self) -> None:
        mapper = FieldMapper()
        self.assertEqual(mapper.classify_provider("https://books.google.com/books?id=x"), "google")
        self.assertEqual(mapper.classify_provider("https://www.overdrive.com/media/1"), "overdrive")
        self.assertEqual(mapper.classify_provider("https://example.org/"), "worldcat")


if __name__ == "__main__":
    unittest.main()
