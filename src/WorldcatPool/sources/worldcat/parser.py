"""WorldCat payload parser.

Parses WorldCat search responses into flat ``BriefRecord`` objects and maps
brief and detailed records into the aggregator's ordered field lists.
"""

from __future__ import annotations

import html
import json
import re
import xml.etree.ElementTree as ET
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from WorldcatPool.core.errors import UpstreamFormatError
from WorldcatPool.core.models import RecordField
from WorldcatPool.utils.log import log

DEFAULT_PROVIDER_RULES: tuple[tuple[str, str], ...] = (
    ("hathitrust", "hathitrust"),
    ("proquest", "proquest"),
    ("google", "google"),
    ("vlebooks", "vlebooks"),
    ("canadiana", "canadiana"),
    ("overdrive", "overdrive"),
)
DEFAULT_INVALID_URL_MARKERS: tuple[str, ...] = ("api.overdrive", "[institution]")
DEFAULT_RECORD_URL = "https://www.worldcat.org/oclc/{id}"
UPSTREAM_PROVIDER = "worldcat"

_RE_RESPONSIBILITY = re.compile(r"\s/")
_RE_URL = re.compile(r"^https?://", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class BriefRecord:
    """Flat summary record returned by a WorldCat search.

    ``identifiers`` mixes standard numbers (ISBNs) and access URLs; the
    mapper tells them apart.
    """

    id: str
    titles: Sequence[str] = ()
    date: str = ""
    language: str = ""
    identifiers: Sequence[str] = ()
    creators: Sequence[str] = ()
    contributors: Sequence[str] = ()
    descriptions: Sequence[str] = ()
    subjects: Sequence[str] = ()
    types: Sequence[str] = ()
    formats: Sequence[str] = ()
    publishers: Sequence[str] = ()
    places: Sequence[str] = ()


@dataclass(frozen=True, slots=True)
class BriefResponse:
    total: int
    records: Sequence[BriefRecord]


def parse_brief_response(payload: str | bytes, fmt: str) -> BriefResponse:
    """Parse a search response body.

    Args:
        payload: Raw response body.
        fmt: ``json`` for discovery ``briefRecords`` or ``xml`` for SRU
            Dublin Core records.

    Returns:
        Upstream total and the parsed records in upstream order.

    Raises:
        UpstreamFormatError: If the body does not have the expected shape.
    """
    if fmt == "json":
        return _parse_discovery_json(payload)
    if fmt == "xml":
        return _parse_sru_xml(payload)
    raise UpstreamFormatError(f"Unsupported response format: {fmt}")


def _parse_discovery_json(payload: str | bytes) -> BriefResponse:
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as error:
        raise UpstreamFormatError(f"Invalid JSON response from WorldCat: {error}") from error
    if not isinstance(data, Mapping):
        raise UpstreamFormatError("Invalid JSON response from WorldCat: root must be an object")

    items = data.get("briefRecords") or []
    if not isinstance(items, list):
        raise UpstreamFormatError("Invalid JSON response from WorldCat: briefRecords must be a list")

    records: list[BriefRecord] = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        records.append(
            BriefRecord(
                id=_safe_str(item.get("oclcNumber")),
                titles=_collect_str_list([item.get("title")]),
                date=_safe_str(item.get("date")),
                language=_safe_str(item.get("language")),
                identifiers=_collect_str_list(item.get("isbns")),
                creators=_collect_str_list([item.get("creator")]),
                publishers=_collect_str_list([item.get("publisher")]),
                places=_collect_str_list([item.get("publicationPlace")]),
                formats=_collect_str_list([item.get("generalFormat")]),
                types=_collect_str_list([item.get("specificFormat")]),
            )
        )
    return BriefResponse(total=_safe_int(data.get("numberOfRecords")), records=records)


def _parse_sru_xml(payload: str | bytes) -> BriefResponse:
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as error:
        raise UpstreamFormatError(f"Invalid XML response from WorldCat: {error}") from error
    if _local(root.tag) != "searchRetrieveResponse":
        raise UpstreamFormatError(f"Invalid XML response from WorldCat: unexpected root {_local(root.tag)}")

    total = 0
    for child in root:
        if _local(child.tag) == "numberOfRecords":
            total = _safe_int((child.text or "").strip())
            break

    records = [_brief_from_dc(el) for el in root.iter() if _local(el.tag) == "oclcdcs"]
    return BriefResponse(total=total, records=records)


def _brief_from_dc(element: ET.Element) -> BriefRecord:
    values: dict[str, list[str]] = defaultdict(list)
    for child in element:
        text = (child.text or "").strip()
        if text:
            values[_local(child.tag)].append(text)

    def first(name: str) -> str:
        return values[name][0] if values[name] else ""

    return BriefRecord(
        id=first("recordIdentifier"),
        titles=tuple(values["title"]),
        date=first("date"),
        language=first("language"),
        identifiers=tuple(values["identifier"]),
        creators=tuple(values["creator"]),
        contributors=tuple(values["contributor"]),
        descriptions=tuple(values["description"]),
        subjects=tuple(values["subject"]),
        types=tuple(values["type"]),
        formats=tuple(values["format"]),
        publishers=tuple(values["publisher"]),
    )


@dataclass(frozen=True, slots=True)
class FieldMapper:
    """Map WorldCat records into ordered aggregator fields.

    Field order is fixed: id, publication date, language, title, ISBNs,
    access links, availability, authors, subjects, description, publisher,
    publication place, format, type, series, note and finally the link to
    the public WorldCat page. Absent values produce no field.

    Attributes:
        provider_rules: Ordered ``(substring, provider)`` pairs used to
            classify access URLs; the first match wins.
        invalid_url_markers: URLs containing any marker are dropped.
        record_url: Template of the public record page, ``{id}`` placeholder.
        default_provider: Provider of URLs that match no rule.
    """

    provider_rules: tuple[tuple[str, str], ...] = DEFAULT_PROVIDER_RULES
    invalid_url_markers: tuple[str, ...] = DEFAULT_INVALID_URL_MARKERS
    record_url: str = DEFAULT_RECORD_URL
    default_provider: str = UPSTREAM_PROVIDER

    def map_brief(self, record: BriefRecord) -> list[RecordField]:
        """Map a flat search record into fields."""
        fields = self._head(record.id, record.date, record.language, _first(record.titles))
        fields.extend(self._identifiers(record.identifiers))
        fields.extend(self._authors([*record.creators, *record.contributors]))
        fields.extend(self._subjects(record.subjects))

        description = " ".join(d for d in record.descriptions if d)
        fields.extend(self._details(
            description=description,
            publisher=_first(record.publishers),
            place=_first(record.places),
            fmt=_first(record.formats),
            kind=_first(record.types),
        ))
        fields.extend(self._tail(record.id))
        return fields

    def map_detailed(self, record: Mapping[str, Any]) -> list[RecordField]:
        """Map a nested WorldCat bibliographic record into fields.

        Missing or malformed nested sections are treated as absent.
        """
        oclc_number = _text(_get(record, "identifier", "oclcNumber")) or _text(record.get("oclcNumber"))
        fields = self._head(
            oclc_number,
            _text(_get(record, "date", "publicationDate")),
            _text(_get(record, "language", "itemLanguage")),
            _text(_first(_as_list(_get(record, "title", "mainTitles")))),
        )

        links = [_text(_get(item, "uri")) for item in _as_list(record.get("digitalAccessAndLocations"))]
        fields.extend(self._identifiers([*_collect_str_list(_get(record, "identifier", "isbns")), *links]))

        names = [
            _person_name(item)
            for key in ("creators", "contributors")
            for item in _as_list(_get(record, "contributor", key))
        ]
        fields.extend(self._authors(names))
        fields.extend(self._subjects([_text(_get(item, "subjectName")) for item in _as_list(record.get("subjects"))]))

        summary = _text(_first(_as_list(_get(record, "description", "summaries"))))
        if not summary:
            summary = _text(_get(record, "description", "physicalDescription"))
        publisher = _first(_as_list(record.get("publishers")))
        fields.extend(self._details(
            description=summary,
            publisher=_text(_get(publisher, "publisherName")),
            place=_text(_get(publisher, "publicationPlace")),
            fmt=_text(_get(record, "format", "generalFormat")),
            kind=_text(_first(_as_list(_get(record, "format", "materialTypes")))),
            series=_text(_get(_first(_as_list(_get(record, "title", "seriesTitles"))), "seriesTitle")),
            note=_text(_first(_as_list(_get(record, "note", "generalNotes")))),
        ))
        fields.extend(self._tail(oclc_number))
        return fields

    def map_enrichment(self, general_format: str, specific_format: str) -> list[RecordField]:
        """Map an enrichment format lookup into optional format fields."""
        fields: list[RecordField] = []
        if general_format.strip():
            fields.append(RecordField(name="general_format", type="format", label="General Format",
                                      value=general_format.strip(), display="optional"))
        if specific_format.strip():
            fields.append(RecordField(name="specific_format", type="format", label="Specific Format",
                                      value=specific_format.strip(), display="optional"))
        return fields

    def classify_provider(self, url: str) -> str:
        """Return the provider tag for an access URL."""
        lowered = url.lower()
        for marker, provider in self.provider_rules:
            if marker.lower() in lowered:
                return provider
        return self.default_provider

    def _head(self, oclc_number: str, date: str, language: str, title: str) -> list[RecordField]:
        fields: list[RecordField] = []
        if oclc_number:
            fields.append(RecordField(name="id", type="identifier", label="Identifier", value=oclc_number,
                                      display="optional", citation_part="id"))
        if date:
            fields.append(RecordField(name="publication_date", type="publication_date", label="Publication Date",
                                      value=date, citation_part="published_date"))
        if language:
            fields.append(RecordField(name="language", type="language", label="Language", value=language,
                                      visibility="detailed", citation_part="language"))
        title = _strip_responsibility(title)
        if title:
            fields.append(RecordField(name="title", type="title", label="Title", value=title, citation_part="title"))
        return fields

    def _identifiers(self, values: Iterable[str]) -> list[RecordField]:
        isbns: list[RecordField] = []
        links: list[RecordField] = []
        for value in values:
            if not value:
                continue
            if not _RE_URL.match(value):
                isbns.append(RecordField(name="isbn", type="isbn", label="ISBN", value=value,
                                         citation_part="serial_number"))
                continue
            if any(marker in value for marker in self.invalid_url_markers):
                log.warning("Skipping URL that appears invalid: %s", value)
                continue
            provider = self.classify_provider(value)
            log.debug("Online access with %s: %s", provider, value)
            links.append(RecordField(name="access_url", type="url", label="Online Access", value=value,
                                     provider=provider))

        availability = "Online" if links else "By Request"
        return [
            *isbns,
            *links,
            RecordField(name="availability", type="availability", label="Availability", value=availability),
        ]

    def _authors(self, names: Iterable[str]) -> list[RecordField]:
        fields: list[RecordField] = []
        for name in names:
            value = _unescape(name)
            if value:
                fields.append(RecordField(name="author", type="author", label="Author", value=value,
                                          citation_part="author"))
        return fields

    def _subjects(self, subjects: Iterable[str]) -> list[RecordField]:
        return [
            RecordField(name="subject", type="subject", label="Subject", value=subject,
                        visibility="detailed", citation_part="subject")
            for subject in subjects
            if subject
        ]

    def _details(
        self,
        *,
        description: str,
        publisher: str,
        place: str,
        fmt: str,
        kind: str,
        series: str = "",
        note: str = "",
    ) -> list[RecordField]:
        fields: list[RecordField] = []
        if description:
            fields.append(RecordField(name="description", type="summary", label="Description", value=description,
                                      citation_part="abstract"))
        if publisher:
            fields.append(RecordField(name="publisher", label="Publisher", value=publisher,
                                      visibility="detailed", citation_part="publisher"))
        if place:
            fields.append(RecordField(name="published_location", label="Place of Publication", value=place,
                                      visibility="detailed", citation_part="published_location"))
        if fmt:
            fields.append(RecordField(name="format", label="Format", value=fmt, visibility="detailed"))
        if kind:
            fields.append(RecordField(name="type", label="Type", value=kind, visibility="detailed"))
        if series:
            fields.append(RecordField(name="series", label="Series", value=series, visibility="detailed"))
        if note:
            fields.append(RecordField(name="note", label="Note", value=note, visibility="detailed"))
        return fields

    def _tail(self, oclc_number: str) -> list[RecordField]:
        if not oclc_number:
            return []
        return [
            RecordField(name="worldcat_url", type="url", label="More Details", provider=self.default_provider,
                        value=self.record_url.format(id=oclc_number), visibility="detailed"),
        ]


def _strip_responsibility(title: str) -> str:
    """Drop a trailing ``/ statement of responsibility`` from a title."""
    return _RE_RESPONSIBILITY.split(title, maxsplit=1)[0].strip()


def _unescape(text: str) -> str:
    """Unescape HTML entities, including double-encoded ones."""
    for _ in range(3):
        unescaped = html.unescape(text)
        if unescaped == text:
            break
        text = unescaped
    return text.strip()


def _person_name(item: Any) -> str:
    """Build a display name from a WorldCat creator/contributor object."""
    if not isinstance(item, Mapping):
        return _text(item)
    full_name = " ".join(
        part for part in (_text(item.get("firstName")), _text(item.get("secondName"))) if part
    ).strip()
    return full_name or _text(item.get("nonPersonName"))


def _get(value: Any, *path: str) -> Any:
    """Walk nested mappings, returning None at the first missing step."""
    for key in path:
        if not isinstance(value, Mapping):
            return None
        value = value.get(key)
    return value


def _text(value: Any) -> str:
    """Return the text of a string or a ``{"text": ...}`` object."""
    if isinstance(value, Mapping):
        value = value.get("text")
    return _safe_str(value)


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _first(values: Sequence[Any]) -> Any:
    return values[0] if values else ""


def _collect_str_list(value: Any) -> tuple[str, ...]:
    """Collect non-empty strings from list-like values."""
    if not isinstance(value, list):
        return ()
    return tuple(text for text in (_safe_str(item) for item in value) if text)


def _safe_str(value: Any) -> str:
    """Convert scalar value to stripped string."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return ""


def _safe_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


def _local(tag: str) -> str:
    """Strip an ElementTree ``{namespace}`` prefix."""
    return tag.rsplit("}", 1)[-1]
