"""Parsed feed documents and the feedparser-backed document parser."""

from __future__ import annotations

import logging
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

import feedparser

from feedcore.errors import TransportError
from feedcore.ingestion.dates import MONTH_NAMES
from feedcore.ingestion.interfaces import FetchStatus

logger = logging.getLogger(__name__)

CONTENT_NS = "http://purl.org/rss/1.0/modules/content/"
ATOM_10_NS = "http://www.w3.org/2005/Atom"
ATOM_03_NS = "http://purl.org/atom/ns#"
ITUNES_NS = "http://www.itunes.com/dtds/podcast-1.0.dtd"
DC_NS = "http://purl.org/dc/elements/1.1/"

ATOM_03 = "atom03"
ATOM_10 = "atom10"
ATOM_VERSIONS = frozenset({ATOM_03, ATOM_10})

RICH_TITLE_TYPES = frozenset({"html", "xhtml", "text/html", "application/xhtml+xml"})


@dataclass
class DocumentEntry:
    """One entry as the format parser saw it. Absent fields are None."""

    title: str | None = None
    title_type: str | None = None
    link: str | None = None
    author: str | None = None
    description: str | None = None
    pub_date: str | None = None
    guid: str | None = None
    enclosure_url: str | None = None
    enclosure_type: str | None = None
    extensions: dict[tuple[str, str], str] = field(default_factory=dict)

    def extension(self, local_name: str, namespace: str) -> str | None:
        """Look up a namespaced extension element by local name and URI."""
        return self.extensions.get((local_name, namespace))


@dataclass
class FeedDocument:
    """Feed-level fields plus entries in document order."""

    version: str = ""
    encoding: str | None = None
    title: str | None = None
    title_type: str | None = None
    description: str | None = None
    link: str | None = None
    pub_date: str | None = None
    language: str | None = None
    managing_editor: str | None = None
    entries: list[DocumentEntry] = field(default_factory=list)

    @property
    def is_atom(self) -> bool:
        return self.version in ATOM_VERSIONS


def is_rich_title(title_type: str | None) -> bool:
    return title_type in RICH_TITLE_TYPES


def _format_struct(parsed: time.struct_time | None) -> str | None:
    """Render a feedparser time tuple as an RFC 822-style date string."""
    if not parsed:
        return None
    return "{:02d} {} {} {:02d}:{:02d}:{:02d}".format(
        parsed.tm_mday,
        MONTH_NAMES[parsed.tm_mon - 1],
        parsed.tm_year,
        parsed.tm_hour,
        parsed.tm_min,
        parsed.tm_sec,
    )


def _pub_date(node, atom: bool) -> str | None:
    # Atom dates are ISO 8601; hand them on in the RFC 822 shape the date parser reads.
    if atom:
        return _format_struct(node.get("published_parsed") or node.get("updated_parsed"))
    return node.get("published") or node.get("updated")


def _detail_type(node, key: str) -> str | None:
    detail = node.get(key)
    return detail.get("type") if detail else None


# --- raw element scan ---
#
# feedparser folds several elements into one field (``dc:creator`` into
# ``author``, ``itunes:summary`` into ``summary``, Atom ``content`` into
# ``summary`` when no summary exists). Authors, descriptions and extension
# elements are therefore read from the document itself.


@dataclass
class _RawEntry:
    author: str | None = None
    description: str | None = None
    extensions: dict[tuple[str, str], str] = field(default_factory=dict)


@dataclass
class _RawDocument:
    managing_editor: str | None = None
    entries: list[_RawEntry] = field(default_factory=list)


def _split_tag(tag) -> tuple[str, str]:
    """Return ``(namespace, local_name)`` of an ElementTree tag."""
    if not isinstance(tag, str):
        return "", ""
    if tag.startswith("{"):
        namespace, _, local = tag[1:].partition("}")
        return namespace, local
    return "", tag


def _qualify(namespace: str, local: str) -> str:
    return f"{{{namespace}}}{local}" if namespace else local


def _markup(element: ET.Element) -> str:
    """Element text; embedded child elements are serialized back to markup."""
    if len(element) == 0:
        return (element.text or "").strip()
    for child in element.iter():
        child.tag = _split_tag(child.tag)[1] or child.tag
    parts = [element.text or ""]
    # tostring() includes each child's tail text.
    parts.extend(ET.tostring(child, encoding="unicode") for child in element)
    return "".join(parts).strip()


def _own_text(parent: ET.Element, namespace: str, *path: str) -> str | None:
    node = parent
    for local in path:
        node = node.find(_qualify(namespace, local))
        if node is None:
            return None
    return _markup(node)


def _scan_entry(element: ET.Element) -> _RawEntry:
    namespace, _ = _split_tag(element.tag)
    if namespace in (ATOM_10_NS, ATOM_03_NS):
        author = _own_text(element, namespace, "author", "name")
        description = _own_text(element, namespace, "summary")
    else:
        author = _own_text(element, namespace, "author")
        description = _own_text(element, namespace, "description")

    extensions: dict[tuple[str, str], str] = {}
    for child in element:
        child_ns, local = _split_tag(child.tag)
        if child_ns and child_ns != namespace and (local, child_ns) not in extensions:
            extensions[(local, child_ns)] = _markup(child)
    # Atom content lives in the entry's own namespace.
    if namespace in (ATOM_10_NS, ATOM_03_NS):
        content = _own_text(element, namespace, "content")
        if content is not None:
            extensions[("content", namespace)] = content

    return _RawEntry(author=author, description=description, extensions=extensions)


def _scan_document(data: bytes) -> _RawDocument | None:
    """Read entry-level elements straight from the XML, or None if it is not well-formed."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        logger.debug("Raw element scan skipped: %s", exc)
        return None

    namespace, local = _split_tag(root.tag)
    if local == "feed":
        return _RawDocument(
            managing_editor=_own_text(root, namespace, "author", "name"),
            entries=[_scan_entry(e) for e in root.findall(_qualify(namespace, "entry"))],
        )
    if local == "rss":
        channel = root.find("channel")
        if channel is None:
            return _RawDocument()
        return _RawDocument(
            managing_editor=_own_text(channel, "", "managingEditor"),
            entries=[_scan_entry(e) for e in channel.findall("item")],
        )
    # RSS 0.90 / 1.0: items are siblings of the channel.
    return _RawDocument(
        entries=[_scan_entry(e) for e in root if _split_tag(e.tag)[1] == "item"],
    )


def _parsed_extensions(entry, version: str) -> dict[tuple[str, str], str]:
    """Extension slots recoverable from feedparser output alone."""
    extensions: dict[tuple[str, str], str] = {}
    content = entry.get("content")
    if content:
        value = content[0].get("value")
        if version == ATOM_10:
            extensions[("content", ATOM_10_NS)] = value
        elif version == ATOM_03:
            extensions[("content", ATOM_03_NS)] = value
        else:
            extensions[("encoded", CONTENT_NS)] = value
    return extensions


def _build_entry(entry, version: str, raw: _RawEntry | None) -> DocumentEntry:
    atom = version in ATOM_VERSIONS

    if raw is not None:
        author, description = raw.author, raw.description
        extensions = dict(raw.extensions)
    else:
        author, description = entry.get("author"), entry.get("summary")
        extensions = _parsed_extensions(entry, version)

    enclosure_url = enclosure_type = None
    enclosures = entry.get("enclosures")
    if enclosures:
        enclosure_url = enclosures[0].get("href")
        enclosure_type = enclosures[0].get("type")

    return DocumentEntry(
        title=entry.get("title"),
        title_type=_detail_type(entry, "title_detail"),
        link=entry.get("link"),
        author=author,
        description=description,
        pub_date=_pub_date(entry, atom),
        guid=entry.get("id"),
        enclosure_url=enclosure_url,
        enclosure_type=enclosure_type,
        extensions=extensions,
    )


def parse_document(data: bytes) -> FeedDocument:
    """Parse a raw RSS/Atom document.

    Raises TransportError with PARSE_ERROR if the input is not a feed at all.
    """
    result = feedparser.parse(data)
    version = result.get("version", "")
    if result.get("bozo") and not version and not result.entries:
        reason = result.get("bozo_exception")
        logger.debug("Document could not be parsed: %s", reason)
        raise TransportError(f"not a feed document: {reason}", FetchStatus.PARSE_ERROR)

    raw = _scan_document(data)
    if raw is not None and len(raw.entries) != len(result.entries):
        logger.debug(
            "Raw scan found %d entries, feedparser %d; using feedparser fields",
            len(raw.entries), len(result.entries),
        )
        raw = None
    raw_entries = raw.entries if raw is not None else [None] * len(result.entries)

    channel = result.feed
    atom = version in ATOM_VERSIONS
    return FeedDocument(
        version=version,
        encoding=result.get("encoding"),
        title=channel.get("title"),
        title_type=_detail_type(channel, "title_detail"),
        description=channel.get("subtitle") or channel.get("description"),
        link=channel.get("link"),
        pub_date=_pub_date(channel, atom),
        language=channel.get("language"),
        managing_editor=raw.managing_editor if raw is not None else channel.get("author"),
        entries=[
            _build_entry(entry, version, raw_entry)
            for entry, raw_entry in zip(result.entries, raw_entries)
        ],
    )
