"""Per-item field extraction with fallback chains.

Feeds carry the same information in many different places. For each
field the candidate sources are tried in a fixed order:

- title: rich markup rendered to its first plain line, or raw text with
  CR/LF replaced by spaces
- author: item author, feed managing editor, ``dc:creator``
- description: ``content:encoded``, Atom ``content`` (Atom feeds only),
  ``itunes:summary``, the plain description
- guid: explicit guid, link, title
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING
from urllib.parse import urljoin

from feedcore.ingestion.dates import parse_date
from feedcore.ingestion.document import (
    ATOM_03_NS,
    ATOM_10_NS,
    CONTENT_NS,
    DC_NS,
    ITUNES_NS,
    DocumentEntry,
    FeedDocument,
    is_rich_title,
)
from feedcore.ingestion.encoding import DEFAULT_ENCODING, to_canonical
from feedcore.ingestion.renderer import ITUNES_HACK_CLOSE, ITUNES_HACK_OPEN, render_title
from feedcore.model import Item

if TYPE_CHECKING:
    from feedcore.ingestion.interfaces import DurableStore

logger = logging.getLogger(__name__)

DESCRIPTION_SEPARATOR = "<hr>"


def absolute_url(base: str, link: str) -> str:
    """Resolve ``link`` against the feed's source URI."""
    return urljoin(base, link)


def replace_newline_characters(text: str) -> str:
    return text.replace("\r", " ").replace("\n", " ")


def extract_title(entry: DocumentEntry, encoding: str | None = None) -> str:
    if not entry.title:
        return ""
    title = to_canonical(entry.title, encoding)
    if is_rich_title(entry.title_type):
        return render_title(title)
    return replace_newline_characters(title)


def extract_author(
    entry: DocumentEntry, document: FeedDocument, encoding: str | None = None
) -> str:
    if entry.author:
        return to_canonical(entry.author, encoding)
    if document.managing_editor:
        return to_canonical(document.managing_editor, encoding)
    creator = entry.extension("creator", DC_NS)
    if creator:
        return to_canonical(creator, encoding)
    return ""


def _rich_description(entry: DocumentEntry, document: FeedDocument, encoding: str | None) -> str:
    """Description from the highest-priority extension element, or ''."""
    encoded = entry.extension("encoded", CONTENT_NS)
    if encoded:
        logger.debug("Found content:encoded")
        return to_canonical(encoded, encoding)

    if document.is_atom:
        for namespace in (ATOM_10_NS, ATOM_03_NS):
            content = entry.extension("content", namespace)
            if content:
                logger.debug("Found Atom content (%s)", namespace)
                return to_canonical(content, encoding)
    else:
        logger.debug("Not an Atom feed, skipping Atom content")

    summary = entry.extension("summary", ITUNES_NS)
    if summary:
        logger.debug("Found itunes:summary")
        # The renderer keeps the podcast's own line breaks inside this pair.
        return ITUNES_HACK_OPEN + to_canonical(summary, encoding) + ITUNES_HACK_CLOSE

    return ""


def extract_description(
    entry: DocumentEntry,
    document: FeedDocument,
    always_display_description: bool = False,
    encoding: str | None = None,
) -> str:
    description = _rich_description(entry, document, encoding)
    if not description:
        return to_canonical(entry.description, encoding)
    if always_display_description and entry.description:
        return description + DESCRIPTION_SEPARATOR + to_canonical(entry.description, encoding)
    return description


def resolve_guid(entry: DocumentEntry) -> str:
    """Explicit guid, else link, else title, else empty.

    Items that fall back to link or title lose their identity when that
    field changes upstream.
    """
    if entry.guid:
        return entry.guid
    if entry.link:
        return entry.link
    if entry.title:
        return entry.title
    return ""


def build_item(
    entry: DocumentEntry,
    document: FeedDocument,
    source_uri: str,
    *,
    always_display_description: bool = False,
    display_encoding: str = DEFAULT_ENCODING,
    store: DurableStore | None = None,
) -> Item:
    """Turn one document entry into a canonical Item."""
    encoding = document.encoding
    item = Item(
        title=extract_title(entry, encoding),
        link=absolute_url(source_uri, entry.link) if entry.link else "",
        author=extract_author(entry, document, encoding),
        description=extract_description(
            entry, document, always_display_description, encoding
        ),
        guid=resolve_guid(entry),
        enclosure_url=entry.enclosure_url,
        enclosure_type=entry.enclosure_type,
        feedurl=source_uri,
        display_encoding=display_encoding,
        store=store,
    )
    # Taken per item, not once per batch.
    item.pub_date = parse_date(entry.pub_date) if entry.pub_date else int(time.time())

    if item.enclosure_url:
        logger.debug("Found enclosure %s (%s)", item.enclosure_url, item.enclosure_type)
    logger.debug(
        "Item title = %r link = %r pubDate = %r (%d)",
        item.title, item.link, item.pub_date_text, item.pub_date,
    )
    return item
