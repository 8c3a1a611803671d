"""Canonical in-memory article model — feeds, items and their attributes.

Items never hold a pointer to their feed. An item that needs to reach its
origin feed (virtual-feed copies, unread propagation, attribute fallback)
carries the feed's URL as a handle and resolves it through a FeedRegistry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterator

from feedcore.errors import DurableWriteError
from feedcore.ingestion.dates import format_date
from feedcore.ingestion.encoding import DEFAULT_ENCODING, to_display
from feedcore.ingestion.sources import is_query, parse_query

if TYPE_CHECKING:
    from feedcore.ingestion.interfaces import DurableStore

logger = logging.getLogger(__name__)

TITLE_TAG_PREFIX = "~"


def normalize_flags(flags: str) -> str:
    """Keep ASCII letters only, sorted ascending, without duplicates."""
    return "".join(sorted({ch for ch in flags if ch.isascii() and ch.isalpha()}))


class ItemAttribute(Enum):
    """Attributes an item answers for itself."""

    TITLE = "title"
    LINK = "link"
    AUTHOR = "author"
    CONTENT = "content"
    DATE = "date"
    GUID = "guid"
    UNREAD = "unread"
    ENCLOSURE_URL = "enclosure_url"
    ENCLOSURE_TYPE = "enclosure_type"
    FLAGS = "flags"


class FeedAttribute(Enum):
    """Attributes a feed answers for; items delegate unknown names here."""

    FEEDTITLE = "feedtitle"
    DESCRIPTION = "description"
    FEEDLINK = "feedlink"
    FEEDDATE = "feeddate"
    RSSURL = "rssurl"
    UNREAD_COUNT = "unread_count"
    TOTAL_COUNT = "total_count"
    TAGS = "tags"


def _lookup(enum_cls, name: str):
    try:
        return enum_cls(name)
    except ValueError:
        return None


class FeedRegistry:
    """All feeds known to the reader, keyed by their source URI."""

    def __init__(self, feeds: list[Feed] | None = None) -> None:
        self._feeds: dict[str, Feed] = {}
        for feed in feeds or []:
            self.add(feed)

    def add(self, feed: Feed) -> None:
        """Register a feed; items of a concrete feed get a handle to it."""
        self._feeds[feed.rssurl] = feed
        if not feed.is_query:
            for item in feed.items:
                item.attach(self, feed.rssurl)

    def get(self, rssurl: str | None) -> Feed | None:
        if rssurl is None:
            return None
        return self._feeds.get(rssurl)

    def __contains__(self, rssurl: object) -> bool:
        return rssurl in self._feeds

    def __iter__(self) -> Iterator[Feed]:
        return iter(list(self._feeds.values()))

    def __len__(self) -> int:
        return len(self._feeds)


@dataclass(eq=False)
class Item:
    """One article. Text fields hold canonical text; display getters convert."""

    title: str = ""
    link: str = ""
    author: str = ""
    description: str = ""
    pub_date: int = 0
    guid: str = ""
    enclosure_url: str | None = None
    enclosure_type: str | None = None
    unread: bool = True
    deleted: bool = False
    flags: str = ""
    feedurl: str = ""
    display_encoding: str = DEFAULT_ENCODING
    store: DurableStore | None = field(default=None, repr=False)
    registry: FeedRegistry | None = field(default=None, repr=False)
    feed_handle: str | None = None

    def __post_init__(self) -> None:
        self.flags = normalize_flags(self.flags)

    # --- display conversion ---

    @property
    def display_title(self) -> str:
        return to_display(self.title, self.display_encoding)

    @property
    def display_author(self) -> str:
        return to_display(self.author, self.display_encoding)

    @property
    def display_description(self) -> str:
        return to_display(self.description, self.display_encoding)

    @property
    def pub_date_text(self) -> str:
        return format_date(self.pub_date)

    # --- origin feed ---

    @property
    def feed(self) -> Feed | None:
        """The feed this item originates from, if a handle is attached."""
        if self.registry is None:
            return None
        return self.registry.get(self.feed_handle)

    def attach(self, registry: FeedRegistry, rssurl: str) -> None:
        """Point this item at its origin feed."""
        self.registry = registry
        self.feed_handle = rssurl

    # --- flags ---

    def set_flags(self, flags: str) -> None:
        self.flags = normalize_flags(flags)

    def update_flags(self) -> None:
        """Write the current flags through to the store."""
        if self.store is not None:
            self.store.update_item_flags(self)

    # --- unread state ---

    def _origin_copy(self) -> Item | None:
        feed = self.feed
        if feed is None:
            return None
        return feed.get_item_by_guid(self.guid)

    def set_unread_nowrite(self, unread: bool) -> None:
        self.unread = unread

    def set_unread_nowrite_notify(self, unread: bool) -> None:
        """Change the flag here and in the origin feed, without a store write."""
        self.unread = unread
        origin = self._origin_copy()
        if origin is not None and origin is not self:
            origin.set_unread_nowrite(unread)

    def set_unread(self, unread: bool) -> None:
        """Change the unread flag and write it through to the store.

        Exactly one write is attempted. If it fails, both this item and its
        copy in the origin feed get their previous flag back before the
        error propagates.
        """
        if self.unread == unread:
            return
        old_unread = self.unread
        origin = self._origin_copy()
        if origin is self:
            origin = None
        origin_old = origin.unread if origin is not None else None

        self.unread = unread
        if origin is not None:
            origin.set_unread_nowrite(unread)

        if self.store is None:
            return
        try:
            self.store.update_item_unread(self, self.feedurl)
        except DurableWriteError:
            logger.warning("Restoring unread flag of %s after failed write", self.guid)
            self.unread = old_unread
            if origin is not None:
                origin.set_unread_nowrite(origin_old)
            raise

    # --- attribute introspection ---

    def has_attribute(self, name: str) -> bool:
        if _lookup(ItemAttribute, name) is not None:
            return True
        feed = self.feed
        if feed is not None:
            return feed.has_attribute(name)
        return False

    def get_attribute(self, name: str) -> str:
        attribute = _lookup(ItemAttribute, name)
        if attribute is not None:
            return _ITEM_GETTERS[attribute](self)
        feed = self.feed
        if feed is not None:
            return feed.get_attribute(name)
        return ""


_ITEM_GETTERS: dict[ItemAttribute, Callable[[Item], str]] = {
    ItemAttribute.TITLE: lambda item: item.display_title,
    ItemAttribute.LINK: lambda item: item.link,
    ItemAttribute.AUTHOR: lambda item: item.display_author,
    ItemAttribute.CONTENT: lambda item: item.display_description,
    ItemAttribute.DATE: lambda item: item.pub_date_text,
    ItemAttribute.GUID: lambda item: item.guid,
    ItemAttribute.UNREAD: lambda item: "yes" if item.unread else "no",
    ItemAttribute.ENCLOSURE_URL: lambda item: item.enclosure_url or "",
    ItemAttribute.ENCLOSURE_TYPE: lambda item: item.enclosure_type or "",
    ItemAttribute.FLAGS: lambda item: item.flags,
}


@dataclass(eq=False)
class Feed:
    """A concrete (fetched) or virtual (query) feed and its items."""

    rssurl: str = ""
    title: str = ""
    description: str = ""
    link: str = ""
    pub_date: int = 0
    rtl: bool = False
    tags: list[str] = field(default_factory=list)
    query: str = ""
    items: list[Item] = field(default_factory=list)
    empty: bool = True
    display_encoding: str = DEFAULT_ENCODING

    def __post_init__(self) -> None:
        if self.rssurl:
            self.set_rssurl(self.rssurl)

    def set_rssurl(self, rssurl: str) -> None:
        """Set the source URI. Query URIs also provide the title and query."""
        self.rssurl = rssurl
        if is_query(rssurl):
            name, expression = parse_query(rssurl)
            logger.debug("Query feed name = %r expr = %r", name, expression)
            self.title = name
            self.query = expression

    @property
    def is_query(self) -> bool:
        return is_query(self.rssurl)

    @property
    def display_title(self) -> str:
        """Feed title; the first ``~``-prefixed tag overrides it."""
        for tag in self.tags:
            if tag.startswith(TITLE_TAG_PREFIX):
                return tag[len(TITLE_TAG_PREFIX):]
        return to_display(self.title, self.display_encoding)

    @property
    def display_description(self) -> str:
        return to_display(self.description, self.display_encoding)

    @property
    def pub_date_text(self) -> str:
        return format_date(self.pub_date)

    # --- tags ---

    def set_tags(self, tags: list[str]) -> None:
        self.tags = list(tags)

    def matches_tag(self, tag: str) -> bool:
        return tag in self.tags

    def get_tags(self) -> str:
        """Space-separated tags, without the title-override tags."""
        return " ".join(tag for tag in self.tags if not tag.startswith(TITLE_TAG_PREFIX))

    # --- items ---

    def unread_item_count(self) -> int:
        return sum(1 for item in self.items if item.unread)

    def get_item_by_guid(self, guid: str) -> Item | None:
        for item in self.items:
            if item.guid == guid:
                return item
        logger.debug("No item with guid %r in %s", guid, self.rssurl)
        return None

    def purge_deleted_items(self) -> None:
        self.items = [item for item in self.items if not item.deleted]

    def sort(self, method: str) -> None:
        from feedcore.sorting import sort_items

        self.items = sort_items(self.items, method)

    # --- attribute introspection ---

    def has_attribute(self, name: str) -> bool:
        return _lookup(FeedAttribute, name) is not None

    def get_attribute(self, name: str) -> str:
        attribute = _lookup(FeedAttribute, name)
        if attribute is None:
            return ""
        return _FEED_GETTERS[attribute](self)


_FEED_GETTERS: dict[FeedAttribute, Callable[[Feed], str]] = {
    FeedAttribute.FEEDTITLE: lambda feed: feed.display_title,
    FeedAttribute.DESCRIPTION: lambda feed: feed.display_description,
    FeedAttribute.FEEDLINK: lambda feed: feed.link,
    FeedAttribute.FEEDDATE: lambda feed: feed.pub_date_text,
    FeedAttribute.RSSURL: lambda feed: feed.rssurl,
    FeedAttribute.UNREAD_COUNT: lambda feed: str(feed.unread_item_count()),
    FeedAttribute.TOTAL_COUNT: lambda feed: str(len(feed.items)),
    FeedAttribute.TAGS: Feed.get_tags,
}
