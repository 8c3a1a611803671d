"""SQLite implementation of the durable store."""

from __future__ import annotations

import logging
import sqlite3

from feedcore.errors import DurableWriteError
from feedcore.ingestion.interfaces import DurableStore
from feedcore.model import Feed, Item
from feedcore.storage.connection import get_connection

logger = logging.getLogger(__name__)


class Cache(DurableStore):
    """Feed and article state persisted in the cache database."""

    def __init__(self, database_path: str) -> None:
        self._database_path = database_path

    # --- last-modified ---

    def get_last_modified(self, url: str) -> int:
        with get_connection(self._database_path) as conn:
            row = conn.execute(
                "SELECT lastmodified FROM rss_feed WHERE rssurl = ?", (url,)
            ).fetchone()
        return row["lastmodified"] if row else 0

    def set_last_modified(self, url: str, timestamp: int) -> None:
        try:
            with get_connection(self._database_path) as conn:
                conn.execute(
                    "INSERT INTO rss_feed (rssurl, lastmodified) VALUES (?, ?) "
                    "ON CONFLICT(rssurl) DO UPDATE SET lastmodified = excluded.lastmodified",
                    (url, timestamp),
                )
        except sqlite3.Error as exc:
            raise DurableWriteError(f"storing last-modified of {url}: {exc}") from exc

    # --- write-through updates ---

    def update_item_unread(self, item: Item, feed_url: str) -> None:
        try:
            with get_connection(self._database_path) as conn:
                conn.execute(
                    "UPDATE rss_item SET unread = ? WHERE guid = ? AND feedurl = ?",
                    (int(item.unread), item.guid, feed_url),
                )
        except sqlite3.Error as exc:
            raise DurableWriteError(f"updating unread flag of {item.guid}: {exc}") from exc

    def update_item_flags(self, item: Item) -> None:
        try:
            with get_connection(self._database_path) as conn:
                conn.execute(
                    "UPDATE rss_item SET flags = ? WHERE guid = ? AND feedurl = ?",
                    (item.flags, item.guid, item.feedurl),
                )
        except sqlite3.Error as exc:
            raise DurableWriteError(f"updating flags of {item.guid}: {exc}") from exc

    def remove_stale_items(self, feed_url: str, known_guids: list[str]) -> None:
        """Delete items the user deleted that the feed no longer carries."""
        known = set(known_guids)
        try:
            with get_connection(self._database_path) as conn:
                rows = conn.execute(
                    "SELECT guid FROM rss_item WHERE feedurl = ? AND deleted = 1",
                    (feed_url,),
                ).fetchall()
                stale = [(row["guid"], feed_url) for row in rows if row["guid"] not in known]
                conn.executemany(
                    "DELETE FROM rss_item WHERE guid = ? AND feedurl = ?", stale
                )
        except sqlite3.Error as exc:
            raise DurableWriteError(f"purging items of {feed_url}: {exc}") from exc
        if stale:
            logger.info("Purged %d deleted items from %s", len(stale), feed_url)

    # --- reconciliation ---

    def save_feed(self, feed: Feed, reset_unread: bool = False) -> None:
        """Store a freshly parsed feed, keeping known read state by guid.

        New items are stored as they are. Known items keep their stored
        unread, deleted and flags values, which are copied back onto the
        in-memory items; with ``reset_unread`` a known item whose title or
        content changed becomes unread again.
        """
        try:
            with get_connection(self._database_path) as conn:
                conn.execute(
                    "INSERT INTO rss_feed (rssurl, title, url, description) VALUES (?, ?, ?, ?) "
                    "ON CONFLICT(rssurl) DO UPDATE SET title = excluded.title, "
                    "url = excluded.url, description = excluded.description",
                    (feed.rssurl, feed.title, feed.link, feed.description),
                )
                for item in feed.items:
                    self._save_item(conn, feed.rssurl, item, reset_unread)
        except sqlite3.Error as exc:
            raise DurableWriteError(f"saving feed {feed.rssurl}: {exc}") from exc

    def _save_item(
        self, conn: sqlite3.Connection, feed_url: str, item: Item, reset_unread: bool
    ) -> None:
        row = conn.execute(
            "SELECT title, content, unread, deleted, flags FROM rss_item "
            "WHERE guid = ? AND feedurl = ?",
            (item.guid, feed_url),
        ).fetchone()

        if row is None:
            conn.execute(
                "INSERT INTO rss_item "
                "(guid, feedurl, title, author, url, pubDate, content, unread, "
                "deleted, flags, enclosure_url, enclosure_type) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    item.guid,
                    feed_url,
                    item.title,
                    item.author,
                    item.link,
                    item.pub_date,
                    item.description,
                    int(item.unread),
                    int(item.deleted),
                    item.flags,
                    item.enclosure_url,
                    item.enclosure_type,
                ),
            )
            return

        changed = row["title"] != item.title or row["content"] != item.description
        unread = bool(row["unread"]) or (reset_unread and changed)
        conn.execute(
            "UPDATE rss_item SET title = ?, author = ?, url = ?, content = ?, "
            "enclosure_url = ?, enclosure_type = ?, unread = ? "
            "WHERE guid = ? AND feedurl = ?",
            (
                item.title,
                item.author,
                item.link,
                item.description,
                item.enclosure_url,
                item.enclosure_type,
                int(unread),
                item.guid,
                feed_url,
            ),
        )
        item.set_unread_nowrite(unread)
        item.deleted = bool(row["deleted"])
        item.set_flags(row["flags"])

    def load_items(self, feed_url: str) -> list[Item]:
        """Stored items of a feed, newest first."""
        with get_connection(self._database_path) as conn:
            rows = conn.execute(
                "SELECT * FROM rss_item WHERE feedurl = ? ORDER BY pubDate DESC, id DESC",
                (feed_url,),
            ).fetchall()
        return [
            Item(
                title=row["title"],
                link=row["url"],
                author=row["author"],
                description=row["content"],
                pub_date=row["pubDate"],
                guid=row["guid"],
                enclosure_url=row["enclosure_url"],
                enclosure_type=row["enclosure_type"],
                unread=bool(row["unread"]),
                deleted=bool(row["deleted"]),
                flags=row["flags"],
                feedurl=feed_url,
                store=self,
            )
            for row in rows
        ]

    def load_feed(self, feed_url: str) -> Feed:
        """Stored feed fields and items, for a feed that was not refetched."""
        with get_connection(self._database_path) as conn:
            row = conn.execute(
                "SELECT title, url, description FROM rss_feed WHERE rssurl = ?",
                (feed_url,),
            ).fetchone()
        feed = Feed(rssurl=feed_url)
        if row is not None and not feed.is_query:
            feed.title = row["title"]
            feed.link = row["url"]
            feed.description = row["description"]
        feed.items = self.load_items(feed_url)
        return feed
