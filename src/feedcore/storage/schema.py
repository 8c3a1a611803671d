"""Database schema definition and initialization."""

from __future__ import annotations

import logging
import sqlite3

from feedcore.storage.connection import get_connection

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """\
-- One row per source URI
CREATE TABLE IF NOT EXISTS rss_feed (
    rssurl          TEXT PRIMARY KEY,
    title           TEXT NOT NULL DEFAULT '',
    url             TEXT NOT NULL DEFAULT '',
    description     TEXT NOT NULL DEFAULT '',
    lastmodified    INTEGER NOT NULL DEFAULT 0
);

-- Articles, identified by (guid, feedurl)
CREATE TABLE IF NOT EXISTS rss_item (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    guid            TEXT NOT NULL,
    feedurl         TEXT NOT NULL REFERENCES rss_feed(rssurl),
    title           TEXT NOT NULL DEFAULT '',
    author          TEXT NOT NULL DEFAULT '',
    url             TEXT NOT NULL DEFAULT '',
    pubDate         INTEGER NOT NULL DEFAULT 0,
    content         TEXT NOT NULL DEFAULT '',
    unread          INTEGER NOT NULL DEFAULT 1,
    deleted         INTEGER NOT NULL DEFAULT 0,
    flags           TEXT NOT NULL DEFAULT '',
    enclosure_url   TEXT,
    enclosure_type  TEXT,
    UNIQUE (guid, feedurl)
);

-- Reload job bookkeeping
CREATE TABLE IF NOT EXISTS reload_runs (
    id          TEXT PRIMARY KEY,
    started_at  TEXT NOT NULL,
    finished_at TEXT NOT NULL,
    status      TEXT NOT NULL CHECK (status IN ('success', 'error')),
    result      TEXT NOT NULL,   -- JSON
    error       TEXT
);

CREATE INDEX IF NOT EXISTS idx_rss_item_feedurl ON rss_item(feedurl);
CREATE INDEX IF NOT EXISTS idx_rss_item_deleted ON rss_item(deleted);
CREATE INDEX IF NOT EXISTS idx_reload_runs_started_at ON reload_runs(started_at);
"""


def _migrate_rss_item_add_flags(conn: sqlite3.Connection) -> None:
    """Add the flags column to caches created before flags existed."""
    try:
        conn.execute("ALTER TABLE rss_item ADD COLUMN flags TEXT NOT NULL DEFAULT ''")
    except sqlite3.OperationalError:
        pass  # Column already exists


def _migrate_rss_feed_add_description(conn: sqlite3.Connection) -> None:
    """Add the description column to caches created before it existed."""
    try:
        conn.execute("ALTER TABLE rss_feed ADD COLUMN description TEXT NOT NULL DEFAULT ''")
    except sqlite3.OperationalError:
        pass  # Column already exists


def init_db(database_path: str) -> None:
    """Create all tables and indexes if they do not already exist."""
    with get_connection(database_path) as conn:
        conn.executescript(_SCHEMA_SQL)
        _migrate_rss_item_add_flags(conn)
        _migrate_rss_feed_add_description(conn)
    logger.info("Database initialized at %s", database_path)
