"""Reload job — refresh every configured feed, then rebuild query feeds."""

from __future__ import annotations

import json
import logging
import shlex
import uuid
from datetime import datetime, timezone
from pathlib import Path

from feedcore.config import Config
from feedcore.errors import FeedError
from feedcore.filters.ignores import load_rules
from feedcore.ingestion.fetcher import HttpFetcher, build_fetch_options
from feedcore.ingestion.interfaces import ProcessExecutor, UrlFetcher
from feedcore.ingestion.parser import FeedParser, IngestContext
from feedcore.ingestion.process import SubprocessExecutor
from feedcore.model import Feed, FeedRegistry
from feedcore.query import update_items
from feedcore.storage.cache import Cache
from feedcore.storage.connection import get_connection
from feedcore.storage.schema import init_db

logger = logging.getLogger(__name__)


def load_urls(path: str | Path) -> list[tuple[str, list[str]]]:
    """Read the URLs file: one source URI per line, followed by its tags."""
    path = Path(path)
    if not path.exists():
        logger.warning("No URLs file at %s", path)
        return []
    urls: list[tuple[str, list[str]]] = []
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        try:
            tokens = shlex.split(line, comments=True)
        except ValueError as exc:
            logger.warning("%s:%d: cannot parse line: %s", path, lineno, exc)
            continue
        if tokens:
            urls.append((tokens[0], tokens[1:]))
    return urls


def _record_run(
    database_path: str,
    started_at: str,
    result: dict,
    error: str | None = None,
) -> None:
    """Insert a reload run record into the reload_runs table."""
    finished_at = datetime.now(timezone.utc).isoformat()
    status = "error" if error else "success"
    with get_connection(database_path) as conn:
        conn.execute(
            "INSERT INTO reload_runs "
            "(id, started_at, finished_at, status, result, error) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (str(uuid.uuid4()), started_at, finished_at, status, json.dumps(result), error),
        )


def _stored_feed(url: str, context: IngestContext) -> Feed:
    """Feed rebuilt from the store for sources that were not refetched."""
    feed = context.store.load_feed(url)
    feed.display_encoding = context.display_encoding
    for item in feed.items:
        item.display_encoding = context.display_encoding
    feed.purge_deleted_items()
    feed.empty = False
    return feed


def reload_feeds(
    context: IngestContext,
    urls: list[tuple[str, list[str]]],
    sort_order: str = "date-desc",
) -> tuple[FeedRegistry, dict]:
    """Refresh each source in order, one at a time.

    A failing source is logged and counted; it never stops the others.
    """
    registry = FeedRegistry()
    counts = {"feeds_reloaded": 0, "feeds_skipped": 0, "feeds_failed": 0, "items": 0}

    for url, tags in urls:
        try:
            parser = FeedParser(url, context)
            if parser.check_and_update_lastmodified():
                feed = parser.parse()
                if not feed.is_query:
                    context.store.save_feed(feed, context.ignores.matches_resetunread(url))
                    feed.purge_deleted_items()
                counts["feeds_reloaded"] += 1
            else:
                logger.info("%s unchanged, using stored items", url)
                feed = _stored_feed(url, context)
                counts["feeds_skipped"] += 1
        except FeedError:
            logger.exception("Failed to reload %s", url)
            counts["feeds_failed"] += 1
            continue

        feed.set_tags(tags)
        if not feed.is_query:
            feed.sort(sort_order)
            counts["items"] += len(feed.items)
        registry.add(feed)

    for feed in registry:
        if not feed.is_query:
            continue
        try:
            update_items(feed, registry)
        except FeedError:
            logger.exception("Failed to update query feed %s", feed.rssurl)
            counts["feeds_failed"] += 1
            continue
        feed.sort(sort_order)

    logger.info(
        "Reload finished: %d reloaded, %d unchanged, %d failed, %d items",
        counts["feeds_reloaded"], counts["feeds_skipped"], counts["feeds_failed"], counts["items"],
    )
    return registry, counts


def build_context(
    config: Config,
    fetcher: UrlFetcher | None = None,
    executor: ProcessExecutor | None = None,
) -> IngestContext:
    """Assemble the ingestion context from configuration."""
    return IngestContext(
        fetcher=fetcher or HttpFetcher(),
        executor=executor or SubprocessExecutor(),
        store=Cache(config.database_path),
        ignores=load_rules(config.rules_path),
        options=build_fetch_options(config),
        always_display_description=config.always_display_description,
        display_encoding=config.display_encoding,
    )


def run_reload(
    config: Config,
    fetcher: UrlFetcher | None = None,
    executor: ProcessExecutor | None = None,
) -> dict:
    """Reload every feed listed in the URLs file and record the run."""
    started_at = datetime.now(timezone.utc).isoformat()
    init_db(config.database_path)

    try:
        context = build_context(config, fetcher, executor)
        _, result = reload_feeds(
            context, load_urls(config.urls_path), config.article_sort_order
        )
    except Exception as exc:
        logger.exception("Reload failed")
        _record_run(config.database_path, started_at, {}, error=str(exc))
        raise

    _record_run(config.database_path, started_at, result)
    return result
