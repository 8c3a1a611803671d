"""Virtual query feeds — saved searches across every concrete feed."""

from __future__ import annotations

import copy
import logging
import time

from feedcore.filters.matcher import compile_predicate
from feedcore.model import Feed, FeedRegistry
from feedcore.sorting import DEFAULT_SORT

logger = logging.getLogger(__name__)


def update_items(feed: Feed, feeds: FeedRegistry) -> None:
    """Rebuild a query feed's items from all concrete feeds.

    The previous item list is discarded. Matching items are copied, and
    each copy points back at the feed it came from. Other query feeds are
    never searched. Raises PredicateSyntaxError for a malformed query.
    """
    if not feed.query:
        return

    logger.debug("Updating query feed %r, query = %r", feed.title, feed.query)
    started = time.perf_counter()
    predicate = compile_predicate(feed.query)

    items = []
    for origin in feeds:
        if origin is feed or origin.is_query:
            continue
        for item in origin.items:
            if predicate.matches(item):
                match = copy.copy(item)
                match.attach(feeds, origin.rssurl)
                items.append(match)
    feed.items = items

    matched = time.perf_counter()
    feed.sort(DEFAULT_SORT)
    finished = time.perf_counter()
    logger.debug(
        "Query feed %r: %d items, matching took %.6f s, sorting took %.6f s",
        feed.title, len(items), matched - started, finished - matched,
    )
