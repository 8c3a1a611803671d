"""Feed ingestion — dispatch on the source scheme, parse, build the Feed.

    http:/https:       fetch, then parse
    exec:<cmd>         run the command, parse its output
    filter:<cmd>:<url> fetch the URL, pipe it through the command, parse
    query:<name>:<expr> nothing to fetch; items come from the materializer
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from feedcore.errors import ProbeError, TransportError
from feedcore.filters.ignores import IgnoreSet
from feedcore.ingestion.dates import parse_date
from feedcore.ingestion.document import FeedDocument, is_rich_title, parse_document
from feedcore.ingestion.encoding import DEFAULT_ENCODING, to_canonical
from feedcore.ingestion.extract import absolute_url, build_item
from feedcore.ingestion.interfaces import (
    DurableStore,
    FetchOptions,
    FetchResult,
    FetchStatus,
    ProcessExecutor,
    UrlFetcher,
)
from feedcore.ingestion.renderer import render_title
from feedcore.ingestion.sources import (
    ExecSource,
    FilterSource,
    HttpSource,
    QuerySource,
    Source,
    parse_source,
)
from feedcore.model import Feed

logger = logging.getLogger(__name__)

# Language codes written right to left.
RTL_LANGUAGE_PREFIXES = ("ar", "fa", "ur", "ps", "syr", "dv", "he", "yi")


@dataclass
class IngestContext:
    """Everything a parse needs besides the source URI."""

    fetcher: UrlFetcher
    executor: ProcessExecutor
    store: DurableStore
    ignores: IgnoreSet = field(default_factory=IgnoreSet)
    options: FetchOptions = field(default_factory=FetchOptions)
    always_display_description: bool = False
    display_encoding: str = DEFAULT_ENCODING


def is_rtl_language(language: str | None) -> bool:
    return bool(language) and language.startswith(RTL_LANGUAGE_PREFIXES)


class FeedParser:
    """Produces a fresh Feed for one source URI per ``parse()`` call."""

    def __init__(self, uri: str, context: IngestContext) -> None:
        self.uri = uri
        self.context = context
        self.source: Source = parse_source(uri)

    # --- retrieval ---

    def _retrieve(self) -> FetchResult:
        source = self.source
        ctx = self.context
        try:
            if isinstance(source, HttpSource):
                result = ctx.fetcher.fetch(source.url, ctx.options)
                logger.debug("Fetched %s, status = %s", source.url, result.status.name)
                return result
            if isinstance(source, ExecSource):
                output = ctx.executor.run(source.command)
                logger.debug("Output of `%s' is: %r", source.command, output)
                return FetchResult(output)
            if isinstance(source, FilterSource):
                fetched = ctx.fetcher.fetch(source.url, ctx.options)
                if fetched.status is not FetchStatus.OK:
                    return fetched
                output = ctx.executor.run_piped(source.command, fetched.body)
                logger.debug("Output of `%s' is: %r", source.command, output)
                return FetchResult(output)
        except OSError as exc:
            logger.error("Retrieving %s failed: %s", self.uri, exc)
            return FetchResult(b"", FetchStatus.POSIX_ERROR)
        raise TypeError(f"cannot retrieve {source!r}")

    # --- parsing ---

    def parse(self) -> Feed:
        """Fetch and parse the source.

        Raises TransportError when the fetch or parse fails fatally. Other
        non-OK outcomes yield an empty feed.
        """
        feed = Feed(rssurl=self.uri, display_encoding=self.context.display_encoding)

        if isinstance(self.source, QuerySource):
            feed.empty = False
            return feed

        result = self._retrieve()
        if result.status.is_fatal:
            logger.error(
                "Feed `%s' couldn't be parsed: %s (error %d)",
                self.uri, result.status.name, result.status,
            )
            raise TransportError(f"{self.uri}: {result.status.name}", result.status)
        if result.status is not FetchStatus.OK:
            logger.info("No document for %s (%s)", self.uri, result.status.name)
            return feed

        try:
            document = parse_document(result.body)
        except TransportError:
            logger.error("Feed `%s' couldn't be parsed", self.uri)
            raise

        self._fill_feed(feed, document)
        self._fill_items(feed, document)

        self.context.store.remove_stale_items(feed.rssurl, [item.guid for item in feed.items])
        feed.empty = False
        return feed

    def _fill_feed(self, feed: Feed, document: FeedDocument) -> None:
        encoding = document.encoding
        if document.link:
            feed.link = absolute_url(self.uri, document.link)
        if document.title:
            title = to_canonical(document.title, encoding)
            feed.title = render_title(title) if is_rich_title(document.title_type) else title
        if document.description:
            feed.description = to_canonical(document.description, encoding)
        feed.pub_date = parse_date(document.pub_date) if document.pub_date else int(time.time())
        if is_rtl_language(document.language):
            logger.debug("Detected right-to-left order, language = %s", document.language)
            feed.rtl = True
        logger.debug("Feed title = %r link = %r", feed.title, feed.link)

    def _fill_items(self, feed: Feed, document: FeedDocument) -> None:
        ctx = self.context
        for entry in document.entries:
            item = build_item(
                entry,
                document,
                feed.rssurl,
                always_display_description=ctx.always_display_description,
                display_encoding=ctx.display_encoding,
                store=ctx.store,
            )
            if ctx.ignores.matches(item):
                logger.info("Ignored article title = %r link = %r", item.title, item.link)
                continue
            feed.items.append(item)
            logger.info("Added article title = %r link = %r", item.title, item.link)

    # --- staleness ---

    def check_and_update_lastmodified(self) -> bool:
        """Decide whether the source needs fetching.

        Sources that are not HTTP(S) always do. As a side effect a newer
        Last-Modified value is stored immediately, whether or not the
        following fetch succeeds.
        """
        if not isinstance(self.source, HttpSource):
            return True

        ctx = self.context
        url = self.source.url
        if ctx.ignores.matches_lastmodified(url):
            logger.debug("%s is on the always-download list", url)
            return True

        old_lm = ctx.store.get_last_modified(url)
        try:
            new_lm = ctx.fetcher.probe_last_modified(url, ctx.options)
        except ProbeError as exc:
            logger.warning("Not downloading %s: %s", url, exc)
            return False
        logger.debug("Last-Modified of %s: stored = %s, probed = %s", url, old_lm, new_lm)

        if not new_lm:
            logger.debug("Downloading %s (no Last-Modified header)", url)
            return True
        if new_lm > old_lm:
            ctx.store.set_last_modified(url, new_lm)
            logger.debug("Downloading %s (modified)", url)
            return True
        logger.debug("Not downloading %s (unchanged)", url)
        return False
