"""Tests for feedcore.ingestion.parser — source dispatch, parsing and staleness."""

from __future__ import annotations

import pytest

from feedcore.errors import ProbeError, TransportError, UnsupportedScheme
from feedcore.filters.ignores import IgnoreSet
from feedcore.ingestion.interfaces import (
    DurableStore,
    FetchResult,
    FetchStatus,
    ProcessExecutor,
    UrlFetcher,
)
from feedcore.ingestion.parser import FeedParser, IngestContext, is_rtl_language

FEED_URL = "https://example.com/feed.xml"

SAMPLE_RSS = b"""\
<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example</title>
    <link>/</link>
    <description>Example feed</description>
    <item>
      <title>foo bar</title>
      <link>/posts/1</link>
      <guid>g1</guid>
      <pubDate>Mon, 06 Jan 2020 15:04:05 GMT</pubDate>
    </item>
    <item>
      <title>baz</title>
      <link>/posts/2</link>
      <guid>g2</guid>
    </item>
  </channel>
</rss>
"""

RTL_RSS = b"""\
<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Akhbar</title>
    <language>ar</language>
  </channel>
</rss>
"""


class _FakeFetcher(UrlFetcher):
    def __init__(self, results=None, probe=None, probe_error=False):
        self.results = results or {}
        self.probe = probe
        self.probe_error = probe_error
        self.fetched: list[str] = []
        self.probed: list[str] = []

    def fetch(self, url, options):
        self.fetched.append(url)
        return self.results.get(url, FetchResult(b"", FetchStatus.DOWNLOAD_ERROR))

    def probe_last_modified(self, url, options):
        self.probed.append(url)
        if self.probe_error:
            raise ProbeError("connection refused")
        return self.probe


class _FakeExecutor(ProcessExecutor):
    def __init__(self, output=b""):
        self.output = output
        self.calls: list[tuple] = []

    def run(self, command):
        self.calls.append(("run", command))
        return self.output

    def run_piped(self, command, data):
        self.calls.append(("run_piped", command, data))
        return self.output


class _FakeStore(DurableStore):
    def __init__(self, last_modified=0):
        self.last_modified = {FEED_URL: last_modified}
        self.removed: list[tuple[str, list[str]]] = []

    def get_last_modified(self, url):
        return self.last_modified.get(url, 0)

    def set_last_modified(self, url, timestamp):
        self.last_modified[url] = timestamp

    def update_item_unread(self, item, feed_url):
        pass

    def update_item_flags(self, item):
        pass

    def remove_stale_items(self, feed_url, known_guids):
        self.removed.append((feed_url, known_guids))


def _context(fetcher=None, executor=None, store=None, **kwargs):
    return IngestContext(
        fetcher=fetcher or _FakeFetcher(),
        executor=executor or _FakeExecutor(),
        store=store or _FakeStore(),
        **kwargs,
    )


class TestDispatch:
    def test_http_fetches(self):
        fetcher = _FakeFetcher({FEED_URL: FetchResult(SAMPLE_RSS)})
        feed = FeedParser(FEED_URL, _context(fetcher)).parse()
        assert fetcher.fetched == [FEED_URL]
        assert feed.title == "Example"
        assert not feed.empty

    def test_exec_runs_command(self):
        executor = _FakeExecutor(SAMPLE_RSS)
        fetcher = _FakeFetcher()
        feed = FeedParser("exec:~/bin/feed.sh", _context(fetcher, executor)).parse()
        assert executor.calls == [("run", "~/bin/feed.sh")]
        assert fetcher.fetched == []
        assert len(feed.items) == 2

    def test_filter_pipes_fetched_body(self):
        fetcher = _FakeFetcher({FEED_URL: FetchResult(b"raw html")})
        executor = _FakeExecutor(SAMPLE_RSS)
        uri = f"filter:html2rss --strict:{FEED_URL}"
        feed = FeedParser(uri, _context(fetcher, executor)).parse()
        assert fetcher.fetched == [FEED_URL]
        assert executor.calls == [("run_piped", "html2rss --strict", b"raw html")]
        assert feed.rssurl == uri
        assert len(feed.items) == 2

    def test_filter_does_not_pipe_failed_fetch(self):
        executor = _FakeExecutor(SAMPLE_RSS)
        parser = FeedParser(f"filter:conv:{FEED_URL}", _context(_FakeFetcher(), executor))
        with pytest.raises(TransportError):
            parser.parse()
        assert executor.calls == []

    def test_query_has_nothing_to_fetch(self):
        fetcher = _FakeFetcher()
        feed = FeedParser('query:Unread:unread = "yes"', _context(fetcher)).parse()
        assert fetcher.fetched == []
        assert feed.is_query
        assert feed.title == "Unread"
        assert feed.items == []
        assert not feed.empty

    def test_unsupported_scheme_before_io(self):
        fetcher = _FakeFetcher()
        executor = _FakeExecutor()
        with pytest.raises(UnsupportedScheme):
            FeedParser("gopher://example.com/feed", _context(fetcher, executor))
        assert fetcher.fetched == []
        assert executor.calls == []

    def test_executor_oserror_is_fatal(self):
        class _Broken(_FakeExecutor):
            def run(self, command):
                raise OSError("no such file")

        with pytest.raises(TransportError) as exc_info:
            FeedParser("exec:missing", _context(executor=_Broken())).parse()
        assert exc_info.value.status is FetchStatus.POSIX_ERROR


class TestParse:
    def test_fatal_status_raises(self):
        fetcher = _FakeFetcher({FEED_URL: FetchResult(b"", FetchStatus.DOWNLOAD_ERROR)})
        with pytest.raises(TransportError) as exc_info:
            FeedParser(FEED_URL, _context(fetcher)).parse()
        assert exc_info.value.status is FetchStatus.DOWNLOAD_ERROR

    def test_not_modified_yields_empty_feed(self):
        store = _FakeStore()
        fetcher = _FakeFetcher({FEED_URL: FetchResult(b"", FetchStatus.NOT_MODIFIED)})
        feed = FeedParser(FEED_URL, _context(fetcher, store=store)).parse()
        assert feed.empty
        assert feed.items == []
        assert store.removed == []

    def test_unparseable_document_raises(self):
        fetcher = _FakeFetcher({FEED_URL: FetchResult(b"not a feed")})
        with pytest.raises(TransportError):
            FeedParser(FEED_URL, _context(fetcher)).parse()

    def test_feed_fields(self):
        fetcher = _FakeFetcher({FEED_URL: FetchResult(SAMPLE_RSS)})
        feed = FeedParser(FEED_URL, _context(fetcher)).parse()
        assert feed.link == "https://example.com/"
        assert feed.description == "Example feed"
        assert feed.pub_date > 0
        assert not feed.rtl

    def test_items_in_document_order(self):
        fetcher = _FakeFetcher({FEED_URL: FetchResult(SAMPLE_RSS)})
        feed = FeedParser(FEED_URL, _context(fetcher)).parse()
        assert [item.guid for item in feed.items] == ["g1", "g2"]
        assert feed.items[0].link == "https://example.com/posts/1"
        assert all(item.feedurl == FEED_URL for item in feed.items)

    def test_ignore_rule_drops_matching_item(self):
        ignores = IgnoreSet()
        ignores.handle_action("ignore-article", ["*", 'title =~ "foo"'])
        store = _FakeStore()
        fetcher = _FakeFetcher({FEED_URL: FetchResult(SAMPLE_RSS)})
        feed = FeedParser(FEED_URL, _context(fetcher, store=store, ignores=ignores)).parse()
        assert [item.title for item in feed.items] == ["baz"]
        assert store.removed == [(FEED_URL, ["g2"])]

    def test_ignore_rule_for_other_feed(self):
        ignores = IgnoreSet()
        ignores.handle_action("ignore-article", ["https://other.example/", 'title =~ "foo"'])
        fetcher = _FakeFetcher({FEED_URL: FetchResult(SAMPLE_RSS)})
        feed = FeedParser(FEED_URL, _context(fetcher, ignores=ignores)).parse()
        assert len(feed.items) == 2

    def test_stale_items_reported_with_guids(self):
        store = _FakeStore()
        fetcher = _FakeFetcher({FEED_URL: FetchResult(SAMPLE_RSS)})
        FeedParser(FEED_URL, _context(fetcher, store=store)).parse()
        assert store.removed == [(FEED_URL, ["g1", "g2"])]

    def test_items_write_through_to_store(self):
        store = _FakeStore()
        fetcher = _FakeFetcher({FEED_URL: FetchResult(SAMPLE_RSS)})
        feed = FeedParser(FEED_URL, _context(fetcher, store=store)).parse()
        assert all(item.store is store for item in feed.items)

    def test_rtl_language(self):
        fetcher = _FakeFetcher({FEED_URL: FetchResult(RTL_RSS)})
        feed = FeedParser(FEED_URL, _context(fetcher)).parse()
        assert feed.rtl

    def test_each_parse_builds_fresh_feed(self):
        fetcher = _FakeFetcher({FEED_URL: FetchResult(SAMPLE_RSS)})
        parser = FeedParser(FEED_URL, _context(fetcher))
        first = parser.parse()
        second = parser.parse()
        assert first is not second
        assert len(second.items) == 2


class TestRtl:
    @pytest.mark.parametrize("language", ["ar", "he-IL", "fa", "ur-PK", "yi"])
    def test_rtl(self, language):
        assert is_rtl_language(language)

    @pytest.mark.parametrize("language", ["en", "de-DE", "", None])
    def test_ltr(self, language):
        assert not is_rtl_language(language)


class TestLastModified:
    def test_non_http_always_fetches(self):
        fetcher = _FakeFetcher()
        parser = FeedParser("exec:cat feed.xml", _context(fetcher))
        assert parser.check_and_update_lastmodified() is True
        assert fetcher.probed == []

    def test_query_always_fetches(self):
        parser = FeedParser('query:All:title != ""', _context())
        assert parser.check_and_update_lastmodified() is True

    def test_always_download_list(self):
        ignores = IgnoreSet()
        ignores.handle_action("always-download", [FEED_URL])
        fetcher = _FakeFetcher(probe=1)
        parser = FeedParser(FEED_URL, _context(fetcher, ignores=ignores))
        assert parser.check_and_update_lastmodified() is True
        assert fetcher.probed == []

    def test_probe_error_skips(self):
        fetcher = _FakeFetcher(probe_error=True)
        parser = FeedParser(FEED_URL, _context(fetcher))
        assert parser.check_and_update_lastmodified() is False

    def test_no_header_fetches(self):
        store = _FakeStore(last_modified=500)
        parser = FeedParser(FEED_URL, _context(_FakeFetcher(probe=None), store=store))
        assert parser.check_and_update_lastmodified() is True
        assert store.last_modified[FEED_URL] == 500

    def test_newer_stores_and_fetches(self):
        store = _FakeStore(last_modified=500)
        parser = FeedParser(FEED_URL, _context(_FakeFetcher(probe=900), store=store))
        assert parser.check_and_update_lastmodified() is True
        assert store.last_modified[FEED_URL] == 900

    def test_same_or_older_skips(self):
        store = _FakeStore(last_modified=500)
        parser = FeedParser(FEED_URL, _context(_FakeFetcher(probe=500), store=store))
        assert parser.check_and_update_lastmodified() is False
        assert store.last_modified[FEED_URL] == 500
