"""Tests for feedcore.ingestion.sources — source URI classification."""

from __future__ import annotations

import pytest

from feedcore.errors import UnsupportedScheme
from feedcore.ingestion.sources import (
    ExecSource,
    FilterSource,
    HttpSource,
    QuerySource,
    extract_filter,
    is_http,
    parse_query,
    parse_source,
)


class TestParseSource:
    def test_http(self):
        assert parse_source("http://example.com/feed") == HttpSource("http://example.com/feed")

    def test_https(self):
        assert parse_source("https://example.com/feed") == HttpSource("https://example.com/feed")

    def test_exec(self):
        assert parse_source("exec:~/bin/feed.sh --all") == ExecSource("~/bin/feed.sh --all")

    def test_filter(self):
        source = parse_source("filter:~/bin/fix.py:https://example.com/feed")
        assert source == FilterSource(command="~/bin/fix.py", url="https://example.com/feed")

    def test_query(self):
        source = parse_source('query:Unread:unread = "yes"')
        assert source == QuerySource(name="Unread", expression='unread = "yes"')

    @pytest.mark.parametrize("uri", ["ftp://example.com/feed", "file:///tmp/feed", "example.com", ""])
    def test_unsupported(self, uri):
        with pytest.raises(UnsupportedScheme):
            parse_source(uri)


class TestHelpers:
    def test_is_http(self):
        assert is_http("http://a")
        assert is_http("https://a")
        assert not is_http("exec:ls")

    def test_extract_filter_keeps_colons_in_url(self):
        assert extract_filter("filter:conv:http://a.b:8080/x") == ("conv", "http://a.b:8080/x")

    def test_query_expression_may_contain_colons(self):
        name, expression = parse_query('query:Links:link =~ "https://"')
        assert name == "Links"
        assert expression == 'link =~ "https://"'

    def test_quoted_query_name(self):
        name, expression = parse_query('query:"My: Feed":title =~ "x"')
        assert name == "My: Feed"
        assert expression == 'title =~ "x"'

    def test_query_without_expression(self):
        assert parse_query("query:Empty") == ("Empty", "")
