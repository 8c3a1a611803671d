"""Tests for feedcore.filters.ignores — ignore rules and URL lists."""

from __future__ import annotations

from feedcore.errors import ActionStatus
from feedcore.filters.ignores import IgnoreSet, load_rules
from feedcore.model import Item

FEED = "https://example.com/feed"


class TestHandleAction:
    def test_ignore_article_ok(self):
        ignores = IgnoreSet()
        assert ignores.handle_action("ignore-article", ["*", 'title =~ "foo"']) is ActionStatus.OK
        assert len(ignores.ignores) == 1

    def test_ignore_article_too_few_params(self):
        ignores = IgnoreSet()
        assert ignores.handle_action("ignore-article", ["*"]) is ActionStatus.TOO_FEW_PARAMS
        assert ignores.handle_action("ignore-article", []) is ActionStatus.TOO_FEW_PARAMS

    def test_ignore_article_invalid_expression(self):
        ignores = IgnoreSet()
        status = ignores.handle_action("ignore-article", ["*", "title =~"])
        assert status is ActionStatus.INVALID_PARAMS
        assert ignores.ignores == []

    def test_always_download(self):
        ignores = IgnoreSet()
        assert ignores.handle_action("always-download", [FEED, "http://b"]) is ActionStatus.OK
        assert ignores.always_download == [FEED, "http://b"]

    def test_reset_unread_on_update(self):
        ignores = IgnoreSet()
        assert ignores.handle_action("reset-unread-on-update", [FEED]) is ActionStatus.OK
        assert ignores.reset_unread == [FEED]

    def test_unknown_command(self):
        assert IgnoreSet().handle_action("bind-key", ["x"]) is ActionStatus.UNKNOWN_COMMAND


class TestMatches:
    def test_wildcard_rule(self):
        ignores = IgnoreSet()
        ignores.handle_action("ignore-article", ["*", 'title =~ "foo"'])
        assert ignores.matches(Item(title="foo bar", feedurl=FEED))
        assert not ignores.matches(Item(title="baz", feedurl=FEED))

    def test_scoped_rule(self):
        ignores = IgnoreSet()
        ignores.handle_action("ignore-article", [FEED, 'author = "spam"'])
        assert ignores.matches(Item(author="spam", feedurl=FEED))
        assert not ignores.matches(Item(author="spam", feedurl="https://other.example/feed"))

    def test_any_rule_matches(self):
        ignores = IgnoreSet()
        ignores.handle_action("ignore-article", ["*", 'title = "a"'])
        ignores.handle_action("ignore-article", ["*", 'title = "b"'])
        assert ignores.matches(Item(title="b", feedurl=FEED))

    def test_no_rules(self):
        assert not IgnoreSet().matches(Item(title="x"))

    def test_url_lists(self):
        ignores = IgnoreSet()
        ignores.handle_action("always-download", [FEED])
        ignores.handle_action("reset-unread-on-update", ["http://b"])
        assert ignores.matches_lastmodified(FEED)
        assert not ignores.matches_lastmodified("http://b")
        assert ignores.matches_resetunread("http://b")
        assert not ignores.matches_resetunread(FEED)


class TestLoadRules:
    def test_loads_commands(self, tmp_path):
        path = tmp_path / "rules"
        path.write_text(
            "# comment\n"
            "\n"
            'ignore-article * "title =~ \\"foo\\""\n'
            f"always-download {FEED}\n"
            "reset-unread-on-update http://b http://c\n"
        )
        ignores = load_rules(path)
        assert len(ignores.ignores) == 1
        assert ignores.matches(Item(title="Foo!", feedurl=FEED))
        assert ignores.always_download == [FEED]
        assert ignores.reset_unread == ["http://b", "http://c"]

    def test_bad_lines_are_skipped(self, tmp_path):
        path = tmp_path / "rules"
        path.write_text(
            'ignore-article * "title =~"\n'
            "frobnicate\n"
            'ignore-article * "unclosed\n'
            'ignore-article * "author = \\"x\\""\n'
        )
        ignores = load_rules(path)
        assert len(ignores.ignores) == 1

    def test_missing_file(self, tmp_path):
        ignores = load_rules(tmp_path / "nope")
        assert ignores.ignores == []

    def test_extends_existing_set(self, tmp_path):
        path = tmp_path / "rules"
        path.write_text("always-download http://b\n")
        ignores = IgnoreSet()
        ignores.handle_action("always-download", ["http://a"])
        assert load_rules(path, ignores) is ignores
        assert ignores.always_download == ["http://a", "http://b"]
