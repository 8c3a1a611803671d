"""Tests for feedcore.ingestion.process — exec: and filter: command execution."""

from __future__ import annotations

from feedcore.ingestion.process import SubprocessExecutor


class TestSubprocessExecutor:
    def test_run_captures_stdout(self):
        assert SubprocessExecutor().run("printf '<rss/>'") == b"<rss/>"

    def test_run_uses_shell(self):
        assert SubprocessExecutor().run("printf a && printf b") == b"ab"

    def test_run_nonzero_exit_returns_output(self, caplog):
        output = SubprocessExecutor().run("printf partial; exit 3")
        assert output == b"partial"
        assert "exited with status 3" in caplog.text

    def test_run_piped_feeds_stdin(self):
        assert SubprocessExecutor().run_piped("cat", b"<rss/>") == b"<rss/>"

    def test_run_piped_splits_arguments(self):
        output = SubprocessExecutor().run_piped("tr 'a-z' 'A-Z'", b"feed")
        assert output == b"FEED"
