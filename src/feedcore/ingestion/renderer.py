"""Plain-text rendering of HTML fragments (titles, short descriptions)."""

from __future__ import annotations

import re
from html import unescape

ITUNES_HACK_OPEN = "<ituneshack>"
ITUNES_HACK_CLOSE = "</ituneshack>"

_HTML_TAG_RE = re.compile(r"<[^>]+>")
_LINE_BREAK_RE = re.compile(
    r"<\s*(?:br|hr)\s*/?\s*>|<\s*/?\s*(?:p|div|li|ul|ol|h[1-6]|blockquote|pre|tr)\b[^>]*>",
    re.IGNORECASE,
)
_WHITESPACE_RE = re.compile(r"[ \t\r\n\f\v]+")
_ITUNES_RE = re.compile(
    re.escape(ITUNES_HACK_OPEN) + r"(.*?)" + re.escape(ITUNES_HACK_CLOSE), re.DOTALL
)


def strip_html(text: str) -> str:
    """Remove HTML tags and unescape entities."""
    return unescape(_HTML_TAG_RE.sub("", text)).strip()


def _render_flowing(markup: str) -> list[str]:
    """Whitespace is insignificant; only block tags break lines."""
    marked = _LINE_BREAK_RE.sub("\n", _WHITESPACE_RE.sub(" ", markup))
    return [strip_html(line) for line in marked.split("\n")]


def _render_preformatted(markup: str) -> list[str]:
    """Embedded newlines are kept as line breaks."""
    marked = _LINE_BREAK_RE.sub("\n", markup.replace("\r\n", "\n").replace("\r", "\n"))
    return [unescape(_HTML_TAG_RE.sub("", line)).rstrip() for line in marked.split("\n")]


def render_lines(markup: str) -> list[str]:
    """Render markup to plain text lines, without leading or trailing blanks.

    Text inside the ``<ituneshack>`` sentinel pair keeps its own newlines.
    """
    lines: list[str] = []
    pos = 0
    for match in _ITUNES_RE.finditer(markup):
        lines.extend(_render_flowing(markup[pos:match.start()]))
        lines.extend(_render_preformatted(match.group(1)))
        pos = match.end()
    lines.extend(_render_flowing(markup[pos:]))

    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return lines


def render_title(markup: str) -> str:
    """First rendered line of a rich-markup title."""
    lines = render_lines(markup)
    return lines[0] if lines else ""
