"""Source URI parsing — one tagged value per supported scheme."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from feedcore.errors import UnsupportedScheme

HTTP_PREFIXES = ("http:", "https:")
EXEC_PREFIX = "exec:"
FILTER_PREFIX = "filter:"
QUERY_PREFIX = "query:"


@dataclass(frozen=True)
class HttpSource:
    """Document served over HTTP(S)."""

    url: str


@dataclass(frozen=True)
class ExecSource:
    """Document produced on the standard output of a command."""

    command: str


@dataclass(frozen=True)
class FilterSource:
    """Document fetched from ``url`` and piped through ``command``."""

    command: str
    url: str


@dataclass(frozen=True)
class QuerySource:
    """Saved-search virtual feed; never fetched."""

    name: str
    expression: str


Source = Union[HttpSource, ExecSource, FilterSource, QuerySource]


def is_http(uri: str) -> bool:
    return uri.startswith(HTTP_PREFIXES)


def is_query(uri: str) -> bool:
    return uri.startswith(QUERY_PREFIX)


def _split_unquoted(text: str, sep: str, maxsplit: int) -> list[str]:
    """Split on ``sep`` outside double quotes, at most ``maxsplit`` times."""
    parts: list[str] = []
    current: list[str] = []
    in_quotes = False
    escaped = False
    for ch in text:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            current.append(ch)
            escaped = True
        elif ch == '"':
            current.append(ch)
            in_quotes = not in_quotes
        elif ch == sep and not in_quotes and len(parts) < maxsplit:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] == '"':
        return text[1:-1]
    return text


def extract_filter(uri: str) -> tuple[str, str]:
    """Split ``filter:<cmd>:<url>`` into the command and the URL."""
    command, _, url = uri[len(FILTER_PREFIX):].partition(":")
    return command, url


def parse_query(uri: str) -> tuple[str, str]:
    """Split ``query:<name>:<expr>`` into the feed name and the expression."""
    parts = _split_unquoted(uri[len(QUERY_PREFIX):], ":", 1)
    name = _unquote(parts[0])
    expression = parts[1] if len(parts) > 1 else ""
    return name, expression


def parse_source(uri: str) -> Source:
    """Classify a source URI. Raises UnsupportedScheme for unknown prefixes."""
    if is_http(uri):
        return HttpSource(url=uri)
    if uri.startswith(EXEC_PREFIX):
        return ExecSource(command=uri[len(EXEC_PREFIX):])
    if uri.startswith(FILTER_PREFIX):
        command, url = extract_filter(uri)
        return FilterSource(command=command, url=url)
    if is_query(uri):
        name, expression = parse_query(uri)
        return QuerySource(name=name, expression=expression)
    raise UnsupportedScheme(uri)
