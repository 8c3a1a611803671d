"""Lenient RFC 822-style date parsing.

Feeds in the wild ship every imaginable variation of RFC 822 dates. The
parser reads the tokens it understands and zero-fills anything else, so a
single bad date never aborts the ingestion of a feed. Timezone offsets are
not interpreted; the result is computed in local time.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass

from feedcore.errors import MalformedDate

logger = logging.getLogger(__name__)

MONTH_NAMES = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_LEADING_INT_RE = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class DateFields:
    """Broken-down date as read from the source text. ``month`` is 0-based."""

    year: int = 0
    month: int = 0
    day: int = 0
    hour: int = 0
    minute: int = 0
    second: int = 0


def month_index(name: str) -> int:
    """Map a 3-letter English month abbreviation to 0..11 (unknown → 0)."""
    try:
        return MONTH_NAMES.index(name)
    except ValueError:
        return 0


def _read_int(token: str) -> int:
    match = _LEADING_INT_RE.match(token)
    if match is None:
        raise MalformedDate(f"expected a number, got {token!r}")
    return int(match.group())


def _lenient_int(token: str | None) -> int:
    """Read the leading integer of a token, degrading to 0."""
    if not token:
        return 0
    try:
        return _read_int(token)
    except MalformedDate:
        logger.debug("Malformed date token %r, using 0", token)
        return 0


def parse_date_fields(text: str) -> DateFields:
    """Split a date string into its fields without converting it."""
    tokens = text.split()
    if tokens and tokens[0].endswith(","):
        tokens = tokens[1:]
    # day, month, year, time
    tokens += [""] * (4 - len(tokens))

    day = _lenient_int(tokens[0])
    month = month_index(tokens[1])
    year = _lenient_int(tokens[2])
    if year < 100:
        year += 2000

    clock = [_lenient_int(part) for part in tokens[3].split(":")[:3] if part]
    clock += [0] * (3 - len(clock))
    hour, minute, second = clock

    return DateFields(
        year=year, month=month, day=day, hour=hour, minute=minute, second=second
    )


def parse_date(text: str) -> int:
    """Parse a date string into an epoch timestamp (local time)."""
    fields = parse_date_fields(text)
    try:
        return int(
            time.mktime(
                (
                    fields.year,
                    fields.month + 1,
                    fields.day,
                    fields.hour,
                    fields.minute,
                    fields.second,
                    0,
                    0,
                    0,
                )
            )
        )
    except (OverflowError, ValueError):
        logger.debug("Date %r is out of range, using 0", text)
        return 0


def format_date(timestamp: int) -> str:
    """Render a timestamp the way the ``date`` attribute exposes it (UTC)."""
    return time.strftime("%a, %d %b %Y %H:%M:%S", time.gmtime(timestamp))
