"""Encoding normalization — canonical text storage and lazy display conversion.

All text coming out of a feed document is stored as ``str``. Conversion to
the terminal's encoding happens only when a field is read for display.
"""

from __future__ import annotations

import codecs
import logging

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8"


def _lookup(encoding: str | None) -> str:
    """Return a usable codec name, falling back to UTF-8 for unknown names."""
    if not encoding:
        return DEFAULT_ENCODING
    try:
        return codecs.lookup(encoding).name
    except LookupError:
        logger.debug("Unknown encoding %r, using %s", encoding, DEFAULT_ENCODING)
        return DEFAULT_ENCODING


def to_canonical(value: bytes | str | None, encoding: str | None = None) -> str:
    """Convert a raw document value into canonical text.

    Bytes are decoded from the declared document encoding; undecodable
    sequences are replaced rather than failing the whole field.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return value.decode(_lookup(encoding), errors="replace")


def to_display(text: str, target_encoding: str | None = DEFAULT_ENCODING) -> str:
    """Restrict canonical text to what the target encoding can represent."""
    if not text:
        return ""
    codec = _lookup(target_encoding)
    if codec == "utf-8":
        return text
    return text.encode(codec, errors="replace").decode(codec)
