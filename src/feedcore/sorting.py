"""Article sort orders.

A sort method is ``<key>[-asc|-desc]``. ``date`` sorts newest first unless
``-asc`` is given; every other key sorts ascending unless ``-desc`` is
given. Sorting is always stable: items with equal keys keep their input
order in both directions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from feedcore.model import Item

logger = logging.getLogger(__name__)

DEFAULT_SORT = "date-desc"

_SORT_KEYS: dict[str, Callable[[Item], object]] = {
    "date": lambda item: item.pub_date,
    "title": lambda item: item.display_title.lower(),
    "flags": lambda item: item.flags,
    "author": lambda item: item.display_author,
    "link": lambda item: item.link,
    "guid": lambda item: item.guid,
}

_DESCENDING_BY_DEFAULT = frozenset({"date"})


def parse_sort_method(method: str) -> tuple[str, bool]:
    """Return ``(key, descending)`` for a sort method string."""
    key, _, direction = method.partition("-")
    if direction == "asc":
        descending = False
    elif direction == "desc":
        descending = True
    else:
        descending = key in _DESCENDING_BY_DEFAULT
    return key, descending


def sort_items(items: list[Item], method: str = DEFAULT_SORT) -> list[Item]:
    """Return ``items`` in the requested order. Unknown keys keep the order."""
    key, descending = parse_sort_method(method)
    key_func = _SORT_KEYS.get(key)
    if key_func is None:
        logger.debug("Unknown sort key %r, keeping item order", key)
        return list(items)
    return sorted(items, key=key_func, reverse=descending)
