"""Ignore rules — per-feed article suppression and URL allow-lists."""

from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import TYPE_CHECKING

from feedcore.errors import ActionStatus, PredicateSyntaxError
from feedcore.filters.matcher import Predicate, compile_predicate

if TYPE_CHECKING:
    from feedcore.model import Item

logger = logging.getLogger(__name__)

ALL_FEEDS = "*"


class IgnoreSet:
    """Rules populated by ``ignore-article``, ``always-download`` and
    ``reset-unread-on-update`` commands, in the order they were given."""

    def __init__(self) -> None:
        self.ignores: list[tuple[str, Predicate]] = []
        self.always_download: list[str] = []
        self.reset_unread: list[str] = []

    def handle_action(self, action: str, params: list[str]) -> ActionStatus:
        """Apply one rule command and report whether it was accepted."""
        if action == "ignore-article":
            if len(params) < 2:
                return ActionStatus.TOO_FEW_PARAMS
            feed_url, expression = params[0], params[1]
            try:
                predicate = compile_predicate(expression)
            except PredicateSyntaxError as exc:
                logger.debug("Rejecting ignore-article rule: %s", exc)
                return ActionStatus.INVALID_PARAMS
            self.ignores.append((feed_url, predicate))
            return ActionStatus.OK
        if action == "always-download":
            self.always_download.extend(params)
            return ActionStatus.OK
        if action == "reset-unread-on-update":
            self.reset_unread.extend(params)
            return ActionStatus.OK
        return ActionStatus.UNKNOWN_COMMAND

    def matches(self, item: Item) -> bool:
        """True if any rule scoped to ``*`` or the item's feed matches it."""
        for feed_url, predicate in self.ignores:
            if feed_url != ALL_FEEDS and feed_url != item.feedurl:
                continue
            if predicate.matches(item):
                logger.debug(
                    "Ignore rule %r (%s) matches %r", predicate.expression, feed_url, item.title
                )
                return True
        return False

    def matches_lastmodified(self, url: str) -> bool:
        return url in self.always_download

    def matches_resetunread(self, url: str) -> bool:
        return url in self.reset_unread


def load_rules(path: str | Path, ignores: IgnoreSet | None = None) -> IgnoreSet:
    """Read rule commands from a file, one shell-quoted command per line.

    Blank lines and ``#`` comments are skipped. Rejected lines are logged
    and do not stop the rest of the file from loading.
    """
    if ignores is None:
        ignores = IgnoreSet()
    path = Path(path)
    if not path.exists():
        logger.info("No rules file at %s", path)
        return ignores

    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        try:
            tokens = shlex.split(line, comments=True)
        except ValueError as exc:
            logger.warning("%s:%d: cannot parse rule: %s", path, lineno, exc)
            continue
        if not tokens:
            continue
        status = ignores.handle_action(tokens[0], tokens[1:])
        if status is not ActionStatus.OK:
            logger.warning("%s:%d: %s rejected (%s)", path, lineno, tokens[0], status.value)
    return ignores
