"""Collaborator interfaces used by the ingestion pipeline.

The pipeline itself never talks to the network, spawns processes or
touches the database directly; it goes through these contracts so each
side can be swapped out (and faked in tests).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from feedcore.model import Feed, Item


class FetchStatus(IntEnum):
    """Outcome of a fetch. Values from POSIX_ERROR to DATA_ERROR are fatal."""

    OK = 0
    POSIX_ERROR = 1
    PARSE_ERROR = 2
    DOWNLOAD_ERROR = 3
    VERSION_ERROR = 4
    DATA_ERROR = 5
    NOT_MODIFIED = 6
    NO_DOCUMENT = 7

    @property
    def is_fatal(self) -> bool:
        return FetchStatus.OK < self <= FetchStatus.DATA_ERROR


@dataclass(frozen=True)
class FetchOptions:
    """Per-request transport settings."""

    timeout: int = 30
    proxy: str | None = None
    proxy_auth: str | None = None
    user_agent: str = ""


@dataclass(frozen=True)
class FetchResult:
    body: bytes
    status: FetchStatus = FetchStatus.OK


class UrlFetcher(ABC):
    """Retrieves documents over the network."""

    @abstractmethod
    def fetch(self, url: str, options: FetchOptions) -> FetchResult:
        """Download ``url``. Failures are reported through the status."""

    @abstractmethod
    def probe_last_modified(self, url: str, options: FetchOptions) -> int | None:
        """Return the server's last-modified timestamp, or None if it sent none.

        Raises ProbeError when the probe itself fails.
        """


class ProcessExecutor(ABC):
    """Runs external commands that produce feed documents."""

    @abstractmethod
    def run(self, command: str) -> bytes:
        """Run ``command`` and return its standard output."""

    @abstractmethod
    def run_piped(self, command: str, data: bytes) -> bytes:
        """Run ``command`` with ``data`` on standard input, return its output."""


class DurableStore(ABC):
    """Persistent state the core reads from and writes through to."""

    @abstractmethod
    def get_last_modified(self, url: str) -> int:
        """Return the stored last-modified timestamp (0 when unknown)."""

    @abstractmethod
    def set_last_modified(self, url: str, timestamp: int) -> None:
        """Record a new last-modified timestamp."""

    @abstractmethod
    def update_item_unread(self, item: Item, feed_url: str) -> None:
        """Persist the item's unread flag. Raises DurableWriteError."""

    @abstractmethod
    def update_item_flags(self, item: Item) -> None:
        """Persist the item's flags."""

    @abstractmethod
    def remove_stale_items(self, feed_url: str, known_guids: list[str]) -> None:
        """Purge stored items of the feed that are no longer upstream."""

    def save_feed(self, feed: Feed, reset_unread: bool = False) -> None:
        """Reconcile a freshly parsed feed with stored state. Optional."""

    def load_feed(self, feed_url: str) -> Feed:
        """Stored state of a feed that was not refetched. Optional."""
        from feedcore.model import Feed

        return Feed(rssurl=feed_url)
