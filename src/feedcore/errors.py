"""Error taxonomy for feed ingestion."""

from __future__ import annotations

from enum import Enum


class FeedError(Exception):
    """Base class for all feedcore errors."""


class UnsupportedScheme(FeedError):
    """Raised when a source URI carries a prefix no fetch strategy handles."""

    def __init__(self, uri: str) -> None:
        super().__init__(f"unsupported URL: {uri}")
        self.uri = uri


class TransportError(FeedError):
    """Fatal fetch or parse failure. No partial feed is produced."""

    def __init__(self, message: str, status=None) -> None:
        super().__init__(message)
        self.status = status


class ProbeError(FeedError):
    """The last-modified probe could not be completed."""


class MalformedDate(FeedError):
    """A date token could not be read."""


class PredicateSyntaxError(FeedError):
    """A filter expression could not be compiled."""

    def __init__(self, expression: str, reason: str) -> None:
        super().__init__(f"invalid expression {expression!r}: {reason}")
        self.expression = expression
        self.reason = reason


class DurableWriteError(FeedError):
    """A write to the durable store failed."""


class ActionStatus(Enum):
    """Result of a rule command such as ``ignore-article``."""

    OK = "ok"
    INVALID_PARAMS = "invalid_params"
    TOO_FEW_PARAMS = "too_few_params"
    UNKNOWN_COMMAND = "unknown_command"
