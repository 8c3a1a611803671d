"""Durable store — SQLite-backed feed and article state."""

from feedcore.storage.cache import Cache
from feedcore.storage.connection import get_connection
from feedcore.storage.schema import init_db

__all__ = ["Cache", "get_connection", "init_db"]
