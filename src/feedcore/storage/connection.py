"""SQLite connection management for the cache database."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

_BUSY_TIMEOUT_SECONDS = 5.0
_MEMORY_DATABASE = ":memory:"


def _prepare_path(database_path: str) -> str:
    """Expand ``~`` and create the cache's parent directory on first use."""
    if database_path == _MEMORY_DATABASE:
        return database_path
    path = Path(database_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return str(path)


@contextmanager
def get_connection(database_path: str) -> Generator[sqlite3.Connection, None, None]:
    """Yield a connection to the cache database.

    One transaction per block: committed when the block exits normally,
    rolled back when it raises. The connection is closed either way.
    Another reader holding the cache makes writes wait up to five seconds.
    """
    conn = sqlite3.connect(_prepare_path(database_path), timeout=_BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    try:
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()
