"""
SQLite connection management.

Provides:
  - ``get_connection()`` — context manager yielding a configured connection
    that commits on clean exit, rolls back on exception and is always closed.
    One connection is opened per CLI invocation / request; nothing is cached
    across invocations.
  - ``atomic()`` — a SAVEPOINT scope inside an open connection. Used where a
    multi-statement write (clear + re-mark recommendations) must succeed or
    fail as one unit even when the caller keeps the connection open.

Usage::

    from otf_calendar.db.connection import atomic, get_connection

    with get_connection("data/db/otf_calendar.db") as conn:
        with atomic(conn, "rebalance"):
            conn.execute("UPDATE daily_records ...")
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Context manager yielding a configured SQLite connection.

    The database file (and any parent directories) are created if they do
    not already exist.

    Args:
        db_path: Path to the SQLite database file. Use ``":memory:"`` for
            in-memory databases (useful in tests).
        wal_mode: If ``True``, enable WAL journal mode.
        busy_timeout_ms: Milliseconds to wait when the database is locked
            before raising ``OperationalError``.

    Yields:
        An open, configured ``sqlite3.Connection``.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened or is locked.
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row

    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")

        if wal_mode:
            conn.execute("PRAGMA journal_mode = WAL;")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()


@contextmanager
def atomic(conn: sqlite3.Connection, name: str = "sp") -> Generator[sqlite3.Connection, None, None]:
    """Run the enclosed statements inside a SAVEPOINT.

    On exception the savepoint is rolled back (earlier work on the same
    connection is preserved) and the exception is re-raised. On success the
    savepoint is released; if it was the outermost one this commits.

    Args:
        conn: An open connection.
        name: Savepoint identifier (must be a plain SQL identifier).
    """
    conn.execute(f"SAVEPOINT {name};")
    try:
        yield conn
    except Exception:
        logger.warning("Rolling back savepoint %s", name)
        conn.execute(f"ROLLBACK TO SAVEPOINT {name};")
        conn.execute(f"RELEASE SAVEPOINT {name};")
        raise
    else:
        conn.execute(f"RELEASE SAVEPOINT {name};")
