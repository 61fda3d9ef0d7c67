"""
SQLite schema DDL — all CREATE TABLE and CREATE INDEX statements.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is **idempotent**:
safe to call on an already-initialized database (e.g. after restart or in tests).

Tables:
  1. user_settings  — per-user scoring multipliers; every tunable is nullable
                      and NULL means "use the engine default".
  2. daily_records  — one row per (user, date); raw facts plus the derived
                      ``day_score`` / ``recommended_day`` columns.
  3. run_metadata   — audit log of pipeline stage executions.

Users themselves are owned by the external auth layer; ``user_id`` is an
opaque integer here.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_USER_SETTINGS = """
CREATE TABLE IF NOT EXISTS user_settings (
    user_id                     INTEGER PRIMARY KEY,
    day_of_week_monday          REAL,
    day_of_week_tuesday         REAL,
    day_of_week_wednesday       REAL,
    day_of_week_thursday        REAL,
    day_of_week_friday          REAL,
    day_of_week_saturday        REAL,
    day_of_week_sunday          REAL,
    recovery_penalty_first_day  REAL,
    recovery_penalty_second_day REAL,
    zscore_multiplier_factor    REAL,
    urgency_multiplier_behind   REAL,
    urgency_multiplier_ahead    REAL,
    school_day_multiplier       REAL,
    created_at                  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_at                  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_DAILY_RECORDS = """
CREATE TABLE IF NOT EXISTS daily_records (
    record_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id          INTEGER NOT NULL,
    record_date      TEXT    NOT NULL,
    readiness_score  REAL,
    readiness_zscore REAL,
    gym_attended     INTEGER NOT NULL DEFAULT 0,
    impossible_day   INTEGER NOT NULL DEFAULT 0,
    is_school_day    INTEGER NOT NULL DEFAULT 0,
    day_score        REAL    NOT NULL DEFAULT 0 CHECK (day_score >= 0),
    recommended_day  INTEGER NOT NULL DEFAULT 0,
    created_at       TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_at       TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    UNIQUE (user_id, record_date)
);
"""

_DDL_DAILY_RECORDS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_daily_user_date
    ON daily_records(user_id, record_date);
CREATE INDEX IF NOT EXISTS idx_daily_user_recommended
    ON daily_records(user_id, recommended_day)
    WHERE recommended_day = 1;
"""

_DDL_RUN_METADATA = """
CREATE TABLE IF NOT EXISTS run_metadata (
    run_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    run_slug        TEXT    NOT NULL UNIQUE,
    pipeline_stage  TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'started',
    user_id         INTEGER,
    target_year     INTEGER,
    config_snapshot TEXT    NOT NULL,
    rows_processed  INTEGER NOT NULL DEFAULT 0,
    error_message   TEXT,
    started_at      TEXT    NOT NULL,
    finished_at     TEXT
);
"""

_ALL_DDL = [
    _DDL_USER_SETTINGS,
    _DDL_DAILY_RECORDS,
    _DDL_DAILY_RECORDS_INDEXES,
    _DDL_RUN_METADATA,
]

# Table names for introspection / tests
ALL_TABLE_NAMES = [
    "user_settings",
    "daily_records",
    "run_metadata",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``.

    Idempotent — safe to call on an already-initialized database.

    Args:
        conn: An open ``sqlite3.Connection``.
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the sorted list of table names present in the database."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]


def get_existing_indexes(conn: sqlite3.Connection) -> list[str]:
    """Return the sorted list of index names present in the database."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]


def get_table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    """Return the column names of ``table`` in declaration order."""
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    return [row["name"] for row in rows]
