"""
Shared pytest fixtures for the OTF Calendar test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema and all migrations applied. Created anew for each test that
    requests it.
  - Sample settings and config factories for use in multiple test modules.
"""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from otf_calendar.config import AppConfig, DatabaseConfig
from otf_calendar.db.migrations import run_migrations
from otf_calendar.db.schema import apply_schema
from otf_calendar.models.settings import UserSettings

USER_ID = 1


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied.

    Foreign key enforcement is ON. Schema and migrations are applied
    idempotently. Connection is closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    run_migrations(conn)
    yield conn
    conn.close()


# ── Sample domain object factories ────────────────────────────────────────────

@pytest.fixture
def default_settings() -> UserSettings:
    """Engine-default settings for the test user."""
    return UserSettings(user_id=USER_ID)


@pytest.fixture
def neutral_settings() -> UserSettings:
    """Settings where school days carry no bonus, so scores isolate other factors."""
    return UserSettings(user_id=USER_ID, school_day_multiplier=1.0)


@pytest.fixture
def file_config(tmp_path) -> AppConfig:
    """An ``AppConfig`` pointing at a throwaway on-disk database."""
    return AppConfig(database=DatabaseConfig(db_path=str(tmp_path / "test.db")))
