"""
RefreshStage — bring a user's year up to date.

Refresh flow
------------
For one (user, year):
  1. Make sure a record exists for every date of the year.
  2. Re-predict scores for every unresolved day from today through Dec 31.
  3. Rebalance recommendations against the goal.

This is what a calendar page load triggers. Returns the number of rows
written (records created + scores refreshed + days marked).
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date
from typing import Optional

from otf_calendar.models.meta import RunMetadata
from otf_calendar.pipeline.base import PipelineStage

logger = logging.getLogger(__name__)


def refresh_year(
    conn: sqlite3.Connection,
    user_id: int,
    year: int,
    goal: int,
    as_of: Optional[date] = None,
):
    """Run the three refresh steps on an open connection.

    Returns:
        ``(rows_written, AllocationResult)``
    """
    from otf_calendar.db.repositories.daily_record_repo import DailyRecordRepository
    from otf_calendar.db.repositories.settings_repo import UserSettingsRepository
    from otf_calendar.engine.allocator import update_recommendations
    from otf_calendar.engine.readiness import refresh_future_scores

    settings = UserSettingsRepository(conn).get(user_id)
    created = DailyRecordRepository(conn).ensure_year(user_id, year)
    scored = refresh_future_scores(conn, user_id, year, settings, as_of=as_of)
    allocation = update_recommendations(conn, user_id, goal, year=year, as_of=as_of)
    return created + scored + len(allocation.recommended), allocation


class RefreshStage(PipelineStage):
    """Recompute future scores and recommendations for one user and year."""

    stage_name = "refresh"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.last_allocation = None

    def _execute(
        self,
        run: RunMetadata,
        user_id: int | None = None,
        year: int | None = None,
        goal: int | None = None,
        as_of: date | None = None,
        **kwargs,
    ) -> int:
        """Refresh one user's year.

        Args:
            run:     In-progress RunMetadata (mutable).
            user_id: Defaults to ``config.goal.default_user_id``.
            year:    Defaults to ``as_of.year``.
            goal:    Defaults to ``config.goal.default_sessions``.
            as_of:   "Today"; defaults to ``date.today()``.

        Returns:
            Rows written.
        """
        today = as_of or date.today()
        uid = user_id if user_id is not None else self.config.goal.default_user_id
        target_year = year if year is not None else today.year
        target_goal = goal if goal is not None else self.config.goal.default_sessions

        run.user_id = uid
        run.target_year = target_year

        with self._connect() as conn:
            rows, allocation = refresh_year(conn, uid, target_year, target_goal, as_of=today)

        self.last_allocation = allocation
        return rows
