"""
Attendance streak: how many consecutive days immediately before a date the
user attended.

Example: attended on 2025-04-08 and 2025-04-09 → the streak for 2025-04-10
is 2. The date itself is never counted.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, timedelta

from otf_calendar.db.repositories.daily_record_repo import DailyRecordRepository

logger = logging.getLogger(__name__)


def consecutive_streak(conn: sqlite3.Connection, user_id: int, on_date: date) -> int:
    """Count consecutive attended days ending the day before ``on_date``.

    Walks backward one day at a time and stops at the first day that has no
    record or was not attended. The walk has no fixed bound; it is as long
    as the streak.

    Args:
        conn: Open database connection.
        user_id: Owning user.
        on_date: The day being scored.

    Returns:
        Streak length, ``0`` if the previous day was not attended or has no
        record.
    """
    repo = DailyRecordRepository(conn)
    streak = 0
    current = on_date - timedelta(days=1)

    while repo.attendance_on(user_id, current):
        streak += 1
        current -= timedelta(days=1)

    logger.debug("Streak before %s for user=%d: %d", on_date, user_id, streak)
    return streak
