"""
Goal pacing: where the user stands against the annual goal.

``pace_urgency`` compares attendance so far with a straight-line pace
(goal spread evenly over the year) and returns the matching urgency
multiplier from the user's settings. ``summarize_progress`` produces the
status block shown next to the calendar.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date
from typing import Optional

from otf_calendar.db.repositories.daily_record_repo import DailyRecordRepository
from otf_calendar.models.settings import UserSettings
from otf_calendar.utils.time_utils import days_in_year, year_end, year_start

logger = logging.getLogger(__name__)

STATUS_MET = "met"
STATUS_ON_TRACK = "on_track"
STATUS_BEHIND = "behind"


@dataclass
class GoalProgress:
    """Snapshot of progress toward the goal for one year.

    Attributes:
        goal:        Target sessions.
        completed:   Attended days in the year.
        recommended: Recommended days from ``as_of`` through Dec 31.
        expected:    Sessions a straight-line pace would have by ``as_of``.
        as_of:       Reference date.
    """

    goal:        int
    completed:   int
    recommended: int
    expected:    float
    as_of:       date

    @property
    def remaining_needed(self) -> int:
        return max(0, self.goal - self.completed)

    @property
    def status(self) -> str:
        if self.completed >= self.goal:
            return STATUS_MET
        if self.recommended >= self.remaining_needed:
            return STATUS_ON_TRACK
        return STATUS_BEHIND

    @property
    def message(self) -> str:
        if self.status == STATUS_MET:
            return f"Congratulations! You've already met your {self.goal}-day goal!"
        if self.status == STATUS_ON_TRACK:
            return "You're on track to meet (or exceed) your goal!"
        return "You're behind schedule, consider adding more gym days!"


def expected_sessions(goal: int, as_of: date, year: int) -> float:
    """Sessions a straight-line pace would have completed before ``as_of``."""
    total_days = days_in_year(year)
    elapsed = (as_of - year_start(year)).days
    elapsed = min(max(elapsed, 0), total_days)
    return goal * elapsed / total_days


def pace_urgency(
    attended: int,
    goal: int,
    as_of: date,
    year: int,
    settings: UserSettings,
) -> float:
    """Urgency multiplier for the current pace.

    Returns:
        ``settings.urgency_multiplier_behind`` when attendance trails the
        straight-line pace, ``settings.urgency_multiplier_ahead`` when it
        leads, and 1.0 when exactly on pace.
    """
    expected = expected_sessions(goal, as_of, year)
    if attended < expected:
        return settings.urgency_multiplier_behind
    if attended > expected:
        return settings.urgency_multiplier_ahead
    return 1.0


def summarize_progress(
    conn: sqlite3.Connection,
    user_id: int,
    goal: int,
    year: Optional[int] = None,
    as_of: Optional[date] = None,
) -> GoalProgress:
    """Build a ``GoalProgress`` from the stored records.

    Args:
        conn:    Open database connection.
        user_id: Owning user.
        goal:    Target sessions for the year.
        year:    Goal year; defaults to ``as_of.year``.
        as_of:   Reference date; defaults to ``date.today()``.
    """
    today = as_of or date.today()
    target_year = year if year is not None else today.year
    repo = DailyRecordRepository(conn)

    completed = repo.count_attended(user_id, year_start(target_year), year_end(target_year))
    window_start = max(today, year_start(target_year))
    recommended = (
        len(repo.get_recommended_dates(user_id, window_start, year_end(target_year)))
        if window_start <= year_end(target_year)
        else 0
    )

    progress = GoalProgress(
        goal=goal,
        completed=completed,
        recommended=recommended,
        expected=expected_sessions(goal, today, target_year),
        as_of=today,
    )
    logger.debug("Progress for user=%d year=%d: %s", user_id, target_year, progress)
    return progress
