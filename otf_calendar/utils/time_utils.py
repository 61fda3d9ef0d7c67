"""
Calendar helpers shared by the scoring engine.

Weekday names are fixed English strings (they double as the suffix of the
``day_of_week_*`` settings columns) and are never taken from the locale.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone

# Indexed by ``date.weekday()`` (Monday = 0).
WEEKDAY_NAMES: tuple[str, ...] = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)

# SQLite ``strftime('%w')`` numbering (Sunday = 0) → weekday name.
SQLITE_WEEKDAY_NAMES: dict[int, str] = {
    0: "sunday",
    1: "monday",
    2: "tuesday",
    3: "wednesday",
    4: "thursday",
    5: "friday",
    6: "saturday",
}


def weekday_name(day: date) -> str:
    """Return the lowercase English weekday name of ``day``."""
    return WEEKDAY_NAMES[day.weekday()]


def year_start(year: int) -> date:
    return date(year, 1, 1)


def year_end(year: int) -> date:
    """Last day of ``year``; also the goal cutoff for that year."""
    return date(year, 12, 31)


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def date_range(start: date, end: date, step_days: int = 1) -> list[date]:
    """Generate a list of dates from ``start`` to ``end`` (inclusive).

    Args:
        start: First date in the range.
        end: Last date in the range (inclusive).
        step_days: Step size in days (default 1).

    Returns:
        List of date objects; empty when ``end < start``.

    Raises:
        ValueError: If ``step_days < 1``.
    """
    if step_days < 1:
        raise ValueError(f"step_days must be >= 1, got {step_days}.")

    result: list[date] = []
    current = start
    while current <= end:
        result.append(current)
        current += timedelta(days=step_days)
    return result


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info."""
    return datetime.now(tz=timezone.utc)
