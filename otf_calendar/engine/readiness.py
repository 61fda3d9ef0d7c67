"""
Readiness prediction for days that have no real reading yet.

Functions
---------
average_readiness_by_weekday()
    Mean positive readiness per weekday over all of the user's records.

predicted_score()
    PREDICTIVE-mode score for one day (see ``engine.scorer``).

refresh_future_scores()
    Batch: re-predict every day from today (or Jan 1, whichever is later)
    through Dec 31 and persist the score of every open day. This is what keeps
    ``day_score`` fresh on days the user has not resolved.

recompute_readiness_zscores()
    Normalize every positive reading into ``readiness_zscore``. Mean/std come
    from the user's overrides when set, otherwise from the user's own
    readings (population std; falls back to the default std when there are
    fewer than two readings or no spread).
"""

from __future__ import annotations

import logging
import math
import sqlite3
from datetime import date
from typing import Optional

from otf_calendar.db.repositories.daily_record_repo import DailyRecordRepository
from otf_calendar.engine.scorer import ScoreMode, compute_day_score, to_zscore
from otf_calendar.models.settings import (
    DEFAULT_READINESS_MEAN,
    DEFAULT_READINESS_STD,
    UserSettings,
)
from otf_calendar.utils.time_utils import year_end, year_start

logger = logging.getLogger(__name__)


def average_readiness_by_weekday(conn: sqlite3.Connection, user_id: int) -> dict[str, float]:
    """Mean readiness per lowercase weekday name, ignoring missing/zero readings."""
    return DailyRecordRepository(conn).average_readiness_by_weekday(user_id)


def predicted_score(
    conn: sqlite3.Connection,
    user_id: int,
    on_date: date,
    settings: UserSettings,
    weekday_averages: dict[str, float],
) -> float:
    """Predicted score for a single day (not persisted).

    Returns:
        Score >= 0; ``0.0`` for attended, impossible or missing days.
    """
    record = DailyRecordRepository(conn).get(user_id, on_date)
    if record is None:
        return 0.0
    return compute_day_score(
        record, settings, ScoreMode.PREDICTIVE, weekday_averages=weekday_averages
    ).total


def refresh_future_scores(
    conn: sqlite3.Connection,
    user_id: int,
    year: int,
    settings: UserSettings,
    as_of: Optional[date] = None,
) -> int:
    """Re-predict and persist scores for the unresolved rest of ``year``.

    Every open day is rewritten, including days that now predict to 0.
    Resolved days (attended, impossible) keep whatever score they had.

    Args:
        conn:     Open database connection.
        user_id:  Owning user.
        year:     Calendar year to refresh.
        settings: The user's settings.
        as_of:    "Today"; defaults to ``date.today()``.

    Returns:
        Number of day scores written. ``0`` when ``year`` is already over.
    """
    today = as_of or date.today()
    start = max(today, year_start(year))
    end = year_end(year)
    if start > end:
        logger.info("Year %d is in the past as of %s; nothing to refresh.", year, today)
        return 0

    repo = DailyRecordRepository(conn)
    averages = repo.average_readiness_by_weekday(user_id)
    records = repo.get_range(user_id, start, end)

    scores: list[tuple[date, float]] = []
    for record in records:
        if record.is_resolved:
            continue
        score = compute_day_score(
            record, settings, ScoreMode.PREDICTIVE, weekday_averages=averages
        ).total
        scores.append((record.record_date, score))

    written = repo.set_day_scores(user_id, scores)
    logger.info(
        "Refreshed %d future day scores for user=%d (%s → %s)",
        written, user_id, start, end,
    )
    return written


def recompute_readiness_zscores(
    conn: sqlite3.Connection,
    user_id: int,
    settings: UserSettings,
) -> int:
    """Recompute ``readiness_zscore`` for every positive reading of a user.

    Returns:
        Number of records updated.
    """
    repo = DailyRecordRepository(conn)
    readings = repo.readiness_readings(user_id)
    if not readings:
        return 0

    values = [v for _, v in readings]
    mean, std = _population_stats(values)
    if settings.readiness_mean is not None:
        mean = settings.readiness_mean
    if settings.readiness_std is not None:
        std = settings.readiness_std

    updated = repo.set_readiness_zscores(
        user_id, [(d, to_zscore(v, mean, std)) for d, v in readings]
    )
    logger.info(
        "Recomputed %d readiness z-scores for user=%d (mean=%.2f std=%.2f)",
        updated, user_id, mean, std,
    )
    return updated


def _population_stats(values: list[float]) -> tuple[float, float]:
    """Return ``(mean, std)``; std falls back to the default when degenerate."""
    if not values:
        return DEFAULT_READINESS_MEAN, DEFAULT_READINESS_STD
    n = len(values)
    mean = sum(values) / n
    if n < 2:
        return mean, DEFAULT_READINESS_STD
    variance = sum((v - mean) ** 2 for v in values) / n
    std = math.sqrt(variance)
    return mean, std if std > 0 else DEFAULT_READINESS_STD
