"""
Day scoring: one formula for resolved and future days.

Score formula (multiplicative, floored at 0)
--------------------------------------------
    score = day_of_week × readiness × urgency × school × recovery

Component explanations
----------------------
day_of_week:
    ``settings.day_of_week_<weekday>``; 1.0 when unset.

readiness:
    ``max(0, 1 + z × zscore_multiplier_factor)``. A strongly negative z would
    otherwise make the product negative, which has no meaning as
    desirability.

urgency:
    Caller-supplied pace multiplier (see ``engine.progress.pace_urgency``);
    1.0 when the caller does not wire it in.

school:
    ``settings.school_day_multiplier`` on school days, else 1.0.

recovery:
    From the attendance streak before the day: 0 → 1.0, 1 → first-day
    penalty, 2 → second-day penalty, 3+ → third-day penalty.

Modes
-----
HISTORICAL:
    Resolved days with real facts. z comes from ``readiness_zscore`` (absent
    → 0, i.e. multiplier 1.0). All five components apply. Impossible days
    score 0.

PREDICTIVE:
    Unresolved future days. Readiness is the day's own positive reading, else
    the user's average for that weekday, else ``DEFAULT_PREDICTED_READINESS``;
    z = (readiness − mean) / std. Urgency and recovery are fixed at 1.0 since
    there is no attendance pattern to penalize yet. Attended or impossible
    days score 0.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from otf_calendar.db.repositories.daily_record_repo import DailyRecordRepository
from otf_calendar.engine.streak import consecutive_streak
from otf_calendar.models.record import DailyRecord
from otf_calendar.models.settings import UserSettings

logger = logging.getLogger(__name__)

# Readiness assumed for a future day with no reading and no weekday history.
DEFAULT_PREDICTED_READINESS = 75.0

# Display bands for a day score: below LOW is "low", below MEDIUM is "medium".
BAND_LOW_BELOW = 0.5
BAND_MEDIUM_BELOW = 1.0


class ScoreMode(str, Enum):
    HISTORICAL = "historical"
    PREDICTIVE = "predictive"


@dataclass
class ScoreComponents:
    """All multipliers that make up one day's score.

    Attributes:
        day_of_week:  Weekday preference multiplier.
        readiness:    Readiness multiplier (already clamped at 0).
        urgency:      Goal-pace multiplier.
        school:       School-day multiplier.
        recovery:     Streak recovery multiplier.
        zscore:       The readiness z-score the readiness multiplier used.
        readiness_used: Predicted readiness value (PREDICTIVE mode only).
        excluded:     ``True`` if the day is not scoreable in this mode; the
                      total is then 0 regardless of the multipliers.
    """

    day_of_week:    float = 1.0
    readiness:      float = 1.0
    urgency:        float = 1.0
    school:         float = 1.0
    recovery:       float = 1.0
    zscore:         float = 0.0
    readiness_used: Optional[float] = None
    excluded:       bool = False

    @property
    def total(self) -> float:
        """Product of all multipliers, floored at 0."""
        if self.excluded:
            return 0.0
        product = self.day_of_week * self.readiness * self.urgency * self.school * self.recovery
        return max(0.0, product)


def readiness_multiplier(zscore: float, factor: float) -> float:
    """``1 + zscore × factor`` clamped to a minimum of 0."""
    return max(0.0, 1.0 + zscore * factor)


def score_band(score: float) -> str:
    """Coarse label for a day score: ``low``, ``medium`` or ``high``."""
    if score < BAND_LOW_BELOW:
        return "low"
    if score < BAND_MEDIUM_BELOW:
        return "medium"
    return "high"


def to_zscore(readiness: float, mean: float, std: float) -> float:
    return (readiness - mean) / std


def predict_readiness(
    record: DailyRecord,
    weekday_averages: dict[str, float],
    default: float = DEFAULT_PREDICTED_READINESS,
) -> float:
    """Best available readiness for a day: own reading, weekday average, or default."""
    if record.has_readiness:
        assert record.readiness_score is not None
        return record.readiness_score
    return weekday_averages.get(record.weekday, default)


def compute_day_score(
    record: DailyRecord,
    settings: UserSettings,
    mode: ScoreMode,
    streak: int = 0,
    urgency: float = 1.0,
    weekday_averages: Optional[dict[str, float]] = None,
) -> ScoreComponents:
    """Compute every score component for one day.

    Pure function — no DB access. Callers supply the streak (historical mode)
    and weekday averages (predictive mode).

    Args:
        record:           The day's facts.
        settings:         The owning user's settings.
        mode:             ``HISTORICAL`` or ``PREDICTIVE``.
        streak:           Attended days immediately before the day
                          (ignored in predictive mode).
        urgency:          Pace multiplier, >= 0 (ignored in predictive mode).
        weekday_averages: Mean readiness per weekday name (predictive mode).

    Returns:
        ScoreComponents; use ``.total`` for the score.

    Raises:
        ValueError: If ``urgency`` is negative.
    """
    if urgency < 0:
        raise ValueError(f"urgency must be non-negative, got {urgency}.")

    if record.impossible_day:
        return ScoreComponents(excluded=True)

    day_mult = settings.day_of_week_multiplier(record.weekday)
    school_mult = settings.school_day_multiplier if record.is_school_day else 1.0

    if mode is ScoreMode.HISTORICAL:
        z = record.readiness_zscore if record.readiness_zscore is not None else 0.0
        return ScoreComponents(
            day_of_week=day_mult,
            readiness=readiness_multiplier(z, settings.zscore_multiplier_factor),
            urgency=urgency,
            school=school_mult,
            recovery=settings.recovery_multiplier(streak),
            zscore=z,
        )

    if record.gym_attended:
        return ScoreComponents(excluded=True)

    predicted = predict_readiness(record, weekday_averages or {})
    z = to_zscore(predicted, settings.global_mean, settings.global_std)
    return ScoreComponents(
        day_of_week=day_mult,
        readiness=readiness_multiplier(z, settings.zscore_multiplier_factor),
        school=school_mult,
        zscore=z,
        readiness_used=predicted,
    )


def day_score(
    conn: sqlite3.Connection,
    user_id: int,
    on_date: date,
    settings: UserSettings,
    urgency: float = 1.0,
) -> float:
    """Score a resolved day and persist the result onto its record.

    Args:
        conn:     Open database connection.
        user_id:  Owning user.
        on_date:  Day to score.
        settings: The user's settings.
        urgency:  Pace multiplier (default 1.0).

    Returns:
        The score (>= 0). ``0.0`` without writing anything if the day has no
        record.
    """
    repo = DailyRecordRepository(conn)
    record = repo.get(user_id, on_date)
    if record is None:
        logger.debug("No record for user=%d on %s; score 0.", user_id, on_date)
        return 0.0

    streak = 0 if record.impossible_day else consecutive_streak(conn, user_id, on_date)
    components = compute_day_score(
        record, settings, ScoreMode.HISTORICAL, streak=streak, urgency=urgency
    )
    score = components.total
    repo.set_day_score(user_id, on_date, score)

    logger.debug(
        "Scored %s for user=%d: %.4f (streak=%d, urgency=%.2f)",
        on_date, user_id, score, streak, urgency,
    )
    return score
