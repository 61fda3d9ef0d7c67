"""
Daily record model — one row per (user, calendar date).

``DailyRecord`` carries the raw facts for a day (readiness, attendance,
impossibility, school day) and the two derived fields owned by the engine
(``day_score``, ``recommended_day``). The model is frozen; the engine writes
derived values straight to the database through the repository and re-reads
records on the next invocation instead of mutating instances.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from otf_calendar.utils.time_utils import weekday_name


class DailyRecord(BaseModel):
    """Facts and derived scores for one user on one date.

    Attributes:
        record_id: Auto-assigned DB PK; ``None`` before insertion.
        user_id: Owning user.
        record_date: Calendar date (unique together with ``user_id``).
        readiness_score: Subjective/measured readiness; ``None`` or ``0``
            means no measurement was taken.
        readiness_zscore: ``readiness_score`` normalized against a global
            mean / standard deviation; ``None`` if not computed.
        gym_attended: ``True`` if the user attended on this date.
        impossible_day: ``True`` if the user cannot attend (excluded from
            scoring and recommendation).
        is_school_day: ``True`` on school days (school-day multiplier applies).
        day_score: Derived desirability score, always >= 0.
        recommended_day: Derived flag set by the allocator.
    """

    model_config = ConfigDict(frozen=True)

    record_id: Optional[int] = None
    user_id: int
    record_date: date
    readiness_score: Optional[float] = None
    readiness_zscore: Optional[float] = None
    gym_attended: bool = False
    impossible_day: bool = False
    is_school_day: bool = False
    day_score: float = 0.0
    recommended_day: bool = False

    @field_validator("readiness_score")
    @classmethod
    def validate_readiness(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError(f"readiness_score must be non-negative, got {v}.")
        return v

    @field_validator("day_score")
    @classmethod
    def validate_day_score(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"day_score must be non-negative, got {v}.")
        return v

    @model_validator(mode="after")
    def validate_recommendation(self) -> "DailyRecord":
        if self.recommended_day and (self.gym_attended or self.impossible_day):
            raise ValueError(
                f"{self.record_date}: recommended_day cannot be set on an "
                "attended or impossible day."
            )
        return self

    @property
    def weekday(self) -> str:
        """Lowercase English weekday name of ``record_date``."""
        return weekday_name(self.record_date)

    @property
    def has_readiness(self) -> bool:
        """``True`` when a positive readiness measurement exists."""
        return self.readiness_score is not None and self.readiness_score > 0

    @property
    def is_resolved(self) -> bool:
        """Attended or impossible: nothing left to recommend for this day."""
        return self.gym_attended or self.impossible_day
