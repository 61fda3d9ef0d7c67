"""
Per-user scoring settings.

Every tunable is optional in storage; the defaults on ``UserSettings`` are the
engine-supplied values used whenever a user has not set one. Weekday
multipliers are looked up by lowercase English weekday name, so the column
for Monday is ``day_of_week_monday`` and so on.

Defaults
--------
    day_of_week_*                1.0
    recovery_penalty_first_day   0.4   (one attended day immediately before)
    recovery_penalty_second_day  0.3   (two in a row)
    recovery_penalty_third_day   0.2   (three or more in a row)
    zscore_multiplier_factor     0.2
    school_day_multiplier        1.2
    urgency_multiplier_behind    1.2
    urgency_multiplier_ahead     0.8
    readiness_mean / _std        75.0 / 10.0 when not overridden
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

DEFAULT_READINESS_MEAN = 75.0
DEFAULT_READINESS_STD = 10.0

MULTIPLIER_FIELDS: tuple[str, ...] = (
    "day_of_week_monday",
    "day_of_week_tuesday",
    "day_of_week_wednesday",
    "day_of_week_thursday",
    "day_of_week_friday",
    "day_of_week_saturday",
    "day_of_week_sunday",
    "recovery_penalty_first_day",
    "recovery_penalty_second_day",
    "recovery_penalty_third_day",
    "zscore_multiplier_factor",
    "school_day_multiplier",
    "urgency_multiplier_behind",
    "urgency_multiplier_ahead",
)

SETTING_FIELDS: tuple[str, ...] = MULTIPLIER_FIELDS + ("readiness_mean", "readiness_std")


class UserSettings(BaseModel):
    """Tunable scoring parameters for one user.

    Attributes:
        user_id: Owning user.
        day_of_week_*: Desirability multiplier per weekday.
        recovery_penalty_first_day: Multiplier when the streak before a day is 1.
        recovery_penalty_second_day: Multiplier when the streak is 2.
        recovery_penalty_third_day: Multiplier when the streak is 3 or more.
        zscore_multiplier_factor: Scales readiness z-score into the
            readiness multiplier ``1 + z * factor``.
        school_day_multiplier: Applied on school days.
        urgency_multiplier_behind: Applied when behind goal pace.
        urgency_multiplier_ahead: Applied when ahead of goal pace.
        readiness_mean: Global readiness mean override; ``None`` → 75.
        readiness_std: Global readiness std-dev override; ``None`` → 10.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int
    day_of_week_monday: float = 1.0
    day_of_week_tuesday: float = 1.0
    day_of_week_wednesday: float = 1.0
    day_of_week_thursday: float = 1.0
    day_of_week_friday: float = 1.0
    day_of_week_saturday: float = 1.0
    day_of_week_sunday: float = 1.0
    recovery_penalty_first_day: float = 0.4
    recovery_penalty_second_day: float = 0.3
    recovery_penalty_third_day: float = 0.2
    zscore_multiplier_factor: float = 0.2
    school_day_multiplier: float = 1.2
    urgency_multiplier_behind: float = 1.2
    urgency_multiplier_ahead: float = 0.8
    readiness_mean: Optional[float] = None
    readiness_std: Optional[float] = None

    @field_validator(*MULTIPLIER_FIELDS)
    @classmethod
    def validate_multiplier(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Multipliers must be non-negative, got {v}.")
        return v

    @field_validator("readiness_std")
    @classmethod
    def validate_std(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError(f"readiness_std must be positive, got {v}.")
        return v

    @classmethod
    def from_stored(cls, user_id: int, values: dict[str, Any]) -> "UserSettings":
        """Build settings from stored columns, letting ``None`` fall back to defaults."""
        present = {k: v for k, v in values.items() if k in SETTING_FIELDS and v is not None}
        return cls(user_id=user_id, **present)

    def day_of_week_multiplier(self, weekday: str) -> float:
        """Multiplier for a lowercase weekday name; 1.0 for anything unknown."""
        return float(getattr(self, f"day_of_week_{weekday}", 1.0))

    def recovery_multiplier(self, streak: int) -> float:
        """Recovery penalty for a streak of ``streak`` attended days before the day."""
        if streak <= 0:
            return 1.0
        if streak == 1:
            return self.recovery_penalty_first_day
        if streak == 2:
            return self.recovery_penalty_second_day
        return self.recovery_penalty_third_day

    @property
    def global_mean(self) -> float:
        return self.readiness_mean if self.readiness_mean is not None else DEFAULT_READINESS_MEAN

    @property
    def global_std(self) -> float:
        return self.readiness_std if self.readiness_std is not None else DEFAULT_READINESS_STD
