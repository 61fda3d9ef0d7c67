"""Tests for UserSettings defaults, validation and lookups."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from otf_calendar.models.settings import (
    DEFAULT_READINESS_MEAN,
    DEFAULT_READINESS_STD,
    MULTIPLIER_FIELDS,
    SETTING_FIELDS,
    UserSettings,
)


class TestDefaults:
    def test_weekday_multipliers_default_to_one(self):
        s = UserSettings(user_id=1)
        for name in MULTIPLIER_FIELDS:
            if name.startswith("day_of_week_"):
                assert getattr(s, name) == 1.0

    def test_recovery_defaults(self):
        s = UserSettings(user_id=1)
        assert s.recovery_penalty_first_day == pytest.approx(0.4)
        assert s.recovery_penalty_second_day == pytest.approx(0.3)
        assert s.recovery_penalty_third_day == pytest.approx(0.2)

    def test_global_stats_default(self):
        s = UserSettings(user_id=1)
        assert s.global_mean == DEFAULT_READINESS_MEAN
        assert s.global_std == DEFAULT_READINESS_STD

    def test_global_stats_override(self):
        s = UserSettings(user_id=1, readiness_mean=60.0, readiness_std=5.0)
        assert s.global_mean == 60.0
        assert s.global_std == 5.0

    def test_setting_fields_cover_overrides(self):
        assert "readiness_mean" in SETTING_FIELDS
        assert "readiness_std" in SETTING_FIELDS
        assert len(SETTING_FIELDS) == len(MULTIPLIER_FIELDS) + 2


class TestValidation:
    @pytest.mark.parametrize("name", MULTIPLIER_FIELDS)
    def test_negative_multiplier_rejected(self, name):
        with pytest.raises(ValidationError):
            UserSettings(user_id=1, **{name: -0.1})

    def test_zero_multiplier_allowed(self):
        assert UserSettings(user_id=1, day_of_week_sunday=0.0).day_of_week_sunday == 0.0

    @pytest.mark.parametrize("std", [0.0, -2.0])
    def test_non_positive_std_rejected(self, std):
        with pytest.raises(ValidationError):
            UserSettings(user_id=1, readiness_std=std)

    def test_from_stored_ignores_nulls_and_unknown_keys(self):
        s = UserSettings.from_stored(
            3,
            {"user_id": 3, "day_of_week_monday": 1.4, "school_day_multiplier": None,
             "created_at": "2025-01-01T00:00:00Z"},
        )
        assert s.user_id == 3
        assert s.day_of_week_monday == pytest.approx(1.4)
        assert s.school_day_multiplier == pytest.approx(1.2)


class TestLookups:
    def test_day_of_week_multiplier(self):
        s = UserSettings(user_id=1, day_of_week_saturday=1.5)
        assert s.day_of_week_multiplier("saturday") == 1.5
        assert s.day_of_week_multiplier("monday") == 1.0

    def test_unknown_weekday_is_neutral(self):
        assert UserSettings(user_id=1).day_of_week_multiplier("caturday") == 1.0

    @pytest.mark.parametrize(
        "streak,expected",
        [(0, 1.0), (1, 0.4), (2, 0.3), (3, 0.2), (4, 0.2), (10, 0.2)],
    )
    def test_recovery_tiers(self, streak, expected):
        assert UserSettings(user_id=1).recovery_multiplier(streak) == pytest.approx(expected)
