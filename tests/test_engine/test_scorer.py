"""
Tests for otf_calendar/engine/scorer.py.

What we test
------------
compute_day_score() — HISTORICAL:
  - Neutral day -> 1.0.
  - Each multiplier (weekday, readiness z, urgency, school, recovery) applies.
  - Recovery tiers: streak 1/2/3/4 -> first/second/third/third penalty.
  - Absent z-score -> readiness multiplier 1.0.
  - Very negative z clamps the readiness multiplier (and score) at 0.
  - Impossible day -> 0 regardless of multipliers.
  - Negative urgency -> ValueError.

compute_day_score() — PREDICTIVE:
  - Attended or impossible -> 0.
  - Own positive readiness beats the weekday average, which beats 75.
  - User mean/std overrides change z.
  - Urgency and recovery are ignored.

day_score():
  - Missing record -> 0, nothing written.
  - Score persisted onto the record.
  - Streak is read from the store.
  - Scores are never negative.

score_band():
  - <0.5 low, <1.0 medium, otherwise high.
"""

from __future__ import annotations

from datetime import date

import pytest

from otf_calendar.db.repositories.daily_record_repo import DailyRecordRepository
from otf_calendar.engine.scorer import (
    DEFAULT_PREDICTED_READINESS,
    ScoreComponents,
    ScoreMode,
    compute_day_score,
    day_score,
    predict_readiness,
    readiness_multiplier,
    score_band,
)
from otf_calendar.models.record import DailyRecord
from otf_calendar.models.settings import UserSettings

THURSDAY = date(2025, 4, 10)
SATURDAY = date(2025, 4, 12)


def _rec(d: date = THURSDAY, **facts) -> DailyRecord:
    return DailyRecord(user_id=1, record_date=d, **facts)


def _hist(record: DailyRecord, settings: UserSettings, **kwargs) -> float:
    return compute_day_score(record, settings, ScoreMode.HISTORICAL, **kwargs).total


def _pred(record: DailyRecord, settings: UserSettings, averages=None) -> float:
    return compute_day_score(
        record, settings, ScoreMode.PREDICTIVE, weekday_averages=averages or {}
    ).total


# ── Helpers ───────────────────────────────────────────────────────────────────

class TestHelpers:
    def test_readiness_multiplier(self):
        assert readiness_multiplier(0.0, 0.2) == pytest.approx(1.0)
        assert readiness_multiplier(1.5, 0.2) == pytest.approx(1.3)
        assert readiness_multiplier(-10.0, 0.2) == 0.0

    def test_predict_readiness_order(self):
        averages = {"thursday": 60.0}
        assert predict_readiness(_rec(readiness_score=90.0), averages) == 90.0
        assert predict_readiness(_rec(readiness_score=0.0), averages) == 60.0
        assert predict_readiness(_rec(SATURDAY), averages) == DEFAULT_PREDICTED_READINESS

    def test_excluded_total_is_zero(self):
        assert ScoreComponents(day_of_week=2.0, excluded=True).total == 0.0

    @pytest.mark.parametrize(
        "score, band",
        [(0.0, "low"), (0.49, "low"), (0.5, "medium"), (0.99, "medium"), (1.0, "high"), (1.44, "high")],
    )
    def test_score_band(self, score, band):
        assert score_band(score) == band


# ── Historical mode ───────────────────────────────────────────────────────────

class TestHistorical:
    def test_neutral_day(self, default_settings):
        assert _hist(_rec(), default_settings) == pytest.approx(1.0)

    def test_weekday_multiplier(self):
        s = UserSettings(user_id=1, day_of_week_thursday=1.5)
        assert _hist(_rec(), s) == pytest.approx(1.5)
        assert _hist(_rec(SATURDAY), s) == pytest.approx(1.0)

    def test_zscore(self, default_settings):
        # 1 + 1.5 * 0.2
        assert _hist(_rec(readiness_zscore=1.5), default_settings) == pytest.approx(1.3)

    def test_absent_zscore_is_neutral(self, default_settings):
        assert _hist(_rec(readiness_score=95.0), default_settings) == pytest.approx(1.0)

    def test_negative_zscore_clamps_to_zero(self, default_settings):
        assert _hist(_rec(readiness_zscore=-8.0), default_settings) == 0.0

    def test_urgency(self, default_settings):
        assert _hist(_rec(), default_settings, urgency=1.2) == pytest.approx(1.2)

    def test_negative_urgency_rejected(self, default_settings):
        with pytest.raises(ValueError, match="urgency"):
            _hist(_rec(), default_settings, urgency=-0.1)

    def test_school_day(self, default_settings):
        assert _hist(_rec(is_school_day=True), default_settings) == pytest.approx(1.2)

    @pytest.mark.parametrize(
        "streak,expected",
        [(0, 1.0), (1, 0.4), (2, 0.3), (3, 0.2), (4, 0.2)],
    )
    def test_recovery_tiers(self, default_settings, streak, expected):
        assert _hist(_rec(), default_settings, streak=streak) == pytest.approx(expected)

    def test_all_components_multiply(self):
        s = UserSettings(user_id=1, day_of_week_thursday=2.0, school_day_multiplier=1.5)
        record = _rec(readiness_zscore=1.0, is_school_day=True)
        # 2.0 * 1.2 * 1.1 * 1.5 * 0.4
        assert _hist(record, s, streak=1, urgency=1.1) == pytest.approx(1.584)

    def test_impossible_day(self, default_settings):
        record = _rec(impossible_day=True, readiness_zscore=2.0, is_school_day=True)
        components = compute_day_score(record, default_settings, ScoreMode.HISTORICAL, urgency=1.2)
        assert components.excluded is True
        assert components.total == 0.0

    def test_attended_day_still_scored(self, default_settings):
        assert _hist(_rec(gym_attended=True), default_settings) == pytest.approx(1.0)


# ── Predictive mode ───────────────────────────────────────────────────────────

class TestPredictive:
    def test_resolved_days_zero(self, default_settings):
        assert _pred(_rec(gym_attended=True), default_settings) == 0.0
        assert _pred(_rec(impossible_day=True), default_settings) == 0.0

    def test_default_readiness_is_neutral(self, default_settings):
        assert _pred(_rec(), default_settings) == pytest.approx(1.0)

    def test_own_readiness(self, default_settings):
        # z = (85 - 75) / 10 = 1.0 -> 1.2
        assert _pred(_rec(readiness_score=85.0), default_settings) == pytest.approx(1.2)

    def test_weekday_average(self, default_settings):
        # z = (65 - 75) / 10 = -1.0 -> 0.8
        assert _pred(_rec(), default_settings, {"thursday": 65.0}) == pytest.approx(0.8)

    def test_mean_std_overrides(self):
        s = UserSettings(user_id=1, readiness_mean=80.0, readiness_std=5.0)
        # z = (85 - 80) / 5 = 1.0 -> 1.2
        assert _pred(_rec(readiness_score=85.0), s) == pytest.approx(1.2)

    def test_ignores_urgency_and_streak(self, default_settings):
        components = compute_day_score(
            _rec(), default_settings, ScoreMode.PREDICTIVE, streak=3, urgency=1.2
        )
        assert components.urgency == 1.0
        assert components.recovery == 1.0
        assert components.total == pytest.approx(1.0)

    def test_weekday_and_school(self):
        s = UserSettings(user_id=1, day_of_week_thursday=1.5)
        assert _pred(_rec(is_school_day=True), s) == pytest.approx(1.8)

    def test_readiness_used_reported(self, default_settings):
        components = compute_day_score(
            _rec(), default_settings, ScoreMode.PREDICTIVE, weekday_averages={"thursday": 70.0}
        )
        assert components.readiness_used == 70.0
        assert components.zscore == pytest.approx(-0.5)


# ── Persisting day_score() ────────────────────────────────────────────────────

class TestDayScore:
    def test_missing_record(self, in_memory_db, default_settings):
        assert day_score(in_memory_db, 1, THURSDAY, default_settings) == 0.0
        assert DailyRecordRepository(in_memory_db).count(1) == 0

    def test_persists_score(self, in_memory_db, default_settings):
        repo = DailyRecordRepository(in_memory_db)
        repo.upsert_facts(_rec(is_school_day=True, gym_attended=True))
        score = day_score(in_memory_db, 1, THURSDAY, default_settings, urgency=1.2)
        assert score == pytest.approx(1.44)
        assert repo.get(1, THURSDAY).day_score == pytest.approx(1.44)

    def test_uses_stored_streak(self, in_memory_db, default_settings):
        repo = DailyRecordRepository(in_memory_db)
        for d in (date(2025, 4, 7), date(2025, 4, 8), date(2025, 4, 9)):
            repo.upsert_facts(_rec(d, gym_attended=True))
        repo.upsert_facts(_rec(gym_attended=True))
        assert day_score(in_memory_db, 1, THURSDAY, default_settings) == pytest.approx(0.2)

    def test_impossible_persists_zero(self, in_memory_db, default_settings):
        repo = DailyRecordRepository(in_memory_db)
        repo.upsert_facts(_rec())
        repo.set_day_score(1, THURSDAY, 0.9)
        repo.upsert_facts(_rec(impossible_day=True))
        assert day_score(in_memory_db, 1, THURSDAY, default_settings) == 0.0
        assert repo.get(1, THURSDAY).day_score == 0.0

    @pytest.mark.parametrize("zscore", [-20.0, -5.0, -1.0, 0.0, 3.0])
    def test_never_negative(self, in_memory_db, zscore):
        repo = DailyRecordRepository(in_memory_db)
        repo.upsert_facts(_rec(readiness_zscore=zscore))
        s = UserSettings(user_id=1, zscore_multiplier_factor=1.0)
        assert day_score(in_memory_db, 1, THURSDAY, s, urgency=0.0) >= 0.0
        assert day_score(in_memory_db, 1, THURSDAY, s) >= 0.0
