"""Tests for repository round-trip operations using in-memory SQLite."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from otf_calendar.db.repositories.daily_record_repo import DailyRecordRepository
from otf_calendar.db.repositories.run_repo import RunMetadataRepository
from otf_calendar.db.repositories.settings_repo import UserSettingsRepository
from otf_calendar.models.meta import RunMetadata
from otf_calendar.models.record import DailyRecord
from otf_calendar.models.settings import UserSettings


# ── Helpers ────────────────────────────────────────────────────────────────────

def make_record(record_date: date, user_id: int = 1, **facts) -> DailyRecord:
    return DailyRecord(user_id=user_id, record_date=record_date, **facts)


def seed_records(conn, *records: DailyRecord) -> None:
    repo = DailyRecordRepository(conn)
    for record in records:
        repo.upsert_facts(record)


# ── Daily record repository tests ─────────────────────────────────────────────

class TestDailyRecordRepository:
    def test_get_missing_returns_none(self, in_memory_db):
        assert DailyRecordRepository(in_memory_db).get(1, date(2025, 4, 10)) is None

    def test_upsert_and_fetch(self, in_memory_db):
        repo = DailyRecordRepository(in_memory_db)
        repo.upsert_facts(make_record(date(2025, 4, 10), readiness_score=82.0, gym_attended=True))
        fetched = repo.get(1, date(2025, 4, 10))
        assert fetched is not None
        assert fetched.record_id is not None
        assert fetched.readiness_score == pytest.approx(82.0)
        assert fetched.gym_attended is True
        assert fetched.impossible_day is False
        assert fetched.day_score == 0.0

    def test_upsert_updates_existing_row(self, in_memory_db):
        repo = DailyRecordRepository(in_memory_db)
        repo.upsert_facts(make_record(date(2025, 4, 10)))
        repo.upsert_facts(make_record(date(2025, 4, 10), is_school_day=True))
        assert repo.count(1) == 1
        assert repo.get(1, date(2025, 4, 10)).is_school_day is True

    def test_upsert_keeps_day_score(self, in_memory_db):
        repo = DailyRecordRepository(in_memory_db)
        repo.upsert_facts(make_record(date(2025, 4, 10)))
        repo.set_day_score(1, date(2025, 4, 10), 0.9)
        repo.upsert_facts(make_record(date(2025, 4, 10), readiness_score=70.0))
        assert repo.get(1, date(2025, 4, 10)).day_score == pytest.approx(0.9)

    def test_upsert_attended_clears_recommendation(self, in_memory_db):
        repo = DailyRecordRepository(in_memory_db)
        d = date(2025, 4, 10)
        repo.upsert_facts(make_record(d))
        repo.mark_recommended(1, [d])
        assert repo.get(1, d).recommended_day is True

        repo.upsert_facts(make_record(d, gym_attended=True))
        assert repo.get(1, d).recommended_day is False

    def test_upsert_open_day_keeps_recommendation(self, in_memory_db):
        repo = DailyRecordRepository(in_memory_db)
        d = date(2025, 4, 10)
        repo.upsert_facts(make_record(d))
        repo.mark_recommended(1, [d])
        repo.upsert_facts(make_record(d, readiness_score=90.0))
        assert repo.get(1, d).recommended_day is True

    def test_attendance_on(self, in_memory_db):
        repo = DailyRecordRepository(in_memory_db)
        seed_records(
            in_memory_db,
            make_record(date(2025, 4, 9), gym_attended=True),
            make_record(date(2025, 4, 10)),
        )
        assert repo.attendance_on(1, date(2025, 4, 9)) is True
        assert repo.attendance_on(1, date(2025, 4, 10)) is False
        assert repo.attendance_on(1, date(2025, 4, 11)) is None

    def test_get_range_ordered(self, in_memory_db):
        seed_records(
            in_memory_db,
            make_record(date(2025, 4, 12)),
            make_record(date(2025, 4, 10)),
            make_record(date(2025, 4, 11)),
            make_record(date(2025, 4, 20)),
        )
        rows = DailyRecordRepository(in_memory_db).get_range(1, date(2025, 4, 10), date(2025, 4, 12))
        assert [r.record_date for r in rows] == [date(2025, 4, 10), date(2025, 4, 11), date(2025, 4, 12)]

    def test_count_attended_window(self, in_memory_db):
        seed_records(
            in_memory_db,
            make_record(date(2024, 12, 31), gym_attended=True),
            make_record(date(2025, 1, 1), gym_attended=True),
            make_record(date(2025, 6, 1), gym_attended=True),
            make_record(date(2025, 6, 2)),
        )
        n = DailyRecordRepository(in_memory_db).count_attended(1, date(2025, 1, 1), date(2025, 12, 31))
        assert n == 2

    def test_get_candidates_excludes_resolved(self, in_memory_db):
        seed_records(
            in_memory_db,
            make_record(date(2025, 4, 10)),
            make_record(date(2025, 4, 11), gym_attended=True),
            make_record(date(2025, 4, 12), impossible_day=True),
            make_record(date(2025, 4, 13)),
        )
        rows = DailyRecordRepository(in_memory_db).get_candidates(1, date(2025, 4, 10), date(2025, 4, 30))
        assert [r.record_date for r in rows] == [date(2025, 4, 10), date(2025, 4, 13)]

    def test_candidates_scoped_to_user(self, in_memory_db):
        seed_records(
            in_memory_db,
            make_record(date(2025, 4, 10), user_id=1),
            make_record(date(2025, 4, 10), user_id=2),
        )
        rows = DailyRecordRepository(in_memory_db).get_candidates(2, date(2025, 4, 1), date(2025, 4, 30))
        assert len(rows) == 1
        assert rows[0].user_id == 2

    def test_mark_recommended_skips_resolved(self, in_memory_db):
        repo = DailyRecordRepository(in_memory_db)
        seed_records(
            in_memory_db,
            make_record(date(2025, 4, 10)),
            make_record(date(2025, 4, 11), impossible_day=True),
        )
        marked = repo.mark_recommended(1, [date(2025, 4, 10), date(2025, 4, 11)])
        assert marked == 1
        assert repo.get_recommended_dates(1, date(2025, 4, 1), date(2025, 4, 30)) == [date(2025, 4, 10)]

    def test_clear_recommendations_in_range_only(self, in_memory_db):
        repo = DailyRecordRepository(in_memory_db)
        seed_records(in_memory_db, make_record(date(2025, 4, 10)), make_record(date(2025, 5, 10)))
        repo.mark_recommended(1, [date(2025, 4, 10), date(2025, 5, 10)])
        cleared = repo.clear_recommendations(1, date(2025, 5, 1), date(2025, 12, 31))
        assert cleared == 1
        assert repo.get_recommended_dates(1, date(2025, 1, 1), date(2025, 12, 31)) == [date(2025, 4, 10)]

    def test_set_day_scores_bulk(self, in_memory_db):
        repo = DailyRecordRepository(in_memory_db)
        seed_records(in_memory_db, make_record(date(2025, 4, 10)), make_record(date(2025, 4, 11)))
        n = repo.set_day_scores(1, [(date(2025, 4, 10), 0.5), (date(2025, 4, 11), 1.5)])
        assert n == 2
        assert repo.get(1, date(2025, 4, 11)).day_score == pytest.approx(1.5)
        assert repo.set_day_scores(1, []) == 0

    def test_average_readiness_by_weekday(self, in_memory_db):
        # 2025-04-07 and 2025-04-14 are Mondays; 2025-04-08 is a Tuesday.
        seed_records(
            in_memory_db,
            make_record(date(2025, 4, 7), readiness_score=80.0),
            make_record(date(2025, 4, 14), readiness_score=60.0),
            make_record(date(2025, 4, 8), readiness_score=90.0),
            make_record(date(2025, 4, 15), readiness_score=0.0),
            make_record(date(2025, 4, 9)),
        )
        averages = DailyRecordRepository(in_memory_db).average_readiness_by_weekday(1)
        assert averages == {"monday": pytest.approx(70.0), "tuesday": pytest.approx(90.0)}

    def test_readiness_readings_positive_only(self, in_memory_db):
        seed_records(
            in_memory_db,
            make_record(date(2025, 4, 7), readiness_score=80.0),
            make_record(date(2025, 4, 8), readiness_score=0.0),
            make_record(date(2025, 4, 9)),
        )
        readings = DailyRecordRepository(in_memory_db).readiness_readings(1)
        assert readings == [(date(2025, 4, 7), 80.0)]


class TestEnsureYear:
    def test_creates_every_day(self, in_memory_db):
        repo = DailyRecordRepository(in_memory_db)
        assert repo.ensure_year(1, 2025) == 365
        assert repo.count(1) == 365

    def test_leap_year(self, in_memory_db):
        assert DailyRecordRepository(in_memory_db).ensure_year(1, 2024) == 366

    def test_idempotent(self, in_memory_db):
        repo = DailyRecordRepository(in_memory_db)
        repo.ensure_year(1, 2025)
        assert repo.ensure_year(1, 2025) == 0
        assert repo.count(1) == 365

    def test_fills_gaps_without_touching_existing(self, in_memory_db):
        repo = DailyRecordRepository(in_memory_db)
        seed_records(in_memory_db, make_record(date(2025, 4, 10), gym_attended=True))
        assert repo.ensure_year(1, 2025) == 364
        assert repo.get(1, date(2025, 4, 10)).gym_attended is True

    def test_new_rows_are_neutral(self, in_memory_db):
        repo = DailyRecordRepository(in_memory_db)
        repo.ensure_year(1, 2025)
        r = repo.get(1, date(2025, 7, 4))
        assert r.gym_attended is False
        assert r.impossible_day is False
        assert r.is_school_day is False
        assert r.readiness_score is None
        assert r.recommended_day is False


# ── Settings repository tests ─────────────────────────────────────────────────

class TestUserSettingsRepository:
    def test_missing_user_gets_defaults(self, in_memory_db):
        repo = UserSettingsRepository(in_memory_db)
        settings = repo.get(7)
        assert settings == UserSettings(user_id=7)
        assert repo.exists(7) is False

    def test_upsert_round_trip(self, in_memory_db):
        repo = UserSettingsRepository(in_memory_db)
        stored = UserSettings(user_id=1, day_of_week_monday=1.5, readiness_mean=70.0)
        repo.upsert(stored)
        assert repo.get(1) == stored
        assert repo.exists(1) is True

    def test_null_columns_fall_back_to_defaults(self, in_memory_db):
        in_memory_db.execute(
            "INSERT INTO user_settings (user_id, day_of_week_friday) VALUES (1, 0.5);"
        )
        settings = UserSettingsRepository(in_memory_db).get(1)
        assert settings.day_of_week_friday == pytest.approx(0.5)
        assert settings.day_of_week_monday == pytest.approx(1.0)
        assert settings.recovery_penalty_third_day == pytest.approx(0.2)
        assert settings.readiness_std is None

    def test_set_value_creates_row(self, in_memory_db):
        repo = UserSettingsRepository(in_memory_db)
        settings = repo.set_value(1, "school_day_multiplier", 1.5)
        assert settings.school_day_multiplier == pytest.approx(1.5)
        assert repo.exists(1)

    def test_set_value_none_resets_to_default(self, in_memory_db):
        repo = UserSettingsRepository(in_memory_db)
        repo.set_value(1, "urgency_multiplier_ahead", 0.5)
        settings = repo.set_value(1, "urgency_multiplier_ahead", None)
        assert settings.urgency_multiplier_ahead == pytest.approx(0.8)

    def test_set_value_unknown_name(self, in_memory_db):
        with pytest.raises(ValueError, match="Unknown setting"):
            UserSettingsRepository(in_memory_db).set_value(1, "user_id", 3.0)

    def test_set_value_invalid_is_not_written(self, in_memory_db):
        repo = UserSettingsRepository(in_memory_db)
        with pytest.raises(ValidationError):
            repo.set_value(1, "readiness_std", 0.0)
        assert repo.exists(1) is False


# ── Run metadata repository tests ─────────────────────────────────────────────

class TestRunMetadataRepository:
    def _run(self, slug: str = "run-1") -> RunMetadata:
        return RunMetadata(
            run_slug=slug,
            pipeline_stage="refresh",
            user_id=1,
            target_year=2025,
            config_snapshot={"debug": False},
            started_at=datetime(2025, 4, 10, 7, 0, 0, tzinfo=timezone.utc),
        )

    def test_insert_and_fetch(self, in_memory_db):
        repo = RunMetadataRepository(in_memory_db)
        run_id = repo.insert_run(self._run())
        assert run_id > 0
        fetched = repo.get_run_by_slug("run-1")
        assert fetched is not None
        assert fetched.status == "started"
        assert fetched.target_year == 2025
        assert fetched.config_snapshot == {"debug": False}

    def test_update_run(self, in_memory_db):
        repo = RunMetadataRepository(in_memory_db)
        run = self._run()
        run.run_id = repo.insert_run(run)
        run.status = "failed"
        run.error_message = "boom"
        run.finished_at = datetime(2025, 4, 10, 7, 1, 0, tzinfo=timezone.utc)
        repo.update_run(run)
        fetched = repo.get_run_by_slug("run-1")
        assert fetched.status == "failed"
        assert fetched.error_message == "boom"
        assert fetched.finished_at is not None

    def test_update_without_id_raises(self, in_memory_db):
        with pytest.raises(ValueError):
            RunMetadataRepository(in_memory_db).update_run(self._run())

    def test_recent_runs_newest_first(self, in_memory_db):
        repo = RunMetadataRepository(in_memory_db)
        repo.insert_run(self._run("a"))
        repo.insert_run(self._run("b"))
        assert [r.run_slug for r in repo.get_recent_runs()] == ["b", "a"]
        assert repo.get_recent_runs(pipeline_stage="import") == []
