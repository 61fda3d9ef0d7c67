"""
Repository for per-day attendance facts and derived scores.

Two kinds of writes go through here:
  - fact writes (``ensure_year``, ``upsert_facts``) from year initialization,
    CSV import and user edits;
  - derived writes (``set_day_score``, ``set_day_scores``,
    ``clear_recommendations``, ``mark_recommended``, ``set_readiness_zscores``)
    from the engine.

Fact writes that mark a day attended or impossible also drop its
``recommended_day`` flag so the stored rows never violate the
"recommended implies open" invariant between rebalances.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from datetime import date
from typing import Optional

from otf_calendar.db.repositories.base import BaseRepository
from otf_calendar.models.record import DailyRecord
from otf_calendar.utils.time_utils import (
    SQLITE_WEEKDAY_NAMES,
    date_range,
    year_end,
    year_start,
)

logger = logging.getLogger(__name__)


class DailyRecordRepository(BaseRepository):
    """Read/write access to the ``daily_records`` table."""

    # ── Fact reads ────────────────────────────────────────────────────────────

    def get(self, user_id: int, record_date: date) -> Optional[DailyRecord]:
        """Fetch the record for ``(user_id, record_date)``, or ``None``."""
        row = self.fetchone(
            "SELECT * FROM daily_records WHERE user_id = ? AND record_date = ?;",
            (user_id, record_date.isoformat()),
        )
        return _row_to_record(row) if row else None

    def get_range(self, user_id: int, start: date, end: date) -> list[DailyRecord]:
        """Fetch all records with ``start <= record_date <= end``, oldest first."""
        rows = self.fetchall(
            """
            SELECT * FROM daily_records
            WHERE user_id = ? AND record_date BETWEEN ? AND ?
            ORDER BY record_date;
            """,
            (user_id, start.isoformat(), end.isoformat()),
        )
        return [_row_to_record(r) for r in rows]

    def get_year(self, user_id: int, year: int) -> list[DailyRecord]:
        return self.get_range(user_id, year_start(year), year_end(year))

    def attendance_on(self, user_id: int, record_date: date) -> Optional[bool]:
        """Return the attendance flag for a date, or ``None`` if there is no row.

        Args:
            user_id: Owning user.
            record_date: Date to look up.

        Returns:
            ``True``/``False`` for an existing row; ``None`` when missing.
        """
        row = self.fetchone(
            """
            SELECT gym_attended FROM daily_records
            WHERE user_id = ? AND record_date = ?
            LIMIT 1;
            """,
            (user_id, record_date.isoformat()),
        )
        return bool(row["gym_attended"]) if row else None

    def count(self, user_id: int) -> int:
        return self.fetch_count(
            "SELECT COUNT(*) AS n FROM daily_records WHERE user_id = ?;", (user_id,)
        )

    def count_attended(self, user_id: int, start: date, end: date) -> int:
        """Count attended days with ``start <= record_date <= end``."""
        return self.fetch_count(
            """
            SELECT COUNT(*) AS n FROM daily_records
            WHERE user_id = ? AND gym_attended = 1
              AND record_date BETWEEN ? AND ?;
            """,
            (user_id, start.isoformat(), end.isoformat()),
        )

    def get_candidates(self, user_id: int, start: date, end: date) -> list[DailyRecord]:
        """Fetch open days (not attended, not impossible) in ``[start, end]``.

        Returned in date order; ranking is the allocator's job.
        """
        rows = self.fetchall(
            """
            SELECT * FROM daily_records
            WHERE user_id = ?
              AND record_date BETWEEN ? AND ?
              AND gym_attended = 0
              AND impossible_day = 0
            ORDER BY record_date;
            """,
            (user_id, start.isoformat(), end.isoformat()),
        )
        return [_row_to_record(r) for r in rows]

    def get_recommended_dates(self, user_id: int, start: date, end: date) -> list[date]:
        rows = self.fetchall(
            """
            SELECT record_date FROM daily_records
            WHERE user_id = ? AND recommended_day = 1
              AND record_date BETWEEN ? AND ?
            ORDER BY record_date;
            """,
            (user_id, start.isoformat(), end.isoformat()),
        )
        return [date.fromisoformat(r["record_date"]) for r in rows]

    def average_readiness_by_weekday(self, user_id: int) -> dict[str, float]:
        """Mean positive ``readiness_score`` per weekday name.

        Rows with no readiness or a readiness of 0 are ignored. Weekdays with
        no qualifying rows are absent from the result.
        """
        rows = self.fetchall(
            """
            SELECT CAST(strftime('%w', record_date) AS INTEGER) AS dow,
                   AVG(readiness_score) AS avg_readiness
            FROM daily_records
            WHERE user_id = ? AND readiness_score > 0
            GROUP BY dow;
            """,
            (user_id,),
        )
        return {SQLITE_WEEKDAY_NAMES[int(r["dow"])]: float(r["avg_readiness"]) for r in rows}

    def readiness_readings(self, user_id: int) -> list[tuple[date, float]]:
        """All positive readiness readings as ``(record_date, readiness_score)``."""
        rows = self.fetchall(
            """
            SELECT record_date, readiness_score FROM daily_records
            WHERE user_id = ? AND readiness_score > 0
            ORDER BY record_date;
            """,
            (user_id,),
        )
        return [(date.fromisoformat(r["record_date"]), float(r["readiness_score"])) for r in rows]

    # ── Fact writes ───────────────────────────────────────────────────────────

    def ensure_year(self, user_id: int, year: int) -> int:
        """Create a neutral record for every date of ``year`` that has none.

        Existing rows are left untouched, so this is safe to call on every
        page load / refresh.

        Returns:
            Number of rows inserted.
        """
        days = date_range(year_start(year), year_end(year))
        before = self.fetch_count(
            """
            SELECT COUNT(*) AS n FROM daily_records
            WHERE user_id = ? AND record_date BETWEEN ? AND ?;
            """,
            (user_id, days[0].isoformat(), days[-1].isoformat()),
        )
        self.executemany(
            """
            INSERT OR IGNORE INTO daily_records (user_id, record_date)
            VALUES (?, ?);
            """,
            [(user_id, d.isoformat()) for d in days],
        )
        inserted = len(days) - before
        if inserted:
            logger.info("Initialized %d daily records for user=%d year=%d", inserted, user_id, year)
        return inserted

    def upsert_facts(self, record: DailyRecord) -> None:
        """Insert or update the fact columns of a record.

        ``day_score`` is left as stored; ``recommended_day`` is cleared when
        the new facts make the day attended or impossible.
        """
        self.execute(
            """
            INSERT INTO daily_records (
                user_id, record_date, readiness_score, readiness_zscore,
                gym_attended, impossible_day, is_school_day
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, record_date) DO UPDATE SET
                readiness_score  = excluded.readiness_score,
                readiness_zscore = excluded.readiness_zscore,
                gym_attended     = excluded.gym_attended,
                impossible_day   = excluded.impossible_day,
                is_school_day    = excluded.is_school_day,
                recommended_day  = CASE
                    WHEN excluded.gym_attended = 1 OR excluded.impossible_day = 1 THEN 0
                    ELSE daily_records.recommended_day
                END,
                updated_at       = strftime('%Y-%m-%dT%H:%M:%SZ', 'now');
            """,
            (
                record.user_id,
                record.record_date.isoformat(),
                record.readiness_score,
                record.readiness_zscore,
                int(record.gym_attended),
                int(record.impossible_day),
                int(record.is_school_day),
            ),
        )

    # ── Derived writes ────────────────────────────────────────────────────────

    def set_day_score(self, user_id: int, record_date: date, score: float) -> None:
        self.execute(
            """
            UPDATE daily_records
            SET day_score = ?, updated_at = strftime('%Y-%m-%dT%H:%M:%SZ', 'now')
            WHERE user_id = ? AND record_date = ?;
            """,
            (score, user_id, record_date.isoformat()),
        )

    def set_day_scores(self, user_id: int, scores: Iterable[tuple[date, float]]) -> int:
        """Persist many ``(record_date, day_score)`` pairs. Returns the pair count."""
        params = [(score, user_id, d.isoformat()) for d, score in scores]
        if not params:
            return 0
        self.executemany(
            """
            UPDATE daily_records
            SET day_score = ?, updated_at = strftime('%Y-%m-%dT%H:%M:%SZ', 'now')
            WHERE user_id = ? AND record_date = ?;
            """,
            params,
        )
        return len(params)

    def set_readiness_zscores(
        self,
        user_id: int,
        zscores: Iterable[tuple[date, Optional[float]]],
    ) -> int:
        params = [(z, user_id, d.isoformat()) for d, z in zscores]
        if not params:
            return 0
        self.executemany(
            "UPDATE daily_records SET readiness_zscore = ? WHERE user_id = ? AND record_date = ?;",
            params,
        )
        return len(params)

    def clear_recommendations(self, user_id: int, start: date, end: date) -> int:
        """Drop ``recommended_day`` on every row in ``[start, end]``.

        Returns:
            Number of rows that were recommended before the call.
        """
        cur = self.execute(
            """
            UPDATE daily_records SET recommended_day = 0
            WHERE user_id = ? AND recommended_day = 1
              AND record_date BETWEEN ? AND ?;
            """,
            (user_id, start.isoformat(), end.isoformat()),
        )
        return cur.rowcount

    def mark_recommended(self, user_id: int, dates: Iterable[date]) -> int:
        """Set ``recommended_day`` on the given open dates.

        Attended or impossible dates are skipped by the ``WHERE`` clause.

        Returns:
            Number of rows updated.
        """
        params = [(user_id, d.isoformat()) for d in sorted(dates)]
        if not params:
            return 0
        cur = self.executemany(
            """
            UPDATE daily_records SET recommended_day = 1
            WHERE user_id = ? AND record_date = ?
              AND gym_attended = 0 AND impossible_day = 0;
            """,
            params,
        )
        return cur.rowcount


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_record(row: sqlite3.Row) -> DailyRecord:
    return DailyRecord(
        record_id=row["record_id"],
        user_id=row["user_id"],
        record_date=date.fromisoformat(row["record_date"]),
        readiness_score=row["readiness_score"],
        readiness_zscore=row["readiness_zscore"],
        gym_attended=bool(row["gym_attended"]),
        impossible_day=bool(row["impossible_day"]),
        is_school_day=bool(row["is_school_day"]),
        day_score=float(row["day_score"]),
        recommended_day=bool(row["recommended_day"]),
    )
