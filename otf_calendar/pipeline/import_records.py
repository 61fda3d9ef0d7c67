"""
ImportStage — load daily facts from CSV and re-derive everything downstream.

Import flow
-----------
  1. Parse and validate the whole CSV (nothing is written if any row fails).
  2. Upsert the facts of every row.
  3. Recompute readiness z-scores for the user.
  4. Refresh the target year (scores + recommendations).

All of it happens on one connection, so a failure in any step rolls the
whole import back.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from otf_calendar.models.meta import RunMetadata
from otf_calendar.pipeline.base import PipelineStage

logger = logging.getLogger(__name__)


class ImportStage(PipelineStage):
    """Import a CSV of daily facts for one user."""

    stage_name = "import"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.last_allocation = None

    def _execute(
        self,
        run: RunMetadata,
        csv_path: Path | str | None = None,
        user_id: int | None = None,
        year: int | None = None,
        goal: int | None = None,
        as_of: date | None = None,
        **kwargs,
    ) -> int:
        """Import ``csv_path`` and refresh the year.

        Returns:
            Number of imported records.

        Raises:
            ValueError: If ``csv_path`` is missing or the CSV fails validation.
            FileNotFoundError: If the CSV does not exist.
        """
        from otf_calendar.db.repositories.daily_record_repo import DailyRecordRepository
        from otf_calendar.db.repositories.settings_repo import UserSettingsRepository
        from otf_calendar.engine.readiness import recompute_readiness_zscores
        from otf_calendar.ingestion.record_csv import parse_record_csv
        from otf_calendar.pipeline.refresh import refresh_year

        if csv_path is None:
            raise ValueError("ImportStage requires csv_path.")

        today = as_of or date.today()
        uid = user_id if user_id is not None else self.config.goal.default_user_id
        target_year = year if year is not None else today.year
        target_goal = goal if goal is not None else self.config.goal.default_sessions

        run.user_id = uid
        run.target_year = target_year

        records = parse_record_csv(Path(csv_path), uid)

        with self._connect() as conn:
            repo = DailyRecordRepository(conn)
            for record in records:
                repo.upsert_facts(record)

            settings = UserSettingsRepository(conn).get(uid)
            recompute_readiness_zscores(conn, uid, settings)
            _, self.last_allocation = refresh_year(
                conn, uid, target_year, target_goal, as_of=today
            )

        logger.info("Imported %d records for user=%d from %s", len(records), uid, csv_path)
        return len(records)
