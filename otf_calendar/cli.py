"""
OTF Calendar — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (DB init, CSV import, day update, refresh, etc.).
  5. Report result to stdout.

Install and run::

    pip install -e .
    otf-calendar --help
    otf-calendar init-db
    otf-calendar validate-config
    otf-calendar import-csv --file data/history.csv
    otf-calendar set-day --date 2025-04-10 --attended --readiness 82
    otf-calendar refresh --goal 120
    otf-calendar summary
    otf-calendar upcoming --days 30
    otf-calendar set-setting day_of_week_monday 1.3
"""

from __future__ import annotations

import json
from datetime import date, timedelta
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="otf-calendar",
    help="OTF Calendar — gym day scoring and recommendation CLI.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from otf_calendar.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from otf_calendar.utils.logging import configure_logging
    configure_logging(config.logging)


def _parse_date_or_exit(value: Optional[str], option: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        typer.echo(f"[ERROR] {option} must be YYYY-MM-DD, got '{value}'.", err=True)
        raise typer.Exit(code=1)


def _open(config, db_path: Optional[str]):
    from otf_calendar.db.connection import get_connection

    return get_connection(
        db_path or config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    )


def _ensure_schema(config, db_path: Optional[str]) -> None:
    """Apply schema and pending migrations (idempotent)."""
    from otf_calendar.db.migrations import run_migrations
    from otf_calendar.db.schema import apply_schema

    with _open(config, db_path) as conn:
        apply_schema(conn)
        run_migrations(conn)


def _echo_allocation(allocation) -> None:
    typer.echo(
        f"  Goal {allocation.goal} | attended {allocation.attended} | "
        f"needed {allocation.needed} | recommended {len(allocation.recommended)} "
        f"of {allocation.candidate_count} candidates"
    )
    if allocation.shortfall:
        typer.echo(
            f"  [WARN] Not enough open days left: short by {allocation.shortfall}."
        )


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Initialize the SQLite database and apply the full schema.

    Safe to run multiple times — all DDL uses IF NOT EXISTS.
    Also runs pending schema migrations.
    """
    from otf_calendar.db.migrations import run_migrations
    from otf_calendar.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with _open(config, db_path) as conn:
        apply_schema(conn)
        migrations_applied = run_migrations(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo(f"  Migrations applied: {migrations_applied}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Default user:     {config.goal.default_user_id}")
    typer.echo(f"  Default goal:     {config.goal.default_sessions}")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("import-csv")
def import_csv(
    csv_file: str = typer.Option(
        ...,
        "--file",
        "-f",
        help="Path to a CSV of daily facts (date, readiness_score, gym_attended, ...).",
    ),
    user_id: Optional[int] = typer.Option(None, "--user", help="User id (default from config)."),
    goal: Optional[int] = typer.Option(None, "--goal", help="Sessions goal (default from config)."),
    year: Optional[int] = typer.Option(None, "--year", help="Year to refresh after import."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Validate the CSV but do not write to the database.",
    ),
) -> None:
    """Import daily facts from CSV, then recompute z-scores and recommendations.

    Uses UPSERT semantics — existing days are updated in place. The whole
    file is validated before anything is written.
    """
    from otf_calendar.ingestion.record_csv import parse_record_csv
    from otf_calendar.pipeline.import_records import ImportStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    csv_path = Path(csv_file)
    if not csv_path.exists():
        typer.echo(f"[ERROR] CSV file not found: {csv_path}", err=True)
        raise typer.Exit(code=1)

    uid = user_id if user_id is not None else config.goal.default_user_id

    if dry_run:
        try:
            records = parse_record_csv(csv_path, uid)
        except ValueError as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"[DRY RUN] {len(records)} record(s) valid. Nothing written.")
        return

    _ensure_schema(config, db_path)

    stage = ImportStage(config=config, db_path=db_path)
    try:
        run = stage.run(csv_path=csv_path, user_id=uid, year=year, goal=goal)
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Imported {run.rows_processed} record(s) for user {uid}.")
    if stage.last_allocation is not None:
        _echo_allocation(stage.last_allocation)
    typer.echo("[OK] Import complete.")


@app.command("set-day")
def set_day(
    day: str = typer.Option(..., "--date", "-d", help="Day to update (YYYY-MM-DD)."),
    readiness: Optional[float] = typer.Option(
        None, "--readiness", help="Readiness score (0 clears the reading)."
    ),
    attended: Optional[bool] = typer.Option(
        None, "--attended/--not-attended", help="Whether the gym was attended."
    ),
    impossible: Optional[bool] = typer.Option(
        None, "--impossible/--possible", help="Whether attending is impossible."
    ),
    school: Optional[bool] = typer.Option(
        None, "--school/--no-school", help="Whether it is a school day."
    ),
    user_id: Optional[int] = typer.Option(None, "--user", help="User id (default from config)."),
    goal: Optional[int] = typer.Option(None, "--goal", help="Sessions goal (default from config)."),
    as_of: Optional[str] = typer.Option(
        None, "--as-of", help="Treat this date as today (YYYY-MM-DD)."
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Update the facts of one day and rebalance recommendations.

    \b
    Steps:
      1. Upsert the given facts (unspecified facts keep their stored value).
      2. Recompute readiness z-scores if the readiness changed.
      3. Rescore the day in historical mode if it is before today; today and
         later days are re-predicted by the refresh.
      4. Refresh future scores and recommendations for the day's year.
    """
    from pydantic import ValidationError

    from otf_calendar.db.repositories.daily_record_repo import DailyRecordRepository
    from otf_calendar.db.repositories.settings_repo import UserSettingsRepository
    from otf_calendar.engine.progress import pace_urgency
    from otf_calendar.engine.readiness import recompute_readiness_zscores
    from otf_calendar.engine.scorer import day_score
    from otf_calendar.models.record import DailyRecord
    from otf_calendar.pipeline.refresh import refresh_year
    from otf_calendar.utils.time_utils import year_end, year_start

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target = _parse_date_or_exit(day, "--date")
    today = _parse_date_or_exit(as_of, "--as-of") or date.today()
    uid = user_id if user_id is not None else config.goal.default_user_id
    target_goal = goal if goal is not None else config.goal.default_sessions

    _ensure_schema(config, db_path)

    with _open(config, db_path) as conn:
        repo = DailyRecordRepository(conn)
        repo.ensure_year(uid, target.year)
        current = repo.get(uid, target)

        try:
            updated = DailyRecord(
                user_id=uid,
                record_date=target,
                readiness_score=readiness if readiness is not None else current.readiness_score,
                readiness_zscore=None if readiness is not None else current.readiness_zscore,
                gym_attended=attended if attended is not None else current.gym_attended,
                impossible_day=impossible if impossible is not None else current.impossible_day,
                is_school_day=school if school is not None else current.is_school_day,
            )
        except ValidationError as exc:
            typer.echo(f"[ERROR] Invalid day: {exc}", err=True)
            raise typer.Exit(code=1)

        repo.upsert_facts(updated)
        settings = UserSettingsRepository(conn).get(uid)

        if readiness is not None:
            recompute_readiness_zscores(conn, uid, settings)

        if target < today:
            completed = repo.count_attended(uid, year_start(target.year), year_end(target.year))
            urgency = pace_urgency(completed, target_goal, target, target.year, settings)
            score = day_score(conn, uid, target, settings, urgency=urgency)
            typer.echo(f"  {target}: day score {score:.3f} (urgency {urgency:.2f})")

        _, allocation = refresh_year(conn, uid, target.year, target_goal, as_of=today)

    _echo_allocation(allocation)
    typer.echo("[OK] Day updated.")


@app.command("refresh")
def refresh(
    user_id: Optional[int] = typer.Option(None, "--user", help="User id (default from config)."),
    goal: Optional[int] = typer.Option(None, "--goal", help="Sessions goal (default from config)."),
    year: Optional[int] = typer.Option(None, "--year", help="Goal year (default: current year)."),
    as_of: Optional[str] = typer.Option(
        None, "--as-of", help="Treat this date as today (YYYY-MM-DD)."
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Create missing days, re-predict future scores, and rebalance recommendations."""
    from otf_calendar.pipeline.refresh import RefreshStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    today = _parse_date_or_exit(as_of, "--as-of")
    if goal is not None and goal < 0:
        typer.echo("[ERROR] --goal must be non-negative.", err=True)
        raise typer.Exit(code=1)

    _ensure_schema(config, db_path)

    stage = RefreshStage(config=config, db_path=db_path)
    run = stage.run(user_id=user_id, year=year, goal=goal, as_of=today)

    typer.echo(
        f"refresh | user={run.user_id} | year={run.target_year} | "
        f"status={run.status} | rows={run.rows_processed}"
    )
    if stage.last_allocation is not None:
        _echo_allocation(stage.last_allocation)
    typer.echo("[OK] Refresh complete.")


@app.command("summary")
def summary(
    user_id: Optional[int] = typer.Option(None, "--user", help="User id (default from config)."),
    goal: Optional[int] = typer.Option(None, "--goal", help="Sessions goal (default from config)."),
    year: Optional[int] = typer.Option(None, "--year", help="Goal year (default: current year)."),
    as_of: Optional[str] = typer.Option(
        None, "--as-of", help="Treat this date as today (YYYY-MM-DD)."
    ),
    show_days: int = typer.Option(
        10, "--show-days", help="How many upcoming recommended days to list."
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Print goal progress and the next recommended days."""
    from otf_calendar.db.repositories.daily_record_repo import DailyRecordRepository
    from otf_calendar.engine.progress import summarize_progress
    from otf_calendar.utils.time_utils import weekday_name, year_end

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    today = _parse_date_or_exit(as_of, "--as-of") or date.today()
    uid = user_id if user_id is not None else config.goal.default_user_id
    target_goal = goal if goal is not None else config.goal.default_sessions
    target_year = year if year is not None else today.year

    _ensure_schema(config, db_path)

    with _open(config, db_path) as conn:
        progress = summarize_progress(conn, uid, target_goal, year=target_year, as_of=today)
        upcoming = DailyRecordRepository(conn).get_recommended_dates(
            uid, max(today, date(target_year, 1, 1)), year_end(target_year)
        )

    typer.echo(f"Goal progress for user {uid}, {target_year} (as of {today})")
    typer.echo(f"  Goal:              {progress.goal}")
    typer.echo(f"  Completed:         {progress.completed}")
    typer.echo(f"  Expected by now:   {progress.expected:.1f}")
    typer.echo(f"  Remaining needed:  {progress.remaining_needed}")
    typer.echo(f"  Recommended ahead: {progress.recommended}")
    typer.echo("")
    typer.echo(progress.message)

    if upcoming and show_days > 0:
        typer.echo("")
        typer.echo("Next recommended days:")
        for d in upcoming[:show_days]:
            typer.echo(f"  {d.isoformat()}  {weekday_name(d).capitalize()}")


@app.command("upcoming")
def upcoming(
    days: int = typer.Option(30, "--days", help="How many days to show, starting today."),
    user_id: Optional[int] = typer.Option(None, "--user", help="User id (default from config)."),
    as_of: Optional[str] = typer.Option(
        None, "--as-of", help="Treat this date as today (YYYY-MM-DD)."
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """List the next days with readiness, status, stored score and score band.

    Scores are shown as stored; run ``refresh`` first to re-predict them.
    """
    from otf_calendar.db.repositories.daily_record_repo import DailyRecordRepository
    from otf_calendar.engine.scorer import score_band

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if days < 1:
        typer.echo("[ERROR] --days must be at least 1.", err=True)
        raise typer.Exit(code=1)

    today = _parse_date_or_exit(as_of, "--as-of") or date.today()
    uid = user_id if user_id is not None else config.goal.default_user_id
    last = today + timedelta(days=days - 1)

    _ensure_schema(config, db_path)

    with _open(config, db_path) as conn:
        repo = DailyRecordRepository(conn)
        for year in range(today.year, last.year + 1):
            repo.ensure_year(uid, year)
        records = repo.get_range(uid, today, last)

    typer.echo(f"Upcoming days for user {uid} ({today} → {last})")
    typer.echo(f"  {'Date':<10}  {'Day':<9}  {'Ready':>5}  {'Status':<22}  {'Score':>5}  Band")
    for record in records:
        if record.impossible_day:
            status = ["impossible"]
        elif record.gym_attended:
            status = ["attended"]
        else:
            status = ["recommended"] if record.recommended_day else ["open"]
        if record.is_school_day:
            status.append("school")
        readiness = f"{record.readiness_score:.0f}" if record.has_readiness else "N/A"
        typer.echo(
            f"  {record.record_date.isoformat():<10}  {record.weekday.capitalize():<9}  "
            f"{readiness:>5}  {', '.join(status):<22}  {record.day_score:>5.3f}  "
            f"{score_band(record.day_score)}"
        )


@app.command("show-settings")
def show_settings(
    user_id: Optional[int] = typer.Option(None, "--user", help="User id (default from config)."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Print the effective scoring settings for a user."""
    from otf_calendar.db.repositories.settings_repo import UserSettingsRepository
    from otf_calendar.models.settings import SETTING_FIELDS

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    uid = user_id if user_id is not None else config.goal.default_user_id

    _ensure_schema(config, db_path)

    with _open(config, db_path) as conn:
        repo = UserSettingsRepository(conn)
        settings = repo.get(uid)
        stored = repo.exists(uid)

    typer.echo(f"Settings for user {uid}{'' if stored else ' (defaults)'}:")
    for name in SETTING_FIELDS:
        value = getattr(settings, name)
        typer.echo(f"  {name:<32} {'-' if value is None else value}")


@app.command("set-setting")
def set_setting(
    name: str = typer.Argument(..., help="Setting name (see show-settings)."),
    value: str = typer.Argument(..., help="New value, or 'none' to reset to the default."),
    user_id: Optional[int] = typer.Option(None, "--user", help="User id (default from config)."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Change one scoring setting. Run ``refresh`` afterwards to apply it."""
    from otf_calendar.db.repositories.settings_repo import UserSettingsRepository

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    uid = user_id if user_id is not None else config.goal.default_user_id

    if value.strip().lower() in ("none", "null", "default", ""):
        parsed: Optional[float] = None
    else:
        try:
            parsed = float(value)
        except ValueError:
            typer.echo(f"[ERROR] Value must be a number or 'none', got '{value}'.", err=True)
            raise typer.Exit(code=1)

    _ensure_schema(config, db_path)

    try:
        with _open(config, db_path) as conn:
            settings = UserSettingsRepository(conn).set_value(uid, name, parsed)
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"  {name} = {getattr(settings, name)}")
    typer.echo("[OK] Setting saved.")


if __name__ == "__main__":
    app()
