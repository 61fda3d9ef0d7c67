"""
CSV import parser for daily attendance facts.

Format — comma delimited, with a header row.
Required columns:
  date

Optional columns (empty string → default):
  readiness_score, gym_attended, impossible_day, is_school_day

Example::

    date,readiness_score,gym_attended,impossible_day,is_school_day
    2025-04-10,85,1,0,0
    2025-04-11,,0,1,0

Column values:
  date              → YYYY-MM-DD (``record_date`` is accepted as an alias)
  readiness_score   → non-negative number; empty → no reading
  boolean columns   → true/1/yes/t/y is True; false/0/no/f/n or empty is False

Only facts are imported. ``day_score`` and ``recommended_day`` are derived by
the engine after import.
"""

from __future__ import annotations

import csv
import logging
from datetime import date
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from otf_calendar.models.record import DailyRecord

logger = logging.getLogger(__name__)

DATE_COLUMNS = ("date", "record_date")
OPTIONAL_CSV_COLUMNS = frozenset({
    "readiness_score", "gym_attended", "impossible_day", "is_school_day",
})

_TRUE_VALUES = frozenset({"true", "1", "yes", "t", "y"})
_FALSE_VALUES = frozenset({"false", "0", "no", "f", "n"})


def parse_record_csv(path: Path, user_id: int) -> list[DailyRecord]:
    """Parse a CSV file of daily facts into validated :class:`DailyRecord` objects.

    All rows are validated before any are returned. If **any** row fails,
    a single :class:`ValueError` is raised listing the first 10 failures.
    A date appearing twice is an error.

    Args:
        path:    Path to the CSV file (must exist).
        user_id: Owner of the imported records.

    Returns:
        List of validated records in file order.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the date column is missing or any row fails validation.
    """
    if not path.exists():
        raise FileNotFoundError(f"Record CSV file not found: {path}")

    with open(path, encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)

        if reader.fieldnames is None:
            raise ValueError(f"CSV file is empty or has no header row: {path}")

        actual_cols = {c.strip() for c in reader.fieldnames}
        date_col = next((c for c in DATE_COLUMNS if c in actual_cols), None)
        if date_col is None:
            raise ValueError(
                f"CSV missing a date column (one of {list(DATE_COLUMNS)}).\n"
                f"Found columns: {sorted(actual_cols)}"
            )
        unknown = actual_cols - OPTIONAL_CSV_COLUMNS - set(DATE_COLUMNS)
        if unknown:
            logger.warning("Ignoring unknown CSV columns: %s", sorted(unknown))

        rows = [{(k or "").strip(): v for k, v in row.items()} for row in reader]

    if not rows:
        logger.warning("Record CSV is empty (header only): %s", path)
        return []

    records: list[DailyRecord] = []
    errors: list[tuple[int, str]] = []
    seen: set[date] = set()

    for i, row in enumerate(rows):
        line_no = i + 2  # 1-based, skip header row
        try:
            record = _row_to_record(row, date_col, user_id)
            if record.record_date in seen:
                raise ValueError(f"Duplicate date {record.record_date}.")
            seen.add(record.record_date)
            records.append(record)
        except (ValueError, ValidationError) as exc:
            errors.append((line_no, str(exc)))

    if errors:
        max_shown = 10
        detail = "\n".join(f"  Row {ln}: {msg}" for ln, msg in errors[:max_shown])
        suffix = f"\n  … and {len(errors) - max_shown} more" if len(errors) > max_shown else ""
        raise ValueError(
            f"{len(errors)} row(s) failed validation in {path.name}:\n{detail}{suffix}"
        )

    logger.info("Parsed %d daily records from %s", len(records), path.name)
    return records


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_record(row: dict[str, Optional[str]], date_col: str, user_id: int) -> DailyRecord:
    return DailyRecord(
        user_id=user_id,
        record_date=_parse_date(row, date_col),
        readiness_score=_parse_float(row, "readiness_score"),
        gym_attended=_parse_bool(row, "gym_attended"),
        impossible_day=_parse_bool(row, "impossible_day"),
        is_school_day=_parse_bool(row, "is_school_day"),
    )


def _opt(row: dict[str, Optional[str]], key: str) -> Optional[str]:
    """Return an optional string field, or None if absent/empty."""
    v = (row.get(key) or "").strip()
    return v if v else None


def _parse_date(row: dict[str, Optional[str]], key: str) -> date:
    v = _opt(row, key)
    if v is None:
        raise ValueError(f"Required date field '{key}' is empty.")
    try:
        return date.fromisoformat(v)
    except ValueError:
        raise ValueError(
            f"Invalid date for '{key}': '{v}'. Expected YYYY-MM-DD format."
        )


def _parse_float(row: dict[str, Optional[str]], key: str) -> Optional[float]:
    v = _opt(row, key)
    if v is None:
        return None
    try:
        return float(v)
    except ValueError:
        raise ValueError(f"Invalid number for '{key}': '{v}'.")


def _parse_bool(row: dict[str, Optional[str]], key: str, default: bool = False) -> bool:
    v = _opt(row, key)
    if v is None:
        return default
    lowered = v.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for '{key}': '{v}'.")
