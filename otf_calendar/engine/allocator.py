"""
Recommendation allocator: choose which open future days to flag so that
attended + recommended days reach the annual goal.

Usage flow
----------
1. update_recommendations(conn, user_id, goal, year, as_of)
   a. attended = attended days in [Jan 1, Dec 31]
   b. needed   = max(0, goal − attended)
   c. candidates = open days (not attended, not impossible) in [as_of, Dec 31],
      fetched once
   d. selected = select_recommended(candidates, needed)   (pure)
   e. inside one SAVEPOINT: clear every recommended flag in [as_of, Dec 31],
      then mark ``selected``

2. The result is recomputed from scratch on every call, never patched. A
   previously recommended day that became impossible or attended simply
   drops out of the candidate list. Re-running on unchanged data yields the
   same set because the ordering is total (score desc, date asc).

If the write step fails, the savepoint is rolled back and the previous
recommendations stay in place; the error propagates to the caller.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from otf_calendar.db.connection import atomic
from otf_calendar.db.repositories.daily_record_repo import DailyRecordRepository
from otf_calendar.models.record import DailyRecord
from otf_calendar.utils.time_utils import year_end, year_start

logger = logging.getLogger(__name__)


@dataclass
class AllocationResult:
    """Outcome of one rebalance.

    Attributes:
        user_id:        Owning user.
        year:           Goal year.
        goal:           Target sessions for the year.
        attended:       Attended days counted toward the goal.
        needed:         ``max(0, goal − attended)``.
        candidate_count: Open future days that could be recommended.
        recommended:    Dates flagged by this call, ascending.
    """

    user_id:         int
    year:            int
    goal:            int
    attended:        int
    needed:          int
    candidate_count: int
    recommended:     list[date] = field(default_factory=list)

    @property
    def shortfall(self) -> int:
        """Sessions still missing even if every recommended day is attended."""
        return max(0, self.needed - len(self.recommended))


def rank_candidates(candidates: list[DailyRecord]) -> list[DailyRecord]:
    """Order candidates by ``day_score`` descending, then date ascending."""
    return sorted(candidates, key=lambda r: (-r.day_score, r.record_date))


def select_recommended(candidates: list[DailyRecord], needed: int) -> set[date]:
    """Pick the ``needed`` best candidate dates.

    Resolved (attended/impossible) records are ignored even if passed in.
    Ties on score go to the earlier date.

    Args:
        candidates: Records eligible for recommendation.
        needed:     How many days to pick; ``<= 0`` picks none.

    Returns:
        Set of selected dates (all candidates if fewer than ``needed``).
    """
    if needed <= 0:
        return set()
    open_days = [r for r in candidates if not r.is_resolved]
    return {r.record_date for r in rank_candidates(open_days)[:needed]}


def update_recommendations(
    conn: sqlite3.Connection,
    user_id: int,
    goal: int,
    year: Optional[int] = None,
    as_of: Optional[date] = None,
) -> AllocationResult:
    """Rebalance ``recommended_day`` for the rest of the goal year.

    Args:
        conn:    Open database connection.
        user_id: Owning user.
        goal:    Target sessions for the year (>= 0).
        year:    Goal year; defaults to ``as_of.year``. The cutoff is Dec 31.
        as_of:   "Today"; defaults to ``date.today()``. Days before it are
                 never recommended.

    Returns:
        AllocationResult describing the new recommended set.

    Raises:
        ValueError: If ``goal`` is negative.
        sqlite3.Error: If reading or writing the store fails; prior
            recommendations are left intact.
    """
    if goal < 0:
        raise ValueError(f"goal must be non-negative, got {goal}.")

    today = as_of or date.today()
    target_year = year if year is not None else today.year
    cutoff = year_end(target_year)
    window_start = max(today, year_start(target_year))

    repo = DailyRecordRepository(conn)
    attended = repo.count_attended(user_id, year_start(target_year), cutoff)
    needed = max(0, goal - attended)

    candidates = repo.get_candidates(user_id, window_start, cutoff) if window_start <= cutoff else []
    selected = select_recommended(candidates, needed)

    with atomic(conn, "rebalance_recommendations"):
        cleared = repo.clear_recommendations(user_id, window_start, cutoff)
        marked = repo.mark_recommended(user_id, selected)

    result = AllocationResult(
        user_id=user_id,
        year=target_year,
        goal=goal,
        attended=attended,
        needed=needed,
        candidate_count=len(candidates),
        recommended=sorted(selected),
    )

    logger.info(
        "Recommendations for user=%d year=%d: goal=%d attended=%d needed=%d "
        "candidates=%d cleared=%d marked=%d",
        user_id, target_year, goal, attended, needed, len(candidates), cleared, marked,
    )
    if result.shortfall:
        logger.warning(
            "Only %d open days remain for user=%d year=%d; %d session(s) short of goal.",
            len(candidates), user_id, target_year, result.shortfall,
        )
    return result
