"""Points ledger.

Award decisions are pure; appending an award happens inside the caller's
store transaction together with the state change that earned it, so the
ledger entry, the running total and the triggering result commit together
or not at all.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from progression_engine.exams.models import ExamAttemptResult
from progression_engine.exams.scoring import GradeResult
from progression_engine.store import Transaction
from progression_engine.store.keys import (
    points_leaderboard_key,
    points_ledger_index_key,
    points_ledger_key,
    points_total_key,
)

from .models import RANKS, PointsLedgerEntry, PointsTotal


logger = structlog.get_logger(__name__)

EXAM_PASS_POINTS = 40
EXAM_FIRST_ATTEMPT_BONUS = 10


@dataclass(frozen=True)
class AwardDecision:
    """Points earned by an attempt; ``bonus`` is included in ``total``."""

    points: int
    bonus: int = 0

    @property
    def total(self) -> int:
        return self.points + self.bonus


def award_on_first_pass(
    existing: ExamAttemptResult | None,
    grade: GradeResult,
    base_points: int = EXAM_PASS_POINTS,
    first_attempt_bonus: int = EXAM_FIRST_ATTEMPT_BONUS,
) -> AwardDecision:
    """Points for a graded attempt, given the result stored before it.

    Only the first pass earns points; the bonus applies when that pass is
    also the learner's first attempt ever.
    """
    is_first_pass = existing is None or not existing.passed
    if not (grade.passed and is_first_pass):
        return AwardDecision(points=0)

    bonus = first_attempt_bonus if existing is None else 0
    return AwardDecision(points=base_points, bonus=bonus)


def calculate_rank(total_points: int) -> str:
    """Highest rank whose threshold ``total_points`` reaches."""
    rank = RANKS[0][1]
    for threshold, name in RANKS:
        if total_points >= threshold:
            rank = name
    return rank


def points_to_next_rank(total_points: int) -> int:
    """Points missing for the next rank, 0 at the top rank."""
    for threshold, _ in RANKS:
        if total_points < threshold:
            return threshold - total_points
    return 0


async def append_award_in(
    tx: Transaction,
    user_id: str,
    points: int,
    reason: str,
    now: datetime,
    description: str = "",
    metadata: dict[str, Any] | None = None,
) -> tuple[PointsLedgerEntry, PointsTotal] | None:
    """Append a ledger entry and bump the running total within ``tx``.

    Returns:
        The new entry and total, or None when the learner's points are
        frozen (verified crew) and nothing was written
    """
    stored = await tx.get(points_total_key(user_id))
    total = PointsTotal.from_record(stored) if stored else PointsTotal(user_id=user_id)
    if total.verified_crew:
        logger.info("points_frozen", user_id=user_id, reason=reason, points=points)
        return None

    entry = PointsLedgerEntry(
        user_id=user_id,
        points=points,
        reason=reason,
        description=description,
        metadata=metadata,
        created_at=now,
    )
    tx.set(points_ledger_key(entry.entry_id), entry.to_record())

    index = await tx.get(points_ledger_index_key(user_id)) or {"entry_ids": []}
    tx.set(
        points_ledger_index_key(user_id),
        {"entry_ids": [*index.get("entry_ids", []), entry.entry_id]},
    )

    previous_rank = total.current_rank
    total.total_points += points
    total.current_rank = calculate_rank(total.total_points)
    total.updated_at = now
    tx.set(points_total_key(user_id), total.to_record())
    await update_leaderboard_in(tx, total)

    if total.current_rank != previous_rank:
        logger.info(
            "rank_changed",
            user_id=user_id,
            previous_rank=previous_rank,
            current_rank=total.current_rank,
        )

    return entry, total


async def declare_verified_crew_in(
    tx: Transaction, user_id: str, now: datetime
) -> tuple[PointsTotal, bool]:
    """Freeze a learner's points; returns the total and whether it changed."""
    stored = await tx.get(points_total_key(user_id))
    total = PointsTotal.from_record(stored) if stored else PointsTotal(user_id=user_id)
    if total.verified_crew:
        return total, False

    total.verified_crew = True
    total.updated_at = now
    tx.set(points_total_key(user_id), total.to_record())
    await update_leaderboard_in(tx, total)
    return total, True


async def update_leaderboard_in(tx: Transaction, total: PointsTotal) -> None:
    board = await tx.get(points_leaderboard_key()) or {"entries": {}}
    entries = dict(board.get("entries", {}))
    entries[total.user_id] = {
        "total_points": total.total_points,
        "current_rank": total.current_rank,
        "verified_crew": total.verified_crew,
    }
    tx.set(points_leaderboard_key(), {"entries": entries})


def leaderboard_from_record(
    record: dict[str, Any] | None, limit: int = 100
) -> list[PointsTotal]:
    """Totals ordered by points (highest first), ties by user id."""
    entries = (record or {}).get("entries", {})
    totals = [
        PointsTotal(
            user_id=user_id,
            total_points=entry.get("total_points", 0),
            current_rank=entry.get("current_rank", RANKS[0][1]),
            verified_crew=entry.get("verified_crew", False),
        )
        for user_id, entry in entries.items()
    ]
    totals.sort(key=lambda t: (-t.total_points, t.user_id))
    return totals[:limit]
