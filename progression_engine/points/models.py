"""Reward points documents and rank table."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from progression_engine.utils.timestamps import ensure_utc_aware, from_iso, to_iso, utc_now


class PointsReason(str, Enum):
    """Why points were awarded."""

    EXAM_PASSED = "exam_passed"
    QUIZ_PASSED = "quiz_passed"


# (minimum points, rank name), ascending
RANKS: list[tuple[int, str]] = [
    (0, "Student"),
    (1000, "Cadet"),
    (2000, "Crew"),
    (3000, "Pro Crew"),
    (4000, "Elite Crew"),
    (5000, "Captain"),
]


class PointsLedgerEntry:
    """Append-only record of one award.

    Attributes:
        entry_id: Ledger entry id
        user_id: Learner id
        points: Points awarded (bonus included)
        reason: PointsReason value
        description: Human readable summary
        metadata: Award context (exam id, score, bonus, ...)
        created_at: Award timestamp
    """

    def __init__(
        self,
        user_id: str,
        points: int,
        reason: str,
        description: str = "",
        metadata: dict[str, Any] | None = None,
        created_at: datetime | None = None,
        entry_id: str | None = None,
    ):
        self.entry_id = entry_id or str(uuid4())
        self.user_id = user_id
        self.points = points
        self.reason = reason
        self.description = description
        self.metadata = dict(metadata or {})
        self.created_at = ensure_utc_aware(created_at) or utc_now()

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "PointsLedgerEntry":
        return cls(
            entry_id=record["entry_id"],
            user_id=record["user_id"],
            points=record.get("points", 0),
            reason=record.get("reason", ""),
            description=record.get("description", ""),
            metadata=record.get("metadata"),
            created_at=from_iso(record.get("created_at")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "user_id": self.user_id,
            "points": self.points,
            "reason": self.reason,
            "description": self.description,
            "metadata": self.metadata,
            "created_at": to_iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<PointsLedgerEntry user={self.user_id} +{self.points} {self.reason}>"


class PointsTotal:
    """Running points total with the rank it implies.

    A verified crew member's total is frozen: later awards are skipped.
    """

    def __init__(
        self,
        user_id: str,
        total_points: int = 0,
        current_rank: str = RANKS[0][1],
        updated_at: datetime | None = None,
        verified_crew: bool = False,
    ):
        self.user_id = user_id
        self.total_points = total_points
        self.current_rank = current_rank
        self.updated_at = ensure_utc_aware(updated_at)
        self.verified_crew = verified_crew

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "PointsTotal":
        return cls(
            user_id=record["user_id"],
            total_points=record.get("total_points", 0),
            current_rank=record.get("current_rank", RANKS[0][1]),
            updated_at=from_iso(record.get("updated_at")),
            verified_crew=record.get("verified_crew", False),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "total_points": self.total_points,
            "current_rank": self.current_rank,
            "updated_at": to_iso(self.updated_at),
            "verified_crew": self.verified_crew,
        }

    def __repr__(self) -> str:
        return f"<PointsTotal user={self.user_id} {self.total_points} {self.current_rank}>"
