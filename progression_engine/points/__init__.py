"""Reward points.

Provides:
- Ledger entries and running totals
- First-pass award decisions
- Rank table and leaderboard
- Verified crew freeze
"""

from .ledger import (
    AwardDecision,
    append_award_in,
    award_on_first_pass,
    calculate_rank,
    declare_verified_crew_in,
    leaderboard_from_record,
    points_to_next_rank,
)
from .models import RANKS, PointsLedgerEntry, PointsReason, PointsTotal


__all__ = [
    "RANKS",
    "AwardDecision",
    "PointsLedgerEntry",
    "PointsReason",
    "PointsTotal",
    "append_award_in",
    "award_on_first_pass",
    "calculate_rank",
    "declare_verified_crew_in",
    "leaderboard_from_record",
    "points_to_next_rank",
]
