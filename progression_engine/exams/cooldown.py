"""Retry cooldown policy.

Eligibility is derived purely from the stored attempt result and the
caller-supplied clock; no timers or background jobs are involved.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .models import UNLIMITED_ATTEMPTS, ExamAttemptResult


class IneligibleReason(str, Enum):
    """Why an attempt is refused."""

    ALREADY_PASSED = "already_passed"
    COOLDOWN_ACTIVE = "cooldown_active"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"


@dataclass(frozen=True)
class Eligibility:
    allowed: bool
    retry_at: datetime | None = None
    reason: IneligibleReason | None = None


def can_attempt(
    previous: ExamAttemptResult | None,
    now: datetime,
    allowed_attempts: int = UNLIMITED_ATTEMPTS,
) -> Eligibility:
    """Decide whether a new graded attempt is accepted at ``now``."""
    if previous is None:
        return Eligibility(allowed=True)

    if previous.passed:
        return Eligibility(allowed=False, reason=IneligibleReason.ALREADY_PASSED)

    if previous.can_retry_at is not None and now < previous.can_retry_at:
        return Eligibility(
            allowed=False,
            retry_at=previous.can_retry_at,
            reason=IneligibleReason.COOLDOWN_ACTIVE,
        )

    if allowed_attempts >= 0 and previous.attempts >= allowed_attempts:
        return Eligibility(allowed=False, reason=IneligibleReason.ATTEMPTS_EXHAUSTED)

    return Eligibility(allowed=True)


def retry_at_after_failure(now: datetime, cooldown_minutes: int) -> datetime | None:
    """Earliest retry after a failed attempt, None when there is no cooldown."""
    if cooldown_minutes <= 0:
        return None
    return now + timedelta(minutes=cooldown_minutes)
