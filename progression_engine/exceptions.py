"""Error taxonomy for the progression engine.

Every error carries a stable ``code`` so controllers can render a precise
message without inspecting internals. Expected conditions (cooldown, already
passed) are reportable outcomes, not alarms; only store conflicts are
transient and retried by the store itself.
"""

from datetime import datetime


class ProgressionError(Exception):
    """Base progression error."""

    def __init__(self, message: str, code: str = "progression_error"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        """Structured form for responses and logs."""
        return {"code": self.code, "message": self.message}


# ==============================================================================
# Not found (fatal to the call)
# ==============================================================================


class NotFoundError(ProgressionError):
    """A required record or definition is absent."""


class ExamNotFound(NotFoundError):
    """No exam definition resolves for the given identifiers."""

    def __init__(self, message: str = "Exam not found"):
        super().__init__(message, "exam_not_found")


class QuizNotFound(NotFoundError):
    """No quiz is configured for the module."""

    def __init__(self, message: str = "Quiz not found"):
        super().__init__(message, "quiz_not_found")


class ProgressNotFound(NotFoundError):
    """The learner has no progress record for the course."""

    def __init__(self, message: str = "Progress not found"):
        super().__init__(message, "progress_not_found")


# ==============================================================================
# Eligibility (expected, reportable)
# ==============================================================================


class CooldownActive(ProgressionError):
    """A retry is blocked until ``retry_at``."""

    def __init__(self, retry_at: datetime, message: str = "Cooldown period active"):
        self.retry_at = retry_at
        super().__init__(message, "cooldown_active")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "retry_at": self.retry_at.isoformat()}


class AlreadyPassed(ProgressionError):
    """The learner already passed this exam."""

    def __init__(self, message: str = "Already passed this exam"):
        super().__init__(message, "already_passed")


class AttemptsExhausted(ProgressionError):
    """The exam's allowed attempts are used up."""

    def __init__(self, attempts: int, message: str = "No attempts left for this exam"):
        self.attempts = attempts
        super().__init__(message, "attempts_exhausted")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "attempts": self.attempts}


class FeatureDisabled(ProgressionError):
    """The feature is switched off in the current flag snapshot."""

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(f"Feature '{feature}' is currently disabled", "feature_disabled")


# ==============================================================================
# Definition errors (fatal)
# ==============================================================================


class InvalidExamDefinition(ProgressionError):
    """The exam has no questions or malformed options."""

    def __init__(self, message: str = "Invalid exam definition"):
        super().__init__(message, "invalid_exam_definition")


# ==============================================================================
# Store errors
# ==============================================================================


class StoreError(ProgressionError):
    """Base progress store error."""


class TransactionConflict(StoreError):
    """Optimistic transaction kept conflicting after bounded retries."""

    def __init__(self, attempts: int, message: str = "Concurrent update, please retry"):
        self.attempts = attempts
        super().__init__(message, "transaction_conflict")


class StoreUnavailable(StoreError):
    """The backing store cannot be reached."""

    def __init__(self, message: str = "Progress store unavailable"):
        super().__init__(message, "store_unavailable")
