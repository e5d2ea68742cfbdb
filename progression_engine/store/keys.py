"""Logical key layout of the progress store.

Keys are store-agnostic strings; every backend persists one JSON document
per key.
"""


def course_progress_key(user_id: str, course_id: str) -> str:
    return f"progress:{user_id}:{course_id}"


def enrollment_key(user_id: str, module_id: str) -> str:
    return f"enrollment:{user_id}:{module_id}"


def module_courses_key(user_id: str, module_id: str) -> str:
    """Index of the courses a learner has progress for inside a module."""
    return f"moduleCourses:{user_id}:{module_id}"


def exam_result_key(exam_id: str, user_id: str) -> str:
    """Canonical attempt-result key: one record per (exam, learner)."""
    return f"examResult:{exam_id}:{user_id}"


def exam_result_index_key(user_id: str) -> str:
    """Ids of every exam a learner has attempted."""
    return f"examResultIndex:{user_id}"


def quiz_result_key(user_id: str, module_id: str) -> str:
    return f"quizResult:{user_id}:{module_id}"


def points_total_key(user_id: str) -> str:
    return f"pointsTotal:{user_id}"


def points_ledger_key(entry_id: str) -> str:
    return f"pointsLedger:{entry_id}"


def points_ledger_index_key(user_id: str) -> str:
    return f"pointsLedgerIndex:{user_id}"


def activity_key(user_id: str) -> str:
    return f"activity:{user_id}"


def points_leaderboard_key() -> str:
    """Single document holding every learner's total, keyed by user id."""
    return "pointsLeaderboard"
