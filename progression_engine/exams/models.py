"""Exam and module-quiz models.

Catalog definitions (read-only, served by the exam catalog) and the
per-learner attempt results persisted in the progress store.

Cassandra table definitions for the catalog backend:
- exams: Exam definitions keyed by exam id (``{module_id}_{lesson_id}``)
- exams_by_course / exams_by_module: Lookup tables
- module_quizzes: End-of-module quiz configuration
"""

from datetime import datetime
from typing import Any

import orjson

from progression_engine.utils.timestamps import ensure_utc_aware, from_iso, to_iso


DEFAULT_PASSING_SCORE = 80
DEFAULT_COOLDOWN_MINUTES = 5
UNLIMITED_ATTEMPTS = -1


def build_exam_id(module_id: str, lesson_id: str) -> str:
    """Exam ids are derived from the lesson they gate."""
    return f"{module_id}_{lesson_id}"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Exam definitions; questions serialized as JSON
EXAMS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.exams (
    exam_id TEXT PRIMARY KEY,
    module_id TEXT,
    lesson_id TEXT,
    course_id TEXT,
    title TEXT,
    questions TEXT,
    passing_score INT,
    cooldown_minutes INT,
    allowed_attempts INT
)
"""

# Lookup: exam by course (video)
EXAMS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.exams_by_course (
    course_id TEXT PRIMARY KEY,
    exam_id TEXT
)
"""

# Lookup: exams by module
EXAMS_BY_MODULE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.exams_by_module (
    module_id TEXT,
    exam_id TEXT,
    PRIMARY KEY (module_id, exam_id)
)
"""

MODULE_QUIZZES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.module_quizzes (
    module_id TEXT PRIMARY KEY,
    prerequisite_course_id TEXT,
    title TEXT
)
"""

CATALOG_TABLES_CQL = [
    EXAMS_TABLE_CQL,
    EXAMS_BY_COURSE_TABLE_CQL,
    EXAMS_BY_MODULE_TABLE_CQL,
    MODULE_QUIZZES_TABLE_CQL,
]


# ==============================================================================
# Catalog Definitions
# ==============================================================================


class ExamQuestion:
    """Single multiple-choice question."""

    def __init__(
        self,
        question_id: str,
        text: str,
        options: list[str],
        correct_index: int,
        explanation: str = "",
    ):
        self.question_id = question_id
        self.text = text
        self.options = list(options)
        self.correct_index = correct_index
        self.explanation = explanation

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExamQuestion":
        return cls(
            question_id=str(data["question_id"]),
            text=data.get("text", ""),
            options=data.get("options") or [],
            correct_index=int(data["correct_index"]),
            explanation=data.get("explanation") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_id": self.question_id,
            "text": self.text,
            "options": self.options,
            "correct_index": self.correct_index,
            "explanation": self.explanation,
        }


class ExamDefinition:
    """Exam gating a lesson.

    Attributes:
        exam_id: ``{module_id}_{lesson_id}``
        module_id: Module the lesson belongs to
        lesson_id: Lesson the exam gates
        course_id: Course (video) completed by passing the exam
        title: Display title
        questions: Ordered questions
        passing_score: Minimum score (0-100) to pass
        cooldown_minutes: Wait after a failed attempt (0 disables)
        allowed_attempts: Max attempts, -1 for unlimited
    """

    def __init__(
        self,
        module_id: str,
        lesson_id: str,
        course_id: str,
        questions: list[ExamQuestion],
        title: str = "",
        passing_score: int = DEFAULT_PASSING_SCORE,
        cooldown_minutes: int = DEFAULT_COOLDOWN_MINUTES,
        allowed_attempts: int = UNLIMITED_ATTEMPTS,
        exam_id: str | None = None,
    ):
        self.module_id = module_id
        self.lesson_id = lesson_id
        self.course_id = course_id
        self.questions = list(questions)
        self.title = title
        self.passing_score = passing_score
        self.cooldown_minutes = cooldown_minutes
        self.allowed_attempts = allowed_attempts
        self.exam_id = exam_id or build_exam_id(module_id, lesson_id)

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @classmethod
    def from_row(cls, row: Any) -> "ExamDefinition":
        """Create ExamDefinition instance from Cassandra row."""
        raw_questions = orjson.loads(row.questions) if row.questions else []
        return cls(
            exam_id=row.exam_id,
            module_id=row.module_id,
            lesson_id=row.lesson_id,
            course_id=row.course_id,
            title=row.title or "",
            questions=[ExamQuestion.from_dict(q) for q in raw_questions],
            passing_score=(
                row.passing_score
                if row.passing_score is not None
                else DEFAULT_PASSING_SCORE
            ),
            cooldown_minutes=(
                row.cooldown_minutes
                if row.cooldown_minutes is not None
                else DEFAULT_COOLDOWN_MINUTES
            ),
            allowed_attempts=(
                row.allowed_attempts
                if row.allowed_attempts is not None
                else UNLIMITED_ATTEMPTS
            ),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExamDefinition":
        return cls(
            exam_id=data.get("exam_id"),
            module_id=data["module_id"],
            lesson_id=data["lesson_id"],
            course_id=data["course_id"],
            title=data.get("title", ""),
            questions=[ExamQuestion.from_dict(q) for q in data.get("questions", [])],
            passing_score=data.get("passing_score", DEFAULT_PASSING_SCORE),
            cooldown_minutes=data.get("cooldown_minutes", DEFAULT_COOLDOWN_MINUTES),
            allowed_attempts=data.get("allowed_attempts", UNLIMITED_ATTEMPTS),
        )

    def questions_json(self) -> str:
        """Questions serialized for the catalog table."""
        return orjson.dumps([q.to_dict() for q in self.questions]).decode()

    def to_dict(self) -> dict[str, Any]:
        return {
            "exam_id": self.exam_id,
            "module_id": self.module_id,
            "lesson_id": self.lesson_id,
            "course_id": self.course_id,
            "title": self.title,
            "questions": [q.to_dict() for q in self.questions],
            "passing_score": self.passing_score,
            "cooldown_minutes": self.cooldown_minutes,
            "allowed_attempts": self.allowed_attempts,
        }

    def __repr__(self) -> str:
        return f"<ExamDefinition {self.exam_id} course={self.course_id}>"


class ModuleQuizDefinition:
    """End-of-module quiz unlocking the module's submodules."""

    def __init__(
        self,
        module_id: str,
        prerequisite_course_id: str,
        title: str = "",
    ):
        self.module_id = module_id
        self.prerequisite_course_id = prerequisite_course_id
        self.title = title

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModuleQuizDefinition":
        return cls(
            module_id=data["module_id"],
            prerequisite_course_id=data["prerequisite_course_id"],
            title=data.get("title", ""),
        )

    @classmethod
    def from_row(cls, row: Any) -> "ModuleQuizDefinition":
        """Create ModuleQuizDefinition instance from Cassandra row."""
        return cls(
            module_id=row.module_id,
            prerequisite_course_id=row.prerequisite_course_id,
            title=row.title or "",
        )

    def __repr__(self) -> str:
        return f"<ModuleQuizDefinition module={self.module_id}>"


# ==============================================================================
# Attempt Results (progress store documents)
# ==============================================================================


class ExamAttemptResult:
    """A learner's standing on one exam.

    ``passed`` only moves false -> true and ``passed_at`` is written once.
    ``can_retry_at`` is set after a failed attempt with a cooldown and
    cleared on pass.
    """

    def __init__(
        self,
        user_id: str,
        exam_id: str,
        module_id: str,
        lesson_id: str,
        course_id: str,
        attempts: int = 0,
        last_score: int = 0,
        passed: bool = False,
        passed_at: datetime | None = None,
        last_attempt_at: datetime | None = None,
        can_retry_at: datetime | None = None,
        answers: list[int | None] | None = None,
        time_spent_seconds: int = 0,
    ):
        self.user_id = user_id
        self.exam_id = exam_id
        self.module_id = module_id
        self.lesson_id = lesson_id
        self.course_id = course_id
        self.attempts = attempts
        self.last_score = last_score
        self.passed = passed
        self.passed_at = ensure_utc_aware(passed_at)
        self.last_attempt_at = ensure_utc_aware(last_attempt_at)
        self.can_retry_at = ensure_utc_aware(can_retry_at)
        self.answers = list(answers or [])
        self.time_spent_seconds = time_spent_seconds

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "ExamAttemptResult":
        return cls(
            user_id=record["user_id"],
            exam_id=record["exam_id"],
            module_id=record.get("module_id", ""),
            lesson_id=record.get("lesson_id", ""),
            course_id=record.get("course_id", ""),
            attempts=record.get("attempts", 0),
            last_score=record.get("last_score", 0),
            passed=bool(record.get("passed", False)),
            passed_at=from_iso(record.get("passed_at")),
            last_attempt_at=from_iso(record.get("last_attempt_at")),
            can_retry_at=from_iso(record.get("can_retry_at")),
            answers=record.get("answers"),
            time_spent_seconds=record.get("time_spent_seconds", 0),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "exam_id": self.exam_id,
            "module_id": self.module_id,
            "lesson_id": self.lesson_id,
            "course_id": self.course_id,
            "attempts": self.attempts,
            "last_score": self.last_score,
            "passed": self.passed,
            "passed_at": to_iso(self.passed_at),
            "last_attempt_at": to_iso(self.last_attempt_at),
            "can_retry_at": to_iso(self.can_retry_at),
            "answers": self.answers,
            "time_spent_seconds": self.time_spent_seconds,
        }

    def __repr__(self) -> str:
        return (
            f"<ExamAttemptResult user={self.user_id} exam={self.exam_id} "
            f"attempts={self.attempts} passed={self.passed}>"
        )


class QuizAttemptResult:
    """A learner's standing on a module quiz."""

    def __init__(
        self,
        user_id: str,
        module_id: str,
        attempts: int = 0,
        last_score: int = 0,
        passed: bool = False,
        passed_at: datetime | None = None,
        last_attempt_at: datetime | None = None,
        submodules_unlocked: bool = False,
        unlocked_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.module_id = module_id
        self.attempts = attempts
        self.last_score = last_score
        self.passed = passed
        self.passed_at = ensure_utc_aware(passed_at)
        self.last_attempt_at = ensure_utc_aware(last_attempt_at)
        self.submodules_unlocked = submodules_unlocked
        self.unlocked_at = ensure_utc_aware(unlocked_at)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "QuizAttemptResult":
        return cls(
            user_id=record["user_id"],
            module_id=record["module_id"],
            attempts=record.get("attempts", 0),
            last_score=record.get("last_score", 0),
            passed=bool(record.get("passed", False)),
            passed_at=from_iso(record.get("passed_at")),
            last_attempt_at=from_iso(record.get("last_attempt_at")),
            submodules_unlocked=bool(record.get("submodules_unlocked", False)),
            unlocked_at=from_iso(record.get("unlocked_at")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "module_id": self.module_id,
            "attempts": self.attempts,
            "last_score": self.last_score,
            "passed": self.passed,
            "passed_at": to_iso(self.passed_at),
            "last_attempt_at": to_iso(self.last_attempt_at),
            "submodules_unlocked": self.submodules_unlocked,
            "unlocked_at": to_iso(self.unlocked_at),
        }
