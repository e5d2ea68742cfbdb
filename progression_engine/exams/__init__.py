"""Exams and module quizzes.

Provides:
- Exam and quiz definitions with their attempt results
- Deterministic scoring
- Retry cooldown policy
- Exam catalog (static and Cassandra backends)
"""

from .catalog import CassandraExamCatalog, ExamCatalog, StaticExamCatalog
from .cooldown import Eligibility, IneligibleReason, can_attempt, retry_at_after_failure
from .models import (
    CATALOG_TABLES_CQL,
    ExamAttemptResult,
    ExamDefinition,
    ExamQuestion,
    ModuleQuizDefinition,
    QuizAttemptResult,
    build_exam_id,
)
from .scoring import GradeResult, grade, validate_exam


__all__ = [
    "CATALOG_TABLES_CQL",
    "CassandraExamCatalog",
    "Eligibility",
    "ExamAttemptResult",
    "ExamCatalog",
    "ExamDefinition",
    "ExamQuestion",
    "GradeResult",
    "IneligibleReason",
    "ModuleQuizDefinition",
    "QuizAttemptResult",
    "StaticExamCatalog",
    "build_exam_id",
    "can_attempt",
    "grade",
    "retry_at_after_failure",
    "validate_exam",
]
