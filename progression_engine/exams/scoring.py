"""Exam scoring.

Pure and deterministic: the same definition and answers always produce the
same result. Scores are integer percentages rounded half up, so one correct
answer out of eight scores 13.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from progression_engine.exceptions import InvalidExamDefinition

from .models import ExamDefinition


@dataclass(frozen=True)
class GradeResult:
    """Outcome of grading one set of answers."""

    score: int
    passed: bool
    correct_count: int
    total_questions: int
    incorrect_indices: list[int] = field(default_factory=list)


def percent_score(correct: int, total: int) -> int:
    """Integer percentage, rounding halves up."""
    ratio = Decimal(100 * correct) / Decimal(total)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def validate_exam(exam: ExamDefinition) -> None:
    """Reject definitions that cannot be graded.

    Raises:
        InvalidExamDefinition: No questions, a question without options, or a
            correct index outside the options
    """
    if not exam.questions:
        raise InvalidExamDefinition(f"Exam {exam.exam_id} has no questions")

    for position, question in enumerate(exam.questions):
        if not question.options:
            raise InvalidExamDefinition(
                f"Question {position} of exam {exam.exam_id} has no options"
            )
        if not 0 <= question.correct_index < len(question.options):
            raise InvalidExamDefinition(
                f"Question {position} of exam {exam.exam_id} has an out of range "
                "correct answer"
            )


def grade(exam: ExamDefinition, submitted_answers: list[int | None]) -> GradeResult:
    """Grade answers aligned by position with ``exam.questions``.

    Missing answers count as incorrect; answers beyond the last question are
    ignored.
    """
    validate_exam(exam)

    incorrect: list[int] = []
    for position, question in enumerate(exam.questions):
        answer = (
            submitted_answers[position] if position < len(submitted_answers) else None
        )
        if answer != question.correct_index:
            incorrect.append(position)

    total = len(exam.questions)
    correct = total - len(incorrect)
    score = percent_score(correct, total)

    return GradeResult(
        score=score,
        passed=score >= exam.passing_score,
        correct_count=correct,
        total_questions=total,
        incorrect_indices=incorrect,
    )
