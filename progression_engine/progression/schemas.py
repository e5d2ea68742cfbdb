"""Pydantic schemas for the progression API.

Request and response models for:
- Video heartbeats and completion
- Exam submission, practice and eligibility
- Module quizzes
- Progress, points and activity queries
- Exam history and the points leaderboard
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from progression_engine.exams.cooldown import Eligibility
from progression_engine.exams.models import ExamAttemptResult
from progression_engine.points.models import PointsLedgerEntry, PointsTotal
from progression_engine.progress.activity import ActivityItem
from progression_engine.progress.models import (
    CourseProgressRecord,
    CourseStatus,
    ModuleEnrollment,
    ModuleType,
)

from .results import (
    ExamSubmissionResult,
    OperationResult,
    PointsSummary,
    QuizSubmissionResult,
    VideoProgressUpdate,
)


# ==============================================================================
# Video Progress Schemas
# ==============================================================================


class TrackVideoProgressRequest(BaseModel):
    """Heartbeat sent by the playback surface."""

    course_id: str = Field(..., min_length=1, description="Course id")
    module_id: str = Field(..., min_length=1, description="Module id")
    watched_seconds: float = Field(..., ge=0, description="Elapsed media time")
    duration_estimate_seconds: float = Field(
        ..., gt=0, description="Estimated video duration"
    )


class VideoProgressResponse(BaseModel):
    course_id: str
    module_id: str
    watched_percent: float = Field(description="0-99 from heartbeats, 100 once completed")
    eligible_for_completion: bool
    newly_eligible: bool
    completed: bool

    @classmethod
    def from_result(cls, result: VideoProgressUpdate) -> "VideoProgressResponse":
        return cls(
            course_id=result.course_id,
            module_id=result.module_id,
            watched_percent=result.watched_percent,
            eligible_for_completion=result.eligible_for_completion,
            newly_eligible=result.newly_eligible,
            completed=result.completed,
        )


class MarkVideoCompleteRequest(BaseModel):
    course_id: str = Field(..., min_length=1, description="Course id")


class OperationResponse(BaseModel):
    success: bool
    message: str
    watched_percent: float | None = None

    @classmethod
    def from_result(cls, result: OperationResult) -> "OperationResponse":
        return cls(
            success=result.success,
            message=result.message,
            watched_percent=result.watched_percent,
        )


# ==============================================================================
# Progress Schemas
# ==============================================================================


class CourseProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    course_id: str
    module_id: str
    status: CourseStatus
    watched_percent: float
    completed: bool
    completed_at: datetime | None = None
    enrolled_at: datetime | None = None
    last_accessed: datetime | None = None

    @classmethod
    def from_entity(cls, entity: CourseProgressRecord) -> "CourseProgressResponse":
        return cls(
            course_id=entity.course_id,
            module_id=entity.module_id,
            status=entity.status,
            watched_percent=entity.watched_percent,
            completed=entity.completed,
            completed_at=entity.completed_at,
            enrolled_at=entity.enrolled_at,
            last_accessed=entity.last_accessed,
        )


class ModuleProgressResponse(BaseModel):
    """Module enrollment with progress aggregated over its courses."""

    model_config = ConfigDict(from_attributes=True)

    module_id: str
    module_type: ModuleType
    progress_percent: float
    courses_completed: int
    courses_total: int
    completed: bool
    completed_at: datetime | None = None
    enrolled_at: datetime | None = None
    last_accessed: datetime | None = None

    @classmethod
    def from_entity(cls, entity: ModuleEnrollment) -> "ModuleProgressResponse":
        return cls(
            module_id=entity.module_id,
            module_type=ModuleType(entity.module_type),
            progress_percent=entity.progress_percent,
            courses_completed=entity.courses_completed,
            courses_total=entity.courses_total,
            completed=entity.completed,
            completed_at=entity.completed_at,
            enrolled_at=entity.enrolled_at,
            last_accessed=entity.last_accessed,
        )


class EnrollModuleRequest(BaseModel):
    module_type: ModuleType = Field(
        default=ModuleType.MAIN_MODULE, description="Module kind"
    )


# ==============================================================================
# Exam Schemas
# ==============================================================================


class ExamTargetMixin(BaseModel):
    """Exam identified by module + lesson, or by course."""

    module_id: str | None = Field(default=None, description="Module id")
    lesson_id: str | None = Field(default=None, description="Lesson id")
    course_id: str | None = Field(default=None, description="Course id")

    @model_validator(mode="after")
    def check_target(self) -> "ExamTargetMixin":
        if not (self.module_id and self.lesson_id) and not self.course_id:
            msg = "Provide module_id and lesson_id, or course_id"
            raise ValueError(msg)
        return self


class SubmitExamRequest(ExamTargetMixin):
    answers: list[int | None] = Field(..., description="Selected option per question")
    time_spent_seconds: int = Field(default=0, ge=0, description="Time spent")


class PracticeExamRequest(ExamTargetMixin):
    answers: list[int | None] = Field(..., description="Selected option per question")


class ExamSubmissionResponse(BaseModel):
    exam_id: str
    score: int = Field(description="0-100 percentage")
    passed: bool
    correct_count: int
    total_questions: int
    points_awarded: int
    incorrect_indices: list[int]
    attempts: int
    can_retry_at: datetime | None = None
    practice: bool = False

    @classmethod
    def from_result(cls, result: ExamSubmissionResult) -> "ExamSubmissionResponse":
        return cls(
            exam_id=result.exam_id,
            score=result.score,
            passed=result.passed,
            correct_count=result.correct_count,
            total_questions=result.total_questions,
            points_awarded=result.points_awarded,
            incorrect_indices=result.incorrect_indices,
            attempts=result.attempts,
            can_retry_at=result.can_retry_at,
            practice=result.practice,
        )


class EligibilityResponse(BaseModel):
    allowed: bool
    reason: str | None = None
    retry_at: datetime | None = None

    @classmethod
    def from_result(cls, result: Eligibility) -> "EligibilityResponse":
        return cls(
            allowed=result.allowed,
            reason=result.reason.value if result.reason else None,
            retry_at=result.retry_at,
        )


class ExamResultResponse(BaseModel):
    exam_id: str
    module_id: str
    lesson_id: str
    course_id: str
    attempts: int
    last_score: int
    passed: bool
    passed_at: datetime | None = None
    last_attempt_at: datetime | None = None
    can_retry_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: ExamAttemptResult) -> "ExamResultResponse":
        return cls(
            exam_id=entity.exam_id,
            module_id=entity.module_id,
            lesson_id=entity.lesson_id,
            course_id=entity.course_id,
            attempts=entity.attempts,
            last_score=entity.last_score,
            passed=entity.passed,
            passed_at=entity.passed_at,
            last_attempt_at=entity.last_attempt_at,
            can_retry_at=entity.can_retry_at,
        )


class ExamHistoryResponse(BaseModel):
    items: list[ExamResultResponse]


# ==============================================================================
# Quiz Schemas
# ==============================================================================


class SubmitQuizRequest(BaseModel):
    module_id: str = Field(..., min_length=1, description="Module id")
    score: int = Field(..., ge=0, le=100, description="Quiz score (0-100)")


class QuizSubmissionResponse(BaseModel):
    success: bool
    passed: bool
    message: str
    points_awarded: int
    submodules_unlocked: bool

    @classmethod
    def from_result(cls, result: QuizSubmissionResult) -> "QuizSubmissionResponse":
        return cls(
            success=result.success,
            passed=result.passed,
            message=result.message,
            points_awarded=result.points_awarded,
            submodules_unlocked=result.submodules_unlocked,
        )


# ==============================================================================
# Points and Activity Schemas
# ==============================================================================


class PointsEntryResponse(BaseModel):
    entry_id: str
    points: int
    reason: str
    description: str
    created_at: datetime

    @classmethod
    def from_entity(cls, entity: PointsLedgerEntry) -> "PointsEntryResponse":
        return cls(
            entry_id=entity.entry_id,
            points=entity.points,
            reason=entity.reason,
            description=entity.description,
            created_at=entity.created_at,
        )


class PointsSummaryResponse(BaseModel):
    total_points: int
    current_rank: str
    points_to_next_rank: int = 0
    verified_crew: bool = False
    history: list[PointsEntryResponse]

    @classmethod
    def from_result(cls, result: PointsSummary) -> "PointsSummaryResponse":
        return cls(
            total_points=result.total_points,
            current_rank=result.current_rank,
            points_to_next_rank=result.points_to_next_rank,
            verified_crew=result.verified_crew,
            history=[PointsEntryResponse.from_entity(e) for e in result.history],
        )


class PointsTotalResponse(BaseModel):
    user_id: str
    total_points: int
    current_rank: str
    verified_crew: bool

    @classmethod
    def from_entity(cls, entity: PointsTotal) -> "PointsTotalResponse":
        return cls(
            user_id=entity.user_id,
            total_points=entity.total_points,
            current_rank=entity.current_rank,
            verified_crew=entity.verified_crew,
        )


class LeaderboardResponse(BaseModel):
    items: list[PointsTotalResponse]


class ActivityItemResponse(BaseModel):
    item_id: str
    title: str
    module_id: str
    kind: str
    at: datetime

    @classmethod
    def from_entity(cls, entity: ActivityItem) -> "ActivityItemResponse":
        return cls(
            item_id=entity.item_id,
            title=entity.title,
            module_id=entity.module_id,
            kind=entity.kind,
            at=entity.at,
        )


class ActivityResponse(BaseModel):
    items: list[ActivityItemResponse]
