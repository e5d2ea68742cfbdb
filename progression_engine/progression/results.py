"""Results returned by the progression facade."""

from dataclasses import dataclass, field
from datetime import datetime

from progression_engine.points.models import PointsLedgerEntry
from progression_engine.progress.models import CourseProgressRecord, ModuleEnrollment


@dataclass
class VideoProgressUpdate:
    """Outcome of a playback heartbeat."""

    course_id: str
    module_id: str
    watched_percent: float
    eligible_for_completion: bool
    newly_eligible: bool
    completed: bool = False


@dataclass
class OperationResult:
    success: bool
    message: str
    watched_percent: float | None = None
    course: CourseProgressRecord | None = None
    module: ModuleEnrollment | None = None


@dataclass
class ExamSubmissionResult:
    """Graded attempt with the points it earned."""

    exam_id: str
    score: int
    passed: bool
    correct_count: int
    total_questions: int
    points_awarded: int = 0
    incorrect_indices: list[int] = field(default_factory=list)
    attempts: int = 0
    can_retry_at: datetime | None = None
    practice: bool = False


@dataclass
class QuizSubmissionResult:
    success: bool
    passed: bool
    message: str
    points_awarded: int = 0
    submodules_unlocked: bool = False


@dataclass
class PointsSummary:
    user_id: str
    total_points: int
    current_rank: str
    points_to_next_rank: int
    history: list[PointsLedgerEntry] = field(default_factory=list)
    verified_crew: bool = False
