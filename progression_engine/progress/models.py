"""Progress documents for learners.

Store documents for:
- Course progress: watched percentage and completion per (user, course)
- Module enrollment: progress aggregated over the module's courses
- Module course index: the courses a learner has progress for in a module

``completed`` flags only move false -> true and their ``completed_at`` is
written once.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from progression_engine.utils.timestamps import ensure_utc_aware, from_iso, to_iso, utc_now


class ModuleType(str, Enum):
    """Kind of module a learner is enrolled in."""

    MAIN_MODULE = "main_module"
    SUBMODULE = "submodule"


class CourseStatus(str, Enum):
    """Derived state of a course for a learner."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class CourseProgressRecord:
    """Course (video) progress entity for a specific user.

    Attributes:
        user_id: Learner id
        course_id: Course id
        module_id: Module the course belongs to
        watched_percent: Percentage watched (0-100)
        completed: Completion flag (monotonic)
        completed_at: Completion timestamp (set once)
        enrolled_at: First heartbeat timestamp
        last_accessed: Last update timestamp
    """

    def __init__(
        self,
        user_id: str,
        course_id: str,
        module_id: str,
        watched_percent: float = 0,
        completed: bool = False,
        completed_at: datetime | None = None,
        enrolled_at: datetime | None = None,
        last_accessed: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.module_id = module_id
        self.watched_percent = watched_percent
        self.completed = completed
        self.completed_at = ensure_utc_aware(completed_at)
        self.enrolled_at = ensure_utc_aware(enrolled_at) or utc_now()
        self.last_accessed = ensure_utc_aware(last_accessed) or self.enrolled_at

    @property
    def status(self) -> CourseStatus:
        if self.completed:
            return CourseStatus.COMPLETED
        if self.watched_percent > 0:
            return CourseStatus.IN_PROGRESS
        return CourseStatus.NOT_STARTED

    def mark_completed(self, now: datetime) -> bool:
        """Flip to completed; returns False when it already was."""
        if self.completed:
            return False
        self.completed = True
        self.completed_at = self.completed_at or now
        self.watched_percent = 100
        self.last_accessed = now
        return True

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "CourseProgressRecord":
        return cls(
            user_id=record["user_id"],
            course_id=record["course_id"],
            module_id=record.get("module_id", ""),
            watched_percent=record.get("watched_percent", 0),
            completed=bool(record.get("completed", False)),
            completed_at=from_iso(record.get("completed_at")),
            enrolled_at=from_iso(record.get("enrolled_at")),
            last_accessed=from_iso(record.get("last_accessed")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "module_id": self.module_id,
            "watched_percent": self.watched_percent,
            "completed": self.completed,
            "completed_at": to_iso(self.completed_at),
            "enrolled_at": to_iso(self.enrolled_at),
            "last_accessed": to_iso(self.last_accessed),
        }

    def __repr__(self) -> str:
        return (
            f"<CourseProgressRecord user={self.user_id} course={self.course_id} "
            f"{self.watched_percent}% completed={self.completed}>"
        )


class ModuleEnrollment:
    """Module enrollment entity with progress derived from its courses.

    Attributes:
        user_id: Learner id
        module_id: Module id
        module_type: main_module or submodule
        enrolled_at: Enrollment timestamp
        progress_percent: 100 * courses_completed / courses_total
        courses_completed: Completed courses in the module
        courses_total: Courses with progress in the module
        completed: Completion flag (monotonic)
        completed_at: Completion timestamp (set once)
        last_accessed: Last recompute timestamp
    """

    def __init__(
        self,
        user_id: str,
        module_id: str,
        module_type: str = ModuleType.MAIN_MODULE.value,
        enrolled_at: datetime | None = None,
        progress_percent: float = 0,
        courses_completed: int = 0,
        courses_total: int = 0,
        completed: bool = False,
        completed_at: datetime | None = None,
        last_accessed: datetime | None = None,
    ):
        self.user_id = user_id
        self.module_id = module_id
        self.module_type = module_type
        self.enrolled_at = ensure_utc_aware(enrolled_at) or utc_now()
        self.progress_percent = progress_percent
        self.courses_completed = courses_completed
        self.courses_total = courses_total
        self.completed = completed
        self.completed_at = ensure_utc_aware(completed_at)
        self.last_accessed = ensure_utc_aware(last_accessed) or self.enrolled_at

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "ModuleEnrollment":
        return cls(
            user_id=record["user_id"],
            module_id=record["module_id"],
            module_type=record.get("module_type", ModuleType.MAIN_MODULE.value),
            enrolled_at=from_iso(record.get("enrolled_at")),
            progress_percent=record.get("progress_percent", 0),
            courses_completed=record.get("courses_completed", 0),
            courses_total=record.get("courses_total", 0),
            completed=bool(record.get("completed", False)),
            completed_at=from_iso(record.get("completed_at")),
            last_accessed=from_iso(record.get("last_accessed")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "module_id": self.module_id,
            "module_type": self.module_type,
            "enrolled_at": to_iso(self.enrolled_at),
            "progress_percent": self.progress_percent,
            "courses_completed": self.courses_completed,
            "courses_total": self.courses_total,
            "completed": self.completed,
            "completed_at": to_iso(self.completed_at),
            "last_accessed": to_iso(self.last_accessed),
        }

    def __repr__(self) -> str:
        return (
            f"<ModuleEnrollment user={self.user_id} module={self.module_id} "
            f"{self.courses_completed}/{self.courses_total}>"
        )


def course_ids_from_index(record: dict[str, Any] | None) -> list[str]:
    """Course ids listed in a module course index document."""
    if not record:
        return []
    return list(record.get("course_ids", []))


def add_to_course_index(
    record: dict[str, Any] | None, course_id: str
) -> dict[str, Any] | None:
    """Index document with ``course_id`` appended, or None if already listed."""
    course_ids = course_ids_from_index(record)
    if course_id in course_ids:
        return None
    return {"course_ids": [*course_ids, course_id]}
