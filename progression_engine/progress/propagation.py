"""Completion propagation from courses up to their module.

The module enrollment is a pure function of the learner's course records in
that module, except that ``completed`` never goes back to false and
``completed_at`` keeps its first value. Recomputes run inside a store
transaction so concurrent recomputes cannot persist different completion
timestamps.
"""

from datetime import datetime

import structlog

from progression_engine.store import ProgressStore, Transaction
from progression_engine.store.keys import (
    course_progress_key,
    enrollment_key,
    module_courses_key,
)

from .models import (
    CourseProgressRecord,
    ModuleEnrollment,
    ModuleType,
    course_ids_from_index,
)


logger = structlog.get_logger(__name__)


async def recompute_module_in(
    tx: Transaction,
    user_id: str,
    module_id: str,
    now: datetime,
) -> ModuleEnrollment | None:
    """Recompute a module enrollment within an open transaction.

    Returns:
        The written enrollment, or the stored one (possibly None) when the
        learner has no course progress in the module
    """
    stored = await tx.get(enrollment_key(user_id, module_id))
    enrollment = ModuleEnrollment.from_record(stored) if stored else None

    course_ids = course_ids_from_index(
        await tx.get(module_courses_key(user_id, module_id))
    )
    courses: list[CourseProgressRecord] = []
    for course_id in course_ids:
        record = await tx.get(course_progress_key(user_id, course_id))
        if record:
            courses.append(CourseProgressRecord.from_record(record))

    total = len(courses)
    if total == 0:
        return enrollment

    completed = sum(1 for course in courses if course.completed)
    percent = 100 * completed / total

    if enrollment is None:
        # Auto-enroll on first derived progress
        enrollment = ModuleEnrollment(
            user_id=user_id,
            module_id=module_id,
            module_type=ModuleType.MAIN_MODULE.value,
            enrolled_at=now,
        )
        logger.info("module_auto_enrolled", user_id=user_id, module_id=module_id)

    enrollment.progress_percent = percent
    enrollment.courses_completed = completed
    enrollment.courses_total = total
    enrollment.last_accessed = now

    if percent == 100 and not enrollment.completed:
        enrollment.completed = True
        enrollment.completed_at = enrollment.completed_at or now
        logger.info("module_completed", user_id=user_id, module_id=module_id)

    tx.set(enrollment_key(user_id, module_id), enrollment.to_record())
    return enrollment


async def recompute_module(
    store: ProgressStore,
    user_id: str,
    module_id: str,
    now: datetime,
) -> ModuleEnrollment | None:
    """Recompute a module enrollment in its own transaction."""

    async def write(tx: Transaction) -> ModuleEnrollment | None:
        return await recompute_module_in(tx, user_id, module_id, now)

    return await store.transact(
        [enrollment_key(user_id, module_id), module_courses_key(user_id, module_id)],
        write,
    )
