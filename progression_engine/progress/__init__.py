"""Learner progress tracking.

Provides:
- Course progress and module enrollment documents
- Completion propagation from courses to modules
- Recent activity feed
- Progress change notifications
"""

from .activity import ActivityItem, record_activity_in
from .models import CourseProgressRecord, CourseStatus, ModuleEnrollment, ModuleType
from .notifier import ProgressEvent, ProgressNotifier
from .propagation import recompute_module, recompute_module_in


__all__ = [
    "ActivityItem",
    "CourseProgressRecord",
    "CourseStatus",
    "ModuleEnrollment",
    "ModuleType",
    "ProgressEvent",
    "ProgressNotifier",
    "recompute_module",
    "recompute_module_in",
    "record_activity_in",
]
