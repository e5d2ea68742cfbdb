"""Progression facade.

Provides:
- ProgressionService: public async operations
- Feature flag snapshots
- HTTP routes under /v1/progression
"""

from .flags import Feature, FeatureFlags
from .results import (
    ExamSubmissionResult,
    OperationResult,
    PointsSummary,
    QuizSubmissionResult,
    VideoProgressUpdate,
)
from .service import ProgressionService


__all__ = [
    "ExamSubmissionResult",
    "Feature",
    "FeatureFlags",
    "OperationResult",
    "PointsSummary",
    "ProgressionService",
    "QuizSubmissionResult",
    "VideoProgressUpdate",
]
