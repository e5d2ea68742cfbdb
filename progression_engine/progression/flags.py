"""Feature flag snapshot handed to each facade call."""

from dataclasses import dataclass
from enum import Enum

from progression_engine.config.settings import Settings
from progression_engine.exceptions import FeatureDisabled


class Feature(str, Enum):
    VIDEOS = "videos"
    EXAMS = "exams"
    QUIZZES = "quizzes"
    POINTS = "points"


@dataclass(frozen=True)
class FeatureFlags:
    """Immutable view of which features are on for one call."""

    videos_enabled: bool = True
    exams_enabled: bool = True
    quizzes_enabled: bool = True
    points_enabled: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "FeatureFlags":
        return cls(
            videos_enabled=settings.feature_videos_enabled,
            exams_enabled=settings.feature_exams_enabled,
            quizzes_enabled=settings.feature_quizzes_enabled,
            points_enabled=settings.feature_points_enabled,
        )

    def is_enabled(self, feature: Feature) -> bool:
        return getattr(self, f"{feature.value}_enabled")

    def require(self, feature: Feature) -> None:
        """Raise FeatureDisabled when ``feature`` is off."""
        if not self.is_enabled(feature):
            raise FeatureDisabled(feature.value)
