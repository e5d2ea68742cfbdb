"""Progress change notifications over Redis Pub/Sub.

Fire-and-forget: a failed publish is logged and never fails the operation
that produced the change.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

import orjson
import structlog

from progression_engine.core.redis import progress_channel
from progression_engine.utils.timestamps import to_iso, utc_now


if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger(__name__)


class ProgressEvent(str, Enum):
    """Change notification types."""

    COURSE_COMPLETION_ELIGIBLE = "course_completion_eligible"
    COURSE_COMPLETED = "course_completed"
    MODULE_COMPLETED = "module_completed"
    EXAM_PASSED = "exam_passed"
    QUIZ_PASSED = "quiz_passed"
    POINTS_AWARDED = "points_awarded"


class ProgressNotifier:
    """Publishes per-learner progress events."""

    def __init__(self, redis: "Redis | None" = None):
        self.redis = redis

    async def publish(
        self,
        user_id: str,
        event: ProgressEvent,
        data: dict[str, Any],
        at: datetime | None = None,
    ) -> None:
        """Publish an event on the learner's progress channel."""
        if not self.redis:
            return

        message = {
            "type": event.value,
            "user_id": user_id,
            "data": data,
            "at": to_iso(at or utc_now()),
        }

        try:
            await self.redis.publish(progress_channel(user_id), orjson.dumps(message))
        except Exception as e:
            logger.warning(
                "progress_notification_failed",
                user_id=user_id,
                event=event.value,
                error=str(e),
            )
