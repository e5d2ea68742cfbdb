"""Tests for progress notifications and the activity feed."""

from datetime import UTC, datetime, timedelta

import orjson
import pytest

from progression_engine.progress.activity import ActivityItem, record_activity_in
from progression_engine.progress.notifier import ProgressEvent, ProgressNotifier
from progression_engine.store.keys import activity_key


T0 = datetime(2026, 1, 5, 12, 0, tzinfo=UTC)


class TestProgressNotifier:
    @pytest.mark.asyncio
    async def test_publishes_on_learner_channel(self, mock_redis):
        notifier = ProgressNotifier(mock_redis)

        await notifier.publish(
            "u1", ProgressEvent.COURSE_COMPLETED, {"course_id": "c1"}, at=T0
        )

        channel, payload = mock_redis.publish.await_args.args
        assert channel == "progress:user:u1"
        assert orjson.loads(payload) == {
            "type": "course_completed",
            "user_id": "u1",
            "data": {"course_id": "c1"},
            "at": "2026-01-05T12:00:00+00:00",
        }

    @pytest.mark.asyncio
    async def test_without_redis_is_noop(self):
        await ProgressNotifier().publish("u1", ProgressEvent.EXAM_PASSED, {})

    @pytest.mark.asyncio
    async def test_publish_failure_is_swallowed(self, mock_redis):
        mock_redis.publish.side_effect = ConnectionError("down")
        notifier = ProgressNotifier(mock_redis)

        await notifier.publish("u1", ProgressEvent.QUIZ_PASSED, {"module_id": "m"})

        mock_redis.publish.assert_awaited_once()


class TestActivityFeed:
    @pytest.mark.asyncio
    async def test_newest_first_and_bounded(self, store):
        for i in range(4):

            async def write(tx, i=i):
                item = ActivityItem(
                    item_id=f"c{i}",
                    title=f"Lesson {i}",
                    module_id="mod-1",
                    kind="lesson",
                    at=T0 + timedelta(minutes=i),
                )
                return await record_activity_in(tx, "u1", item, max_items=3)

            await store.transact([activity_key("u1")], write)

        feed = await store.get(activity_key("u1"))
        assert [item["item_id"] for item in feed["items"]] == ["c3", "c2", "c1"]
