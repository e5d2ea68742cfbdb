"""Tests for exam history, the leaderboard and the verified crew freeze."""

import orjson
import pytest

from progression_engine.exams.models import ExamDefinition
from progression_engine.exceptions import FeatureDisabled
from progression_engine.progression.flags import FeatureFlags
from progression_engine.store.keys import points_ledger_index_key


CORRECT = [0, 1, 2]
WRONG = [0, 0, 0]


def published(mock_redis) -> list[dict]:
    return [orjson.loads(c.args[1]) for c in mock_redis.publish.await_args_list]


async def complete_prerequisite(service, user_id="u1"):
    await service.track_video_progress(user_id, "course-1", "mod-1", 90, 100)
    await service.mark_video_complete(user_id, "course-1")


class TestExamHistory:
    @pytest.mark.asyncio
    async def test_lists_attempted_exams(self, service, clock):
        await service.submit_exam("u1", WRONG, course_id="course-1")
        clock.advance(minutes=10)
        await service.submit_exam("u1", CORRECT, course_id="course-1")

        history = await service.get_exam_history("u1")

        assert len(history) == 1
        assert history[0].exam_id == "mod-1_lesson-1"
        assert history[0].attempts == 2
        assert history[0].passed is True
        assert history[0].last_attempt_at == clock.now

    @pytest.mark.asyncio
    async def test_most_recent_first(self, service, catalog, exam, clock):
        catalog.add_exam(
            ExamDefinition(
                module_id="mod-1",
                lesson_id="lesson-2",
                course_id="course-2",
                title="Fire drills",
                questions=exam.questions,
            )
        )

        await service.submit_exam("u1", CORRECT, course_id="course-1")
        clock.advance(hours=1)
        await service.submit_exam("u1", WRONG, course_id="course-2")

        history = await service.get_exam_history("u1")

        assert [r.exam_id for r in history] == ["mod-1_lesson-2", "mod-1_lesson-1"]

    @pytest.mark.asyncio
    async def test_other_learners_are_excluded(self, service):
        await service.submit_exam("u2", CORRECT, course_id="course-1")

        assert await service.get_exam_history("u1") == []

    @pytest.mark.asyncio
    async def test_exams_disabled(self, service):
        with pytest.raises(FeatureDisabled):
            await service.get_exam_history("u1", flags=FeatureFlags(exams_enabled=False))


class TestLeaderboard:
    @pytest.mark.asyncio
    async def test_orders_learners_by_points(self, service):
        await service.submit_exam("u1", CORRECT, course_id="course-1")
        await complete_prerequisite(service, "u2")
        await service.submit_quiz("u2", "mod-1", 90)

        board = await service.get_leaderboard()

        assert [(t.user_id, t.total_points) for t in board] == [("u2", 100), ("u1", 50)]

    @pytest.mark.asyncio
    async def test_empty(self, service):
        assert await service.get_leaderboard() == []

    @pytest.mark.asyncio
    async def test_points_disabled(self, service):
        with pytest.raises(FeatureDisabled):
            await service.get_leaderboard(flags=FeatureFlags(points_enabled=False))


class TestVerifiedCrew:
    @pytest.mark.asyncio
    async def test_frozen_learner_passes_without_points(self, service, store):
        await service.declare_verified_crew("u1")

        result = await service.submit_exam("u1", CORRECT, course_id="course-1")

        assert result.passed is True
        assert result.points_awarded == 0
        assert await store.get(points_ledger_index_key("u1")) is None
        summary = await service.get_points_summary("u1")
        assert summary.total_points == 0
        assert summary.verified_crew is True
        assert (await service.get_course_progress("u1", "course-1")).completed is True

    @pytest.mark.asyncio
    async def test_freeze_keeps_earned_total(self, service):
        await service.submit_exam("u1", CORRECT, course_id="course-1")
        frozen = await service.declare_verified_crew("u1")
        await complete_prerequisite(service)

        quiz = await service.submit_quiz("u1", "mod-1", 100)

        assert frozen.total_points == 50
        assert quiz.passed is True
        assert quiz.submodules_unlocked is True
        assert quiz.points_awarded == 0
        assert (await service.get_points_summary("u1")).total_points == 50

    @pytest.mark.asyncio
    async def test_declaring_twice_is_harmless(self, service):
        await service.declare_verified_crew("u1")
        total = await service.declare_verified_crew("u1")

        assert total.verified_crew is True
        board = await service.get_leaderboard()
        assert [(t.user_id, t.verified_crew) for t in board] == [("u1", True)]


class TestPointsNotifications:
    @pytest.mark.asyncio
    async def test_exam_award_is_published(self, service, mock_redis):
        await service.submit_exam("u1", CORRECT, course_id="course-1")

        awarded = [m for m in published(mock_redis) if m["type"] == "points_awarded"]

        assert len(awarded) == 1
        assert awarded[0]["data"] == {
            "points": 50,
            "reason": "exam_passed",
            "exam_id": "mod-1_lesson-1",
        }

    @pytest.mark.asyncio
    async def test_quiz_award_is_published(self, service, mock_redis):
        await complete_prerequisite(service)
        await service.submit_quiz("u1", "mod-1", 80)

        awarded = [m for m in published(mock_redis) if m["type"] == "points_awarded"]

        assert [m["data"] for m in awarded] == [
            {"points": 100, "reason": "quiz_passed", "module_id": "mod-1"}
        ]

    @pytest.mark.asyncio
    async def test_no_award_no_notification(self, service, mock_redis):
        await service.declare_verified_crew("u1")
        await service.submit_exam("u1", CORRECT, course_id="course-1")

        assert "points_awarded" not in [m["type"] for m in published(mock_redis)]
