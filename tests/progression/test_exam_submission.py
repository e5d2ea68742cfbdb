"""Tests for graded exams, cooldowns and first-pass awards."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import orjson
import pytest

from progression_engine.exams.cooldown import IneligibleReason
from progression_engine.exams.models import ExamDefinition, ExamQuestion
from progression_engine.exceptions import (
    AlreadyPassed,
    AttemptsExhausted,
    CooldownActive,
    ExamNotFound,
    FeatureDisabled,
)
from progression_engine.progression.flags import FeatureFlags
from progression_engine.store.keys import (
    course_progress_key,
    exam_result_key,
    points_ledger_index_key,
    points_total_key,
)
from progression_engine.store.memory import _MemoryTransaction


CORRECT = [0, 1, 2]
WRONG = [0, 0, 0]
EXAM_ID = "mod-1_lesson-1"


async def submit(service, answers, **kwargs):
    target = kwargs.pop("target", {"module_id": "mod-1", "lesson_id": "lesson-1"})
    return await service.submit_exam("u1", answers, **target, **kwargs)


class TestSubmitExam:
    @pytest.mark.asyncio
    async def test_first_attempt_pass_earns_bonus(self, service):
        result = await submit(service, CORRECT)

        assert result.exam_id == EXAM_ID
        assert result.score == 100
        assert result.passed is True
        assert result.points_awarded == 50
        assert result.attempts == 1
        assert result.can_retry_at is None

        summary = await service.get_points_summary("u1")
        assert summary.total_points == 50
        assert [entry.points for entry in summary.history] == [50]
        assert summary.history[0].metadata["first_attempt_bonus"] == 10

    @pytest.mark.asyncio
    async def test_failure_sets_cooldown(self, service, clock):
        result = await submit(service, WRONG)

        assert result.passed is False
        assert result.score == 33
        assert result.incorrect_indices == [1, 2]
        assert result.points_awarded == 0
        assert result.can_retry_at == clock.now + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_retry_within_cooldown_is_rejected(self, service, clock):
        failed = await submit(service, WRONG)
        clock.advance(minutes=4)

        with pytest.raises(CooldownActive) as exc_info:
            await submit(service, CORRECT)

        assert exc_info.value.retry_at == failed.can_retry_at
        stored = await service.get_exam_result("u1", EXAM_ID)
        assert stored.attempts == 1

    @pytest.mark.asyncio
    async def test_pass_after_cooldown_earns_base_points(self, service, clock):
        await submit(service, WRONG)
        clock.advance(minutes=5)

        result = await submit(service, CORRECT)

        assert result.passed is True
        assert result.points_awarded == 40
        assert result.attempts == 2
        assert (await service.get_points_summary("u1")).total_points == 40

    @pytest.mark.asyncio
    async def test_passed_exam_cannot_be_resubmitted(self, service, store):
        await submit(service, CORRECT)

        with pytest.raises(AlreadyPassed):
            await submit(service, CORRECT)

        assert (await store.get(points_total_key("u1")))["total_points"] == 50

    @pytest.mark.asyncio
    async def test_attempt_limit(self, service, catalog):
        catalog.add_exam(
            ExamDefinition(
                module_id="mod-1",
                lesson_id="lesson-2",
                course_id="course-2",
                questions=[ExamQuestion("q0", "Only question", ["A", "B"], 1)],
                cooldown_minutes=0,
                allowed_attempts=1,
            )
        )
        target = {"module_id": "mod-1", "lesson_id": "lesson-2"}
        await submit(service, [0], target=target)

        with pytest.raises(AttemptsExhausted):
            await submit(service, [1], target=target)

    @pytest.mark.asyncio
    async def test_records_answers_by_position(self, service):
        await submit(service, [None, 1], time_spent_seconds=42)

        stored = await service.get_exam_result("u1", EXAM_ID)
        assert stored.answers == [None, 1]
        assert stored.time_spent_seconds == 42
        assert stored.last_score == 33

    @pytest.mark.asyncio
    async def test_points_disabled_still_passes(self, service, store):
        result = await submit(service, CORRECT, flags=FeatureFlags(points_enabled=False))

        assert result.passed is True
        assert result.points_awarded == 0
        assert await store.get(points_total_key("u1")) is None
        assert await store.get(points_ledger_index_key("u1")) is None
        assert (await service.get_course_progress("u1", "course-1")).completed is True

    @pytest.mark.asyncio
    async def test_exams_disabled(self, service):
        with pytest.raises(FeatureDisabled):
            await submit(service, CORRECT, flags=FeatureFlags(exams_enabled=False))

    @pytest.mark.asyncio
    async def test_unknown_exam(self, service):
        with pytest.raises(ExamNotFound):
            await submit(service, CORRECT, target={"course_id": "missing"})


class TestPassPropagation:
    @pytest.mark.asyncio
    async def test_pass_completes_course_and_module(self, service, clock, mock_redis):
        await submit(service, CORRECT)

        course = await service.get_course_progress("u1", "course-1")
        assert course.completed is True
        assert course.watched_percent == 100
        assert course.completed_at == clock.now

        module = await service.get_module_progress("u1", "mod-1")
        assert module.completed is True
        assert module.progress_percent == 100

        events = [orjson.loads(c.args[1])["type"] for c in mock_redis.publish.await_args_list]
        assert events == ["exam_passed", "points_awarded", "module_completed"]

    @pytest.mark.asyncio
    async def test_pass_with_unfinished_sibling_course(self, service):
        await service.track_video_progress("u1", "course-2", "mod-1", 40, 100)

        await submit(service, CORRECT)

        module = await service.get_module_progress("u1", "mod-1")
        assert module.courses_total == 2
        assert module.courses_completed == 1
        assert module.progress_percent == 50
        assert module.completed is False

    @pytest.mark.asyncio
    async def test_pass_keeps_existing_completion(self, service, clock):
        await service.track_video_progress("u1", "course-1", "mod-1", 90, 100)
        await service.mark_video_complete("u1", "course-1")
        completed_at = clock.now
        clock.advance(hours=2)

        await submit(service, CORRECT)

        course = await service.get_course_progress("u1", "course-1")
        assert course.completed_at == completed_at

    @pytest.mark.asyncio
    async def test_pass_is_recorded_in_activity(self, service):
        await submit(service, CORRECT)

        activity = await service.get_recent_activity("u1")

        assert [(item.item_id, item.kind) for item in activity] == [(EXAM_ID, "exam")]
        assert activity[0].title == "Safety basics"

    @pytest.mark.asyncio
    async def test_failure_leaves_course_untouched(self, service):
        await submit(service, WRONG)

        assert await service.get_course_progress("u1", "course-1") is None
        assert await service.get_recent_activity("u1") == []


class TestExamLookup:
    @pytest.mark.asyncio
    async def test_course_lookup_hits_same_record(self, service):
        await submit(service, WRONG, target={"course_id": "course-1"})

        stored = await service.get_exam_result("u1", EXAM_ID)

        assert stored.attempts == 1
        assert stored.course_id == "course-1"

    @pytest.mark.asyncio
    async def test_eligibility_reports_cooldown(self, service, clock):
        await submit(service, WRONG)

        eligibility = await service.check_exam_eligibility(
            "u1", module_id="mod-1", lesson_id="lesson-1"
        )

        assert eligibility.allowed is False
        assert eligibility.reason == IneligibleReason.COOLDOWN_ACTIVE
        assert eligibility.retry_at == clock.now + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_eligibility_for_new_learner(self, service):
        eligibility = await service.check_exam_eligibility("u2", course_id="course-1")

        assert eligibility.allowed is True


class TestPracticeExam:
    @pytest.mark.asyncio
    async def test_practice_is_graded_but_not_recorded(self, service, store):
        await submit(service, CORRECT)

        result = await service.practice_exam(
            "u1", WRONG, module_id="mod-1", lesson_id="lesson-1"
        )

        assert result.practice is True
        assert result.score == 33
        assert result.points_awarded == 0
        stored = await store.get(exam_result_key(EXAM_ID, "u1"))
        assert stored["attempts"] == 1
        assert stored["last_score"] == 100

    @pytest.mark.asyncio
    async def test_practice_ignores_cooldown(self, service):
        await submit(service, WRONG)

        result = await service.practice_exam("u1", CORRECT, course_id="course-1")

        assert result.passed is True


async def yield_then(read, *args):
    await asyncio.sleep(0)
    return await read(*args)


class TestConcurrentSubmissions:
    @pytest.mark.asyncio
    async def test_duplicate_pass_awards_once(self, service, store, monkeypatch):
        store_get = store.get
        tx_read = _MemoryTransaction._read
        monkeypatch.setattr(store, "get", lambda key: yield_then(store_get, key))
        monkeypatch.setattr(
            _MemoryTransaction, "_read", lambda tx, key: yield_then(tx_read, tx, key)
        )

        outcomes = await asyncio.gather(
            submit(service, CORRECT), submit(service, CORRECT), return_exceptions=True
        )

        passed = [o for o in outcomes if not isinstance(o, Exception)]
        rejected = [o for o in outcomes if isinstance(o, AlreadyPassed)]
        assert len(passed) == 1
        assert len(rejected) == 1
        assert passed[0].points_awarded == 50
        assert (await store.get(points_total_key("u1")))["total_points"] == 50
        assert len((await store.get(points_ledger_index_key("u1")))["entry_ids"]) == 1
        assert (await store.get(exam_result_key(EXAM_ID, "u1")))["attempts"] == 1

    @pytest.mark.asyncio
    async def test_failed_write_leaves_no_partial_state(self, service, store):
        with patch(
            "progression_engine.progression.service.record_activity_in",
            AsyncMock(side_effect=RuntimeError("activity feed unavailable")),
        ):
            with pytest.raises(RuntimeError):
                await submit(service, CORRECT)

        assert await store.get(exam_result_key(EXAM_ID, "u1")) is None
        assert await store.get(points_total_key("u1")) is None
        assert await store.get(points_ledger_index_key("u1")) is None
        assert await store.get(course_progress_key("u1", "course-1")) is None
        assert await service.get_module_progress("u1", "mod-1") is None
