"""Progression service layer.

Business logic for:
- Video heartbeats and manual completion
- Exam submission with cooldown, one-time award and course completion
- Practice exams (graded, never recorded)
- Module quizzes unlocking submodules
- Progress, points and activity queries
- Leaderboard and the verified crew points freeze

Every multi-document state change runs in a single store transaction, so a
pass, its points and the completion it triggers commit together or not at
all.
"""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from progression_engine.config.settings import Settings, get_settings
from progression_engine.exams.catalog import ExamCatalog
from progression_engine.exams.cooldown import (
    Eligibility,
    IneligibleReason,
    can_attempt,
    retry_at_after_failure,
)
from progression_engine.exams.models import (
    ExamAttemptResult,
    ExamDefinition,
    QuizAttemptResult,
)
from progression_engine.exams.scoring import grade
from progression_engine.exceptions import (
    AlreadyPassed,
    AttemptsExhausted,
    CooldownActive,
    ExamNotFound,
    ProgressNotFound,
    QuizNotFound,
)
from progression_engine.points.ledger import (
    append_award_in,
    award_on_first_pass,
    declare_verified_crew_in,
    leaderboard_from_record,
    points_to_next_rank,
)
from progression_engine.points.models import (
    PointsLedgerEntry,
    PointsReason,
    PointsTotal,
)
from progression_engine.progress.activity import (
    ActivityItem,
    items_from_feed,
    record_activity_in,
)
from progression_engine.progress.models import (
    CourseProgressRecord,
    ModuleEnrollment,
    ModuleType,
    add_to_course_index,
)
from progression_engine.progress.notifier import ProgressEvent, ProgressNotifier
from progression_engine.progress.propagation import recompute_module_in
from progression_engine.store import ProgressStore, Transaction
from progression_engine.store.keys import (
    activity_key,
    course_progress_key,
    enrollment_key,
    exam_result_index_key,
    exam_result_key,
    module_courses_key,
    points_leaderboard_key,
    points_ledger_index_key,
    points_ledger_key,
    points_total_key,
    quiz_result_key,
)
from progression_engine.utils.timestamps import utc_now

from .flags import Feature, FeatureFlags
from .results import (
    ExamSubmissionResult,
    OperationResult,
    PointsSummary,
    QuizSubmissionResult,
    VideoProgressUpdate,
)


logger = structlog.get_logger(__name__)


class ProgressionService:
    """Facade over progress tracking, assessments and points."""

    def __init__(
        self,
        store: ProgressStore,
        catalog: ExamCatalog,
        notifier: ProgressNotifier | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.catalog = catalog
        self.notifier = notifier or ProgressNotifier()
        self.settings = settings or get_settings()
        self.clock = clock

    def _flags(self, flags: FeatureFlags | None) -> FeatureFlags:
        return flags or FeatureFlags.from_settings(self.settings)

    # ==========================================================================
    # Video Progress
    # ==========================================================================

    async def track_video_progress(
        self,
        user_id: str,
        course_id: str,
        module_id: str,
        watched_seconds: float,
        duration_estimate_seconds: float,
        flags: FeatureFlags | None = None,
    ) -> VideoProgressUpdate:
        """Record a playback heartbeat.

        The stored percentage is the max of stored and reported values and
        never reaches 100 from heartbeats alone. The first heartbeat for a
        course registers it in its module and recomputes the module.

        Raises:
            ValueError: Non-positive duration or negative watched time
            FeatureDisabled: Video tracking is off
        """
        self._flags(flags).require(Feature.VIDEOS)

        if duration_estimate_seconds <= 0:
            msg = "duration_estimate_seconds must be positive"
            raise ValueError(msg)
        if watched_seconds < 0:
            msg = "watched_seconds must not be negative"
            raise ValueError(msg)

        reported = min(
            float(self.settings.heartbeat_cap_percent),
            100 * watched_seconds / duration_estimate_seconds,
        )
        threshold = self.settings.completion_threshold_percent
        now = self.clock()

        async def write(tx: Transaction) -> tuple[CourseProgressRecord, float]:
            stored = await tx.get(course_progress_key(user_id, course_id))
            if stored is None:
                record = CourseProgressRecord(
                    user_id=user_id,
                    course_id=course_id,
                    module_id=module_id,
                    watched_percent=reported,
                    enrolled_at=now,
                    last_accessed=now,
                )
                tx.set(course_progress_key(user_id, course_id), record.to_record())
                index = add_to_course_index(
                    await tx.get(module_courses_key(user_id, module_id)), course_id
                )
                if index is not None:
                    tx.set(module_courses_key(user_id, module_id), index)
                await recompute_module_in(tx, user_id, module_id, now)
                return record, 0

            record = CourseProgressRecord.from_record(stored)
            previous = record.watched_percent
            if reported > previous and not record.completed:
                record.watched_percent = reported
            record.last_accessed = now
            tx.set(course_progress_key(user_id, course_id), record.to_record())
            return record, previous

        record, previous = await self.store.transact(
            [
                course_progress_key(user_id, course_id),
                module_courses_key(user_id, module_id),
            ],
            write,
        )

        eligible = record.watched_percent >= threshold
        newly_eligible = eligible and previous < threshold and not record.completed

        logger.debug(
            "video_progress_tracked",
            user_id=user_id,
            course_id=course_id,
            watched_percent=record.watched_percent,
        )

        if newly_eligible:
            logger.info(
                "course_completion_eligible", user_id=user_id, course_id=course_id
            )
            await self.notifier.publish(
                user_id,
                ProgressEvent.COURSE_COMPLETION_ELIGIBLE,
                {"course_id": course_id, "module_id": record.module_id},
                at=now,
            )

        return VideoProgressUpdate(
            course_id=course_id,
            module_id=record.module_id,
            watched_percent=record.watched_percent,
            eligible_for_completion=eligible,
            newly_eligible=newly_eligible,
            completed=record.completed,
        )

    async def mark_video_complete(
        self,
        user_id: str,
        course_id: str,
        flags: FeatureFlags | None = None,
    ) -> OperationResult:
        """Complete a course once enough of the video was watched.

        Raises:
            ProgressNotFound: The learner never started the course
            FeatureDisabled: Video tracking is off
        """
        self._flags(flags).require(Feature.VIDEOS)
        threshold = self.settings.completion_threshold_percent
        now = self.clock()

        async def write(tx: Transaction) -> OperationResult:
            stored = await tx.get(course_progress_key(user_id, course_id))
            if stored is None:
                raise ProgressNotFound

            record = CourseProgressRecord.from_record(stored)
            if record.completed:
                return OperationResult(
                    success=False,
                    message="Course already marked as complete",
                    watched_percent=record.watched_percent,
                    course=record,
                )

            if record.watched_percent < threshold:
                return OperationResult(
                    success=False,
                    message=(
                        f"Watch at least {threshold}% of the video to complete it "
                        f"(currently {record.watched_percent:g}%)"
                    ),
                    watched_percent=record.watched_percent,
                    course=record,
                )

            record.mark_completed(now)
            tx.set(course_progress_key(user_id, course_id), record.to_record())
            enrollment = await recompute_module_in(tx, user_id, record.module_id, now)
            return OperationResult(
                success=True,
                message="Course marked as complete",
                watched_percent=record.watched_percent,
                course=record,
                module=enrollment,
            )

        result = await self.store.transact(
            [course_progress_key(user_id, course_id)], write
        )

        if not result.success:
            logger.info(
                "video_completion_rejected",
                user_id=user_id,
                course_id=course_id,
                watched_percent=result.watched_percent,
            )
            return result

        logger.info("course_completed", user_id=user_id, course_id=course_id)
        await self.notifier.publish(
            user_id, ProgressEvent.COURSE_COMPLETED, {"course_id": course_id}, at=now
        )
        await self._notify_module_completion(user_id, result.module, now)
        return result

    # ==========================================================================
    # Exams
    # ==========================================================================

    async def _resolve_exam(
        self,
        module_id: str | None,
        lesson_id: str | None,
        course_id: str | None,
    ) -> ExamDefinition:
        exam = None
        if module_id and lesson_id:
            exam = await self.catalog.get_exam(module_id, lesson_id)
        elif course_id:
            exam = await self.catalog.get_exam_by_course(course_id)

        if exam is None:
            logger.info(
                "exam_not_found",
                module_id=module_id,
                lesson_id=lesson_id,
                course_id=course_id,
            )
            raise ExamNotFound

        if course_id and course_id != exam.course_id:
            logger.warning(
                "exam_course_mismatch",
                exam_id=exam.exam_id,
                requested_course_id=course_id,
                exam_course_id=exam.course_id,
            )
        return exam

    @staticmethod
    def _raise_if_ineligible(
        eligibility: Eligibility, previous: ExamAttemptResult | None
    ) -> None:
        if eligibility.allowed:
            return
        if eligibility.reason == IneligibleReason.ALREADY_PASSED:
            raise AlreadyPassed
        if eligibility.reason == IneligibleReason.COOLDOWN_ACTIVE:
            raise CooldownActive(eligibility.retry_at)
        raise AttemptsExhausted(previous.attempts if previous else 0)

    async def _load_exam_result(
        self, exam_id: str, user_id: str
    ) -> ExamAttemptResult | None:
        stored = await self.store.get(exam_result_key(exam_id, user_id))
        return ExamAttemptResult.from_record(stored) if stored else None

    async def check_exam_eligibility(
        self,
        user_id: str,
        module_id: str | None = None,
        lesson_id: str | None = None,
        course_id: str | None = None,
        flags: FeatureFlags | None = None,
    ) -> Eligibility:
        """Whether a graded attempt would be accepted now (no side effects)."""
        self._flags(flags).require(Feature.EXAMS)
        exam = await self._resolve_exam(module_id, lesson_id, course_id)
        previous = await self._load_exam_result(exam.exam_id, user_id)
        return can_attempt(previous, self.clock(), exam.allowed_attempts)

    async def submit_exam(
        self,
        user_id: str,
        answers: list[int | None],
        module_id: str | None = None,
        lesson_id: str | None = None,
        course_id: str | None = None,
        time_spent_seconds: int = 0,
        flags: FeatureFlags | None = None,
    ) -> ExamSubmissionResult:
        """Grade and record an exam attempt.

        A first pass awards points, completes the exam's course and
        recomputes its module in the same transaction as the attempt
        result.

        Raises:
            ExamNotFound: No exam resolves for the identifiers
            AlreadyPassed: The exam was passed before (also for a concurrent
                duplicate that committed first)
            CooldownActive: A failed attempt's cooldown has not elapsed
            AttemptsExhausted: No attempts left
            InvalidExamDefinition: The exam cannot be graded
            FeatureDisabled: Exams are off
        """
        snapshot = self._flags(flags)
        snapshot.require(Feature.EXAMS)

        exam = await self._resolve_exam(module_id, lesson_id, course_id)
        now = self.clock()
        result_key = exam_result_key(exam.exam_id, user_id)

        previous = await self._load_exam_result(exam.exam_id, user_id)
        eligibility = can_attempt(previous, now, exam.allowed_attempts)
        if not eligibility.allowed:
            logger.info(
                "exam_attempt_rejected",
                user_id=user_id,
                exam_id=exam.exam_id,
                reason=eligibility.reason.value if eligibility.reason else None,
            )
        self._raise_if_ineligible(eligibility, previous)

        graded = grade(exam, answers)

        async def write(
            tx: Transaction,
        ) -> tuple[ExamAttemptResult, int, ModuleEnrollment | None]:
            stored = await tx.get(result_key)
            existing = ExamAttemptResult.from_record(stored) if stored else None
            self._raise_if_ineligible(
                can_attempt(existing, now, exam.allowed_attempts), existing
            )
            if existing is None:
                index = await tx.get(exam_result_index_key(user_id)) or {}
                exam_ids = index.get("exam_ids", [])
                if exam.exam_id not in exam_ids:
                    tx.set(
                        exam_result_index_key(user_id),
                        {"exam_ids": [*exam_ids, exam.exam_id]},
                    )

            decision = award_on_first_pass(
                existing,
                graded,
                base_points=self.settings.exam_pass_points,
                first_attempt_bonus=self.settings.exam_first_attempt_bonus,
            )

            result = existing or ExamAttemptResult(
                user_id=user_id,
                exam_id=exam.exam_id,
                module_id=exam.module_id,
                lesson_id=exam.lesson_id,
                course_id=exam.course_id,
            )
            result.attempts += 1
            result.last_score = graded.score
            result.answers = list(answers)
            result.last_attempt_at = now
            result.time_spent_seconds = time_spent_seconds

            if not graded.passed:
                result.can_retry_at = retry_at_after_failure(now, exam.cooldown_minutes)
                tx.set(result_key, result.to_record())
                return result, 0, None

            result.passed = True
            result.passed_at = result.passed_at or now
            result.can_retry_at = None
            tx.set(result_key, result.to_record())

            points_awarded = 0
            if snapshot.points_enabled and decision.total > 0:
                award = await append_award_in(
                    tx,
                    user_id,
                    decision.total,
                    PointsReason.EXAM_PASSED.value,
                    now,
                    description=f"Passed exam {exam.title or exam.exam_id}",
                    metadata={
                        "exam_id": exam.exam_id,
                        "score": graded.score,
                        "base_points": decision.points,
                        "first_attempt_bonus": decision.bonus,
                    },
                )
                if award is not None:
                    points_awarded = decision.total

            course_module_id = await self._complete_course_in(
                tx, user_id, exam.course_id, exam.module_id, now
            )
            enrollment = await recompute_module_in(tx, user_id, course_module_id, now)
            await record_activity_in(
                tx,
                user_id,
                ActivityItem(
                    item_id=exam.exam_id,
                    title=exam.title,
                    module_id=exam.module_id,
                    kind="exam",
                    at=now,
                ),
                max_items=self.settings.activity_feed_size,
            )
            return result, points_awarded, enrollment

        result, points_awarded, enrollment = await self.store.transact(
            [result_key, course_progress_key(user_id, exam.course_id)], write
        )

        logger.info(
            "exam_submitted",
            user_id=user_id,
            exam_id=exam.exam_id,
            score=graded.score,
            passed=graded.passed,
            attempts=result.attempts,
        )

        if graded.passed:
            logger.info(
                "exam_first_pass_awarded",
                user_id=user_id,
                exam_id=exam.exam_id,
                points=points_awarded,
            )
            await self.notifier.publish(
                user_id,
                ProgressEvent.EXAM_PASSED,
                {
                    "exam_id": exam.exam_id,
                    "course_id": exam.course_id,
                    "score": graded.score,
                    "points_awarded": points_awarded,
                },
                at=now,
            )
            await self._notify_points_awarded(
                user_id,
                points_awarded,
                PointsReason.EXAM_PASSED,
                now,
                exam_id=exam.exam_id,
            )
            await self._notify_module_completion(user_id, enrollment, now)

        return ExamSubmissionResult(
            exam_id=exam.exam_id,
            score=graded.score,
            passed=graded.passed,
            correct_count=graded.correct_count,
            total_questions=graded.total_questions,
            points_awarded=points_awarded,
            incorrect_indices=graded.incorrect_indices,
            attempts=result.attempts,
            can_retry_at=result.can_retry_at,
        )

    async def practice_exam(
        self,
        user_id: str,
        answers: list[int | None],
        module_id: str | None = None,
        lesson_id: str | None = None,
        course_id: str | None = None,
        flags: FeatureFlags | None = None,
    ) -> ExamSubmissionResult:
        """Grade a retake without recording it or awarding anything."""
        self._flags(flags).require(Feature.EXAMS)
        exam = await self._resolve_exam(module_id, lesson_id, course_id)
        graded = grade(exam, answers)

        logger.info(
            "practice_exam_graded",
            user_id=user_id,
            exam_id=exam.exam_id,
            score=graded.score,
        )

        return ExamSubmissionResult(
            exam_id=exam.exam_id,
            score=graded.score,
            passed=graded.passed,
            correct_count=graded.correct_count,
            total_questions=graded.total_questions,
            points_awarded=0,
            incorrect_indices=graded.incorrect_indices,
            practice=True,
        )

    async def get_exam_result(
        self,
        user_id: str,
        exam_id: str,
        flags: FeatureFlags | None = None,
    ) -> ExamAttemptResult | None:
        self._flags(flags).require(Feature.EXAMS)
        return await self._load_exam_result(exam_id, user_id)

    async def get_exam_history(
        self, user_id: str, flags: FeatureFlags | None = None
    ) -> list[ExamAttemptResult]:
        """Every attempted exam's result, most recent attempt first."""
        self._flags(flags).require(Feature.EXAMS)

        index = await self.store.get(exam_result_index_key(user_id)) or {}
        records = await self.store.get_many(
            [exam_result_key(exam_id, user_id) for exam_id in index.get("exam_ids", [])]
        )
        results = [ExamAttemptResult.from_record(r) for r in records if r]
        results.sort(
            key=lambda r: r.last_attempt_at or datetime.min.replace(tzinfo=UTC),
            reverse=True,
        )
        return results

    async def _complete_course_in(
        self,
        tx: Transaction,
        user_id: str,
        course_id: str,
        module_id: str,
        now: datetime,
    ) -> str:
        """Mark a course completed within ``tx``; returns the course's module id."""
        stored = await tx.get(course_progress_key(user_id, course_id))
        if stored is None:
            record = CourseProgressRecord(
                user_id=user_id,
                course_id=course_id,
                module_id=module_id,
                enrolled_at=now,
            )
            index = add_to_course_index(
                await tx.get(module_courses_key(user_id, module_id)), course_id
            )
            if index is not None:
                tx.set(module_courses_key(user_id, module_id), index)
        else:
            record = CourseProgressRecord.from_record(stored)

        if record.mark_completed(now):
            tx.set(course_progress_key(user_id, course_id), record.to_record())
        return record.module_id

    # ==========================================================================
    # Module Quizzes
    # ==========================================================================

    async def submit_quiz(
        self,
        user_id: str,
        module_id: str,
        score: int,
        flags: FeatureFlags | None = None,
    ) -> QuizSubmissionResult:
        """Record a module quiz score.

        The first pass awards points and unlocks the module's submodules;
        later attempts never relock them.

        Raises:
            QuizNotFound: The module has no quiz
            ValueError: Score outside 0-100
            FeatureDisabled: Quizzes are off
        """
        snapshot = self._flags(flags)
        snapshot.require(Feature.QUIZZES)

        if not 0 <= score <= 100:
            msg = "score must be between 0 and 100"
            raise ValueError(msg)

        quiz = await self.catalog.get_module_quiz(module_id)
        if quiz is None:
            raise QuizNotFound

        prerequisite = await self.store.get(
            course_progress_key(user_id, quiz.prerequisite_course_id)
        )
        if not prerequisite or not prerequisite.get("completed"):
            logger.info(
                "quiz_prerequisite_missing",
                user_id=user_id,
                module_id=module_id,
                course_id=quiz.prerequisite_course_id,
            )
            return QuizSubmissionResult(
                success=False,
                passed=False,
                message="Complete the module video before taking the quiz",
            )

        threshold = self.settings.quiz_passing_score
        passed = score >= threshold
        now = self.clock()

        async def write(tx: Transaction) -> tuple[QuizAttemptResult, int, bool]:
            stored = await tx.get(quiz_result_key(user_id, module_id))
            result = (
                QuizAttemptResult.from_record(stored)
                if stored
                else QuizAttemptResult(user_id=user_id, module_id=module_id)
            )
            first_pass = passed and not result.passed

            result.attempts += 1
            result.last_score = score
            result.last_attempt_at = now
            if passed:
                result.passed = True
                result.passed_at = result.passed_at or now
                if not result.submodules_unlocked:
                    result.submodules_unlocked = True
                    result.unlocked_at = now
            tx.set(quiz_result_key(user_id, module_id), result.to_record())

            points_awarded = 0
            if first_pass:
                if snapshot.points_enabled:
                    award = await append_award_in(
                        tx,
                        user_id,
                        self.settings.quiz_pass_points,
                        PointsReason.QUIZ_PASSED.value,
                        now,
                        description=f"Passed quiz {quiz.title or module_id}",
                        metadata={"module_id": module_id, "score": score},
                    )
                    if award is not None:
                        points_awarded = self.settings.quiz_pass_points
                await record_activity_in(
                    tx,
                    user_id,
                    ActivityItem(
                        item_id=module_id,
                        title=quiz.title,
                        module_id=module_id,
                        kind="quiz",
                        at=now,
                    ),
                    max_items=self.settings.activity_feed_size,
                )
            return result, points_awarded, first_pass

        result, points_awarded, first_pass = await self.store.transact(
            [quiz_result_key(user_id, module_id)], write
        )

        logger.info(
            "quiz_submitted",
            user_id=user_id,
            module_id=module_id,
            score=score,
            passed=passed,
            points=points_awarded,
        )

        if first_pass:
            await self.notifier.publish(
                user_id,
                ProgressEvent.QUIZ_PASSED,
                {"module_id": module_id, "score": score, "points_awarded": points_awarded},
                at=now,
            )
            await self._notify_points_awarded(
                user_id,
                points_awarded,
                PointsReason.QUIZ_PASSED,
                now,
                module_id=module_id,
            )

        if passed:
            message = "Quiz passed, submodules unlocked"
        else:
            message = f"Score {score}% is below the {threshold}% required to pass"

        return QuizSubmissionResult(
            success=True,
            passed=passed,
            message=message,
            points_awarded=points_awarded,
            submodules_unlocked=result.submodules_unlocked,
        )

    # ==========================================================================
    # Queries and Enrollment
    # ==========================================================================

    async def get_course_progress(
        self, user_id: str, course_id: str
    ) -> CourseProgressRecord | None:
        stored = await self.store.get(course_progress_key(user_id, course_id))
        return CourseProgressRecord.from_record(stored) if stored else None

    async def get_module_progress(
        self, user_id: str, module_id: str
    ) -> ModuleEnrollment | None:
        stored = await self.store.get(enrollment_key(user_id, module_id))
        return ModuleEnrollment.from_record(stored) if stored else None

    async def enroll_in_module(
        self,
        user_id: str,
        module_id: str,
        module_type: ModuleType = ModuleType.MAIN_MODULE,
    ) -> ModuleEnrollment:
        """Enroll a learner in a module; existing enrollments are returned as is."""
        now = self.clock()

        async def write(tx: Transaction) -> tuple[ModuleEnrollment, bool]:
            stored = await tx.get(enrollment_key(user_id, module_id))
            if stored:
                return ModuleEnrollment.from_record(stored), False
            enrollment = ModuleEnrollment(
                user_id=user_id,
                module_id=module_id,
                module_type=module_type.value,
                enrolled_at=now,
            )
            tx.set(enrollment_key(user_id, module_id), enrollment.to_record())
            return enrollment, True

        enrollment, created = await self.store.transact(
            [enrollment_key(user_id, module_id)], write
        )
        if created:
            logger.info(
                "module_enrolled",
                user_id=user_id,
                module_id=module_id,
                module_type=module_type.value,
            )
        return enrollment

    async def get_points_summary(
        self,
        user_id: str,
        history_limit: int = 50,
        flags: FeatureFlags | None = None,
    ) -> PointsSummary:
        """Total, rank and newest ledger entries first."""
        self._flags(flags).require(Feature.POINTS)

        stored = await self.store.get(points_total_key(user_id))
        total = PointsTotal.from_record(stored) if stored else PointsTotal(user_id)

        index = await self.store.get(points_ledger_index_key(user_id)) or {}
        entry_ids = list(reversed(index.get("entry_ids", [])))[:history_limit]
        records = await self.store.get_many([points_ledger_key(i) for i in entry_ids])

        return PointsSummary(
            user_id=user_id,
            total_points=total.total_points,
            current_rank=total.current_rank,
            points_to_next_rank=points_to_next_rank(total.total_points),
            history=[PointsLedgerEntry.from_record(r) for r in records if r],
            verified_crew=total.verified_crew,
        )

    async def get_leaderboard(
        self, limit: int = 100, flags: FeatureFlags | None = None
    ) -> list[PointsTotal]:
        """Learners ordered by total points, highest first."""
        self._flags(flags).require(Feature.POINTS)
        return leaderboard_from_record(
            await self.store.get(points_leaderboard_key()), limit=limit
        )

    async def declare_verified_crew(
        self, user_id: str, flags: FeatureFlags | None = None
    ) -> PointsTotal:
        """Freeze a learner's points at their current total (idempotent)."""
        self._flags(flags).require(Feature.POINTS)
        now = self.clock()

        async def write(tx: Transaction) -> tuple[PointsTotal, bool]:
            return await declare_verified_crew_in(tx, user_id, now)

        total, changed = await self.store.transact([points_total_key(user_id)], write)
        if changed:
            logger.info(
                "verified_crew_declared",
                user_id=user_id,
                total_points=total.total_points,
                current_rank=total.current_rank,
            )
        return total

    async def get_recent_activity(self, user_id: str) -> list[ActivityItem]:
        return items_from_feed(await self.store.get(activity_key(user_id)))

    async def _notify_points_awarded(
        self,
        user_id: str,
        points: int,
        reason: PointsReason,
        now: datetime,
        **data: str,
    ) -> None:
        if points > 0:
            await self.notifier.publish(
                user_id,
                ProgressEvent.POINTS_AWARDED,
                {"points": points, "reason": reason.value, **data},
                at=now,
            )

    async def _notify_module_completion(
        self, user_id: str, enrollment: ModuleEnrollment | None, now: datetime
    ) -> None:
        # completed_at equals now only on the transition made by this call
        if enrollment and enrollment.completed and enrollment.completed_at == now:
            await self.notifier.publish(
                user_id,
                ProgressEvent.MODULE_COMPLETED,
                {"module_id": enrollment.module_id},
                at=now,
            )
