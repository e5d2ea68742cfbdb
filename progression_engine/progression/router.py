"""Progression API endpoints.

Provides routes for:
- Video heartbeats (sent periodically by the player) and completion
- Exam submission, practice retakes and eligibility
- Module quizzes
- Progress, points, leaderboard and activity queries

Progression errors are rendered by the application's exception handler
(see ``handle_progression_error``).
"""

from fastapi import APIRouter, HTTPException, Query, status

from .dependencies import CurrentUserId, ProgressionServiceDep
from .schemas import (
    ActivityItemResponse,
    ActivityResponse,
    CourseProgressResponse,
    EligibilityResponse,
    EnrollModuleRequest,
    ExamHistoryResponse,
    ExamResultResponse,
    ExamSubmissionResponse,
    LeaderboardResponse,
    MarkVideoCompleteRequest,
    ModuleProgressResponse,
    OperationResponse,
    PointsSummaryResponse,
    PointsTotalResponse,
    PracticeExamRequest,
    QuizSubmissionResponse,
    SubmitExamRequest,
    SubmitQuizRequest,
    TrackVideoProgressRequest,
    VideoProgressResponse,
)


router = APIRouter(prefix="/v1/progression", tags=["progression"])


# ==============================================================================
# Video Progress Endpoints
# ==============================================================================


@router.put(
    "/video",
    response_model=VideoProgressResponse,
    summary="Track video progress",
)
async def track_video_progress(
    data: TrackVideoProgressRequest,
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
) -> VideoProgressResponse:
    """Record a playback heartbeat. Never completes the course by itself."""
    try:
        result = await service.track_video_progress(
            user_id=user_id,
            course_id=data.course_id,
            module_id=data.module_id,
            watched_seconds=data.watched_seconds,
            duration_estimate_seconds=data.duration_estimate_seconds,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from e
    return VideoProgressResponse.from_result(result)


@router.post(
    "/video/complete",
    response_model=OperationResponse,
    summary="Mark video as complete",
)
async def mark_video_complete(
    data: MarkVideoCompleteRequest,
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
) -> OperationResponse:
    """Complete a course once at least the completion threshold was watched."""
    result = await service.mark_video_complete(user_id=user_id, course_id=data.course_id)
    return OperationResponse.from_result(result)


# ==============================================================================
# Exam Endpoints
# ==============================================================================


@router.post(
    "/exams/submit",
    response_model=ExamSubmissionResponse,
    summary="Submit exam answers",
)
async def submit_exam(
    data: SubmitExamRequest,
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
) -> ExamSubmissionResponse:
    """Grade and record an attempt; the first pass awards points."""
    result = await service.submit_exam(
        user_id=user_id,
        answers=data.answers,
        module_id=data.module_id,
        lesson_id=data.lesson_id,
        course_id=data.course_id,
        time_spent_seconds=data.time_spent_seconds,
    )
    return ExamSubmissionResponse.from_result(result)


@router.post(
    "/exams/practice",
    response_model=ExamSubmissionResponse,
    summary="Practice an exam",
)
async def practice_exam(
    data: PracticeExamRequest,
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
) -> ExamSubmissionResponse:
    """Grade a retake without recording it."""
    result = await service.practice_exam(
        user_id=user_id,
        answers=data.answers,
        module_id=data.module_id,
        lesson_id=data.lesson_id,
        course_id=data.course_id,
    )
    return ExamSubmissionResponse.from_result(result)


@router.get(
    "/exams/eligibility",
    response_model=EligibilityResponse,
    summary="Check exam eligibility",
)
async def check_exam_eligibility(
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
    module_id: str | None = Query(default=None),
    lesson_id: str | None = Query(default=None),
    course_id: str | None = Query(default=None),
) -> EligibilityResponse:
    if not (module_id and lesson_id) and not course_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Provide module_id and lesson_id, or course_id",
        )
    result = await service.check_exam_eligibility(
        user_id=user_id,
        module_id=module_id,
        lesson_id=lesson_id,
        course_id=course_id,
    )
    return EligibilityResponse.from_result(result)


@router.get(
    "/exams/history",
    response_model=ExamHistoryResponse,
    summary="Get exam history",
)
async def get_exam_history(
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
) -> ExamHistoryResponse:
    """Every attempted exam, most recent attempt first."""
    results = await service.get_exam_history(user_id=user_id)
    return ExamHistoryResponse(
        items=[ExamResultResponse.from_entity(r) for r in results]
    )


@router.get(
    "/exams/{exam_id}/result",
    response_model=ExamResultResponse,
    summary="Get exam result",
)
async def get_exam_result(
    exam_id: str,
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
) -> ExamResultResponse:
    result = await service.get_exam_result(user_id=user_id, exam_id=exam_id)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No attempt recorded for this exam",
        )
    return ExamResultResponse.from_entity(result)


# ==============================================================================
# Quiz Endpoints
# ==============================================================================


@router.post(
    "/quizzes/submit",
    response_model=QuizSubmissionResponse,
    summary="Submit module quiz score",
)
async def submit_quiz(
    data: SubmitQuizRequest,
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
) -> QuizSubmissionResponse:
    """Record a quiz score; the first pass unlocks the module's submodules."""
    result = await service.submit_quiz(
        user_id=user_id, module_id=data.module_id, score=data.score
    )
    return QuizSubmissionResponse.from_result(result)


# ==============================================================================
# Progress Query Endpoints
# ==============================================================================


@router.get(
    "/courses/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: str,
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
) -> CourseProgressResponse:
    progress = await service.get_course_progress(user_id=user_id, course_id=course_id)
    if not progress:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No progress for this course",
        )
    return CourseProgressResponse.from_entity(progress)


@router.get(
    "/modules/{module_id}",
    response_model=ModuleProgressResponse,
    summary="Get module progress",
)
async def get_module_progress(
    module_id: str,
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
) -> ModuleProgressResponse:
    enrollment = await service.get_module_progress(user_id=user_id, module_id=module_id)
    if not enrollment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not enrolled in this module",
        )
    return ModuleProgressResponse.from_entity(enrollment)


@router.post(
    "/modules/{module_id}/enroll",
    response_model=ModuleProgressResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in module",
)
async def enroll_in_module(
    module_id: str,
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
    data: EnrollModuleRequest | None = None,
) -> ModuleProgressResponse:
    """Enroll in a module (idempotent)."""
    module_type = data.module_type if data else EnrollModuleRequest().module_type
    enrollment = await service.enroll_in_module(
        user_id=user_id, module_id=module_id, module_type=module_type
    )
    return ModuleProgressResponse.from_entity(enrollment)


# ==============================================================================
# Points and Activity Endpoints
# ==============================================================================


@router.get(
    "/points",
    response_model=PointsSummaryResponse,
    summary="Get points summary",
)
async def get_points_summary(
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
    limit: int = Query(default=50, ge=1, le=200),
) -> PointsSummaryResponse:
    """Total, rank and the newest ledger entries."""
    summary = await service.get_points_summary(user_id=user_id, history_limit=limit)
    return PointsSummaryResponse.from_result(summary)


@router.get(
    "/activity",
    response_model=ActivityResponse,
    summary="Get recent activity",
)
async def get_recent_activity(
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
) -> ActivityResponse:
    items = await service.get_recent_activity(user_id=user_id)
    return ActivityResponse(items=[ActivityItemResponse.from_entity(i) for i in items])


@router.get(
    "/points/leaderboard",
    response_model=LeaderboardResponse,
    summary="Get points leaderboard",
)
async def get_leaderboard(
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
    limit: int = Query(default=100, ge=1, le=500),
) -> LeaderboardResponse:
    totals = await service.get_leaderboard(limit=limit)
    return LeaderboardResponse(items=[PointsTotalResponse.from_entity(t) for t in totals])


@router.post(
    "/points/verified-crew",
    response_model=PointsTotalResponse,
    summary="Declare verified crew",
)
async def declare_verified_crew(
    service: ProgressionServiceDep,
    user_id: CurrentUserId,
) -> PointsTotalResponse:
    """Freeze the learner's points at their current total."""
    total = await service.declare_verified_crew(user_id=user_id)
    return PointsTotalResponse.from_entity(total)
