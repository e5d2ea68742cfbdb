"""Shared fixtures for progression engine tests."""

import os
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest


# Keep test runs from writing log files (settings are read at import time)
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "testing")

from progression_engine.config.settings import Settings  # noqa: E402
from progression_engine.exams.catalog import StaticExamCatalog  # noqa: E402
from progression_engine.exams.models import (  # noqa: E402
    ExamDefinition,
    ExamQuestion,
    ModuleQuizDefinition,
)
from progression_engine.progress.notifier import ProgressNotifier  # noqa: E402
from progression_engine.progression.service import ProgressionService  # noqa: E402
from progression_engine.store.memory import MemoryProgressStore  # noqa: E402


T0 = datetime(2026, 1, 5, 12, 0, tzinfo=UTC)


class FakeClock:
    """Controllable clock injected into the service."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_question(position: int, correct_index: int) -> ExamQuestion:
    return ExamQuestion(
        question_id=f"q{position}",
        text=f"Question {position}",
        options=["A", "B", "C"],
        correct_index=correct_index,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(environment="testing", log_file_enabled=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryProgressStore:
    return MemoryProgressStore()


@pytest.fixture
def exam() -> ExamDefinition:
    """Three questions answered [0, 1, 2], pass at 80, 5 minute cooldown."""
    return ExamDefinition(
        module_id="mod-1",
        lesson_id="lesson-1",
        course_id="course-1",
        title="Safety basics",
        questions=[make_question(i, i) for i in range(3)],
        passing_score=80,
        cooldown_minutes=5,
    )


@pytest.fixture
def quiz() -> ModuleQuizDefinition:
    return ModuleQuizDefinition(
        module_id="mod-1",
        prerequisite_course_id="course-1",
        title="Module 1 quiz",
    )


@pytest.fixture
def catalog(exam: ExamDefinition, quiz: ModuleQuizDefinition) -> StaticExamCatalog:
    return StaticExamCatalog(exams=[exam], quizzes=[quiz])


@pytest.fixture
def mock_redis():
    """Mock Redis client used for notifications."""
    redis_mock = AsyncMock()
    redis_mock.publish = AsyncMock(return_value=1)
    return redis_mock


@pytest.fixture
def service(
    store: MemoryProgressStore,
    catalog: StaticExamCatalog,
    settings: Settings,
    clock: FakeClock,
    mock_redis,
) -> ProgressionService:
    return ProgressionService(
        store=store,
        catalog=catalog,
        notifier=ProgressNotifier(mock_redis),
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def client(service: ProgressionService):
    """Test client with the service wired in (lifespan not run)."""
    from fastapi.testclient import TestClient

    from progression_engine.main import create_app

    app = create_app()
    app.state.progression_service = service
    return TestClient(app)
