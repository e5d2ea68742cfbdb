"""Exam catalog: read-only exam and module-quiz definitions.

Backends:
- StaticExamCatalog: in-memory definitions (development, tests, seeded apps)
- CassandraExamCatalog: definitions stored in the catalog keyspace
"""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson
import structlog

from .models import ExamDefinition, ModuleQuizDefinition, build_exam_id


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class ExamCatalog(ABC):
    """Lookup of exam and quiz definitions."""

    @abstractmethod
    async def get_exam_by_id(self, exam_id: str) -> ExamDefinition | None:
        """Get exam by its id."""

    @abstractmethod
    async def get_exam_by_course(self, course_id: str) -> ExamDefinition | None:
        """Get the exam that completes a course."""

    @abstractmethod
    async def get_exams_by_module(self, module_id: str) -> list[ExamDefinition]:
        """Get all exams of a module."""

    @abstractmethod
    async def get_module_quiz(self, module_id: str) -> ModuleQuizDefinition | None:
        """Get the module's quiz configuration."""

    async def get_exam(self, module_id: str, lesson_id: str) -> ExamDefinition | None:
        """Get the exam gating a lesson."""
        return await self.get_exam_by_id(build_exam_id(module_id, lesson_id))


class StaticExamCatalog(ExamCatalog):
    """Catalog held in memory."""

    def __init__(
        self,
        exams: list[ExamDefinition] | None = None,
        quizzes: list[ModuleQuizDefinition] | None = None,
    ):
        self._exams: dict[str, ExamDefinition] = {}
        self._quizzes: dict[str, ModuleQuizDefinition] = {}
        for exam in exams or []:
            self.add_exam(exam)
        for quiz in quizzes or []:
            self.add_module_quiz(quiz)

    @classmethod
    def from_file(cls, path: str | Path) -> "StaticExamCatalog":
        """Load definitions from a JSON file with ``exams`` and ``quizzes`` lists."""
        data = orjson.loads(Path(path).read_bytes())
        catalog = cls(
            exams=[ExamDefinition.from_dict(e) for e in data.get("exams", [])],
            quizzes=[ModuleQuizDefinition.from_dict(q) for q in data.get("quizzes", [])],
        )
        logger.info(
            "static_catalog_loaded",
            path=str(path),
            exams=len(catalog._exams),
            quizzes=len(catalog._quizzes),
        )
        return catalog

    def add_exam(self, exam: ExamDefinition) -> None:
        self._exams[exam.exam_id] = exam

    def add_module_quiz(self, quiz: ModuleQuizDefinition) -> None:
        self._quizzes[quiz.module_id] = quiz

    async def get_exam_by_id(self, exam_id: str) -> ExamDefinition | None:
        return self._exams.get(exam_id)

    async def get_exam_by_course(self, course_id: str) -> ExamDefinition | None:
        for exam in self._exams.values():
            if exam.course_id == course_id:
                return exam
        return None

    async def get_exams_by_module(self, module_id: str) -> list[ExamDefinition]:
        return [e for e in self._exams.values() if e.module_id == module_id]

    async def get_module_quiz(self, module_id: str) -> ModuleQuizDefinition | None:
        return self._quizzes.get(module_id)


class CassandraExamCatalog(ExamCatalog):
    """Catalog backed by Cassandra tables.

    The driver session is synchronous; queries run in a worker thread so the
    event loop is never blocked.
    """

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_exam = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.exams WHERE exam_id = ?
        """)

        self._get_exam_by_course = self.session.prepare(f"""
            SELECT exam_id FROM {self.keyspace}.exams_by_course WHERE course_id = ?
        """)

        self._get_exams_by_module = self.session.prepare(f"""
            SELECT exam_id FROM {self.keyspace}.exams_by_module WHERE module_id = ?
        """)

        self._get_module_quiz = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.module_quizzes WHERE module_id = ?
        """)

        self._insert_exam = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.exams
            (exam_id, module_id, lesson_id, course_id, title, questions,
             passing_score, cooldown_minutes, allowed_attempts)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_exam_by_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.exams_by_course (course_id, exam_id)
            VALUES (?, ?)
        """)

        self._insert_exam_by_module = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.exams_by_module (module_id, exam_id)
            VALUES (?, ?)
        """)

        self._insert_module_quiz = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.module_quizzes
            (module_id, prerequisite_course_id, title)
            VALUES (?, ?, ?)
        """)

    async def _execute(self, statement: Any, params: tuple) -> Any:
        return await asyncio.to_thread(self.session.execute, statement, params)

    async def get_exam_by_id(self, exam_id: str) -> ExamDefinition | None:
        result = await self._execute(self._get_exam, (exam_id,))
        row = result.one()
        return ExamDefinition.from_row(row) if row else None

    async def get_exam_by_course(self, course_id: str) -> ExamDefinition | None:
        result = await self._execute(self._get_exam_by_course, (course_id,))
        row = result.one()
        if not row:
            return None
        return await self.get_exam_by_id(row.exam_id)

    async def get_exams_by_module(self, module_id: str) -> list[ExamDefinition]:
        result = await self._execute(self._get_exams_by_module, (module_id,))
        exams = []
        for row in result:
            exam = await self.get_exam_by_id(row.exam_id)
            if exam:
                exams.append(exam)
        return exams

    async def get_module_quiz(self, module_id: str) -> ModuleQuizDefinition | None:
        result = await self._execute(self._get_module_quiz, (module_id,))
        row = result.one()
        return ModuleQuizDefinition.from_row(row) if row else None

    async def save_exam(self, exam: ExamDefinition) -> None:
        """Upsert an exam and its lookup rows (seeding/admin)."""
        await self._execute(
            self._insert_exam,
            (
                exam.exam_id,
                exam.module_id,
                exam.lesson_id,
                exam.course_id,
                exam.title,
                exam.questions_json(),
                exam.passing_score,
                exam.cooldown_minutes,
                exam.allowed_attempts,
            ),
        )
        await self._execute(self._insert_exam_by_course, (exam.course_id, exam.exam_id))
        await self._execute(self._insert_exam_by_module, (exam.module_id, exam.exam_id))
        logger.info("exam_definition_saved", exam_id=exam.exam_id)

    async def save_module_quiz(self, quiz: ModuleQuizDefinition) -> None:
        """Upsert a module quiz configuration (seeding/admin)."""
        await self._execute(
            self._insert_module_quiz,
            (quiz.module_id, quiz.prerequisite_course_id, quiz.title),
        )
        logger.info("module_quiz_saved", module_id=quiz.module_id)
