"""Tests for exam catalog backends."""

from unittest.mock import Mock

import orjson
import pytest

from progression_engine.exams.catalog import CassandraExamCatalog, StaticExamCatalog
from progression_engine.exams.models import ExamDefinition, ModuleQuizDefinition


def exam_row(exam: ExamDefinition) -> Mock:
    return Mock(
        exam_id=exam.exam_id,
        module_id=exam.module_id,
        lesson_id=exam.lesson_id,
        course_id=exam.course_id,
        title=exam.title,
        questions=exam.questions_json(),
        passing_score=exam.passing_score,
        cooldown_minutes=exam.cooldown_minutes,
        allowed_attempts=None,
    )


def result_of(*rows) -> Mock:
    """Result set mock supporting ``one()`` and iteration."""
    result = Mock()
    result.one.return_value = rows[0] if rows else None
    result.__iter__ = Mock(return_value=iter(rows))
    return result


class TestStaticExamCatalog:
    @pytest.mark.asyncio
    async def test_lookup_by_lesson_and_course(self, catalog, exam):
        by_lesson = await catalog.get_exam("mod-1", "lesson-1")
        by_course = await catalog.get_exam_by_course("course-1")

        assert by_lesson is exam
        assert by_course is exam
        assert exam.exam_id == "mod-1_lesson-1"

    @pytest.mark.asyncio
    async def test_unknown_lookups_return_none(self, catalog):
        assert await catalog.get_exam("mod-1", "nope") is None
        assert await catalog.get_exam_by_course("nope") is None
        assert await catalog.get_module_quiz("nope") is None
        assert await catalog.get_exams_by_module("nope") == []

    @pytest.mark.asyncio
    async def test_exams_by_module(self, catalog, exam):
        assert await catalog.get_exams_by_module("mod-1") == [exam]

    @pytest.mark.asyncio
    async def test_module_quiz(self, catalog, quiz):
        assert await catalog.get_module_quiz("mod-1") is quiz

    @pytest.mark.asyncio
    async def test_from_file(self, tmp_path, exam):
        seed = tmp_path / "catalog.json"
        seed.write_bytes(
            orjson.dumps(
                {
                    "exams": [exam.to_dict()],
                    "quizzes": [
                        {
                            "module_id": "mod-1",
                            "prerequisite_course_id": "course-1",
                        }
                    ],
                }
            )
        )

        loaded = StaticExamCatalog.from_file(seed)

        found = await loaded.get_exam_by_course("course-1")
        assert found.exam_id == exam.exam_id
        assert [q.correct_index for q in found.questions] == [0, 1, 2]
        assert found.cooldown_minutes == 5
        quiz = await loaded.get_module_quiz("mod-1")
        assert quiz.prerequisite_course_id == "course-1"


class TestCassandraExamCatalog:
    @pytest.fixture
    def session(self):
        return Mock()

    def test_prepares_statements_on_init(self, session):
        CassandraExamCatalog(session, "progression")

        prepared = " ".join(call.args[0] for call in session.prepare.call_args_list)
        assert "progression.exams " in prepared
        assert "progression.exams_by_course" in prepared
        assert "progression.module_quizzes" in prepared

    @pytest.mark.asyncio
    async def test_get_exam_by_id(self, session, exam):
        session.execute.return_value = result_of(exam_row(exam))
        catalog = CassandraExamCatalog(session, "progression")

        found = await catalog.get_exam_by_id("mod-1_lesson-1")

        assert found.exam_id == "mod-1_lesson-1"
        assert found.total_questions == 3
        assert found.allowed_attempts == -1
        assert session.execute.call_args.args[1] == ("mod-1_lesson-1",)

    @pytest.mark.asyncio
    async def test_get_exam_by_id_missing(self, session):
        session.execute.return_value = result_of()
        catalog = CassandraExamCatalog(session, "progression")

        assert await catalog.get_exam_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_get_exam_by_course_follows_lookup(self, session, exam):
        session.execute.side_effect = [
            result_of(Mock(exam_id=exam.exam_id)),
            result_of(exam_row(exam)),
        ]
        catalog = CassandraExamCatalog(session, "progression")

        found = await catalog.get_exam_by_course("course-1")

        assert found.course_id == "course-1"
        assert session.execute.call_args_list[0].args[1] == ("course-1",)
        assert session.execute.call_args_list[1].args[1] == (exam.exam_id,)

    @pytest.mark.asyncio
    async def test_get_exam_by_course_without_lookup_row(self, session):
        session.execute.return_value = result_of()
        catalog = CassandraExamCatalog(session, "progression")

        assert await catalog.get_exam_by_course("course-9") is None
        assert session.execute.call_count == 1

    @pytest.mark.asyncio
    async def test_get_exams_by_module(self, session, exam):
        session.execute.side_effect = [
            result_of(Mock(exam_id=exam.exam_id)),
            result_of(exam_row(exam)),
        ]
        catalog = CassandraExamCatalog(session, "progression")

        exams = await catalog.get_exams_by_module("mod-1")

        assert [e.exam_id for e in exams] == [exam.exam_id]

    @pytest.mark.asyncio
    async def test_get_module_quiz(self, session):
        session.execute.return_value = result_of(
            Mock(
                module_id="mod-1",
                prerequisite_course_id="course-1",
                title="Quiz",
            )
        )
        catalog = CassandraExamCatalog(session, "progression")

        quiz = await catalog.get_module_quiz("mod-1")

        assert isinstance(quiz, ModuleQuizDefinition)
        assert quiz.prerequisite_course_id == "course-1"
        assert quiz.title == "Quiz"

    @pytest.mark.asyncio
    async def test_save_exam_writes_lookup_rows(self, session, exam):
        catalog = CassandraExamCatalog(session, "progression")

        await catalog.save_exam(exam)

        params = [call.args[1] for call in session.execute.call_args_list]
        assert params[1] == ("course-1", exam.exam_id)
        assert params[2] == ("mod-1", exam.exam_id)
        assert orjson.loads(params[0][5])[0]["question_id"] == "q0"

    @pytest.mark.asyncio
    async def test_save_module_quiz(self, session, quiz):
        catalog = CassandraExamCatalog(session, "progression")

        await catalog.save_module_quiz(quiz)

        session.execute.assert_called_once()
        assert session.execute.call_args.args[1] == ("mod-1", "course-1", "Module 1 quiz")
