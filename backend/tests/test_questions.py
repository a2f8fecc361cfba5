"""Tests for question and base example operations."""

import pytest

from assessment_agent.auth.access import Identity
from assessment_agent.models import BaseExample, SubmissionType
from assessment_agent.questions import service


@pytest.fixture
def question_data(sample_course):
    return {
        "course_id": sample_course.id,
        "title": "Semantic HTML",
        "description": "Mark up a blog post with semantic elements.",
        "submission_type": "text",
        "criteria": "Use article, header and footer.",
    }


class TestQuestions:

    def test_course_admin_creates_question(self, db_session, question_data, course_admin):
        result = service.create_question(db_session, Identity.from_user(course_admin), question_data)

        assert result.success, result.error
        question = result.data
        assert question.submission_type == SubmissionType.text
        assert question.is_active is True
        assert question.created_by_id == course_admin.id
        assert not question.has_base_example

    def test_other_admin_cannot_create(self, db_session, question_data, other_admin):
        result = service.create_question(db_session, Identity.from_user(other_admin), question_data)
        assert result.code == "forbidden"

    def test_unknown_course(self, db_session, question_data, super_admin):
        question_data["course_id"] = "missing"
        assert service.create_question(db_session, Identity.from_user(super_admin), question_data).code == "not_found"

    def test_unknown_submission_type(self, db_session, question_data, super_admin):
        question_data["submission_type"] = "video"
        result = service.create_question(db_session, Identity.from_user(super_admin), question_data)
        assert result.code == "invalid_input"
        assert "submission_type" in result.error

    def test_update_question(self, db_session, text_question, course_admin):
        result = service.update_question(
            db_session, Identity.from_user(course_admin), text_question.id,
            {"title": "Declare x", "is_active": False},
        )
        assert result.data.title == "Declare x"
        assert result.data.is_active is False

    def test_type_change_blocked_by_base_example(self, db_session, text_question, base_example, course_admin):
        result = service.update_question(
            db_session, Identity.from_user(course_admin), text_question.id, {"submission_type": "document"}
        )
        assert result.code == "invalid_state"

    def test_type_change_without_base_example(self, db_session, text_question, course_admin):
        result = service.update_question(
            db_session, Identity.from_user(course_admin), text_question.id, {"submission_type": "website"}
        )
        assert result.data.submission_type == SubmissionType.website

    def test_delete_question_removes_base_example(self, db_session, text_question, base_example, super_admin):
        assert service.delete_question(db_session, Identity.from_user(super_admin), text_question.id).success
        assert db_session.query(BaseExample).count() == 0

    def test_students_see_active_questions_of_enrolled_courses(self, db_session, text_question, question_factory,
                                                                 enrollment, student, other_student, course_admin):
        hidden = question_factory(title="Draft")
        hidden.is_active = False
        db_session.commit()

        visible = service.list_questions(db_session, Identity.from_user(student)).data
        assert [q.id for q in visible] == [text_question.id]

        admin_view = service.list_questions(db_session, Identity.from_user(course_admin)).data
        assert {q.id for q in admin_view} == {text_question.id, hidden.id}

        assert service.list_questions(db_session, Identity.from_user(other_student)).data == []

    def test_list_by_course_checks_access(self, db_session, sample_course, text_question, other_student):
        result = service.list_questions(db_session, Identity.from_user(other_student), course_id=sample_course.id)
        assert result.code == "forbidden"

    def test_get_question(self, db_session, text_question, enrollment, student, other_admin):
        assert service.get_question(db_session, Identity.from_user(student), text_question.id).success
        assert service.get_question(db_session, Identity.from_user(other_admin), text_question.id).code == "forbidden"


class TestBaseExamples:

    def test_create_base_example(self, db_session, text_question, course_admin):
        result = service.create_base_example(
            db_session, Identity.from_user(course_admin),
            {
                "question_id": text_question.id,
                "content": "const x = 1;",
                "type": "text",
                "metadata": {"rubric": [{"criterion": "const", "points": 100}]},
            },
        )

        assert result.success, result.error
        assert result.data.example_metadata["rubric"][0]["points"] == 100
        db_session.refresh(text_question)
        assert text_question.has_base_example

    def test_one_per_question(self, db_session, text_question, base_example, course_admin):
        result = service.create_base_example(
            db_session, Identity.from_user(course_admin),
            {"question_id": text_question.id, "content": "let x = 1;", "type": "text"},
        )
        assert result.code == "invalid_state"
        assert result.error == "Question already has a base example"

    def test_type_must_match_question(self, db_session, text_question, course_admin):
        result = service.create_base_example(
            db_session, Identity.from_user(course_admin),
            {"question_id": text_question.id, "content": "https://example.com", "type": "website"},
        )
        assert result.code == "invalid_input"

    def test_students_cannot_manage_base_examples(self, db_session, text_question, base_example, enrollment, student):
        identity = Identity.from_user(student)
        assert service.get_base_example(db_session, identity, text_question.id).code == "forbidden"
        assert service.delete_base_example(db_session, identity, base_example.id).code == "forbidden"

    def test_update_base_example(self, db_session, base_example, course_admin):
        result = service.update_base_example(
            db_session, Identity.from_user(course_admin), base_example.id,
            {"content": "const x = 2;", "metadata": {"notes": "changed"}},
        )
        assert result.data.content == "const x = 2;"
        assert result.data.example_metadata == {"notes": "changed"}

    def test_update_type_mismatch(self, db_session, base_example, course_admin):
        result = service.update_base_example(
            db_session, Identity.from_user(course_admin), base_example.id, {"type": "document"}
        )
        assert result.code == "invalid_input"

    def test_get_and_delete(self, db_session, text_question, base_example, course_admin):
        identity = Identity.from_user(course_admin)
        assert service.get_base_example(db_session, identity, text_question.id).data.id == base_example.id
        assert service.delete_base_example(db_session, identity, base_example.id).success
        assert service.get_base_example(db_session, identity, text_question.id).code == "not_found"
