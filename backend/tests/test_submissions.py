"""Tests for the submission lifecycle controller."""

import pytest
from sqlalchemy import update

from assessment_agent.auth.access import Identity
from assessment_agent.database import utcnow
from assessment_agent.models import Submission, SubmissionStatus, SubmissionType
from assessment_agent.submissions import service


def _count(db_session):
    return db_session.query(Submission).count()


class TestCreateSubmission:

    def test_creates_pending_row_and_queues_grading(self, db_session, text_question, base_example, enrollment, student, queue):
        result = service.create_submission(
            db_session, Identity.from_user(student), text_question.id, {"content": "var x = 1;"}, queue
        )

        assert result.success, result.error
        submission = result.data
        assert submission.status == SubmissionStatus.pending
        assert submission.content == "var x = 1;"
        assert submission.student_id == student.id
        assert submission.submitted_at is not None
        assert queue.enqueued == [submission.id]

    def test_only_students_can_submit(self, db_session, text_question, course_admin, queue):
        result = service.create_submission(
            db_session, Identity.from_user(course_admin), text_question.id, {"content": "x"}, queue
        )
        assert result.code == "forbidden"
        assert queue.enqueued == []

    def test_unauthenticated(self, db_session, text_question, queue):
        result = service.create_submission(db_session, None, text_question.id, {"content": "x"}, queue)
        assert result.code == "unauthenticated"

    def test_missing_question(self, db_session, student, queue):
        result = service.create_submission(db_session, Identity.from_user(student), "nope", {"content": "x"}, queue)
        assert result.code == "not_found"

    def test_not_enrolled_is_forbidden_and_creates_nothing(self, db_session, text_question, other_student, queue):
        before = _count(db_session)
        result = service.create_submission(
            db_session, Identity.from_user(other_student), text_question.id, {"content": "var x = 1;"}, queue
        )

        assert result.code == "forbidden"
        assert _count(db_session) == before
        assert queue.enqueued == []

    def test_inactive_question_is_invalid_state(self, db_session, text_question, enrollment, student, queue):
        text_question.is_active = False
        db_session.commit()

        result = service.create_submission(
            db_session, Identity.from_user(student), text_question.id, {"content": "var x = 1;"}, queue
        )
        assert result.code == "invalid_state"
        assert _count(db_session) == 0

    @pytest.mark.parametrize("payload", [{}, {"content": ""}, {"content": "   "}])
    def test_missing_content_is_invalid_input(self, db_session, text_question, enrollment, student, queue, payload):
        result = service.create_submission(db_session, Identity.from_user(student), text_question.id, payload, queue)
        assert result.code == "invalid_input"
        assert "content is required" in result.error

    def test_field_of_another_kind_is_rejected(self, db_session, text_question, enrollment, student, queue):
        result = service.create_submission(
            db_session,
            Identity.from_user(student),
            text_question.id,
            {"content": "var x = 1;", "website_url": "https://example.com"},
            queue,
        )
        assert result.code == "invalid_input"
        assert "website_url" in result.error

    @pytest.mark.parametrize("kind,payload,field", [
        (SubmissionType.document, {"file_url": "https://files.example.com/essay.pdf"}, "file_url"),
        (SubmissionType.website, {"website_url": "https://alice.dev"}, "website_url"),
        (SubmissionType.github_repo, {"github_url": "https://github.com/alice/todo"}, "github_url"),
    ])
    def test_content_exclusivity_per_kind(self, db_session, question_factory, enrollment, student, queue, kind, payload, field):
        question = question_factory(kind)
        result = service.create_submission(db_session, Identity.from_user(student), question.id, payload, queue)

        assert result.success, result.error
        submission = result.data
        for column in ("content", "file_url", "website_url", "github_url"):
            if column == field:
                assert getattr(submission, column) == payload[field]
            else:
                assert getattr(submission, column) is None

    def test_invalid_url_is_invalid_input(self, db_session, question_factory, enrollment, student, queue):
        question = question_factory(SubmissionType.website)
        result = service.create_submission(
            db_session, Identity.from_user(student), question.id, {"website_url": "not a url"}, queue
        )
        assert result.code == "invalid_input"

    def test_github_url_must_be_on_github(self, db_session, question_factory, enrollment, student, queue):
        question = question_factory(SubmissionType.github_repo)
        result = service.create_submission(
            db_session, Identity.from_user(student), question.id, {"github_url": "https://gitlab.com/a/b"}, queue
        )
        assert result.code == "invalid_input"


class TestUpdateSubmission:

    def _complete(self, db_session, submission):
        submission.status = SubmissionStatus.completed
        submission.score = 75
        submission.feedback = "Fine"
        submission.confidence = 0.8
        submission.comparison_data = {"similarities": ["a"], "differences": [], "suggestions": []}
        submission.processed_at = utcnow()
        db_session.commit()

    def test_changed_content_resets_grading(self, db_session, sample_submission, student, queue):
        self._complete(db_session, sample_submission)

        result = service.update_submission(
            db_session, Identity.from_user(student), sample_submission.id, {"content": "const x = 1;"}, queue
        )

        assert result.success, result.error
        submission = result.data
        assert submission.content == "const x = 1;"
        assert submission.status == SubmissionStatus.pending
        assert submission.score is None
        assert submission.feedback is None
        assert submission.confidence is None
        assert submission.comparison_data is None
        assert submission.processed_at is None
        assert queue.enqueued == [submission.id]

    def test_unchanged_content_is_noop(self, db_session, sample_submission, student, queue):
        self._complete(db_session, sample_submission)

        result = service.update_submission(
            db_session, Identity.from_user(student), sample_submission.id, {"content": "var x = 1;"}, queue
        )

        assert result.success
        assert result.data.status == SubmissionStatus.completed
        assert result.data.score == 75
        assert queue.enqueued == []

    def test_payload_without_value_is_noop(self, db_session, sample_submission, student, queue):
        result = service.update_submission(db_session, Identity.from_user(student), sample_submission.id, {}, queue)
        assert result.success
        assert result.data.content == "var x = 1;"
        assert queue.enqueued == []

    def test_processing_is_rejected_and_row_unchanged(self, db_session, sample_submission, student, queue):
        sample_submission.status = SubmissionStatus.processing
        db_session.commit()

        result = service.update_submission(
            db_session, Identity.from_user(student), sample_submission.id, {"content": "const x = 1;"}, queue
        )

        assert result.code == "invalid_state"
        db_session.refresh(sample_submission)
        assert sample_submission.content == "var x = 1;"
        assert sample_submission.status == SubmissionStatus.processing
        assert queue.enqueued == []

    def test_grading_claim_between_read_and_write_is_rejected(self, db_session, sample_submission, student, queue, monkeypatch):
        """A dispatcher claiming the row after the status check still wins."""
        original = service.extract_content

        def claim_then_extract(question, payload):
            db_session.execute(
                update(Submission)
                .where(Submission.id == sample_submission.id)
                .values(status=SubmissionStatus.processing)
                .execution_options(synchronize_session=False)
            )
            return original(question, payload)

        monkeypatch.setattr(service, "extract_content", claim_then_extract)
        result = service.update_submission(
            db_session, Identity.from_user(student), sample_submission.id, {"content": "const x = 1;"}, queue
        )

        assert result.code == "invalid_state"
        assert queue.enqueued == []

    def test_only_owner_can_update(self, db_session, sample_submission, other_student, super_admin, queue):
        for user in (other_student, super_admin):
            result = service.update_submission(
                db_session, Identity.from_user(user), sample_submission.id, {"content": "y"}, queue
            )
            assert result.code == "forbidden"

    def test_field_of_another_kind_is_rejected(self, db_session, sample_submission, student, queue):
        result = service.update_submission(
            db_session, Identity.from_user(student), sample_submission.id, {"github_url": "https://github.com/a/b"}, queue
        )
        assert result.code == "invalid_input"


class TestDeleteSubmission:

    def test_owner_can_delete(self, db_session, sample_submission, student):
        result = service.delete_submission(db_session, Identity.from_user(student), sample_submission.id)
        assert result.success
        assert db_session.get(Submission, sample_submission.id) is None

    def test_course_admin_of_course_can_delete(self, db_session, sample_submission, course_admin):
        assert service.delete_submission(db_session, Identity.from_user(course_admin), sample_submission.id).success

    def test_super_admin_can_delete(self, db_session, sample_submission, super_admin):
        assert service.delete_submission(db_session, Identity.from_user(super_admin), sample_submission.id).success

    def test_others_cannot_delete(self, db_session, sample_submission, other_student, other_admin):
        for user in (other_student, other_admin):
            result = service.delete_submission(db_session, Identity.from_user(user), sample_submission.id)
            assert result.code == "forbidden"
        assert db_session.get(Submission, sample_submission.id) is not None


class TestReprocessSubmission:

    def test_failed_submission_is_reset_and_queued(self, db_session, sample_submission, course_admin, queue):
        sample_submission.status = SubmissionStatus.failed
        sample_submission.feedback = "Assessment failed: timeout"
        sample_submission.processed_at = utcnow()
        db_session.commit()

        result = service.reprocess_submission(db_session, Identity.from_user(course_admin), sample_submission.id, queue)

        assert result.success, result.error
        assert result.data.status == SubmissionStatus.pending
        assert result.data.feedback is None
        assert result.data.processed_at is None
        assert result.data.content == "var x = 1;"
        assert queue.enqueued == [sample_submission.id]

    def test_students_cannot_reprocess(self, db_session, sample_submission, student, queue):
        result = service.reprocess_submission(db_session, Identity.from_user(student), sample_submission.id, queue)
        assert result.code == "forbidden"

    def test_course_admin_limited_to_own_courses(self, db_session, sample_submission, other_admin, queue):
        result = service.reprocess_submission(db_session, Identity.from_user(other_admin), sample_submission.id, queue)
        assert result.code == "forbidden"

    def test_processing_is_rejected(self, db_session, sample_submission, super_admin, queue):
        sample_submission.status = SubmissionStatus.processing
        db_session.commit()
        result = service.reprocess_submission(db_session, Identity.from_user(super_admin), sample_submission.id, queue)
        assert result.code == "invalid_state"
        assert queue.enqueued == []

    def test_no_content_is_invalid_input(self, db_session, question_factory, submission_factory, enrollment, super_admin, queue):
        question = question_factory(SubmissionType.website)
        submission = submission_factory(question, status=SubmissionStatus.failed, content=None)
        result = service.reprocess_submission(db_session, Identity.from_user(super_admin), submission.id, queue)
        assert result.code == "invalid_input"


class TestListSubmissions:

    @pytest.fixture
    def two_courses(self, db_session, sample_course, question_factory, submission_factory, base_example,
                    text_question, enrollment, student, other_student, other_admin, super_admin):
        from assessment_agent.models import Course, CourseEnrollment

        other_course = Course(title="AI Basics", admin_id=other_admin.id, created_by_id=super_admin.id)
        db_session.add(other_course)
        db_session.commit()
        db_session.add(CourseEnrollment(course_id=other_course.id, student_id=other_student.id))
        db_session.add(CourseEnrollment(course_id=sample_course.id, student_id=other_student.id))
        db_session.commit()
        other_question = question_factory(course=other_course, title="Explain overfitting")

        return {
            "alice_q1": submission_factory(text_question),
            "bob_q1": submission_factory(text_question, owner=other_student),
            "bob_q2": submission_factory(other_question, owner=other_student),
            "other_question": other_question,
        }

    def test_student_sees_only_own_rows(self, db_session, two_courses, student):
        result = service.list_submissions(db_session, Identity.from_user(student))
        assert result.success
        assert {s.id for s in result.data} == {two_courses["alice_q1"].id}
        assert all(s.student_id == student.id for s in result.data)

    def test_course_admin_sees_own_course_rows(self, db_session, two_courses, course_admin):
        result = service.list_submissions(db_session, Identity.from_user(course_admin))
        assert {s.id for s in result.data} == {two_courses["alice_q1"].id, two_courses["bob_q1"].id}
        assert all(s.question.course.admin_id == course_admin.id for s in result.data)

    def test_super_admin_sees_all(self, db_session, two_courses, super_admin):
        result = service.list_submissions(db_session, Identity.from_user(super_admin))
        assert len(result.data) == 3

    def test_question_filter(self, db_session, two_courses, text_question, super_admin):
        result = service.list_submissions(db_session, Identity.from_user(super_admin), question_id=text_question.id)
        assert {s.id for s in result.data} == {two_courses["alice_q1"].id, two_courses["bob_q1"].id}

    def test_question_filter_checks_course_access(self, db_session, two_courses, course_admin, student):
        other_question = two_courses["other_question"]
        for user in (course_admin, student):
            result = service.list_submissions(db_session, Identity.from_user(user), question_id=other_question.id)
            assert result.code == "forbidden"

    def test_get_submission_access(self, db_session, two_courses, student, other_student, course_admin):
        alice = two_courses["alice_q1"]
        assert service.get_submission(db_session, Identity.from_user(student), alice.id).data.id == alice.id
        assert service.get_submission(db_session, Identity.from_user(course_admin), alice.id).success
        assert service.get_submission(db_session, Identity.from_user(other_student), alice.id).code == "forbidden"


class TestBatchGrade:

    def test_queues_pending_and_failed_rows(self, db_session, text_question, base_example, enrollment,
                                            submission_factory, course_admin, queue):
        pending = submission_factory(text_question)
        failed = submission_factory(text_question, status=SubmissionStatus.failed, feedback="Assessment failed: x")
        done = submission_factory(text_question, status=SubmissionStatus.completed, score=90)

        result = service.batch_grade(
            db_session, Identity.from_user(course_admin), [pending.id, failed.id, done.id, "missing"], queue
        )

        assert result.success, result.error
        assert result.data["queued"] == [pending.id, failed.id]
        assert result.data["skipped"] == {done.id: "completed", "missing": "not found"}
        assert queue.batches == [[pending.id, failed.id]]
        db_session.refresh(failed)
        assert failed.status == SubmissionStatus.pending
        assert failed.feedback is None

    def test_other_courses_are_skipped(self, db_session, sample_submission, other_admin, queue):
        result = service.batch_grade(db_session, Identity.from_user(other_admin), [sample_submission.id], queue)
        assert result.data == {"queued": [], "skipped": {sample_submission.id: "forbidden"}}
        assert queue.batches == []

    def test_students_cannot_batch_grade(self, db_session, sample_submission, student, queue):
        result = service.batch_grade(db_session, Identity.from_user(student), [sample_submission.id], queue)
        assert result.code == "forbidden"
