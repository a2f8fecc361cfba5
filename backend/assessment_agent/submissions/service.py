"""Submission lifecycle controller.

Owns creating, editing, deleting and reprocessing submissions and moves
their status through the grading state machine::

    pending -> processing -> completed | failed
    completed | failed | pending -> pending   (content edit or reprocess)

Only the grading dispatcher moves a submission out of ``processing``.
Edits and resets are conditional updates that exclude ``processing`` rows,
so an edit racing an in-flight grading pass is rejected rather than lost.
Every grading pass is handed to a ``GradingQueue`` after the row is
committed; callers never wait for grading.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..auth.access import (
    Identity,
    administers,
    can_view_course,
    require_any_admin,
    require_authenticated,
    require_student,
)
from ..database import utcnow
from ..dispatch import GradingQueue
from ..errors import Forbidden, InvalidInput, InvalidState, action
from ..models import CONTENT_FIELDS, CourseEnrollment, Question, Submission, SubmissionContent, SubmissionStatus
from ..models.submission import GRADING_FIELDS
from ..queries import get_or_raise, scope_submissions
from ..schemas import SubmissionPayload

logger = logging.getLogger(__name__)

EDIT_WHILE_PROCESSING = "Cannot modify a submission while it is being processed"


def _kind_label(question: Question) -> str:
    return question.submission_type.value.replace("_", " ")


def extract_content(question: Question, payload: SubmissionPayload) -> Optional[SubmissionContent]:
    """The single content value for the question's kind.

    Raises InvalidInput if the payload sets a field that belongs to another kind.
    """
    values = payload.model_dump(include=set(CONTENT_FIELDS.values()))
    expected = CONTENT_FIELDS[question.submission_type]
    foreign = sorted(
        field for field, value in values.items()
        if field != expected and value is not None and str(value).strip()
    )
    if foreign:
        raise InvalidInput(f"{_kind_label(question).capitalize()} questions do not accept {', '.join(foreign)}")
    return SubmissionContent.from_payload(question.submission_type, values)


def _reset_values(content: Optional[SubmissionContent] = None) -> dict:
    values = {field: None for field in GRADING_FIELDS}
    values["status"] = SubmissionStatus.pending
    if content is not None:
        for kind, field in CONTENT_FIELDS.items():
            values[field] = content.value if kind == content.kind else None
    return values


def _reset_unless_processing(db: Session, submission: Submission, content: Optional[SubmissionContent] = None) -> None:
    """Reset grading (and optionally content) unless a grading pass holds the row."""
    updated = db.execute(
        update(Submission)
        .where(Submission.id == submission.id, Submission.status != SubmissionStatus.processing)
        .values(**_reset_values(content))
    ).rowcount
    if updated != 1:
        raise InvalidState(EDIT_WHILE_PROCESSING)


def _can_manage(identity: Identity, submission: Submission) -> bool:
    """Owner, SuperAdmin, or the CourseAdmin of the submission's course."""
    if identity.is_student:
        return submission.student_id == identity.id
    return administers(identity, submission.question.course)


@action("Failed to create submission")
def create_submission(
    db: Session,
    identity: Optional[Identity],
    question_id: str,
    payload,
    queue: GradingQueue,
) -> Submission:
    identity = require_student(identity, "Only students can create submissions")
    payload = SubmissionPayload.model_validate(payload)

    question = get_or_raise(db, Question, question_id, "Question")
    enrollment = (
        db.query(CourseEnrollment)
        .filter(CourseEnrollment.course_id == question.course_id, CourseEnrollment.student_id == identity.id)
        .first()
    )
    if enrollment is None:
        raise Forbidden("You must be enrolled in this course to submit")
    if not question.is_active:
        raise InvalidState("This question is no longer accepting submissions")

    content = extract_content(question, payload)
    if content is None:
        raise InvalidInput(f"{_kind_label(question).capitalize()} content is required")

    submission = Submission(
        question_id=question.id,
        student_id=identity.id,
        status=SubmissionStatus.pending,
        submitted_at=utcnow(),
    )
    submission.set_content(content)
    db.add(submission)
    db.commit()
    db.refresh(submission)

    if question.base_example is None:
        logger.warning(f"Question {question.id} has no base example; submission {submission.id} will fail grading")
    queue.enqueue(submission.id)
    logger.info(f"Submission {submission.id} created for question {question.id}")
    return submission


@action("Failed to update submission")
def update_submission(
    db: Session,
    identity: Optional[Identity],
    submission_id: str,
    payload,
    queue: GradingQueue,
) -> Submission:
    identity = require_authenticated(identity)
    payload = SubmissionPayload.model_validate(payload)
    submission = get_or_raise(db, Submission, submission_id, "Submission")
    if submission.student_id != identity.id:
        raise Forbidden("You can only update your own submissions")
    if submission.status == SubmissionStatus.processing:
        raise InvalidState(EDIT_WHILE_PROCESSING)

    content = extract_content(submission.question, payload)
    if content is None or content == submission.get_content():
        return submission

    _reset_unless_processing(db, submission, content)
    db.commit()
    db.refresh(submission)
    queue.enqueue(submission.id)
    logger.info(f"Submission {submission.id} content changed; regrading")
    return submission


@action("Failed to delete submission")
def delete_submission(db: Session, identity: Optional[Identity], submission_id: str) -> dict:
    identity = require_authenticated(identity)
    submission = get_or_raise(db, Submission, submission_id, "Submission")
    if not _can_manage(identity, submission):
        raise Forbidden("You do not have permission to delete this submission")
    db.delete(submission)
    db.commit()
    return {"id": submission_id}


@action("Failed to reprocess submission")
def reprocess_submission(
    db: Session,
    identity: Optional[Identity],
    submission_id: str,
    queue: GradingQueue,
) -> Submission:
    identity = require_any_admin(identity)
    submission = get_or_raise(db, Submission, submission_id, "Submission")
    if not administers(identity, submission.question.course):
        raise Forbidden("You can only reprocess submissions in courses you administer")
    if submission.status == SubmissionStatus.processing:
        raise InvalidState("Submission is already being processed")
    if submission.get_content() is None:
        raise InvalidInput("No content to process")

    _reset_unless_processing(db, submission)
    db.commit()
    db.refresh(submission)
    queue.enqueue(submission.id)
    logger.info(f"Submission {submission.id} queued for reprocessing by {identity.id}")
    return submission


@action("Failed to fetch submissions")
def list_submissions(
    db: Session,
    identity: Optional[Identity],
    question_id: Optional[str] = None,
) -> List[Submission]:
    identity = require_authenticated(identity)
    query = scope_submissions(db.query(Submission), identity)
    if question_id:
        question = get_or_raise(db, Question, question_id, "Question")
        if not can_view_course(identity, question.course):
            raise Forbidden("You do not have access to this question")
        query = query.filter(Submission.question_id == question_id)
    return query.order_by(Submission.submitted_at.desc()).all()


@action("Failed to fetch submission")
def get_submission(db: Session, identity: Optional[Identity], submission_id: str) -> Submission:
    identity = require_authenticated(identity)
    submission = get_or_raise(db, Submission, submission_id, "Submission")
    if not _can_manage(identity, submission):
        raise Forbidden("You do not have access to this submission")
    return submission


@action("Failed to start batch grading")
def batch_grade(
    db: Session,
    identity: Optional[Identity],
    submission_ids: List[str],
    queue: GradingQueue,
) -> Dict[str, object]:
    """Reset the chosen pending or failed submissions and grade them in throttled groups."""
    identity = require_any_admin(identity)
    queued: List[str] = []
    skipped: Dict[str, str] = {}

    for submission_id in dict.fromkeys(submission_ids):
        submission = db.get(Submission, submission_id)
        if submission is None:
            skipped[submission_id] = "not found"
        elif not administers(identity, submission.question.course):
            skipped[submission_id] = "forbidden"
        elif submission.status not in (SubmissionStatus.pending, SubmissionStatus.failed):
            skipped[submission_id] = submission.status.value
        elif submission.get_content() is None:
            skipped[submission_id] = "no content"
        else:
            queued.append(submission_id)

    if queued:
        db.execute(
            update(Submission)
            .where(
                Submission.id.in_(queued),
                Submission.status.in_([SubmissionStatus.pending, SubmissionStatus.failed]),
            )
            .values(**_reset_values())
        )
        db.commit()
        queue.enqueue_batch(queued)
    logger.info(f"Batch grading queued {len(queued)} submissions, skipped {len(skipped)}")
    return {"queued": queued, "skipped": skipped}
