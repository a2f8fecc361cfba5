"""Submission endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from ..auth.access import Identity
from ..auth.service import get_current_identity
from ..database import get_db
from ..dispatch import GradingQueue
from ..errors import raise_for_result
from ..schemas import BatchGradeRequest, BatchGradeResult, SubmissionCreate, SubmissionPayload, SubmissionResponse
from . import service

router = APIRouter(prefix="/submissions", tags=["Submissions"])


def get_grading_queue(request: Request) -> GradingQueue:
    """The queue started by the application lifespan."""
    return request.app.state.grading_queue


@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_202_ACCEPTED)
def create_submission(
    data: SubmissionCreate,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db),
    queue: GradingQueue = Depends(get_grading_queue)
):
    """Store a pending submission and queue it for grading."""
    payload = SubmissionPayload.model_validate(data.model_dump(exclude={"question_id"}))
    return raise_for_result(service.create_submission(db, identity, data.question_id, payload, queue))


@router.get("", response_model=List[SubmissionResponse])
def list_submissions(
    question_id: Optional[str] = Query(None),
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.list_submissions(db, identity, question_id))


@router.post("/batch-grade", response_model=BatchGradeResult, status_code=status.HTTP_202_ACCEPTED)
def batch_grade(
    data: BatchGradeRequest,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db),
    queue: GradingQueue = Depends(get_grading_queue)
):
    """Regrade pending or failed submissions, a few at a time."""
    return raise_for_result(service.batch_grade(db, identity, data.submission_ids, queue))


@router.get("/{submission_id}", response_model=SubmissionResponse)
def get_submission(
    submission_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.get_submission(db, identity, submission_id))


@router.patch("/{submission_id}", response_model=SubmissionResponse)
def update_submission(
    submission_id: str,
    data: SubmissionPayload,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db),
    queue: GradingQueue = Depends(get_grading_queue)
):
    return raise_for_result(service.update_submission(db, identity, submission_id, data, queue))


@router.delete("/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_submission(
    submission_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    raise_for_result(service.delete_submission(db, identity, submission_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{submission_id}/reprocess", response_model=SubmissionResponse, status_code=status.HTTP_202_ACCEPTED)
def reprocess_submission(
    submission_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db),
    queue: GradingQueue = Depends(get_grading_queue)
):
    """Clear the previous verdict and grade again."""
    return raise_for_result(service.reprocess_submission(db, identity, submission_id, queue))
