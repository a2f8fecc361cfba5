"""Question and base example endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..auth.access import Identity
from ..auth.service import get_current_identity
from ..database import get_db
from ..errors import raise_for_result
from ..schemas import (
    BaseExampleCreate,
    BaseExampleResponse,
    BaseExampleUpdate,
    QuestionCreate,
    QuestionResponse,
    QuestionUpdate,
)
from . import service

router = APIRouter(prefix="/questions", tags=["Questions"])
base_example_router = APIRouter(prefix="/base-examples", tags=["Base Examples"])


@router.post("", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
def create_question(
    data: QuestionCreate,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.create_question(db, identity, data))


@router.get("", response_model=List[QuestionResponse])
def list_questions(
    course_id: Optional[str] = Query(None),
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.list_questions(db, identity, course_id))


@router.get("/{question_id}", response_model=QuestionResponse)
def get_question(
    question_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.get_question(db, identity, question_id))


@router.patch("/{question_id}", response_model=QuestionResponse)
def update_question(
    question_id: str,
    data: QuestionUpdate,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.update_question(db, identity, question_id, data))


@router.delete("/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_question(
    question_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    raise_for_result(service.delete_question(db, identity, question_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{question_id}/base-example", response_model=BaseExampleResponse)
def get_base_example(
    question_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """The reference answer of a question (admins only)."""
    return raise_for_result(service.get_base_example(db, identity, question_id))


@base_example_router.post("", response_model=BaseExampleResponse, status_code=status.HTTP_201_CREATED)
def create_base_example(
    data: BaseExampleCreate,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.create_base_example(db, identity, data))


@base_example_router.patch("/{example_id}", response_model=BaseExampleResponse)
def update_base_example(
    example_id: str,
    data: BaseExampleUpdate,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.update_base_example(db, identity, example_id, data))


@base_example_router.delete("/{example_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_base_example(
    example_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    raise_for_result(service.delete_base_example(db, identity, example_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
