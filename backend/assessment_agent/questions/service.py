"""Question and base example operations."""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.access import Identity, can_view_course, require_authenticated, require_course_admin_of
from ..errors import Forbidden, InvalidInput, InvalidState, NotFound, action
from ..models import BaseExample, Course, Question
from ..queries import get_or_raise, scope_questions
from ..schemas import BaseExampleCreate, BaseExampleUpdate, QuestionCreate, QuestionUpdate

logger = logging.getLogger(__name__)


@action("Failed to create question")
def create_question(db: Session, identity: Optional[Identity], data) -> Question:
    data = QuestionCreate.model_validate(data)
    course = get_or_raise(db, Course, data.course_id, "Course")
    identity = require_course_admin_of(identity, course)

    question = Question(
        course_id=course.id,
        title=data.title,
        description=data.description,
        submission_type=data.submission_type,
        criteria=data.criteria,
        created_by_id=identity.id,
    )
    db.add(question)
    db.commit()
    db.refresh(question)
    logger.info(f"Question {question.id} ({question.submission_type.value}) added to course {course.id}")
    return question


@action("Failed to update question")
def update_question(db: Session, identity: Optional[Identity], question_id: str, data) -> Question:
    data = QuestionUpdate.model_validate(data)
    question = get_or_raise(db, Question, question_id, "Question")
    require_course_admin_of(identity, question.course)

    changes = data.model_dump(exclude_unset=True)
    for field in ("title", "description", "submission_type", "is_active"):
        if field in changes and changes[field] is None:
            raise InvalidInput(f"{field} cannot be null")
    kind = changes.get("submission_type")
    if kind is not None and kind != question.submission_type and question.base_example is not None:
        # Base example content must keep matching the question's kind
        raise InvalidState("Delete the base example before changing the submission type")

    for field, value in changes.items():
        setattr(question, field, value)
    db.commit()
    db.refresh(question)
    return question


@action("Failed to delete question")
def delete_question(db: Session, identity: Optional[Identity], question_id: str) -> dict:
    question = get_or_raise(db, Question, question_id, "Question")
    require_course_admin_of(identity, question.course)
    db.delete(question)
    db.commit()
    return {"id": question_id}


@action("Failed to fetch questions")
def list_questions(db: Session, identity: Optional[Identity], course_id: Optional[str] = None) -> List[Question]:
    identity = require_authenticated(identity)
    query = db.query(Question)
    if course_id:
        course = get_or_raise(db, Course, course_id, "Course")
        if not can_view_course(identity, course):
            raise Forbidden("You do not have access to this course")
        query = query.filter(Question.course_id == course_id)
    else:
        query = scope_questions(db, query, identity)
    if identity.is_student:
        query = query.filter(Question.is_active.is_(True))
    return query.order_by(Question.created_at.desc()).all()


@action("Failed to fetch question")
def get_question(db: Session, identity: Optional[Identity], question_id: str) -> Question:
    identity = require_authenticated(identity)
    question = get_or_raise(db, Question, question_id, "Question")
    if not can_view_course(identity, question.course):
        raise Forbidden("You do not have access to this question")
    return question


# Base examples

@action("Failed to create base example")
def create_base_example(db: Session, identity: Optional[Identity], data) -> BaseExample:
    data = BaseExampleCreate.model_validate(data)
    question = get_or_raise(db, Question, data.question_id, "Question")
    require_course_admin_of(identity, question.course)

    if question.base_example is not None:
        raise InvalidState("Question already has a base example")
    if data.type != question.submission_type:
        raise InvalidInput(
            f"Base example type {data.type.value} does not match question type {question.submission_type.value}"
        )

    example = BaseExample(
        question_id=question.id,
        content=data.content,
        type=data.type,
        file_url=data.file_url,
        example_metadata=data.metadata,
    )
    db.add(example)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidState("Question already has a base example")
    db.refresh(example)
    return example


@action("Failed to update base example")
def update_base_example(db: Session, identity: Optional[Identity], example_id: str, data) -> BaseExample:
    data = BaseExampleUpdate.model_validate(data)
    example = get_or_raise(db, BaseExample, example_id, "Base example")
    require_course_admin_of(identity, example.question.course)

    changes = data.model_dump(exclude_unset=True)
    if "type" in changes and changes["type"] != example.question.submission_type:
        raise InvalidInput("Base example type must match the question type")
    if "content" in changes and changes["content"] is None:
        raise InvalidInput("content cannot be null")
    if "metadata" in changes:
        changes["example_metadata"] = changes.pop("metadata")

    for field, value in changes.items():
        setattr(example, field, value)
    db.commit()
    db.refresh(example)
    return example


@action("Failed to delete base example")
def delete_base_example(db: Session, identity: Optional[Identity], example_id: str) -> dict:
    example = get_or_raise(db, BaseExample, example_id, "Base example")
    require_course_admin_of(identity, example.question.course)
    db.delete(example)
    db.commit()
    return {"id": example_id}


@action("Failed to fetch base example")
def get_base_example(db: Session, identity: Optional[Identity], question_id: str) -> BaseExample:
    question = get_or_raise(db, Question, question_id, "Question")
    require_course_admin_of(identity, question.course)
    if question.base_example is None:
        raise NotFound("Base example not found")
    return question.base_example
