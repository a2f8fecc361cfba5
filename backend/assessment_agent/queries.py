"""Shared lookups and role-scoped query filters."""

from typing import Type, TypeVar

from sqlalchemy.orm import Query, Session

from .auth.access import Identity
from .errors import NotFound
from .models import Course, CourseEnrollment, Question, Submission

M = TypeVar("M")


def get_or_raise(db: Session, model: Type[M], obj_id: str, label: str) -> M:
    obj = db.get(model, obj_id) if obj_id else None
    if obj is None:
        raise NotFound(f"{label} not found")
    return obj


def enrolled_course_ids(db: Session, student_id: str):
    return db.query(CourseEnrollment.course_id).filter(CourseEnrollment.student_id == student_id)


def scope_courses(db: Session, query: Query, identity: Identity) -> Query:
    """Students see enrolled courses, CourseAdmins their own, SuperAdmins all."""
    if identity.is_student:
        return query.filter(Course.id.in_(enrolled_course_ids(db, identity.id)))
    if identity.is_course_admin:
        return query.filter(Course.admin_id == identity.id)
    return query


def scope_questions(db: Session, query: Query, identity: Identity) -> Query:
    if identity.is_super_admin:
        return query
    query = query.join(Course, Question.course_id == Course.id)
    if identity.is_student:
        return query.filter(Course.id.in_(enrolled_course_ids(db, identity.id)))
    return query.filter(Course.admin_id == identity.id)


def scope_submissions(query: Query, identity: Identity) -> Query:
    """Students see their own rows, CourseAdmins rows of courses they administer."""
    query = query.join(Question, Submission.question_id == Question.id).join(
        Course, Question.course_id == Course.id
    )
    if identity.is_student:
        return query.filter(Submission.student_id == identity.id)
    if identity.is_course_admin:
        return query.filter(Course.admin_id == identity.id)
    return query
