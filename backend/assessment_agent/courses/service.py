"""Course and enrollment operations."""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.access import (
    Identity,
    can_view_course,
    require_any_admin,
    require_authenticated,
    require_course_admin_of,
    require_student,
)
from ..errors import Forbidden, InvalidInput, InvalidState, NotFound, action
from ..models import ADMIN_ROLES, Course, CourseEnrollment, User, UserRole
from ..queries import get_or_raise, scope_courses
from ..schemas import CourseCreate, CourseUpdate

logger = logging.getLogger(__name__)


def _resolve_admin(db: Session, admin_id: str) -> User:
    admin = db.get(User, admin_id)
    if admin is None or not admin.is_active:
        raise NotFound("Course admin not found")
    if admin.role not in ADMIN_ROLES:
        raise InvalidInput("Course admin must be a course admin or super admin")
    return admin


@action("Failed to create course")
def create_course(db: Session, identity: Optional[Identity], data) -> Course:
    identity = require_any_admin(identity)
    data = CourseCreate.model_validate(data)

    admin_id = data.admin_id or identity.id
    if admin_id != identity.id:
        if not identity.is_super_admin:
            raise Forbidden("Only super admins can assign another course admin")
        _resolve_admin(db, admin_id)

    course = Course(
        title=data.title,
        description=data.description,
        admin_id=admin_id,
        created_by_id=identity.id,
    )
    db.add(course)
    db.commit()
    db.refresh(course)
    logger.info(f"Course {course.id} created by {identity.id}")
    return course


@action("Failed to update course")
def update_course(db: Session, identity: Optional[Identity], course_id: str, data) -> Course:
    data = CourseUpdate.model_validate(data)
    course = get_or_raise(db, Course, course_id, "Course")
    identity = require_course_admin_of(identity, course)

    changes = data.model_dump(exclude_unset=True)
    if "admin_id" in changes:
        if not identity.is_super_admin:
            raise Forbidden("Only super admins can reassign a course")
        if changes["admin_id"] is None:
            raise InvalidInput("A course must have an admin")
        _resolve_admin(db, changes["admin_id"])
    for field in ("title", "is_active"):
        if field in changes and changes[field] is None:
            raise InvalidInput(f"{field} cannot be null")

    for field, value in changes.items():
        setattr(course, field, value)
    db.commit()
    db.refresh(course)
    return course


@action("Failed to delete course")
def delete_course(db: Session, identity: Optional[Identity], course_id: str) -> dict:
    course = get_or_raise(db, Course, course_id, "Course")
    require_course_admin_of(identity, course)
    db.delete(course)
    db.commit()
    logger.info(f"Course {course_id} deleted")
    return {"id": course_id}


@action("Failed to fetch courses")
def list_courses(db: Session, identity: Optional[Identity]) -> List[Course]:
    identity = require_authenticated(identity)
    query = scope_courses(db, db.query(Course), identity)
    return query.order_by(Course.created_at.desc()).all()


@action("Failed to fetch course")
def get_course(db: Session, identity: Optional[Identity], course_id: str) -> Course:
    identity = require_authenticated(identity)
    course = get_or_raise(db, Course, course_id, "Course")
    if not can_view_course(identity, course):
        raise Forbidden("You do not have access to this course")
    return course


def _add_enrollment(db: Session, course: Course, student_id: str) -> CourseEnrollment:
    if course.has_student(student_id):
        raise InvalidState("Already enrolled in this course")
    enrollment = CourseEnrollment(course_id=course.id, student_id=student_id)
    db.add(enrollment)
    try:
        db.commit()
    except IntegrityError:
        # concurrent enrollment of the same pair
        db.rollback()
        raise InvalidState("Already enrolled in this course")
    db.refresh(enrollment)
    return enrollment


@action("Failed to enroll in course")
def enroll(db: Session, identity: Optional[Identity], course_id: str) -> CourseEnrollment:
    identity = require_student(identity, "Only students can enroll in courses")
    course = db.get(Course, course_id)
    if course is None or not course.is_active:
        raise NotFound("Course not found or inactive")
    return _add_enrollment(db, course, identity.id)


@action("Failed to enroll student")
def enroll_student(db: Session, identity: Optional[Identity], course_id: str, student_id: str) -> CourseEnrollment:
    course = get_or_raise(db, Course, course_id, "Course")
    require_course_admin_of(identity, course)
    student = get_or_raise(db, User, student_id, "Student")
    if student.role != UserRole.student:
        raise InvalidInput("Only students can be enrolled")
    return _add_enrollment(db, course, student.id)


@action("Failed to unenroll")
def unenroll(db: Session, identity: Optional[Identity], course_id: str, student_id: str) -> dict:
    identity = require_authenticated(identity)
    course = get_or_raise(db, Course, course_id, "Course")
    if identity.id != student_id:
        require_course_admin_of(identity, course)

    enrollment = (
        db.query(CourseEnrollment)
        .filter(CourseEnrollment.course_id == course_id, CourseEnrollment.student_id == student_id)
        .first()
    )
    if enrollment is None:
        raise NotFound("Enrollment not found")
    db.delete(enrollment)
    db.commit()
    return {"course_id": course_id, "student_id": student_id}
