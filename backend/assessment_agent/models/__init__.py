"""SQLAlchemy models for the Assessment Agent."""

from .enums import ADMIN_ROLES, SubmissionStatus, SubmissionType, UserRole
from .user import User
from .course import Course, CourseEnrollment
from .question import BaseExample, Question
from .submission import CONTENT_FIELDS, Submission, SubmissionContent

__all__ = [
    "ADMIN_ROLES",
    "BaseExample",
    "CONTENT_FIELDS",
    "Course",
    "CourseEnrollment",
    "Question",
    "Submission",
    "SubmissionContent",
    "SubmissionStatus",
    "SubmissionType",
    "User",
    "UserRole",
]

# Token and login-attempt tables hang off User; register them with the mapper
from ..auth import models as _auth_models  # noqa: E402,F401
