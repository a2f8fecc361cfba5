"""Shared enums for models and auth."""
import enum


class UserRole(enum.Enum):
    super_admin = "super_admin"
    course_admin = "course_admin"
    student = "student"


ADMIN_ROLES = frozenset({UserRole.super_admin, UserRole.course_admin})


class SubmissionType(enum.Enum):
    """Kind of content a question expects."""
    text = "text"
    document = "document"
    website = "website"
    github_repo = "github_repo"


class SubmissionStatus(enum.Enum):
    """Grading status of a submission."""
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"
