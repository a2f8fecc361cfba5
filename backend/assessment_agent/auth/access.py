"""Access-control gate.

Every service operation receives the caller's ``Identity`` explicitly and
runs it through these guards before touching the store. The guards have
no side effects.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from ..errors import Forbidden, Unauthenticated
from ..models.enums import ADMIN_ROLES, UserRole


@dataclass(frozen=True)
class Identity:
    """Who is calling: resolved from the session provider per request."""
    id: str
    role: UserRole
    name: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_user(cls, user) -> "Identity":
        return cls(id=user.id, role=user.role, name=user.name, email=user.email)

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.super_admin

    @property
    def is_course_admin(self) -> bool:
        return self.role == UserRole.course_admin

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.student


def require_authenticated(identity: Optional[Identity]) -> Identity:
    if identity is None:
        raise Unauthenticated("Authentication required")
    return identity


def require_role(identity: Optional[Identity], allowed: Iterable[UserRole]) -> Identity:
    identity = require_authenticated(identity)
    if identity.role not in set(allowed):
        raise Forbidden("Insufficient permissions")
    return identity


def require_any_admin(identity: Optional[Identity]) -> Identity:
    return require_role(identity, ADMIN_ROLES)


def require_super_admin(identity: Optional[Identity]) -> Identity:
    return require_role(identity, {UserRole.super_admin})


def require_student(identity: Optional[Identity], message: str = "Only students can perform this action") -> Identity:
    identity = require_authenticated(identity)
    if not identity.is_student:
        raise Forbidden(message)
    return identity


def administers(identity: Identity, course) -> bool:
    """SuperAdmin administers every course, a CourseAdmin only their own."""
    if identity.is_super_admin:
        return True
    return identity.is_course_admin and course.admin_id == identity.id


def require_course_admin_of(identity: Optional[Identity], course) -> Identity:
    identity = require_any_admin(identity)
    if not administers(identity, course):
        raise Forbidden("Insufficient permissions")
    return identity


def can_view_course(identity: Identity, course) -> bool:
    """Admins of the course, or students enrolled in it."""
    if administers(identity, course):
        return True
    return identity.is_student and course.has_student(identity.id)
