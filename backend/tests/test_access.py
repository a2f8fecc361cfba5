"""Tests for the access-control gate."""

import pytest

from assessment_agent.auth.access import (
    Identity,
    administers,
    can_view_course,
    require_any_admin,
    require_authenticated,
    require_course_admin_of,
    require_role,
    require_student,
    require_super_admin,
)
from assessment_agent.errors import Forbidden, Unauthenticated
from assessment_agent.models import UserRole

SUPER = Identity(id="u-super", role=UserRole.super_admin)
ADMIN = Identity(id="u-admin", role=UserRole.course_admin)
STUDENT = Identity(id="u-student", role=UserRole.student)


class TestGuards:

    @pytest.mark.parametrize("guard", [
        require_authenticated,
        require_any_admin,
        require_super_admin,
        require_student,
    ])
    def test_no_identity_is_unauthenticated(self, guard):
        with pytest.raises(Unauthenticated):
            guard(None)

    def test_require_role_returns_identity(self):
        assert require_role(ADMIN, {UserRole.course_admin}) is ADMIN

    def test_require_role_rejects_other_roles(self):
        with pytest.raises(Forbidden):
            require_role(STUDENT, {UserRole.course_admin, UserRole.super_admin})

    def test_require_any_admin(self):
        assert require_any_admin(SUPER) is SUPER
        assert require_any_admin(ADMIN) is ADMIN
        with pytest.raises(Forbidden):
            require_any_admin(STUDENT)

    def test_require_super_admin(self):
        assert require_super_admin(SUPER) is SUPER
        with pytest.raises(Forbidden):
            require_super_admin(ADMIN)

    def test_require_student_message(self):
        with pytest.raises(Forbidden, match="Only students can create submissions"):
            require_student(ADMIN, "Only students can create submissions")


class TestCourseAccess:

    def test_super_admin_administers_everything(self, sample_course):
        assert administers(SUPER, sample_course)

    def test_course_admin_administers_own_course(self, sample_course, course_admin, other_admin):
        assert administers(Identity.from_user(course_admin), sample_course)
        assert not administers(Identity.from_user(other_admin), sample_course)

    def test_student_never_administers(self, sample_course, student):
        assert not administers(Identity.from_user(student), sample_course)

    def test_require_course_admin_of(self, sample_course, other_admin):
        with pytest.raises(Forbidden):
            require_course_admin_of(Identity.from_user(other_admin), sample_course)

    def test_enrolled_student_can_view(self, sample_course, enrollment, student, other_student):
        assert can_view_course(Identity.from_user(student), sample_course)
        assert not can_view_course(Identity.from_user(other_student), sample_course)

    def test_identity_from_user(self, student):
        identity = Identity.from_user(student)
        assert identity.id == student.id
        assert identity.is_student
        assert identity.email == "alice@example.com"
