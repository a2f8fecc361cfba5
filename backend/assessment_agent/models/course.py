"""Course and CourseEnrollment models."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base, utcnow


class Course(Base):
    """Course administered by one CourseAdmin (or SuperAdmin)."""
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(200), nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    admin_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    admin = relationship("User", back_populates="administered_courses", foreign_keys=[admin_id])
    created_by = relationship("User", foreign_keys=[created_by_id])
    questions = relationship("Question", back_populates="course", cascade="all, delete-orphan")
    enrollments = relationship("CourseEnrollment", back_populates="course", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Course(id={self.id}, title='{self.title}')>"

    @property
    def question_count(self):
        return len(self.questions)

    @property
    def enrollment_count(self):
        return len(self.enrollments)

    def has_student(self, student_id: str) -> bool:
        return any(e.student_id == student_id for e in self.enrollments)


class CourseEnrollment(Base):
    """Student membership in a course, unique per pair."""
    __tablename__ = "course_enrollments"
    __table_args__ = (
        UniqueConstraint("course_id", "student_id", name="uq_course_enrollments_course_student"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    enrolled_at = Column(DateTime(timezone=True), default=utcnow)

    course = relationship("Course", back_populates="enrollments")
    student = relationship("User", back_populates="enrollments")

    def __repr__(self):
        return f"<CourseEnrollment(course_id={self.course_id}, student_id={self.student_id})>"
