"""Question and BaseExample models."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum as SQLEnum, ForeignKey, JSON, String, Text
from sqlalchemy.orm import relationship

from ..database import Base, utcnow
from .enums import SubmissionType


class Question(Base):
    """Question model."""
    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    submission_type = Column(SQLEnum(SubmissionType, name="submission_type"), nullable=False)
    criteria = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    course = relationship("Course", back_populates="questions")
    created_by = relationship("User")
    base_example = relationship(
        "BaseExample", back_populates="question", uselist=False, cascade="all, delete-orphan"
    )
    submissions = relationship("Submission", back_populates="question", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Question(id={self.id}, title='{self.title}', type={self.submission_type.value})>"

    @property
    def submission_count(self):
        """Get count of submissions for this question."""
        return len(self.submissions)

    @property
    def has_base_example(self) -> bool:
        return self.base_example is not None

    def meta(self) -> dict:
        """Question details handed to the grading prompt."""
        return {
            "title": self.title,
            "description": self.description,
            "criteria": self.criteria,
        }


class BaseExample(Base):
    """Reference answer a submission is compared against."""
    __tablename__ = "base_examples"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    content = Column(Text, nullable=False)
    type = Column(SQLEnum(SubmissionType, name="submission_type"), nullable=False)
    file_url = Column(String(500))
    example_metadata = Column("metadata", JSON(none_as_null=True))
    question_id = Column(
        String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    question = relationship("Question", back_populates="base_example")

    def __repr__(self):
        return f"<BaseExample(id={self.id}, question_id={self.question_id})>"
