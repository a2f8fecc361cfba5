"""Submission model.

Submission content is stored as four nullable columns (one per
submission kind). The rest of the code works with ``SubmissionContent``,
a kind-tagged value; translation happens only here.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from sqlalchemy import Column, DateTime, Enum as SQLEnum, Float, ForeignKey, JSON, String, Text
from sqlalchemy.orm import relationship

from ..database import Base, utcnow
from .enums import SubmissionStatus, SubmissionType

# Column holding the content of each submission kind
CONTENT_FIELDS = {
    SubmissionType.text: "content",
    SubmissionType.document: "file_url",
    SubmissionType.website: "website_url",
    SubmissionType.github_repo: "github_url",
}

GRADING_FIELDS = ("score", "feedback", "confidence", "comparison_data", "processed_at")


@dataclass(frozen=True)
class SubmissionContent:
    """Exactly one piece of content of a given submission kind."""
    kind: SubmissionType
    value: str

    @property
    def field(self) -> str:
        return CONTENT_FIELDS[self.kind]

    @classmethod
    def from_payload(cls, kind: SubmissionType, payload: Mapping[str, Any]) -> Optional["SubmissionContent"]:
        """Pick the value for ``kind`` out of a payload keyed by column name."""
        value = payload.get(CONTENT_FIELDS[kind])
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return cls(kind=kind, value=str(value))


class Submission(Base):
    """Submission model."""
    __tablename__ = "submissions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    content = Column(Text)
    file_url = Column(String(2048))
    website_url = Column(String(2048))
    github_url = Column(String(2048))
    status = Column(
        SQLEnum(SubmissionStatus, name="submission_status"),
        nullable=False,
        default=SubmissionStatus.pending,
        index=True,
    )
    submitted_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    processed_at = Column(DateTime(timezone=True))
    score = Column(Float)
    feedback = Column(Text)
    confidence = Column(Float)
    comparison_data = Column(JSON(none_as_null=True))
    question_id = Column(String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Relationships
    question = relationship("Question", back_populates="submissions")
    student = relationship("User", back_populates="submissions")

    def __repr__(self):
        return f"<Submission(id={self.id}, status={self.status.value if self.status else None})>"

    def get_content(self) -> Optional[SubmissionContent]:
        """Content for the question's kind, or None if that column is empty."""
        kind = self.question.submission_type
        value = getattr(self, CONTENT_FIELDS[kind])
        if not value:
            return None
        return SubmissionContent(kind=kind, value=value)

    def set_content(self, content: SubmissionContent) -> None:
        """Store ``content`` and null the columns of every other kind."""
        for kind, field in CONTENT_FIELDS.items():
            setattr(self, field, content.value if kind == content.kind else None)

    @property
    def comparison(self) -> dict:
        data = self.comparison_data if isinstance(self.comparison_data, dict) else {}
        return {
            "similarities": list(data.get("similarities") or []),
            "differences": list(data.get("differences") or []),
            "suggestions": list(data.get("suggestions") or []),
        }
