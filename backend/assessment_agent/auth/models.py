"""Refresh token and login-attempt tables, plus the auth request and response schemas."""
import secrets
import string
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from ..database import Base, as_utc, utcnow
from ..models.enums import UserRole


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token = Column(String(255), unique=True, index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    revoked = Column(Boolean, default=False)
    user_agent = Column(String(255), nullable=True)
    ip_address = Column(String(45), nullable=True)

    user = relationship("User", back_populates="refresh_tokens")

    @staticmethod
    def generate_token(nbytes: int = 48) -> str:
        return secrets.token_urlsafe(nbytes)

    def is_expired(self) -> bool:
        return utcnow() > as_utc(self.expires_at)


class LoginAttempt(Base):
    __tablename__ = "login_attempts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(255), nullable=True)
    success = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="login_attempts")


PASSWORD_RULES = (
    (lambda v: len(v) >= 8, "at least 8 characters"),
    (lambda v: any(c.isdigit() for c in v), "a number"),
    (lambda v: any(c.isupper() for c in v), "an uppercase letter"),
    (lambda v: any(c.islower() for c in v), "a lowercase letter"),
    (lambda v: any(c in string.punctuation for c in v), "a special character"),
)


def _check_password_complexity(v: str) -> str:
    missing = [label for rule, label in PASSWORD_RULES if not rule(v)]
    if missing:
        raise ValueError(f"Password must contain {', '.join(missing)}")
    return v


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    refresh_token: str


class TokenData(BaseModel):
    email: Optional[str] = None
    user_id: Optional[str] = None
    role: Optional[UserRole] = None


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: Optional[str] = Field(None, max_length=100)
    role: UserRole = UserRole.student

    @field_validator('password')
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return _check_password_complexity(v)


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str]
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RoleUpdate(BaseModel):
    role: UserRole


class ChangePassword(BaseModel):
    current_password: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return _check_password_complexity(v)
