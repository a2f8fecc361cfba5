"""Credential checks, JWT issuance and the identity dependencies used by every router."""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from ..config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, REFRESH_TOKEN_EXPIRE_DAYS, SECRET_KEY
from ..database import get_db, utcnow
from ..models import User
from .access import Identity
from .models import LoginAttempt, RefreshToken, Token, TokenData

logger = logging.getLogger(__name__)

# auto_error=False: a missing token means "no identity"; the access gate decides what that implies
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)

INVALID_CREDENTIALS = "Incorrect email or password"


@dataclass(frozen=True)
class ClientInfo:
    """Where a login or token request came from, stored alongside attempts and refresh tokens."""
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "ClientInfo":
        return cls(
            user_agent=request.headers.get("user-agent"),
            ip_address=request.client.host if request.client else None,
        )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def create_access_token(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
        claims = {
            "sub": user.email,
            "user_id": user.id,
            "role": user.role.value,
            "exp": expire,
            "type": "access",
        }
        return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)

    def create_refresh_token(self, user_id: str, user_agent: str = None, ip_address: str = None) -> RefreshToken:
        """Persist a fresh opaque refresh token for ``user_id``."""
        refresh = RefreshToken(
            token=RefreshToken.generate_token(),
            user_id=user_id,
            expires_at=utcnow() + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
            user_agent=user_agent,
            ip_address=ip_address,
        )
        self.db.add(refresh)
        self.db.commit()
        self.db.refresh(refresh)
        return refresh

    @staticmethod
    def decode_token(token: str) -> Optional[TokenData]:
        """Claims of a valid access token, or None for anything expired, forged or of the wrong type."""
        try:
            claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except JWTError:
            return None
        if claims.get("type") != "access" or claims.get("user_id") is None:
            return None
        return TokenData(email=claims.get("sub"), user_id=claims.get("user_id"), role=claims.get("role"))

    def login(self, email: str, password: str, client: ClientInfo = ClientInfo()) -> Token:
        """Check credentials and hand out an access/refresh pair.

        A locked account is refused before the password is looked at, so a
        correct guess during the lock window neither succeeds nor resets the
        counter. Every attempt against a known account is recorded.
        """
        user = self.db.query(User).filter(User.email == email).first()
        if user is None:
            logger.info(f"Login for unknown account {email}")
            raise _unauthorized(INVALID_CREDENTIALS)
        if user.is_locked():
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is temporarily locked due to too many failed login attempts",
            )

        ok = user.verify_password(password)
        if ok and not user.is_active:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
        self._record_attempt(user, client, ok)
        if not ok:
            raise _unauthorized(INVALID_CREDENTIALS)

        refresh = self.create_refresh_token(user.id, user_agent=client.user_agent, ip_address=client.ip_address)
        return Token(access_token=self.create_access_token(user), refresh_token=refresh.token)

    def _record_attempt(self, user: User, client: ClientInfo, success: bool) -> None:
        self.db.add(LoginAttempt(
            user_id=user.id,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            success=success,
        ))
        user.register_login(success)
        if not success and user.is_locked():
            logger.warning(f"Account {user.email} locked after {user.failed_login_attempts} failed logins")
        self.db.commit()

    def refresh_tokens(self, refresh_token: str) -> Token:
        """Mint a new access token; the refresh token itself is reused until it expires or is revoked."""
        stored = self.db.query(RefreshToken).filter(
            RefreshToken.token == refresh_token,
            RefreshToken.revoked.is_(False),
        ).first()
        if stored is None or stored.is_expired():
            raise _unauthorized("Invalid or expired refresh token")

        user = self.db.get(User, stored.user_id)
        if user is None or not user.is_active:
            raise _unauthorized("User not found or inactive")
        return Token(access_token=self.create_access_token(user), refresh_token=stored.token)

    def revoke_refresh_token(self, token: str) -> None:
        revoked = self.db.query(RefreshToken).filter(RefreshToken.token == token).update(
            {RefreshToken.revoked: True}, synchronize_session="fetch"
        )
        if revoked:
            self.db.commit()

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not user.verify_password(current_password):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
        user.set_password(new_password)
        self.db.commit()
        logger.info(f"Password changed for {user.email}")


def get_auth_service(db: Session = Depends(get_db)) -> AuthService:
    return AuthService(db)


def get_current_identity(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Optional[Identity]:
    """Resolve the caller from the bearer token; None when unauthenticated."""
    if not token:
        return None
    token_data = AuthService.decode_token(token)
    if token_data is None:
        return None
    # Re-read the user so role changes and deactivation apply immediately
    user = db.get(User, token_data.user_id)
    if user is None or not user.is_active:
        return None
    return Identity.from_user(user)


def get_current_user(
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
) -> User:
    """Full user row for the caller; 401 without a usable token."""
    if identity is None:
        raise _unauthorized("Could not validate credentials")
    return db.get(User, identity.id)
