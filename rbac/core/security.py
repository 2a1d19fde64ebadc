"""JWT authentication and RBAC authorization helpers."""

import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from rbac.core.config import settings
from rbac.core.exceptions import AuthenticationError, AuthorizationError
from rbac.db.base import utcnow
from rbac.db.session import get_db
from rbac.models.user import User
from rbac.models.user_session import UserSession
from rbac.services.session_service import session_service

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    pwd_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(pwd_bytes, hashed_bytes)


def hash_token(token: str) -> str:
    """SHA-256 hex digest under which issued tokens are stored."""
    return hashlib.sha256(token.encode()).hexdigest()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES))
    to_encode.update({
        "exp": expire,
        "iat": int(now.timestamp()),
        "jti": uuid.uuid4().hex,
        "type": "access",
    })
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(data: dict) -> str:
    """Create a JWT refresh token, signed with the refresh secret."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + timedelta(days=settings.REFRESH_TOKEN_EXPIRY_DAYS)
    to_encode.update({
        "exp": expire,
        "iat": int(now.timestamp()),
        "jti": uuid.uuid4().hex,
        "type": "refresh",
    })
    return jwt.encode(to_encode, settings.JWT_REFRESH_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, token_type: str = "access") -> Dict[str, Any]:
    """Decode and validate a JWT token of the given type.

    Raises:
        AuthenticationError: bad signature, expired, or wrong token type.
    """
    secret = settings.JWT_REFRESH_SECRET if token_type == "refresh" else settings.JWT_SECRET
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")
    if payload.get("type") != token_type:
        raise AuthenticationError("Invalid token type")
    return payload


def changed_password_after(user: User, issued_at: Optional[int]) -> bool:
    """True if the user's password changed after a token was issued."""
    if user.password_changed_at is None or issued_at is None:
        return False
    changed = int(user.password_changed_at.replace(tzinfo=timezone.utc).timestamp())
    return issued_at < changed


@dataclass
class AuthContext:
    """Authenticated caller of the current request."""
    user: User
    session: UserSession
    token: str


def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Resolve the Bearer token to an active user and session."""
    if credentials is None:
        raise AuthenticationError("Not authorized to access this route")

    token = credentials.credentials
    payload = decode_token(token)
    user_id = payload.get("sub")
    session_id = payload.get("sid")
    if user_id is None or session_id is None:
        raise AuthenticationError("Invalid token payload")

    user = db.get(User, int(user_id))
    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is inactive")
    if changed_password_after(user, payload.get("iat")):
        raise AuthenticationError("Password recently changed. Please log in again")

    session = db.get(UserSession, int(session_id))
    if (
        session is None
        or session.user_id != user.id
        or not session.is_active
        or session.token_hash != hash_token(token)
    ):
        raise AuthenticationError("Session is no longer active")
    if session.is_expired():
        raise AuthenticationError("Session expired")

    if session.needs_refresh(timedelta(minutes=settings.SESSION_REFRESH_THRESHOLD_MINUTES)):
        session_service.extend(session)
    else:
        session.last_activity = utcnow()
    db.commit()
    return AuthContext(user=user, session=session, token=token)


def get_current_user(ctx: AuthContext = Depends(get_auth_context)) -> User:
    """The authenticated user of the current request."""
    return ctx.user


class RequirePermission:
    """Dependency that checks the caller's effective permissions.

    Permissions inherited through the role hierarchy count, so a role below
    ``admin`` granting nothing itself still passes when an ancestor does.
    """

    def __init__(self, *permission_names: str):
        self.permission_names = set(permission_names)

    def __call__(
        self,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> User:
        from rbac.services.role_service import role_service

        granted = {
            p.name
            for p in role_service.get_effective_permissions(db, user.role_id)
            if p.is_active
        }
        missing = self.permission_names - granted
        if missing:
            raise AuthorizationError(
                f"User does not have permission to perform this action "
                f"(missing: {', '.join(sorted(missing))})"
            )
        return user
