"""Auth service: login, refresh, logout, registration, password change."""

import logging
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from rbac.models.role import Role
from rbac.models.user import User
from rbac.models.user_session import UserSession
from rbac.core.security import (
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_token,
)
from rbac.core.exceptions import AuthenticationError, ResourceNotFoundError
from rbac.db.base import utcnow
from rbac.services.session_service import session_service
from rbac.services.user_service import user_service

logger = logging.getLogger("rbac.auth")

DEFAULT_ROLE_NAME = "guest"


def user_summary(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role.name if user.role else None,
    }


class AuthService:
    """Handles authentication and the session lifecycle."""

    @staticmethod
    def _issue_tokens(user: User, session: UserSession) -> Dict[str, str]:
        """Sign a fresh token pair bound to ``session`` and record their hashes."""
        token_data = {"sub": str(user.id), "sid": session.id}
        access_token = create_access_token(token_data)
        refresh_token = create_refresh_token(token_data)
        session.token_hash = hash_token(access_token)
        session.refresh_token_hash = hash_token(refresh_token)
        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
        }

    @staticmethod
    def authenticate(
        db: Session,
        email: str,
        password: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Authenticate user, open a session and return JWT tokens.

        Raises:
            AuthenticationError: If credentials are invalid or the account is inactive.
        """
        logger.info("Login attempt for email: %s", email)
        user = user_service.get_by_email(db, email)
        if not user or not verify_password(password, user.hashed_password):
            logger.warning("Login failed: invalid credentials for email: %s", email)
            raise AuthenticationError("Invalid credentials")

        if not user.is_active:
            logger.warning("Login failed: account inactive for email: %s", email)
            raise AuthenticationError("Account is inactive")

        session = session_service.open(db, user.id, user_agent, ip_address)
        tokens = AuthService._issue_tokens(user, session)
        user.last_login_at = utcnow()
        db.commit()

        return {**tokens, "user": user_summary(user)}

    @staticmethod
    def refresh(db: Session, refresh_token: str) -> Dict[str, Any]:
        """Rotate the token pair of the session the refresh token belongs to."""
        payload = decode_token(refresh_token, token_type="refresh")

        session = (
            db.query(UserSession)
            .filter(
                UserSession.refresh_token_hash == hash_token(refresh_token),
                UserSession.is_active == True,
            )
            .first()
        )
        if not session or session.is_expired() or str(session.user_id) != payload.get("sub"):
            raise AuthenticationError("Invalid or expired refresh token")

        user = db.get(User, session.user_id)
        if not user or not user.is_active:
            raise AuthenticationError("User not found or deactivated")

        tokens = AuthService._issue_tokens(user, session)
        session_service.extend(session)
        db.commit()
        return {**tokens, "user": user_summary(user)}

    @staticmethod
    def logout(db: Session, session: UserSession) -> None:
        """End the given session."""
        session.is_active = False
        db.commit()

    @staticmethod
    def register(
        db: Session,
        email: str,
        password: str,
        full_name: str,
    ) -> User:
        """Self-service sign-up on the ``guest`` role."""
        role = db.query(Role).filter(Role.name == DEFAULT_ROLE_NAME).first()
        if not role:
            raise ResourceNotFoundError(f"Role '{DEFAULT_ROLE_NAME}' not found")
        user, _ = user_service.create(db, email, full_name, role.id, password=password)
        return user

    @staticmethod
    def change_password(
        db: Session,
        user: User,
        session: UserSession,
        current_password: str,
        new_password: str,
    ) -> Dict[str, Any]:
        """Change the password, end every other session and re-issue tokens
        for the current one.
        """
        if not verify_password(current_password, user.hashed_password):
            raise AuthenticationError("Current password is incorrect")

        user_service.set_password(user, new_password)
        session_service.terminate_all(db, user.id, exclude_session_id=session.id)
        tokens = AuthService._issue_tokens(user, session)
        db.commit()
        return {**tokens, "user": user_summary(user)}


auth_service = AuthService()
