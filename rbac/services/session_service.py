"""Session service: login sessions, termination, and cleanup."""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from rbac.core.config import settings
from rbac.core.exceptions import AuthorizationError, ResourceNotFoundError
from rbac.db.base import utcnow
from rbac.models.user_session import UserSession

logger = logging.getLogger("rbac.sessions")

_BROWSERS = (("edg/", "Edge"), ("opr/", "Opera"), ("chrome/", "Chrome"),
             ("firefox/", "Firefox"), ("safari/", "Safari"))
_SYSTEMS = (("windows", "Windows"), ("android", "Android"), ("iphone", "iOS"),
            ("ipad", "iOS"), ("mac os", "macOS"), ("linux", "Linux"))


def describe_device(user_agent: Optional[str]) -> Dict[str, Optional[str]]:
    """Rough device type, browser and OS from a User-Agent header."""
    ua = (user_agent or "").lower()
    if not ua:
        return {"device_type": None, "browser": None, "os": None}
    if "ipad" in ua or "tablet" in ua:
        device_type = "tablet"
    elif "mobi" in ua or "iphone" in ua or "android" in ua:
        device_type = "mobile"
    else:
        device_type = "desktop"
    browser = next((name for key, name in _BROWSERS if key in ua), "Other")
    os_name = next((name for key, name in _SYSTEMS if key in ua), "Other")
    return {"device_type": device_type, "browser": browser, "os": os_name}


class SessionService:
    """Tracks one row per login and lets users and admins end them."""

    @staticmethod
    def open(
        db: Session,
        user_id: int,
        user_agent: Optional[str],
        ip_address: Optional[str],
    ) -> UserSession:
        """Start a session; token hashes are filled in by the caller."""
        session = UserSession(
            user_id=user_id,
            user_agent=(user_agent or "")[:500] or None,
            ip_address=ip_address,
            expires_at=utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRY_DAYS),
            **describe_device(user_agent),
        )
        db.add(session)
        db.flush()
        return session

    @staticmethod
    def get(db: Session, session_id: int) -> UserSession:
        session = db.get(UserSession, session_id)
        if not session:
            raise ResourceNotFoundError(f"Session {session_id} not found")
        return session

    @staticmethod
    def extend(session: UserSession) -> UserSession:
        """Push the session expiry forward after a refresh."""
        now = utcnow()
        session.expires_at = max(
            session.expires_at, now + timedelta(hours=settings.SESSION_REFRESH_HOURS)
        )
        session.last_activity = now
        return session

    @staticmethod
    def list_active(db: Session, user_id: int) -> List[UserSession]:
        """Active, unexpired sessions of a user, most recently used first."""
        return (
            db.query(UserSession)
            .filter(
                UserSession.user_id == user_id,
                UserSession.is_active == True,
                UserSession.expires_at > utcnow(),
            )
            .order_by(UserSession.last_activity.desc(), UserSession.id.desc())
            .all()
        )

    @staticmethod
    def terminate(
        db: Session,
        session_id: int,
        actor_id: int,
        may_terminate_others: bool = False,
    ) -> UserSession:
        """Deactivate one session.

        Raises:
            AuthorizationError: the session belongs to someone else and the
                actor may not terminate other users' sessions.
        """
        session = SessionService.get(db, session_id)
        if session.user_id != actor_id and not may_terminate_others:
            raise AuthorizationError("Not authorized to terminate this session")
        session.is_active = False
        db.commit()
        return session

    @staticmethod
    def terminate_all(
        db: Session,
        user_id: int,
        exclude_session_id: Optional[int] = None,
    ) -> int:
        """Deactivate every active session of a user, optionally keeping one."""
        query = db.query(UserSession).filter(
            UserSession.user_id == user_id,
            UserSession.is_active == True,
        )
        if exclude_session_id is not None:
            query = query.filter(UserSession.id != exclude_session_id)
        terminated = query.update({"is_active": False}, synchronize_session=False)
        db.commit()
        return terminated

    @staticmethod
    def get_stats(db: Session) -> Dict[str, Any]:
        now = utcnow()
        active = (
            db.query(UserSession)
            .filter(UserSession.is_active == True, UserSession.expires_at > now)
            .count()
        )
        expired = (
            db.query(UserSession)
            .filter(or_(UserSession.is_active == False, UserSession.expires_at <= now))
            .count()
        )
        return {
            "active_sessions": active,
            "expired_sessions": expired,
            "total_sessions": active + expired,
        }

    @staticmethod
    def cleanup_expired(db: Session) -> int:
        """Delete expired or inactive sessions and return how many went."""
        deleted = (
            db.query(UserSession)
            .filter(or_(UserSession.expires_at < utcnow(), UserSession.is_active == False))
            .delete(synchronize_session=False)
        )
        db.commit()
        logger.info("Cleaned up %d expired sessions", deleted)
        return deleted


session_service = SessionService()
