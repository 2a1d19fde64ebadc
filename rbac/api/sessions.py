"""Sessions API router."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from rbac.db.session import get_db
from rbac.schemas.schemas import SessionOut, SessionStats, MessageResponse, CountResponse
from rbac.services.session_service import session_service
from rbac.services.role_service import role_service
from rbac.services.activity_service import activity_service
from rbac.models.activity import ActivityAction
from rbac.models.user import User
from rbac.core.security import AuthContext, RequirePermission, get_auth_context, get_current_user

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("/current", response_model=SessionOut)
async def get_current_session(ctx: AuthContext = Depends(get_auth_context)):
    """The session the calling token belongs to."""
    return ctx.session


@router.get("/stats", response_model=SessionStats)
async def get_session_stats(
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("session.read", "system.metrics")),
):
    return session_service.get_stats(db)


@router.post("/cleanup", response_model=CountResponse)
async def cleanup_expired_sessions(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("session.delete", "system.settings")),
):
    """Delete expired and terminated sessions."""
    deleted = session_service.cleanup_expired(db)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.SESSIONS_CLEANED,
        f"Cleaned up {deleted} expired sessions",
    )
    return CountResponse(count=deleted)


@router.get("/user/{user_id}", response_model=List[SessionOut])
async def get_user_sessions(
    user_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("session.read")),
):
    return session_service.list_active(db, user_id)


@router.delete("/user/{user_id}", response_model=CountResponse)
async def terminate_all_sessions(
    user_id: int,
    request: Request,
    exclude_session_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("session.delete")),
):
    """End every active session of a user, optionally sparing one."""
    terminated = session_service.terminate_all(db, user_id, exclude_session_id)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.SESSIONS_TERMINATED,
        f"All sessions terminated for user {user_id}",
        metadata={"user_id": user_id, "excluded_session_id": exclude_session_id},
    )
    return CountResponse(count=terminated)


@router.delete("/{session_id}", response_model=MessageResponse)
async def terminate_session(
    session_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """End one session. Other users' sessions need ``session.delete``."""
    may_terminate_others = any(
        p.name == "session.delete" and p.is_active
        for p in role_service.get_effective_permissions(db, user.role_id)
    )
    session = session_service.terminate(db, session_id, user.id, may_terminate_others)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.SESSION_TERMINATED,
        "Session terminated",
        metadata={"session_id": session.id, "user_id": session.user_id},
    )
    return MessageResponse(message="Session terminated")
