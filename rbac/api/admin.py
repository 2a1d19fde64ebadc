"""Admin API router: health and dashboard statistics."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rbac.db.base import utcnow
from rbac.db.session import get_db
from rbac.models.permission import Permission
from rbac.models.role import Role
from rbac.models.user import User, UserStatusEnum
from rbac.models.user_session import UserSession
from rbac.core.security import RequirePermission

logger = logging.getLogger("rbac.admin")

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """System health check: database connectivity."""
    db_ok = False
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        logger.exception("Database health check failed")

    return {
        "database": "ok" if db_ok else "error",
        "status": "healthy" if db_ok else "degraded",
    }


@router.get("/stats")
async def system_stats(
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("system.metrics")),
):
    """Counts shown on the admin dashboard."""
    return {
        "total_roles": db.query(Role).count(),
        "total_permissions": db.query(Permission).count(),
        "total_users": db.query(User).count(),
        "active_users": db.query(User).filter(User.status == UserStatusEnum.active).count(),
        "active_sessions": db.query(UserSession).filter(
            UserSession.is_active == True,
            UserSession.expires_at > utcnow(),
        ).count(),
    }
