"""Activity service: append-only trail of user and admin actions."""

import json
import logging
from datetime import datetime, timedelta
from typing import Optional, Any, Dict, List

from fastapi import Request
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rbac.db.base import utcnow
from rbac.models.activity import Activity, ActivityAction, ActivityStatus

logger = logging.getLogger("rbac.activity")


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


class ActivityService:
    """Records and queries activity log entries."""

    @staticmethod
    def log(
        db: Session,
        user_id: Optional[int],
        action: ActivityAction,
        details: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        status: ActivityStatus = ActivityStatus.success,
    ) -> Optional[Activity]:
        """Write a single activity record.

        Commits immediately. A failure to record is logged and rolled back
        but never aborts the operation being recorded, so None is returned
        in that case.
        """
        entry = Activity(
            user_id=user_id,
            action=action,
            details=details[:1000],
            ip_address=ip_address,
            user_agent=(user_agent or "Unknown")[:500],
            metadata_json=json.dumps(metadata, default=str) if metadata else None,
            status=status,
        )
        try:
            db.add(entry)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Error logging activity %s for user %s", action.value, user_id)
            return None
        logger.info("Activity logged: %s by user %s", action.value, user_id)
        return entry

    @staticmethod
    def log_from_request(
        db: Session,
        request: Request,
        user_id: Optional[int],
        action: ActivityAction,
        details: str,
        metadata: Optional[Dict[str, Any]] = None,
        status: ActivityStatus = ActivityStatus.success,
    ) -> Optional[Activity]:
        """Write an activity record extracting IP and user-agent from the request.

        The request id set by the access log middleware is added to the
        metadata so an entry can be matched to its access log line.
        """
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            metadata = {**(metadata or {}), "request_id": request_id}
        return ActivityService.log(
            db=db,
            user_id=user_id,
            action=action,
            details=details,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
            metadata=metadata,
            status=status,
        )

    @staticmethod
    def query_activities(
        db: Session,
        user_id: Optional[int] = None,
        action: Optional[ActivityAction] = None,
        status: Optional[ActivityStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Dict[str, Any]:
        """Query activities with filters and pagination, newest first."""
        query = db.query(Activity)

        if user_id:
            query = query.filter(Activity.user_id == user_id)
        if action:
            query = query.filter(Activity.action == action)
        if status:
            query = query.filter(Activity.status == status)
        if start_date:
            query = query.filter(Activity.created_at >= start_date)
        if end_date:
            query = query.filter(Activity.created_at <= end_date)

        total = query.count()
        activities = (
            query.order_by(Activity.created_at.desc(), Activity.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return {
            "activities": activities,
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    @staticmethod
    def get_stats(db: Session) -> List[Dict[str, Any]]:
        """Per-action counts with success/failure/warning rates in percent."""
        rows = (
            db.query(
                Activity.action,
                func.count(Activity.id),
                func.sum(case((Activity.status == ActivityStatus.success, 1), else_=0)),
                func.sum(case((Activity.status == ActivityStatus.failure, 1), else_=0)),
                func.sum(case((Activity.status == ActivityStatus.warning, 1), else_=0)),
            )
            .group_by(Activity.action)
            .all()
        )

        stats = []
        for action, count, successes, failures, warnings in rows:
            stats.append({
                "action": action.value,
                "count": count,
                "success_rate": round((successes or 0) / count * 100, 2),
                "failure_rate": round((failures or 0) / count * 100, 2),
                "warning_rate": round((warnings or 0) / count * 100, 2),
            })
        stats.sort(key=lambda s: (-s["count"], s["action"]))
        return stats

    @staticmethod
    def delete_older_than(db: Session, days: int) -> int:
        """Delete activities created more than ``days`` days ago."""
        cutoff = utcnow() - timedelta(days=days)
        deleted = (
            db.query(Activity)
            .filter(Activity.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
        logger.info("Deleted %d activities older than %d days", deleted, days)
        return deleted


activity_service = ActivityService()
