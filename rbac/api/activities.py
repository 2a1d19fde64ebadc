"""Activities API router."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rbac.core.config import settings
from rbac.db.session import get_db
from rbac.schemas.schemas import (
    ActivityListResponse, ActivityOut, ActivityStat, CountResponse,
)
from rbac.services.activity_service import activity_service
from rbac.models.activity import ActivityAction, ActivityStatus
from rbac.models.user import User
from rbac.core.security import RequirePermission

router = APIRouter(prefix="/activities", tags=["activities"])


def _page(result: dict) -> ActivityListResponse:
    return ActivityListResponse(
        activities=[ActivityOut.model_validate(a) for a in result["activities"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )


@router.get("/", response_model=ActivityListResponse)
async def list_activities(
    user_id: Optional[int] = Query(None),
    action: Optional[ActivityAction] = Query(None),
    status_filter: Optional[ActivityStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("activity.read")),
):
    """Query the activity log, newest first."""
    result = activity_service.query_activities(
        db, user_id, action, status_filter, start_date, end_date, page, page_size,
    )
    return _page(result)


@router.get("/stats", response_model=List[ActivityStat])
async def get_activity_stats(
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("activity.read")),
):
    """Per-action counts and outcome rates."""
    return activity_service.get_stats(db)


@router.get("/user/{user_id}", response_model=ActivityListResponse)
async def list_user_activities(
    user_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("activity.read")),
):
    return _page(activity_service.query_activities(
        db, user_id=user_id, page=page, page_size=page_size,
    ))


@router.delete("/cleanup", response_model=CountResponse)
async def cleanup_activities(
    days: int = Query(..., ge=1),
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("activity.delete")),
):
    """Delete activities older than the given number of days."""
    deleted = activity_service.delete_older_than(db, days)
    return CountResponse(count=deleted)
