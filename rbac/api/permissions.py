"""Permissions API router."""

from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from rbac.db.session import get_db
from rbac.schemas.schemas import (
    PermissionCreate, PermissionUpdate, PermissionBulkUpdate, PermissionOut,
    MessageResponse, CountResponse,
)
from rbac.services.permission_service import permission_service
from rbac.services.activity_service import activity_service
from rbac.models.activity import ActivityAction
from rbac.models.permission import PermissionCategoryEnum
from rbac.models.user import User
from rbac.core.security import RequirePermission

router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("/", response_model=List[PermissionOut])
async def list_permissions(
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("permission.read")),
):
    return permission_service.list_permissions(db)


@router.post("/", response_model=PermissionOut, status_code=status.HTTP_201_CREATED)
async def create_permission(
    body: PermissionCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("permission.create")),
):
    permission = permission_service.create(
        db, body.name, body.description, body.category, created_by=user.id,
    )
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.PERMISSION_CREATED,
        f"Permission {permission.name} created",
        metadata={"permission_id": permission.id},
    )
    return permission


@router.patch("/bulk-update", response_model=CountResponse)
async def bulk_update_permissions(
    body: PermissionBulkUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("permission.update")),
):
    """Update several permissions in one transaction."""
    updates = [item.model_dump(exclude_unset=True) for item in body.permissions]
    count = permission_service.bulk_update(db, updates)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.PERMISSION_UPDATED,
        f"Bulk update of {count} permissions",
        metadata={"permission_ids": [u["id"] for u in updates]},
    )
    return CountResponse(count=count)


@router.get("/category/{category}", response_model=List[PermissionOut])
async def list_permissions_by_category(
    category: PermissionCategoryEnum,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("permission.read")),
):
    return permission_service.list_permissions(db, category=category)


@router.get("/{permission_id}", response_model=PermissionOut)
async def get_permission(
    permission_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("permission.read")),
):
    return permission_service.get(db, permission_id)


@router.patch("/{permission_id}", response_model=PermissionOut)
async def update_permission(
    permission_id: int,
    body: PermissionUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("permission.update")),
):
    permission = permission_service.update(
        db, permission_id, body.model_dump(exclude_unset=True)
    )
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.PERMISSION_UPDATED,
        f"Permission {permission.name} updated",
        metadata={"permission_id": permission.id},
    )
    return permission


@router.delete("/{permission_id}", response_model=MessageResponse)
async def delete_permission(
    permission_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("permission.delete")),
):
    permission = permission_service.delete(db, permission_id)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.PERMISSION_DELETED,
        f"Permission {permission.name} deleted",
        metadata={"permission_id": permission_id},
    )
    return MessageResponse(message="Permission deleted")
