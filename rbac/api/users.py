"""Users API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from rbac.core.config import settings
from rbac.db.session import get_db
from rbac.schemas.schemas import (
    UserOut, UserCreateRequest, UserCreateResponse, UserUpdateRequest,
    UserRoleRequest, UserStatusRequest, BulkStatusRequest, BulkRoleRequest,
    UserListResponse, MessageResponse, CountResponse,
)
from rbac.services.user_service import user_service
from rbac.services.activity_service import activity_service
from rbac.models.activity import ActivityAction
from rbac.models.user import User, UserStatusEnum
from rbac.core.security import RequirePermission

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/", response_model=UserListResponse)
async def list_users(
    status_filter: Optional[UserStatusEnum] = Query(None, alias="status"),
    role_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("user.read")),
):
    """List users filtered by status, role and name/email search."""
    result = user_service.list_users(db, status_filter, role_id, search, page, page_size)
    return UserListResponse(
        users=[UserOut.from_user(u) for u in result["users"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )


@router.post("/", response_model=UserCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("user.create")),
):
    """Create a user; a password is generated and returned once if none is given."""
    created, generated = user_service.create(
        db, body.email, body.full_name, body.role_id,
        password=body.password, created_by=user.id,
    )
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.USER_CREATED,
        f"User {created.full_name} ({created.email}) created",
        metadata={"user_id": created.id},
    )
    return UserCreateResponse(user=UserOut.from_user(created), generated_password=generated)


@router.patch("/bulk-status", response_model=CountResponse)
async def bulk_update_status(
    body: BulkStatusRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("user.update")),
):
    modified = user_service.bulk_update_status(db, body.user_ids, body.status)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.USER_UPDATED,
        f"Bulk status update to {body.status.value} for {modified} users",
        metadata={"user_ids": body.user_ids},
    )
    return CountResponse(count=modified)


@router.patch("/bulk-role", response_model=CountResponse)
async def bulk_assign_role(
    body: BulkRoleRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("user.update")),
):
    modified, role = user_service.bulk_assign_role(db, body.user_ids, body.role_id)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.ROLE_ASSIGNED,
        f"Bulk role assignment to {role.name} for {modified} users",
        metadata={"user_ids": body.user_ids, "role_id": role.id},
    )
    return CountResponse(count=modified)


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("user.read")),
):
    return UserOut.from_user(user_service.get(db, user_id))


@router.patch("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    body: UserUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("user.update")),
):
    """Update profile fields. Roles change through ``/users/{id}/role``."""
    updated = user_service.update(db, user_id, body.model_dump(exclude_unset=True))
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.USER_UPDATED,
        f"User {updated.full_name} ({updated.email}) updated",
        metadata={"user_id": updated.id},
    )
    return UserOut.from_user(updated)


@router.patch("/{user_id}/role", response_model=UserOut)
async def change_user_role(
    user_id: int,
    body: UserRoleRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("user.update", "role.read")),
):
    updated, role = user_service.change_role(db, user_id, body.role_id)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.ROLE_ASSIGNED,
        f"User {updated.full_name} ({updated.email}) role updated to {role.name}",
        metadata={"user_id": updated.id, "role_id": role.id},
    )
    return UserOut.from_user(updated)


@router.patch("/{user_id}/status", response_model=UserOut)
async def change_user_status(
    user_id: int,
    body: UserStatusRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("user.update")),
):
    updated = user_service.change_status(db, user_id, body.status)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.USER_UPDATED,
        f"User {updated.full_name} status changed to {body.status.value}",
        metadata={"user_id": updated.id},
    )
    return UserOut.from_user(updated)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("user.delete")),
):
    deleted = user_service.delete(db, user_id)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.USER_DELETED,
        f"User {deleted.full_name} ({deleted.email}) deleted",
        metadata={"user_id": user_id},
    )
    return MessageResponse(message="User deleted")
