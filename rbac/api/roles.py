"""Roles API router: CRUD, hierarchy, and effective permissions."""

from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from rbac.db.session import get_db
from rbac.schemas.schemas import (
    RoleCreate, RoleUpdate, RoleClone, RoleOut, RoleUpdateResponse,
    PermissionOut, HasPermissionResponse, MessageResponse,
)
from rbac.services.role_service import role_service
from rbac.services.activity_service import activity_service
from rbac.models.activity import ActivityAction
from rbac.models.user import User
from rbac.core.security import RequirePermission

router = APIRouter(prefix="/roles", tags=["roles"])


def _node(role) -> dict:
    return RoleOut.model_validate(role).model_dump(mode="json")


@router.get("/", response_model=List[RoleOut])
async def list_roles(
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("role.read")),
):
    """List all roles."""
    return role_service.list_roles(db)


@router.post("/", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
async def create_role(
    body: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("role.create")),
):
    """Create a role, optionally below a parent role."""
    role = role_service.create(
        db,
        name=body.name,
        description=body.description,
        permission_ids=body.permission_ids,
        parent_id=body.parent_id,
        created_by=user.id,
    )
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.ROLE_CREATED,
        f"Role {role.name} created",
        metadata={"role_id": role.id, "parent_id": role.parent_id},
    )
    return role


@router.get("/hierarchy")
async def get_role_hierarchy(
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("role.read")),
):
    """Roles as a forest; every node embeds its direct children."""
    return role_service.get_hierarchy(db, serialize=_node)


@router.get("/{role_id}", response_model=RoleOut)
async def get_role(
    role_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("role.read")),
):
    return role_service.get(db, role_id)


@router.patch("/{role_id}", response_model=RoleUpdateResponse)
async def update_role(
    role_id: int,
    body: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("role.update")),
):
    """Update a role. Changing ``parent_id`` re-levels every descendant."""
    changes = body.model_dump(exclude_unset=True)
    role, relevelled = role_service.update(db, role_id, changes)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.ROLE_UPDATED,
        f"Role {role.name} updated",
        metadata={"role_id": role.id, "fields": sorted(changes), "relevelled": relevelled},
    )
    return RoleUpdateResponse(role=RoleOut.model_validate(role), relevelled_role_ids=relevelled)


@router.delete("/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("role.delete")),
):
    """Delete a role without child roles or assigned users."""
    role = role_service.delete(db, role_id)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.ROLE_DELETED,
        f"Role {role.name} deleted",
        metadata={"role_id": role_id},
    )
    return MessageResponse(message="Role deleted")


@router.post("/{role_id}/clone", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
async def clone_role(
    role_id: int,
    body: RoleClone,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("role.create")),
):
    """Copy a role's permissions and parent under a new name."""
    role = role_service.clone(db, role_id, body.name, body.description, created_by=user.id)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.ROLE_CREATED,
        f"Role {role.name} cloned from role {role_id}",
        metadata={"role_id": role.id, "source_role_id": role_id},
    )
    return role


@router.get("/{role_id}/effective-permissions", response_model=List[PermissionOut])
async def get_effective_permissions(
    role_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("role.read")),
):
    """Permissions of the role and of all its ancestors."""
    return role_service.get_effective_permissions(db, role_id)


@router.get("/{role_id}/permissions/{permission_id}", response_model=HasPermissionResponse)
async def check_role_permission(
    role_id: int,
    permission_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(RequirePermission("role.read")),
):
    """Whether the role holds the permission directly or by inheritance."""
    return HasPermissionResponse(
        role_id=role_id,
        permission_id=permission_id,
        granted=role_service.has_permission(db, role_id, permission_id),
    )
