"""Permission service: CRUD over permission records."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from rbac.core.exceptions import ResourceConflictError, ResourceNotFoundError
from rbac.models.permission import Permission, PermissionCategoryEnum
from rbac.models.role import role_permissions

logger = logging.getLogger("rbac.permissions")

UPDATABLE_FIELDS = ("name", "description", "category", "is_active")


class PermissionService:
    """Manages permissions that roles grant."""

    @staticmethod
    def create(
        db: Session,
        name: str,
        description: str,
        category: PermissionCategoryEnum,
        created_by: Optional[int] = None,
    ) -> Permission:
        """Create a permission with a unique name."""
        if db.query(Permission).filter(Permission.name == name).first():
            raise ResourceConflictError(f"Permission '{name}' already exists")

        permission = Permission(
            name=name,
            description=description,
            category=category,
            created_by=created_by,
        )
        db.add(permission)
        db.commit()
        db.refresh(permission)
        logger.info("Permission created: %s", name)
        return permission

    @staticmethod
    def get(db: Session, permission_id: int) -> Permission:
        """Get a permission by id."""
        permission = db.get(Permission, permission_id)
        if not permission:
            raise ResourceNotFoundError(f"Permission {permission_id} not found")
        return permission

    @staticmethod
    def list_permissions(
        db: Session,
        category: Optional[PermissionCategoryEnum] = None,
    ) -> List[Permission]:
        """All permissions, optionally restricted to one category."""
        query = db.query(Permission)
        if category:
            query = query.filter(Permission.category == category)
        return query.order_by(Permission.category, Permission.name).all()

    @staticmethod
    def _apply(db: Session, permission: Permission, changes: Dict[str, Any]) -> None:
        new_name = changes.get("name")
        if new_name and new_name != permission.name:
            clash = db.query(Permission).filter(Permission.name == new_name).first()
            if clash and clash.id != permission.id:
                raise ResourceConflictError(f"Permission '{new_name}' already exists")
        for key in UPDATABLE_FIELDS:
            if changes.get(key) is not None:
                setattr(permission, key, changes[key])

    @staticmethod
    def update(db: Session, permission_id: int, changes: Dict[str, Any]) -> Permission:
        """Update name, description, category or active flag; provenance is kept."""
        permission = PermissionService.get(db, permission_id)
        try:
            PermissionService._apply(db, permission, changes)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(permission)
        return permission

    @staticmethod
    def bulk_update(db: Session, updates: List[Dict[str, Any]]) -> int:
        """Apply several updates atomically; any unknown id rejects the batch."""
        try:
            for item in updates:
                permission = PermissionService.get(db, item["id"])
                PermissionService._apply(db, permission, item)
                db.flush()
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Bulk-updated %d permissions", len(updates))
        return len(updates)

    @staticmethod
    def delete(db: Session, permission_id: int) -> Permission:
        """Delete a permission no role references."""
        permission = PermissionService.get(db, permission_id)
        in_use = (
            db.query(role_permissions)
            .filter(role_permissions.c.permission_id == permission.id)
            .count()
        )
        if in_use:
            raise ResourceConflictError(
                f"Cannot delete permission '{permission.name}': assigned to {in_use} role(s)"
            )
        db.delete(permission)
        db.commit()
        logger.info("Permission deleted: %s", permission.name)
        return permission


permission_service = PermissionService()
