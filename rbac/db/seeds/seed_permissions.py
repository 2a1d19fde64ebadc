"""Seed the default permissions."""

import logging
from typing import Dict

from sqlalchemy.orm import Session

from rbac.models.permission import Permission, PermissionCategoryEnum

logger = logging.getLogger("rbac.seed")

_USER = PermissionCategoryEnum.user_management
_ROLE = PermissionCategoryEnum.role_management
_PERMISSION = PermissionCategoryEnum.permission_management
_SYSTEM = PermissionCategoryEnum.system

DEFAULT_PERMISSIONS = [
    ("user.create", "Create new users", _USER),
    ("user.read", "View user information", _USER),
    ("user.update", "Update user information", _USER),
    ("user.delete", "Delete users", _USER),
    ("role.create", "Create new roles", _ROLE),
    ("role.read", "View role information", _ROLE),
    ("role.update", "Update role information", _ROLE),
    ("role.delete", "Delete roles", _ROLE),
    ("permission.create", "Create new permissions", _PERMISSION),
    ("permission.read", "View permission information", _PERMISSION),
    ("permission.update", "Update permission information", _PERMISSION),
    ("permission.delete", "Delete permissions", _PERMISSION),
    ("session.read", "View session information", _SYSTEM),
    ("session.delete", "Terminate sessions", _SYSTEM),
    ("activity.read", "View activity logs", _SYSTEM),
    ("activity.delete", "Delete activity logs", _SYSTEM),
    ("system.settings", "Manage system settings", _SYSTEM),
    ("system.backup", "Manage system backups", _SYSTEM),
    ("system.metrics", "View system metrics", _SYSTEM),
]


def seed_permissions(db: Session) -> Dict[str, Permission]:
    """Insert default permissions that don't exist yet; returns all of them by name."""
    created = 0
    for name, description, category in DEFAULT_PERMISSIONS:
        if not db.query(Permission).filter(Permission.name == name).first():
            db.add(Permission(name=name, description=description, category=category))
            created += 1
    db.commit()
    logger.info("Seeded %d permissions (%d new)", len(DEFAULT_PERMISSIONS), created)
    return {p.name: p for p in db.query(Permission).all()}
