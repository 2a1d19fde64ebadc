"""Seed the default role chain guest <- user <- manager <- admin."""

import logging
from typing import Dict

from sqlalchemy.orm import Session

from rbac.models.permission import Permission
from rbac.models.role import Role
from rbac.services.role_service import role_service

logger = logging.getLogger("rbac.seed")

# Parents precede children; each role lists only what it adds over its parent.
DEFAULT_ROLES = [
    {
        "name": "guest",
        "description": "Guest user with minimal access",
        "parent": None,
        "permissions": ["user.read", "role.read"],
    },
    {
        "name": "user",
        "description": "Regular user with basic access",
        "parent": "guest",
        "permissions": ["session.read", "activity.read"],
    },
    {
        "name": "manager",
        "description": "Manager with user and role management capabilities",
        "parent": "user",
        "permissions": ["user.create", "user.update", "permission.read", "system.metrics"],
    },
    {
        "name": "admin",
        "description": "Super administrator with full system access",
        "parent": "manager",
        "permissions": [
            "user.delete",
            "role.create", "role.update", "role.delete",
            "permission.create", "permission.update", "permission.delete",
            "session.delete",
            "activity.delete",
            "system.settings", "system.backup",
        ],
    },
]


def seed_roles(db: Session, permissions: Dict[str, Permission]) -> Dict[str, Role]:
    """Create missing default roles through the role service so levels are derived."""
    roles: Dict[str, Role] = {}
    for role_data in DEFAULT_ROLES:
        role = role_service.get_by_name(db, role_data["name"])
        if role is None:
            parent = roles.get(role_data["parent"]) if role_data["parent"] else None
            role = role_service.create(
                db,
                name=role_data["name"],
                description=role_data["description"],
                permission_ids=[permissions[p].id for p in role_data["permissions"]],
                parent_id=parent.id if parent else None,
            )
        roles[role.name] = role
    logger.info("Seeded %d roles", len(DEFAULT_ROLES))
    return roles
