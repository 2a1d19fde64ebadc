"""Run every seed in dependency order."""

import logging

from sqlalchemy.orm import Session

from rbac.db.seeds.seed_permissions import seed_permissions
from rbac.db.seeds.seed_roles import seed_roles
from rbac.db.seeds.seed_super_admin import seed_super_admin

logger = logging.getLogger("rbac.seed")


def seed_all(db: Session) -> None:
    """Seed permissions, the default roles, and the super-admin user."""
    permissions = seed_permissions(db)
    seed_roles(db, permissions)
    seed_super_admin(db)
    logger.info("All seeds applied")
