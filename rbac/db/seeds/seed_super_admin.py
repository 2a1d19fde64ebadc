"""Seed the super-admin user from env vars."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from rbac.core.config import settings
from rbac.core.exceptions import ResourceNotFoundError
from rbac.models.user import User, UserStatusEnum
from rbac.services.role_service import role_service
from rbac.services.user_service import user_service

logger = logging.getLogger("rbac.seed")

SUPER_ADMIN_ROLE = "admin"


def seed_super_admin(db: Session) -> Optional[User]:
    """Create the super-admin user if not already present."""
    admin_role = role_service.get_by_name(db, SUPER_ADMIN_ROLE)
    if not admin_role:
        logger.warning("'%s' role not found. Run seed_roles first.", SUPER_ADMIN_ROLE)
        return None

    existing = user_service.get_by_email(db, settings.SUPER_ADMIN_EMAIL)
    if existing:
        logger.info("Super admin '%s' already exists, skipping.", settings.SUPER_ADMIN_EMAIL)
        return existing

    admin, _ = user_service.create(
        db,
        settings.SUPER_ADMIN_EMAIL,
        settings.SUPER_ADMIN_NAME,
        admin_role.id,
        password=settings.SUPER_ADMIN_PASSWORD,
    )
    logger.info("Created super admin: %s", settings.SUPER_ADMIN_EMAIL)
    return admin


def reset_super_admin_password(db: Session) -> User:
    """Put the configured super-admin password back, creating the user if needed.

    The account is also reactivated and moved back onto the admin role.
    """
    admin_role = role_service.get_by_name(db, SUPER_ADMIN_ROLE)
    if not admin_role:
        raise ResourceNotFoundError(f"Role '{SUPER_ADMIN_ROLE}' not found. Seed the database first.")

    admin = user_service.get_by_email(db, settings.SUPER_ADMIN_EMAIL)
    if admin is None:
        return seed_super_admin(db)

    user_service.set_password(admin, settings.SUPER_ADMIN_PASSWORD)
    admin.role_id = admin_role.id
    user_service.change_status(db, admin.id, UserStatusEnum.active)
    logger.info("Reset password for super admin: %s", settings.SUPER_ADMIN_EMAIL)
    return admin

