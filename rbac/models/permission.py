"""Permission model."""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum
from rbac.db.base import Base, utcnow


class PermissionCategoryEnum(str, enum.Enum):
    user_management = "User Management"
    role_management = "Role Management"
    permission_management = "Permission Management"
    system = "System"


class Permission(Base):
    """Named capability that roles grant, e.g. ``role.update``."""
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=False)
    category = Column(
        Enum(PermissionCategoryEnum, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
