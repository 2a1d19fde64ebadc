"""Models package: import all models so they register on Base.metadata."""

from rbac.models.permission import Permission, PermissionCategoryEnum
from rbac.models.role import Role, role_permissions
from rbac.models.user import User, UserStatusEnum
from rbac.models.user_session import UserSession
from rbac.models.activity import Activity, ActivityAction, ActivityStatus

__all__ = [
    "Permission", "PermissionCategoryEnum",
    "Role", "role_permissions",
    "User", "UserStatusEnum",
    "UserSession",
    "Activity", "ActivityAction", "ActivityStatus",
]
