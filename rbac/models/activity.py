"""Activity log model: append-only."""

import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum
from rbac.db.base import Base, utcnow


class ActivityAction(str, enum.Enum):
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    FAILED_LOGIN = "FAILED_LOGIN"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    PROFILE_UPDATE = "PROFILE_UPDATE"
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"
    ROLE_ASSIGNED = "ROLE_ASSIGNED"
    ROLE_CREATED = "ROLE_CREATED"
    ROLE_UPDATED = "ROLE_UPDATED"
    ROLE_DELETED = "ROLE_DELETED"
    PERMISSION_CREATED = "PERMISSION_CREATED"
    PERMISSION_UPDATED = "PERMISSION_UPDATED"
    PERMISSION_DELETED = "PERMISSION_DELETED"
    SESSION_TERMINATED = "SESSION_TERMINATED"
    SESSIONS_TERMINATED = "SESSIONS_TERMINATED"
    SESSIONS_CLEANED = "SESSIONS_CLEANED"
    SESSION_REFRESHED = "SESSION_REFRESHED"


class ActivityStatus(str, enum.Enum):
    success = "success"
    failure = "failure"
    warning = "warning"


class Activity(Base):
    """Audit trail of user and administrator actions.

    Rows are only ever inserted, or removed in bulk by the retention cleanup.
    """
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(Enum(ActivityAction), nullable=False, index=True)
    details = Column(String(1000), nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    metadata_json = Column(Text, nullable=True)
    status = Column(Enum(ActivityStatus), default=ActivityStatus.success, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
