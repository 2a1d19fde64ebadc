"""Login session model."""

from datetime import timedelta

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from rbac.db.base import Base, utcnow


class UserSession(Base):
    """One login of a user on one device.

    Only SHA-256 hashes of the issued tokens are stored.
    """
    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=True, index=True)
    refresh_token_hash = Column(String(64), nullable=True, index=True)
    user_agent = Column(String(500), nullable=True)
    ip_address = Column(String(45), nullable=True)
    device_type = Column(String(20), nullable=True)
    browser = Column(String(50), nullable=True)
    os = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    last_activity = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def is_expired(self) -> bool:
        return utcnow() > self.expires_at

    def needs_refresh(self, threshold: timedelta = timedelta(minutes=5)) -> bool:
        """True when the session expires within ``threshold``."""
        return self.expires_at - utcnow() <= threshold
