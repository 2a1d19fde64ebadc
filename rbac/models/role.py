"""Role model for hierarchical RBAC."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Table
from sqlalchemy.orm import relationship
from rbac.db.base import Base, utcnow


role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "permission_id",
        Integer,
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    ),
)


class Role(Base):
    """System role that inherits permissions from an optional parent role.

    ``level`` is the depth in the hierarchy: 0 for roots, ``parent.level + 1``
    otherwise. It is stored and recomputed whenever the parent chain changes.
    """
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=False)
    parent_id = Column(Integer, ForeignKey("roles.id"), nullable=True, index=True)
    level = Column(Integer, nullable=False, default=0, index=True)
    created_by = Column(Integer, nullable=True)  # users.id; users already reference roles
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    permissions = relationship(
        "Permission",
        secondary=role_permissions,
        lazy="selectin",
        order_by="Permission.name",
    )
    parent = relationship("Role", remote_side=[id])
    creator = relationship(
        "User",
        primaryjoin="foreign(Role.created_by) == User.id",
        viewonly=True,
    )

    @property
    def permission_ids(self) -> set:
        """Ids of the permissions assigned directly to this role."""
        return {p.id for p in self.permissions}

    def __repr__(self) -> str:
        return f"<Role id={self.id} name={self.name!r} level={self.level}>"
