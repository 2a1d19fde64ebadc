"""Role storage interface consumed by the hierarchy resolver."""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from sqlalchemy.orm import Session

from rbac.models.role import Role


class RoleStore(ABC):
    """Read/write access to role records.

    The resolver only relies on these attributes of a stored role:
    ``id``, ``parent_id``, ``level`` and ``permission_ids``.
    """

    @abstractmethod
    def get(self, role_id: int) -> Optional[Any]:
        """Return the role with ``role_id`` or None."""
        ...

    @abstractmethod
    def find_children(self, parent_id: int) -> Sequence[Any]:
        """Return the roles whose parent is ``parent_id``."""
        ...

    @abstractmethod
    def list_all(self) -> Sequence[Any]:
        """Return every stored role."""
        ...

    @abstractmethod
    def save(self, role: Any) -> None:
        """Persist mutated fields of ``role``."""
        ...

    def count(self) -> int:
        """Total number of stored roles; bounds every hierarchy walk."""
        return len(self.list_all())


class SqlRoleStore(RoleStore):
    """RoleStore backed by the SQLAlchemy session of the current request.

    ``save`` only flushes: committing is left to the caller so a parent
    change and its level propagation share one transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, role_id: int) -> Optional[Role]:
        return self.db.get(Role, role_id)

    def find_children(self, parent_id: int) -> Sequence[Role]:
        return (
            self.db.query(Role)
            .filter(Role.parent_id == parent_id)
            .order_by(Role.id)
            .all()
        )

    def list_all(self) -> Sequence[Role]:
        return self.db.query(Role).order_by(Role.level, Role.id).all()

    def save(self, role: Role) -> None:
        self.db.add(role)
        self.db.flush()

    def count(self) -> int:
        return self.db.query(Role).count()
