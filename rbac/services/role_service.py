"""Role service: CRUD over hierarchical roles, backed by the hierarchy resolver."""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from rbac.core.exceptions import (
    CycleDetectedError,
    DataIntegrityError,
    ResourceConflictError,
    ResourceNotFoundError,
)
from rbac.hierarchy.resolver import HierarchyResolver
from rbac.hierarchy.store import SqlRoleStore
from rbac.hierarchy.tree import build_hierarchy_tree
from rbac.models.permission import Permission
from rbac.models.role import Role
from rbac.models.user import User

logger = logging.getLogger("rbac.roles")

# Structural writes (parent changes plus level propagation) must not interleave.
_hierarchy_lock = threading.Lock()


def resolver_for(db: Session) -> HierarchyResolver:
    return HierarchyResolver(SqlRoleStore(db))


class RoleService:
    """Manages roles and exposes effective-permission and hierarchy queries."""

    @staticmethod
    def get(db: Session, role_id: int) -> Role:
        """Get a role by id."""
        role = db.get(Role, role_id)
        if not role:
            raise ResourceNotFoundError(f"Role {role_id} not found")
        return role

    @staticmethod
    def get_by_name(db: Session, name: str) -> Optional[Role]:
        return db.query(Role).filter(Role.name == name).first()

    @staticmethod
    def list_roles(db: Session) -> List[Role]:
        """All roles, shallowest first."""
        return db.query(Role).order_by(Role.level, Role.name).all()

    @staticmethod
    def _load_permissions(db: Session, permission_ids: Iterable[int]) -> List[Permission]:
        wanted = set(permission_ids)
        if not wanted:
            return []
        found = db.query(Permission).filter(Permission.id.in_(wanted)).all()
        missing = wanted - {p.id for p in found}
        if missing:
            raise ResourceNotFoundError(
                f"Permission(s) {', '.join(str(i) for i in sorted(missing))} not found"
            )
        return found

    @staticmethod
    def create(
        db: Session,
        name: str,
        description: str,
        permission_ids: Iterable[int] = (),
        parent_id: Optional[int] = None,
        created_by: Optional[int] = None,
    ) -> Role:
        """Create a role; its level is derived from the parent."""
        with _hierarchy_lock:
            if RoleService.get_by_name(db, name):
                raise ResourceConflictError(f"Role '{name}' already exists")

            level = 0
            if parent_id is not None:
                parent = db.get(Role, parent_id)
                if parent is None:
                    raise ResourceNotFoundError(f"Parent role {parent_id} not found")
                level = parent.level + 1

            role = Role(
                name=name,
                description=description,
                parent_id=parent_id,
                level=level,
                created_by=created_by,
                permissions=RoleService._load_permissions(db, permission_ids),
            )
            db.add(role)
            db.commit()
            db.refresh(role)

        logger.info("Role created: %s (level %d)", role.name, role.level)
        return role

    @staticmethod
    def update(db: Session, role_id: int, changes: Dict[str, Any]) -> Tuple[Role, List[int]]:
        """Apply ``changes`` (name, description, permission_ids, parent_id).

        Only keys present in ``changes`` are touched; ``parent_id=None`` makes
        the role a root. A parent change is cycle-checked first and then
        propagated to all descendants within the same transaction.

        Returns:
            The updated role and the ids of roles whose level changed.
        """
        with _hierarchy_lock:
            role = RoleService.get(db, role_id)
            resolver = resolver_for(db)
            relevelled: List[int] = []
            try:
                new_name = changes.get("name")
                if new_name and new_name != role.name:
                    if RoleService.get_by_name(db, new_name):
                        raise ResourceConflictError(f"Role '{new_name}' already exists")
                    role.name = new_name
                if changes.get("description"):
                    role.description = changes["description"]
                if changes.get("permission_ids") is not None:
                    role.permissions = RoleService._load_permissions(db, changes["permission_ids"])

                if "parent_id" in changes and changes["parent_id"] != role.parent_id:
                    new_parent_id = changes["parent_id"]
                    if resolver.would_create_cycle(role.id, new_parent_id):
                        raise CycleDetectedError(role.id, new_parent_id)
                    role.parent_id = new_parent_id
                    db.flush()
                    relevelled = resolver.propagate_levels(role.id)

                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(role)

        logger.info("Role updated: %s (%d level change(s))", role.name, len(relevelled))
        return role, relevelled

    @staticmethod
    def delete(db: Session, role_id: int) -> Role:
        """Delete a role that has no child roles and no assigned users."""
        with _hierarchy_lock:
            role = RoleService.get(db, role_id)

            if db.query(User).filter(User.role_id == role.id).count() > 0:
                raise ResourceConflictError("Cannot delete role that is assigned to users")
            if SqlRoleStore(db).find_children(role.id):
                raise ResourceConflictError("Cannot delete role that has child roles")

            db.delete(role)
            db.commit()

        logger.info("Role deleted: %s", role.name)
        return role

    @staticmethod
    def clone(
        db: Session,
        role_id: int,
        name: str,
        description: str,
        created_by: Optional[int] = None,
    ) -> Role:
        """Create a new role with the source role's permissions and parent."""
        source = RoleService.get(db, role_id)
        return RoleService.create(
            db,
            name=name,
            description=description,
            permission_ids=source.permission_ids,
            parent_id=source.parent_id,
            created_by=created_by,
        )

    @staticmethod
    def get_hierarchy(
        db: Session,
        serialize: Optional[Callable[[Role], Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Forest of all roles, roots first, each node carrying ``children``."""
        return build_hierarchy_tree(SqlRoleStore(db).list_all(), serialize)

    @staticmethod
    def get_effective_permissions(db: Session, role_id: int) -> List[Permission]:
        """Own and inherited permissions of a role, sorted by name."""
        permission_ids = resolver_for(db).compute_effective_permissions(role_id)
        if not permission_ids:
            return []
        return (
            db.query(Permission)
            .filter(Permission.id.in_(permission_ids))
            .order_by(Permission.name)
            .all()
        )

    @staticmethod
    def has_permission(db: Session, role_id: int, permission_id: int) -> bool:
        return resolver_for(db).has_permission(role_id, permission_id)

    @staticmethod
    def check_integrity(db: Session) -> List[str]:
        """Describe every role whose parent chain or level is inconsistent."""
        store = SqlRoleStore(db)
        resolver = HierarchyResolver(store)
        problems = []
        for role in store.list_all():
            try:
                resolver.compute_effective_permissions(role.id)
            except DataIntegrityError as e:
                problems.append(f"{role.name} (id {role.id}): {e}")
                continue

            if role.parent_id is None:
                expected = 0
            else:
                parent = store.get(role.parent_id)
                if parent is None:
                    problems.append(
                        f"{role.name} (id {role.id}): parent role {role.parent_id} is missing"
                    )
                    continue
                expected = parent.level + 1
            if role.level != expected:
                problems.append(
                    f"{role.name} (id {role.id}): level is {role.level}, expected {expected}"
                )
        return problems


role_service = RoleService()
