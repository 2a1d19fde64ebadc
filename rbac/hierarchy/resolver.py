"""Role hierarchy resolver.

Walks the ``parent_id`` chain of roles held in a :class:`RoleStore` to:

* compute effective (inherited) permissions,
* reject parent assignments that would introduce a cycle,
* recompute ``level`` for a role and all of its descendants.

Every walk is bounded by the number of stored roles. Exceeding the bound,
revisiting a role or following a dangling parent reference raises
:class:`DataIntegrityError`; the hierarchy is acyclic by construction, so
any of those means corrupted data and is never silently truncated.

The resolver does no locking. Callers that change a parent assignment must
serialize that write together with :meth:`HierarchyResolver.propagate_levels`.
"""

import logging
from collections import deque
from typing import Any, List, Optional, Set

from rbac.core.exceptions import (
    DataIntegrityError,
    PropagationError,
    ResourceNotFoundError,
)
from rbac.hierarchy.store import RoleStore

logger = logging.getLogger(__name__)
integrity_logger = logging.getLogger("rbac.integrity")


def _integrity_error(message: str) -> DataIntegrityError:
    integrity_logger.error(message)
    return DataIntegrityError(message)


class HierarchyResolver:
    """Effective-permission, cycle and level logic over a role store."""

    def __init__(self, store: RoleStore):
        self.store = store

    def _require(self, role_id: int) -> Any:
        role = self.store.get(role_id)
        if role is None:
            raise ResourceNotFoundError(f"Role {role_id} not found")
        return role

    # ---- Cycle detection ----

    def would_create_cycle(self, role_id: int, proposed_parent_id: Optional[int]) -> bool:
        """Return True if making ``proposed_parent_id`` the parent of ``role_id``
        would make the role its own ancestor.

        Raises:
            ResourceNotFoundError: the proposed parent does not exist.
            DataIntegrityError: the chain above the proposed parent is broken.
        """
        if proposed_parent_id is None:
            return False
        if proposed_parent_id == role_id:
            return True

        current = self.store.get(proposed_parent_id)
        if current is None:
            raise ResourceNotFoundError(f"Parent role {proposed_parent_id} not found")

        bound = self.store.count()
        hops = 0
        while True:
            if current.id == role_id:
                return True
            if current.parent_id is None:
                return False
            parent = self.store.get(current.parent_id)
            if parent is None:
                raise _integrity_error(
                    f"Role {current.id} references missing parent role {current.parent_id}"
                )
            # n distinct roles are at most n - 1 hops apart
            hops += 1
            if hops >= bound:
                raise _integrity_error(
                    f"Parent chain above role {proposed_parent_id} exceeds "
                    f"{bound} roles; the hierarchy contains a cycle"
                )
            current = parent

    # ---- Effective permissions ----

    def compute_effective_permissions(self, role_id: int) -> Set[Any]:
        """Union of the role's own permission ids and those of all its ancestors.

        Raises:
            ResourceNotFoundError: ``role_id`` does not exist.
            DataIntegrityError: the parent chain does not terminate.
        """
        role = self._require(role_id)
        permissions = set(role.permission_ids)

        bound = self.store.count()
        hops = 0
        current = role
        while current.parent_id is not None:
            parent = self.store.get(current.parent_id)
            if parent is None:
                logger.warning(
                    "Role %s references missing parent role %s; stopping inheritance there",
                    current.id,
                    current.parent_id,
                )
                break
            hops += 1
            if hops >= bound:
                raise _integrity_error(
                    f"Parent chain of role {role_id} exceeds {bound} roles; "
                    f"the hierarchy contains a cycle"
                )
            permissions |= parent.permission_ids
            current = parent

        return permissions

    def has_permission(self, role_id: int, permission_id: Any) -> bool:
        """Whether ``permission_id`` is among the role's effective permissions."""
        return permission_id in self.compute_effective_permissions(role_id)

    # ---- Level propagation ----

    def propagate_levels(self, role_id: int) -> List[int]:
        """Recompute ``level`` for ``role_id`` and every descendant, breadth first.

        Each role's level is derived from its already-updated parent before its
        own children are visited. Only roles whose level actually changed are
        saved; their ids are returned in visiting order.

        Raises:
            ResourceNotFoundError: ``role_id`` does not exist.
            DataIntegrityError: the role's parent is missing or a role is reached twice.
            PropagationError: reading or saving a descendant failed; roles listed
                in ``updated_role_ids`` were already saved.
        """
        role = self._require(role_id)
        if role.parent_id is None:
            new_level = 0
        else:
            parent = self.store.get(role.parent_id)
            if parent is None:
                raise _integrity_error(
                    f"Role {role.id} references missing parent role {role.parent_id}"
                )
            new_level = parent.level + 1

        updated: List[int] = []
        self._apply_level(role, new_level, updated)

        bound = self.store.count()
        visited = {role.id}
        queue = deque([role])
        while queue:
            node = queue.popleft()
            try:
                children = self.store.find_children(node.id)
            except Exception as e:
                raise self._propagation_failed(node.id, updated, e) from e

            for child in children:
                if child.id in visited or len(visited) >= bound:
                    raise _integrity_error(
                        f"Role {child.id} reached twice while propagating levels "
                        f"from role {role_id}; the hierarchy contains a cycle"
                    )
                visited.add(child.id)
                self._apply_level(child, node.level + 1, updated)
                queue.append(child)

        if updated:
            logger.info(
                "Propagated levels from role %s: %d role(s) updated", role_id, len(updated)
            )
        return updated

    def _apply_level(self, role: Any, level: int, updated: List[int]) -> None:
        if role.level == level:
            return
        role.level = level
        try:
            self.store.save(role)
        except Exception as e:
            raise self._propagation_failed(role.id, updated, e) from e
        updated.append(role.id)

    @staticmethod
    def _propagation_failed(role_id: int, updated: List[int], cause: Exception) -> PropagationError:
        message = (
            f"Level propagation failed at the subtree rooted at role {role_id} "
            f"after updating {len(updated)} role(s): {cause}"
        )
        integrity_logger.error(message)
        return PropagationError(message, failed_role_id=role_id, updated_role_ids=updated)
