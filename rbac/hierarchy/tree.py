"""Role hierarchy tree builder."""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional

from rbac.core.exceptions import DataIntegrityError
from rbac.hierarchy.resolver import integrity_logger

logger = logging.getLogger(__name__)


def role_summary(role: Any) -> Dict[str, Any]:
    """Minimal node payload used when no serializer is given."""
    return {
        "id": role.id,
        "name": getattr(role, "name", None),
        "parent_id": role.parent_id,
        "level": getattr(role, "level", None),
    }


def build_hierarchy_tree(
    roles: Iterable[Any],
    serialize: Optional[Callable[[Any], Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """Build a forest of role nodes, each embedding its direct ``children``.

    Roots are the roles without a parent. Siblings are ordered by id, so the
    result does not depend on the order of ``roles``. Roles whose parent is
    not part of ``roles`` are logged and left out.

    Raises:
        DataIntegrityError: some roles form a parent cycle and are therefore
            unreachable from any root.
    """
    serialize = serialize or role_summary
    roles = list(roles)
    known_ids = {role.id for role in roles}

    by_parent: Dict[Any, List[Any]] = defaultdict(list)
    for role in roles:
        by_parent[role.parent_id].append(role)
    for siblings in by_parent.values():
        siblings.sort(key=lambda r: r.id)

    emitted = set()

    def build(parent_id: Any) -> List[Dict[str, Any]]:
        nodes = []
        for role in by_parent.get(parent_id, []):
            emitted.add(role.id)
            node = serialize(role)
            node["children"] = build(role.id)
            nodes.append(node)
        return nodes

    forest = build(None)

    orphans = [r.id for r in roles if r.parent_id is not None and r.parent_id not in known_ids]
    if orphans:
        logger.warning("Roles %s reference parents outside the role set; omitted from tree", orphans)

    unreachable = sorted(known_ids - emitted - set(orphans) - _descendants(orphans, by_parent))
    if unreachable:
        message = f"Roles {unreachable} are not reachable from any root role; the hierarchy contains a cycle"
        integrity_logger.error(message)
        raise DataIntegrityError(message)

    return forest


def _descendants(root_ids: List[Any], by_parent: Dict[Any, List[Any]]) -> set:
    found = set()
    stack = list(root_ids)
    while stack:
        for child in by_parent.get(stack.pop(), []):
            if child.id not in found:
                found.add(child.id)
                stack.append(child.id)
    return found
