"""Account tree logic over closure-table rows.

Every account owns a self row ``(id, id, 0)`` plus one row per ancestor.
The functions here work on already-fetched rows so they can be shared by
the SQLAlchemy and in-memory repositories and tested without a database.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple
from uuid import UUID

from ..core.roles import role_rank


class HierarchyError(ValueError):
    """Raised when a requested tree change would corrupt the account tree."""


@dataclass(frozen=True)
class PathRow:
    """One closure-table row."""

    ancestor_id: UUID
    descendant_id: UUID
    depth: int


def closure_rows_for_new_account(
    new_id: UUID,
    parent_id: Optional[UUID] = None,
    parent_ancestor_rows: Iterable[PathRow] = (),
) -> List[PathRow]:
    """Build the closure rows for a freshly created account.

    Args:
        new_id: ID of the new account
        parent_id: Parent account, or None for a root account
        parent_ancestor_rows: Rows whose descendant is ``parent_id``
            (including the parent's self row)

    Returns:
        The self row followed by one row per ancestor of the parent at ``depth + 1``
    """
    rows = [PathRow(new_id, new_id, 0)]
    if parent_id is None:
        return rows

    seen_parent = False
    for row in sorted(parent_ancestor_rows, key=lambda r: r.depth):
        if row.descendant_id != parent_id:
            continue
        if row.ancestor_id == parent_id:
            seen_parent = True
        rows.append(PathRow(row.ancestor_id, new_id, row.depth + 1))

    # Parent without a stored self row still links directly
    if not seen_parent:
        rows.insert(1, PathRow(parent_id, new_id, 1))
    return rows


def is_descendant(paths: Iterable[PathRow], ancestor_id: UUID, descendant_id: UUID) -> bool:
    """True when ``descendant_id`` is in the subtree of ``ancestor_id`` (self included)."""
    if ancestor_id == descendant_id:
        return True
    return any(
        row.ancestor_id == ancestor_id and row.descendant_id == descendant_id
        for row in paths
    )


def ancestors_of(paths: Iterable[PathRow], node_id: UUID) -> List[UUID]:
    """Ancestor ids of ``node_id``, nearest first, excluding the node itself."""
    rows = [r for r in paths if r.descendant_id == node_id and r.depth > 0]
    rows.sort(key=lambda r: r.depth)
    return [r.ancestor_id for r in rows]


def descendants_of(
    paths: Iterable[PathRow], node_id: UUID, include_self: bool = False
) -> List[UUID]:
    """Descendant ids of ``node_id`` ordered by depth."""
    min_depth = 0 if include_self else 1
    rows = [r for r in paths if r.ancestor_id == node_id and r.depth >= min_depth]
    rows.sort(key=lambda r: r.depth)
    return [r.descendant_id for r in rows]


def resolve_account_node(
    account_id: Optional[UUID],
    requested_node_id: Optional[UUID],
    paths: Iterable[PathRow],
) -> Optional[UUID]:
    """Pick the account node a request acts on.

    The requested node wins only when it lies in the subtree of ``account_id``;
    otherwise the tenant account itself is used.
    """
    if account_id is None:
        return None
    if requested_node_id is None:
        return account_id
    if is_descendant(paths, account_id, requested_node_id):
        return requested_node_id
    return account_id


def subtree_move_rows(
    paths: Sequence[PathRow],
    node_id: UUID,
    new_parent_id: Optional[UUID],
) -> Tuple[List[PathRow], List[PathRow]]:
    """Compute the closure-table changes for moving ``node_id`` under ``new_parent_id``.

    Args:
        paths: All closure rows touching the node's subtree and the new parent
        node_id: Root of the subtree being moved
        new_parent_id: New parent, or None to make the node a root

    Returns:
        ``(rows_to_delete, rows_to_insert)``

    Raises:
        HierarchyError: If the new parent is the node itself or one of its descendants
    """
    subtree = descendants_of(paths, node_id, include_self=True)
    if node_id not in subtree:
        subtree.insert(0, node_id)
    subtree_set: Set[UUID] = set(subtree)

    if new_parent_id is not None and new_parent_id in subtree_set:
        raise HierarchyError("Cannot move an account under itself or its descendants")

    # Rows linking an outside ancestor to anything in the subtree
    to_delete = [
        row
        for row in paths
        if row.descendant_id in subtree_set and row.ancestor_id not in subtree_set
    ]

    to_insert: List[PathRow] = []
    if new_parent_id is not None:
        parent_ancestors = [
            row for row in paths if row.descendant_id == new_parent_id
        ]
        if not any(row.ancestor_id == new_parent_id for row in parent_ancestors):
            parent_ancestors.append(PathRow(new_parent_id, new_parent_id, 0))

        # Depth of each subtree member below the moved node
        inner_depth: Dict[UUID, int] = {
            row.descendant_id: row.depth
            for row in paths
            if row.ancestor_id == node_id and row.descendant_id in subtree_set
        }
        inner_depth[node_id] = 0

        for up in parent_ancestors:
            for member in subtree:
                to_insert.append(
                    PathRow(up.ancestor_id, member, up.depth + 1 + inner_depth[member])
                )

    return to_delete, to_insert


def accessible_accounts(
    memberships: Iterable[Tuple[UUID, str]],
    paths: Iterable[PathRow],
) -> Dict[UUID, str]:
    """Accounts a person may act on, with the role that applies to each.

    Args:
        memberships: ``(account_id, account_role)`` pairs for active memberships
        paths: Closure rows for the membership accounts' subtrees

    Returns:
        Mapping of account id to role; a descendant inherits the role of the
        membership above it, keeping the highest rank when several apply
    """
    paths = list(paths)
    result: Dict[UUID, str] = {}
    for account_id, role in memberships:
        for member in descendants_of(paths, account_id, include_self=True):
            current = result.get(member)
            if current is None or role_rank(role, -1) > role_rank(current, -1):
                result[member] = role
    return result


def build_account_tree(
    accounts: Iterable[Dict[str, Any]], root_id: Optional[UUID] = None
) -> List[Dict[str, Any]]:
    """Nest flat account dicts by ``parent_account_id``.

    Children are sorted by ``display_name``. With ``root_id`` the result holds
    that single node; otherwise every account whose parent is not in the input
    becomes a root.
    """
    nodes = {a["id"]: {**a, "children": []} for a in accounts}
    roots: List[Dict[str, Any]] = []

    for node in nodes.values():
        parent = node.get("parent_account_id")
        if node["id"] != root_id and parent in nodes:
            nodes[parent]["children"].append(node)
        else:
            roots.append(node)

    def _sort(items: List[Dict[str, Any]]) -> None:
        items.sort(key=lambda n: (n.get("display_name") or "").lower())
        for item in items:
            _sort(item["children"])

    if root_id is not None:
        roots = [nodes[root_id]] if root_id in nodes else []
    _sort(roots)
    return roots
