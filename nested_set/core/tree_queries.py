"""
Read-only tree queries.

Every query is an interval comparison against the row store; nothing here
walks parent links in SQL or writes to the store.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .exceptions import InvariantViolation, NodeStateError
from .node import TreeNode
from .row_store.predicates import All, IdIs, Inside, LeftWithin, LevelAtMost, ParentIs

if TYPE_CHECKING:
    from .commit_coordinator import CommitCoordinator
    from .row_store.drivers.base import BaseRowStore
    from .tree_config import TreeConfig

logger = logging.getLogger(__name__)


class NodePosition(str, Enum):
    """Classification of a node by its stored interval."""

    ROOT = "root"
    CHILD = "child"
    UNKNOWN = "unknown"


class _TreeQueriesMixin:
    """Query operations for NestedSetTree."""

    store: "BaseRowStore"
    config: "TreeConfig"
    coordinator: "CommitCoordinator"

    def _rows_to_nodes(self, rows) -> List[TreeNode]:
        return [self.coordinator.node_from_row(row) for row in rows]

    @staticmethod
    def _require_interval(node: TreeNode) -> None:
        if node.left is None or node.right is None or node.is_new:
            raise NodeStateError(
                "Node has no stored interval; save it first", state=node.state.value
            )

    def get(self, scope: Any, node_id: str) -> Optional[TreeNode]:
        """Read one committed node by id."""
        rows = self.store.select(self._scope(scope), IdIs(node_id))
        return self.coordinator.node_from_row(rows[0]) if rows else None

    def roots(self, scope: Any = None) -> List[TreeNode]:
        """Parentless nodes of a scope, ordered by order_column or left."""
        rows = self.store.select(
            self._scope(scope), ParentIs(None), order_by=self.config.order_column
        )
        return self._rows_to_nodes(rows)

    def get_root(self, scope: Any = None) -> Optional[TreeNode]:
        """The first root of a scope, or None for an empty scope."""
        roots = self.roots(scope)
        return roots[0] if roots else None

    def ancestors(self, node: TreeNode) -> List[TreeNode]:
        """Ancestors of ``node``, nearest first.

        In-memory parents are used where present; missing links are read
        from the store and attached.

        Raises:
            InvariantViolation: If a stored parent reference is dangling
        """
        result: List[TreeNode] = []
        current = node
        while True:
            parent = current.parent
            if parent is None and current.parent_id is not None:
                parent = self.get(current.scope, current.parent_id)
                if parent is None:
                    raise InvariantViolation(
                        f"Parent {current.parent_id} of node {current.id} does not exist",
                        node_id=current.id,
                    )
                current.parent = parent
            if parent is None:
                return result
            result.append(parent)
            current = parent

    def self_and_ancestors(self, node: TreeNode) -> List[TreeNode]:
        return [node] + self.ancestors(node)

    def root(self, node: TreeNode) -> TreeNode:
        """The root of the tree ``node`` belongs to."""
        ancestors = self.ancestors(node)
        return ancestors[-1] if ancestors else node

    def self_and_siblings(self, node: TreeNode) -> List[TreeNode]:
        """Stored nodes sharing ``node``'s parent (roots for a root)."""
        rows = self.store.select(self._scope(node.scope), ParentIs(node.parent_id))
        return self._rows_to_nodes(rows)

    def siblings(self, node: TreeNode) -> List[TreeNode]:
        return [n for n in self.self_and_siblings(node) if n.id != node.id]

    @staticmethod
    def children_count(node: TreeNode) -> int:
        """Number of descendants, computed from the interval alone."""
        if node.left is None or node.right is None:
            return 0
        return (node.right - node.left - 1) // 2

    def full_set(self, node: TreeNode) -> List[TreeNode]:
        """``node`` and all of its descendants, in preorder."""
        self._require_interval(node)
        rows = self.store.select(
            self._scope(node.scope), LeftWithin(node.left, node.right)
        )
        return self._rows_to_nodes(rows)

    def all_children(self, node: TreeNode) -> List[TreeNode]:
        """All descendants of ``node``, in preorder."""
        self._require_interval(node)
        rows = self.store.select(self._scope(node.scope), Inside(node.left, node.right))
        return self._rows_to_nodes(rows)

    def direct_children(self, node: TreeNode) -> List[TreeNode]:
        """Children of ``node``, ordered by left."""
        self._require_interval(node)
        rows = self.store.select(self._scope(node.scope), ParentIs(node.id))
        return self._rows_to_nodes(rows)

    @staticmethod
    def position(node: TreeNode) -> NodePosition:
        """Classify a node by its parent reference and interval."""
        left, right = node.left, node.right
        if left is None or right is None or right <= left:
            return NodePosition.UNKNOWN
        if node.parent_id is None and left == 1:
            return NodePosition.ROOT
        if node.parent_id is not None and left > 1:
            return NodePosition.CHILD
        return NodePosition.UNKNOWN

    def is_root(self, node: TreeNode) -> bool:
        return self.position(node) is NodePosition.ROOT

    def is_child(self, node: TreeNode) -> bool:
        return self.position(node) is NodePosition.CHILD

    def is_unknown(self, node: TreeNode) -> bool:
        return self.position(node) is NodePosition.UNKNOWN

    def load_subtree(self, node: TreeNode, max_depth: int = 0) -> TreeNode:
        """Populate ``node.children`` recursively from one range read.

        Descendants already linked in memory are reused, so unsaved payload
        changes on them stay reachable from ``node``.

        Args:
            node: Committed subtree root
            max_depth: Levels below ``node`` to load; 0 loads everything.
                Ignored when levels are not tracked.

        Returns:
            ``node``, with children linked in left order. Staged children
            that are not stored yet are kept after the loaded ones.

        Raises:
            InvariantViolation: If a loaded row's parent is outside the subtree
        """
        self._require_interval(node)
        limited = max_depth > 0 and self.config.tracks_level and node.level is not None
        predicate = Inside(node.left, node.right)
        if limited:
            predicate = All(predicate, LevelAtMost(node.level + max_depth))
        rows = self.store.select(self._scope(node.scope), predicate)

        linked: Dict[str, TreeNode] = {}
        pending = list(node.children)
        while pending:
            child = pending.pop()
            if child.is_new or child.is_destroyed:
                continue
            linked[child.id] = child
            pending.extend(child.children)

        arena: List[TreeNode] = []
        for row in rows:
            child = linked.get(row["id"])
            if child is None:
                child = self.coordinator.node_from_row(row)
            else:
                child.parent_id = row["parent_id"]
                child.left, child.right, child.level = row["left"], row["right"], row["level"]
            arena.append(child)

        def expands(n: TreeNode) -> bool:
            return not limited or n.level < node.level + max_depth

        index: Dict[str, TreeNode] = {n.id: n for n in arena}
        index[node.id] = node
        staged: Dict[str, List[TreeNode]] = {}
        for n in [node] + arena:
            if expands(n):
                staged[n.id] = [c for c in n.children if c.is_new]
                n.children = []
        for child in arena:
            parent = index.get(child.parent_id)
            if parent is None:
                raise InvariantViolation(
                    f"Node {child.id} lies inside {node.id} but its parent does not",
                    node_id=child.id,
                    details={"parent_id": child.parent_id},
                )
            child.parent = parent
            parent.children.append(child)
        for node_id, kept in staged.items():
            index[node_id].children.extend(kept)
            index[node_id].children_loaded = True

        logger.debug("Loaded %s descendants of %s", len(arena), node.id)
        return node

    def verify(self, scope: Any = None) -> int:
        """Check every nested set invariant over a scope.

        Returns:
            Number of rows checked

        Raises:
            InvariantViolation: On the first violation found
        """
        rows = self.store.select(self._scope(scope), All())
        edges = sorted([r["left"] for r in rows] + [r["right"] for r in rows])
        if edges != list(range(1, 2 * len(rows) + 1)):
            raise InvariantViolation(
                f"Interval values in scope {scope!r} are not 1..{2 * len(rows)} "
                "without gaps or duplicates",
                details={"scope": scope, "rows": len(rows)},
            )

        tracks_level = self.config.tracks_level
        stack: List[Dict[str, Any]] = []
        roots = 0
        for row in rows:
            if row["left"] >= row["right"]:
                raise InvariantViolation(
                    f"Node {row['id']} has left >= right", node_id=row["id"]
                )
            while stack and stack[-1]["right"] < row["left"]:
                stack.pop()
            if stack:
                container = stack[-1]
                if row["right"] > container["right"]:
                    raise InvariantViolation(
                        f"Node {row['id']} partially overlaps {container['id']}",
                        node_id=row["id"],
                    )
                if row["parent_id"] != container["id"]:
                    raise InvariantViolation(
                        f"Node {row['id']} is inside {container['id']} "
                        f"but its parent is {row['parent_id']}",
                        node_id=row["id"],
                    )
                expected_level = container["level"] + 1 if tracks_level else None
            else:
                roots += 1
                if row["parent_id"] is not None:
                    raise InvariantViolation(
                        f"Top-level node {row['id']} references parent {row['parent_id']}",
                        node_id=row["id"],
                    )
                expected_level = 1 if tracks_level else None
            if tracks_level and row["level"] != expected_level:
                raise InvariantViolation(
                    f"Node {row['id']} has level {row['level']}, expected {expected_level}",
                    node_id=row["id"],
                )
            stack.append(row)

        if roots > 1:
            raise InvariantViolation(
                f"Scope {scope!r} has {roots} roots", details={"scope": scope}
            )
        logger.info("Verified %s rows in scope=%r", len(rows), scope)
        return len(rows)
