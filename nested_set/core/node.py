"""
In-memory tree node.

A node starts UNATTACHED, becomes STAGED when attached to a parent, COMMITTED
once its row exists and DESTROYED when deleted. Intervals are never set by
callers: they are assigned by the interval assigner and kept current by the
shifts the tree issues.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import uuid
import weakref
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, List, Optional

from .constants import RESERVED_NODE_ATTRIBUTES
from .exceptions import ConfigurationError, InvariantViolation, NodeStateError


class NodeState(str, Enum):
    """Lifecycle state of a node."""

    UNATTACHED = "unattached"
    STAGED = "staged"
    COMMITTED = "committed"
    DESTROYED = "destroyed"


class TreeNode:
    """A node of a nested set tree.

    Attributes:
        id: uuid4 string, assigned on construction
        parent: In-memory parent node (None for roots or when not loaded)
        parent_id: Stored parent id
        left, right: Interval edges; None until assigned
        level: Depth (root = 1); None when levels are not tracked
        scope: Scope discriminator
        payload: Caller-owned attributes
        children: In-memory children, in build order or stored left order
        children_loaded: Whether ``children`` mirrors every stored child
        dirty: Set when this node or a descendant has unsaved changes
    """

    def __init__(self, scope: Any = None, **payload: Any):
        """Create an unattached node.

        Args:
            scope: Scope discriminator for the node
            **payload: Initial payload attributes

        Raises:
            ConfigurationError: If payload names a structural attribute
        """
        reserved = RESERVED_NODE_ATTRIBUTES.intersection(payload)
        if reserved:
            raise ConfigurationError(
                f"Do not pass {sorted(reserved)} when creating a node; "
                "attach it with parent.attach() or parent.build_child() instead",
                config_key=sorted(reserved)[0],
            )
        self.id: str = str(uuid.uuid4())
        self.scope = scope
        self.payload: Dict[str, Any] = dict(payload)
        self.parent: Optional[TreeNode] = None
        self.parent_id: Optional[str] = None
        self.left: Optional[int] = None
        self.right: Optional[int] = None
        self.level: Optional[int] = None
        self.children: List[TreeNode] = []
        self.children_loaded = False
        self.state = NodeState.UNATTACHED
        self.dirty = False
        self._changed: set = set()
        self._columns: Optional[FrozenSet[str]] = None

    @classmethod
    def from_row(
        cls, row: Dict[str, Any], columns: Optional[FrozenSet[str]] = None
    ) -> "TreeNode":
        """Build a committed node from a logical store row.

        Raises:
            InvariantViolation: If the row's interval is not ``left < right``
        """
        left, right = row.get("left"), row.get("right")
        if left is None or right is None or left >= right:
            raise InvariantViolation(
                f"Row {row.get('id')} has invalid interval ({left}, {right})",
                node_id=row.get("id"),
                details={"left": left, "right": right, "scope": row.get("scope")},
            )
        node = cls(scope=row.get("scope"))
        node.id = row["id"]
        node.parent_id = row.get("parent_id")
        node.left = left
        node.right = right
        node.level = row.get("level")
        node._columns = columns
        if columns is not None:
            node.payload = {name: row.get(name) for name in columns}
        node.state = NodeState.COMMITTED
        return node

    def __repr__(self) -> str:
        return (
            f"TreeNode(id={self.id[:8]}, left={self.left}, right={self.right}, "
            f"level={self.level}, state={self.state.value}, payload={self.payload!r})"
        )

    def __getitem__(self, key: str) -> Any:
        self._check_payload_keys([key])
        return self.payload.get(key)

    @property
    def is_new(self) -> bool:
        """True until the node's row has been inserted."""
        return self.state in (NodeState.UNATTACHED, NodeState.STAGED)

    @property
    def is_destroyed(self) -> bool:
        return self.state is NodeState.DESTROYED

    @property
    def has_parent(self) -> bool:
        return self.parent is not None or self.parent_id is not None

    @property
    def width(self) -> Optional[int]:
        """Number of edge values the subtree occupies (two per node)."""
        if self.left is None or self.right is None:
            return None
        return self.right - self.left + 1

    def _check_payload_keys(self, keys) -> None:
        if self._columns is None:
            return
        unknown = set(keys) - self._columns
        if unknown:
            raise ConfigurationError(
                f"Unknown payload attribute(s) {sorted(unknown)}",
                config_key=sorted(unknown)[0],
            )

    def _require_alive(self, action: str) -> None:
        if self.is_destroyed:
            raise NodeStateError(
                f"Cannot {action} a destroyed node", state=self.state.value
            )

    def mark_dirty(self) -> None:
        """Flag this node and every in-memory ancestor as needing a save."""
        node: Optional[TreeNode] = self
        while node is not None:
            node.dirty = True
            node = node.parent

    def update(self, **attributes: Any) -> "TreeNode":
        """Change payload attributes; written on the next save.

        Raises:
            ConfigurationError: If an attribute is structural or unknown
            NodeStateError: If the node is destroyed
        """
        self._require_alive("update")
        reserved = RESERVED_NODE_ATTRIBUTES.intersection(attributes)
        if reserved:
            raise ConfigurationError(
                f"{sorted(reserved)} can only change through tree operations",
                config_key=sorted(reserved)[0],
            )
        self._check_payload_keys(attributes)
        self.payload.update(attributes)
        self._changed.update(attributes)
        self.mark_dirty()
        return self

    def changed_attributes(self) -> Dict[str, Any]:
        """Payload attributes modified since the last save."""
        return {key: self.payload.get(key) for key in self._changed}

    def attach(self, child: "TreeNode") -> "TreeNode":
        """Attach an unattached node as the last child of this node.

        The child becomes STAGED. When this node is already stored, the child
        and every in-memory ancestor are marked dirty so that saving any of
        them flushes the child.

        Raises:
            NodeStateError: If either node is destroyed or the child already
                has a parent or a stored row
        """
        self._require_alive("attach to")
        if child.state is not NodeState.UNATTACHED or child.has_parent:
            raise NodeStateError(
                "Only unattached nodes can be attached; use move() to reparent",
                state=child.state.value,
            )
        child.parent = self
        child.parent_id = self.id
        child.scope = self.scope
        child._columns = child._columns or self._columns
        child._check_payload_keys(child.payload)
        child.state = NodeState.STAGED
        self.children.append(child)
        if not self.is_new:
            child.mark_dirty()
        return child

    def build_child(self, **payload: Any) -> "TreeNode":
        """Create a node and attach it as the last child of this node."""
        child = TreeNode(scope=self.scope, **payload)
        child._columns = self._columns
        return self.attach(child)

    def to_row(self) -> Dict[str, Any]:
        """Logical row for insertion."""
        row = {
            "id": self.id,
            "parent_id": self.parent_id,
            "left": self.left,
            "right": self.right,
            "level": self.level,
            "scope": self.scope,
        }
        row.update(self.payload)
        return row

    def snapshot(self) -> Dict[str, Any]:
        """Capture mutable state so a failed operation can restore it."""
        return {
            "parent": self.parent,
            "parent_id": self.parent_id,
            "left": self.left,
            "right": self.right,
            "level": self.level,
            "scope": self.scope,
            "children": list(self.children),
            "children_loaded": self.children_loaded,
            "state": self.state,
            "dirty": self.dirty,
            "changed": set(self._changed),
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        """Restore state captured by snapshot()."""
        self.parent = snapshot["parent"]
        self.parent_id = snapshot["parent_id"]
        self.left = snapshot["left"]
        self.right = snapshot["right"]
        self.level = snapshot["level"]
        self.scope = snapshot["scope"]
        self.children = snapshot["children"]
        self.children_loaded = snapshot["children_loaded"]
        self.state = snapshot["state"]
        self.dirty = snapshot["dirty"]
        self._changed = snapshot["changed"]


class LiveNodeRegistry:
    """Weak registry of committed nodes held by callers, per scope.

    Every shift the tree issues is replayed onto these nodes, so callers never
    hold outdated intervals.
    """

    def __init__(self) -> None:
        self._scopes: Dict[Any, "weakref.WeakSet[TreeNode]"] = {}

    def register(self, node: TreeNode) -> None:
        self._scopes.setdefault(node.scope, weakref.WeakSet()).add(node)

    def live(self, scope: Any) -> Iterator[TreeNode]:
        """Yield committed nodes of a scope."""
        for node in list(self._scopes.get(scope, ())):
            if node.state is NodeState.COMMITTED:
                yield node

    def count(self, scope: Any) -> int:
        return sum(1 for _ in self.live(scope))
