"""
Deferred multi-node commit protocol.

A staged subtree is flushed by its top-most new node (the active root): the
whole subtree is numbered in one pass, one gap is opened for it and all rows
are inserted in one batch. Dirty children found while saving are queued and
flushed after the active root finishes, most recently queued first. Destroy
walks a subtree depth-first and closes the gap once, from the destroy root.

Per-operation markers live on an explicit CommitSession passed through every
call; nothing is kept in global or thread-local state.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .exceptions import ConfigurationError, InvalidMoveError, NodeStateError
from .interval_assigner import assign, iter_subtree
from .node import LiveNodeRegistry, NodeState, TreeNode
from .range_shifter import RangeShifter, ShiftRule
from .row_store.drivers.base import BaseRowStore, Row
from .row_store.predicates import IdIs, Inside, ParentIs
from .tree_config import TreeConfig

logger = logging.getLogger(__name__)


class CommitSession:
    """State of one structural operation.

    Attributes:
        scope: Scope the operation works in
        transaction_id: Store transaction the operation runs in
        active_root: Batch root currently being saved
        destroy_root: Node whose destroy started the walk
        pending: Dirty new nodes waiting for the active root to finish
    """

    def __init__(self, scope: Any, transaction_id: Optional[str] = None):
        self.scope = scope
        self.transaction_id = transaction_id
        self.active_root: Optional[TreeNode] = None
        self.destroy_root: Optional[TreeNode] = None
        self.pending: List[TreeNode] = []
        self.destroy_index: Dict[str, List[Row]] = {}
        self._undo: Dict[int, tuple] = {}

    def remember(self, node: TreeNode) -> None:
        """Snapshot a node the first time the operation touches it."""
        if id(node) not in self._undo:
            self._undo[id(node)] = (node, node.snapshot())

    def queue_pending(self, node: TreeNode) -> None:
        self.pending.insert(0, node)

    def restore(self) -> int:
        """Put every touched node back as it was before the operation.

        Returns:
            Number of nodes restored
        """
        for node, snapshot in self._undo.values():
            node.restore(snapshot)
        return len(self._undo)

    def close(self) -> None:
        self.active_root = None
        self.destroy_root = None
        self.pending.clear()
        self.destroy_index.clear()
        self._undo.clear()


class CommitCoordinator:
    """Runs save, destroy and move against a row store inside a session."""

    def __init__(
        self,
        store: BaseRowStore,
        config: TreeConfig,
        registry: LiveNodeRegistry,
    ):
        self.store = store
        self.config = config
        self.registry = registry
        self.shifter = RangeShifter(store)
        self._columns = frozenset(config.payload_columns)

    # ------------------------------------------------------------------
    # helpers

    def node_from_row(self, row: Row) -> TreeNode:
        """Build a committed node from a row and register it as live."""
        node = TreeNode.from_row(row, self._columns)
        if not self.config.is_scoped:
            node.scope = None
        self.registry.register(node)
        return node

    def apply_shift(
        self, rule: ShiftRule, session: CommitSession, *anchors: Optional[TreeNode]
    ) -> int:
        """Replay a shift onto live nodes and the in-memory chains of ``anchors``.

        Returns:
            Number of in-memory nodes changed
        """
        if rule.is_noop:
            return 0
        targets = {id(n): n for n in self.registry.live(session.scope)}
        for anchor in anchors:
            node = anchor
            while node is not None:
                targets.setdefault(id(node), node)
                node = node.parent

        changed = 0
        for node in targets.values():
            if node.state is not NodeState.COMMITTED or node.left is None:
                continue
            if not rule.touches(node.left, node.right):
                continue
            session.remember(node)
            delta = rule.level_delta(node.left)
            node.left, node.right = rule(node.left, node.right)
            if node.level is not None:
                node.level += delta
            changed += 1
        logger.debug("Applied shift to %s in-memory nodes", changed)
        return changed

    def _refresh(self, node: TreeNode, session: CommitSession) -> Row:
        """Reload a committed node's interval from the store."""
        row = self.store.read_by_id(session.scope, node.id, session.transaction_id)
        if row is None:
            raise NodeStateError(
                f"Node {node.id} has no stored row in scope {session.scope!r}",
                state=node.state.value,
            )
        session.remember(node)
        node.left, node.right, node.level = row["left"], row["right"], row["level"]
        return row

    # ------------------------------------------------------------------
    # save

    def stage_save(self, node: TreeNode, session: CommitSession) -> TreeNode:
        """Save ``node``: insert its staged batch or rewrite dirty attributes.

        Returns:
            The node that was saved (the batch root for new nodes)

        Raises:
            NodeStateError: If the node is destroyed or would become a
                second root
            ConfigurationError: If a payload key is not a configured column
        """
        if node.is_destroyed:
            raise NodeStateError("Cannot save a destroyed node", state=node.state.value)

        if node.is_new:
            while node.parent is not None and node.parent.is_new:
                node = node.parent
            self._save_new(node, session)
        elif node.dirty:
            self._save_dirty(node, session)

        if session.active_root is node:
            session.active_root = None
        while session.pending:
            self.stage_save(session.pending.pop(0), session)
        return node

    def _save_new(self, node: TreeNode, session: CommitSession) -> None:
        if session.active_root is not None:
            # already numbered as part of the active batch
            return
        session.active_root = node

        subtree = list(iter_subtree(node))
        for member in subtree:
            unknown = set(member.payload) - self._columns
            if unknown:
                raise ConfigurationError(
                    f"Unknown payload attribute(s) {sorted(unknown)}",
                    config_key=sorted(unknown)[0],
                )
            session.remember(member)
            member.scope = session.scope
            member._columns = self._columns

        parent = node.parent
        if parent is None:
            existing = self.store.select(
                session.scope, ParentIs(None), session.transaction_id
            )
            if existing:
                raise NodeStateError(
                    f"Scope {session.scope!r} already has a root",
                    state=node.state.value,
                    details={"root_id": existing[0]["id"]},
                )
            left, level = 1, 1
        else:
            self._refresh(parent, session)
            left = parent.right
            level = None if parent.level is None else parent.level + 1
        if not self.config.tracks_level:
            level = None

        right = assign(node, left, level)
        width = right - left + 1
        if parent is not None:
            rule = self.shifter.open_gap(
                session.scope, left, width, session.transaction_id
            )
            self.apply_shift(rule, session, parent)

        self.store.bulk_insert(
            session.scope, [m.to_row() for m in subtree], session.transaction_id
        )
        for member in subtree:
            member.state = NodeState.COMMITTED
            member.dirty = False
            member._changed.clear()
            member.children_loaded = True
            self.registry.register(member)
        logger.info(
            "Inserted %s nodes at [%s, %s] in scope=%r",
            len(subtree),
            left,
            right,
            session.scope,
        )

    def _save_dirty(self, node: TreeNode, session: CommitSession) -> None:
        session.remember(node)
        changed = node.changed_attributes()
        if changed:
            self.store.update_attributes(
                session.scope, node.id, changed, session.transaction_id
            )
            logger.debug("Rewrote %s on node %s", sorted(changed), node.id)
        node._changed.clear()
        node.dirty = False
        for child in node.children:
            if not child.dirty:
                continue
            if child.is_new:
                session.queue_pending(child)
            elif not child.is_destroyed:
                self._save_dirty(child, session)

    # ------------------------------------------------------------------
    # destroy

    def stage_destroy(self, node: TreeNode, session: CommitSession) -> None:
        """Destroy ``node`` and its subtree.

        Raises:
            NodeStateError: If the node is already destroyed or its row is gone
        """
        if node.is_destroyed:
            raise NodeStateError(
                "Node is already destroyed", state=node.state.value
            )

        top = session.destroy_root is None
        if top:
            session.destroy_root = node
            if not node.is_new:
                self._refresh(node, session)
                self._index_subtree(node, session)

        for child in self._children_for_destroy(node, session):
            self.stage_destroy(child, session)

        if not node.is_new:
            self.store.delete(session.scope, IdIs(node.id), session.transaction_id)
        stored = not node.is_new
        session.remember(node)
        node.state = NodeState.DESTROYED
        node.dirty = False

        if not top:
            return
        parent = node.parent
        if parent is not None and node in parent.children:
            session.remember(parent)
            parent.children = [c for c in parent.children if c is not node]
        if stored:
            # other in-memory copies of the deleted rows
            for live in list(self.registry.live(session.scope)):
                if live.left is None or not node.left <= live.left <= node.right:
                    continue
                session.remember(live)
                live.state = NodeState.DESTROYED
                owner = live.parent
                if owner is not None and live in owner.children:
                    session.remember(owner)
                    owner.children = [c for c in owner.children if c is not live]
            rule = self.shifter.close_gap(
                session.scope, node.left, node.right, session.transaction_id
            )
            self.apply_shift(rule, session, parent)
            logger.info(
                "Destroyed subtree [%s, %s] in scope=%r", node.left, node.right, session.scope
            )
        session.destroy_root = None

    def _index_subtree(self, node: TreeNode, session: CommitSession) -> None:
        rows = self.store.select(
            session.scope, Inside(node.left, node.right), session.transaction_id
        )
        index: Dict[str, List[Row]] = {}
        for row in rows:
            index.setdefault(row["parent_id"], []).append(row)
        session.destroy_index = index

    def _children_for_destroy(
        self, node: TreeNode, session: CommitSession
    ) -> List[TreeNode]:
        in_memory = {c.id: c for c in node.children if not c.is_destroyed}
        children: List[TreeNode] = []
        if not node.is_new:
            for row in session.destroy_index.get(node.id, []):
                child = in_memory.pop(row["id"], None)
                if child is None:
                    child = self.node_from_row(row)
                    child.parent = node
                children.append(child)
        # staged children never reached the store
        children.extend(in_memory.values())
        return children

    # ------------------------------------------------------------------
    # move

    def stage_move(
        self, node: TreeNode, new_parent: TreeNode, session: CommitSession
    ) -> TreeNode:
        """Make ``node`` the last child of ``new_parent`` with one shift.

        Raises:
            InvalidMoveError: If either node is unsaved, the scopes differ or
                the new parent lies inside the moved subtree
            NodeStateError: If either node is destroyed
        """
        for candidate in (node, new_parent):
            if candidate.is_destroyed:
                raise NodeStateError(
                    "Cannot move to or from a destroyed node",
                    state=candidate.state.value,
                )
            if candidate.is_new:
                raise InvalidMoveError(
                    "Cannot move to or from an unsaved node",
                    node_id=node.id,
                    parent_id=new_parent.id,
                )
        if node.scope != new_parent.scope:
            raise InvalidMoveError(
                "Cannot move a node across scopes",
                node_id=node.id,
                parent_id=new_parent.id,
                details={"scope": node.scope, "target_scope": new_parent.scope},
            )
        if node.id == new_parent.id:
            raise InvalidMoveError(
                "Cannot move a node under itself", node_id=node.id, parent_id=new_parent.id
            )

        row = self._refresh(node, session)
        parent_row = self._refresh(new_parent, session)
        level_offset = 0
        if self.config.tracks_level:
            level_offset = parent_row["level"] + 1 - row["level"]

        try:
            plan = self.shifter.move(
                session.scope,
                row["left"],
                row["right"],
                parent_row["right"],
                level_offset,
                session.transaction_id,
            )
        except InvalidMoveError as e:
            raise InvalidMoveError(
                e.message, node_id=node.id, parent_id=new_parent.id, details=e.details
            ) from e
        self.store.update_attributes(
            session.scope, node.id, {"parent_id": new_parent.id}, session.transaction_id
        )
        self.apply_shift(plan.rule, session, node, new_parent)

        old_parent = node.parent
        if old_parent is not None:
            session.remember(old_parent)
            old_parent.children = [c for c in old_parent.children if c is not node]
        session.remember(new_parent)
        new_parent.children = new_parent.children + [node]
        node.parent = new_parent
        node.parent_id = new_parent.id
        logger.info(
            "Moved node %s to [%s, %s] under %s in scope=%r",
            node.id,
            plan.new_left,
            plan.new_right,
            new_parent.id,
            session.scope,
        )
        return node
