"""
Nested set tree facade.

NestedSetTree binds a row store and a TreeConfig. Each structural call
(save, move, destroy) runs in one store transaction and one CommitSession;
on failure the transaction is rolled back, touched in-memory nodes are
restored and the exception propagates unchanged.

Example:
    store = create_row_store("sqlite", {"path": "tree.db"}, config)
    store.ensure_schema()
    tree = NestedSetTree(store, config)
    root = tree.new_node(name="root")
    root.build_child(name="a").build_child(name="b")
    tree.save(root)

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from .commit_coordinator import CommitCoordinator, CommitSession
from .exceptions import ConfigurationError
from .node import LiveNodeRegistry, TreeNode
from .row_store.drivers.base import BaseRowStore
from .row_store.exceptions import StoreError
from .tree_config import TreeConfig
from .tree_queries import _TreeQueriesMixin

logger = logging.getLogger(__name__)


class NestedSetTree(_TreeQueriesMixin):
    """Nested set operations over one row store table."""

    def __init__(self, store: BaseRowStore, config: Optional[TreeConfig] = None):
        """Initialize tree facade.

        Args:
            store: Connected row store
            config: Table layout; defaults to the store's own layout

        Raises:
            ConfigurationError: If config differs from the store's layout
        """
        if config is not None and config != store.tree_config:
            raise ConfigurationError(
                "Tree and row store must share one TreeConfig",
                config_key="tree_config",
            )
        self.store = store
        self.config = config or store.tree_config
        self.registry = LiveNodeRegistry()
        self.coordinator = CommitCoordinator(store, self.config, self.registry)

    def _scope(self, scope: Any) -> Any:
        return scope if self.config.is_scoped else None

    def _abort(self, name: str, session: CommitSession) -> None:
        """Roll back the store transaction and restore touched nodes."""
        try:
            self.store.rollback_transaction(session.transaction_id)
        except StoreError as rollback_error:
            logger.error(
                "%s: rollback of %s failed: %s",
                name,
                session.transaction_id,
                rollback_error,
            )
        restored = session.restore()
        logger.warning(
            "%s failed in scope=%r; rolled back and restored %s nodes",
            name,
            session.scope,
            restored,
        )

    @contextmanager
    def _operation(self, name: str, scope: Any) -> Iterator[CommitSession]:
        session = CommitSession(self._scope(scope))
        session.transaction_id = self.store.begin_transaction()
        logger.debug("%s: begin transaction %s", name, session.transaction_id)
        try:
            yield session
        except BaseException:
            self._abort(name, session)
            raise
        else:
            try:
                self.store.commit_transaction(session.transaction_id)
            except BaseException:
                self._abort(name, session)
                raise
        finally:
            session.close()

    def new_node(self, scope: Any = None, **payload: Any) -> TreeNode:
        """Create an unattached node bound to this tree's payload columns.

        Raises:
            ConfigurationError: If payload names a structural or unknown attribute
        """
        node = TreeNode(scope=self._scope(scope), **payload)
        node._columns = frozenset(self.config.payload_columns)
        node._check_payload_keys(payload)
        return node

    def save(self, node: TreeNode) -> TreeNode:
        """Save a node.

        New nodes are inserted together with their whole staged batch (the
        top-most new ancestor and everything below it). Committed nodes
        rewrite changed payload attributes and flush dirty staged children.

        Returns:
            ``node``
        """
        with self._operation("save", node.scope) as session:
            self.coordinator.stage_save(node, session)
        return node

    def create_child(self, parent: TreeNode, **payload: Any) -> TreeNode:
        """Build a child of ``parent`` and save it."""
        child = parent.build_child(**payload)
        self.save(child)
        return child

    def add_child(self, parent: TreeNode, child: TreeNode) -> TreeNode:
        """Attach an unattached node to ``parent`` and save it."""
        parent.attach(child)
        self.save(child)
        return child

    def move(self, node: TreeNode, new_parent: TreeNode) -> TreeNode:
        """Make ``node`` the last child of ``new_parent``.

        Raises:
            InvalidMoveError: For moves into the node's own subtree, across
                scopes or involving unsaved nodes
            NodeStateError: If either node is destroyed
        """
        with self._operation("move", node.scope) as session:
            self.coordinator.stage_move(node, new_parent, session)
        return node

    def destroy(self, node: TreeNode) -> None:
        """Delete ``node`` and its whole subtree, then close the gap."""
        with self._operation("destroy", node.scope) as session:
            self.coordinator.stage_destroy(node, session)
