"""
Tests for the deferred commit protocol: batches, dirty flushes, rollback.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

import sqlite3

import pytest

from nested_set.core.commit_coordinator import CommitSession
from nested_set.core.exceptions import ConfigurationError, NodeStateError
from nested_set.core.node import NodeState, TreeNode
from nested_set.core.row_store import StoreOperationError, TransactionError
from nested_set.core.row_store.predicates import All


class CountingStore:
    """Wraps a store and counts structural calls."""

    def __init__(self, store):
        self._store = store
        self.calls = []

    def __getattr__(self, name):
        attr = getattr(self._store, name)
        if name in ("bulk_insert", "bulk_conditional_update", "update_attributes", "delete"):

            def _wrapped(*args, **kwargs):
                self.calls.append(name)
                return attr(*args, **kwargs)

            return _wrapped
        return attr


class TestCommitSession:
    """Test CommitSession bookkeeping."""

    def test_pending_is_last_in_first_out(self):
        """The most recently queued node is flushed first."""
        session = CommitSession(None)
        first, second = TreeNode(), TreeNode()
        session.queue_pending(first)
        session.queue_pending(second)
        assert session.pending == [second, first]

    def test_restore(self):
        """Nodes get their remembered state back."""
        session = CommitSession(None)
        node = TreeNode()
        session.remember(node)
        node.left, node.right = 1, 2
        session.remember(node)
        assert session.restore() == 1
        assert node.left is None

    def test_close_clears_markers(self):
        """close() resets the session."""
        session = CommitSession(None, "tx")
        session.active_root = TreeNode()
        session.queue_pending(TreeNode())
        session.close()
        assert session.active_root is None
        assert session.pending == []


class TestBatchSave:
    """Test saving staged subtrees."""

    def test_one_insert_for_a_whole_batch(self, store):
        """A staged subtree under a parent is one shift plus one insert."""
        from nested_set.core.tree import NestedSetTree

        counting = CountingStore(store)
        tree = NestedSetTree(counting)
        root = tree.save(tree.new_node(name="root"))
        counting.calls.clear()

        branch = root.build_child(name="branch")
        for i in range(5):
            branch.build_child(name=f"leaf{i}").build_child(name=f"sub{i}")
        tree.save(branch.children[3].children[0])

        assert counting.calls == ["bulk_conditional_update", "bulk_insert"]
        assert (root.left, root.right) == (1, 24)
        assert (branch.left, branch.right) == (2, 23)
        assert tree.verify() == 12

    def test_saving_any_staged_member_saves_the_batch(self, tree):
        """The top-most new ancestor is the active root."""
        root = tree.new_node(name="root")
        leaf = root.build_child(name="mid").build_child(name="leaf")
        tree.save(leaf)
        assert root.state is NodeState.COMMITTED
        assert (root.left, root.right) == (1, 6)
        assert (leaf.left, leaf.right) == (3, 4)

    def test_second_root_rejected(self, tree, abc_tree, intervals):
        """A scope holds one tree."""
        before = intervals()
        extra = tree.new_node(name="extra")
        with pytest.raises(NodeStateError, match="already has a root"):
            tree.save(extra)
        assert extra.is_new
        assert intervals() == before

    def test_unknown_payload_rejected(self, tree):
        """Payload keys must be configured columns."""
        with pytest.raises(ConfigurationError, match="Unknown payload"):
            tree.new_node(colour="red")

    def test_unknown_payload_on_foreign_node(self, tree):
        """Nodes built outside the tree are checked at save time."""
        node = TreeNode(colour="red")
        with pytest.raises(ConfigurationError, match="Unknown payload"):
            tree.save(node)

    def test_unscoped_tree_ignores_scope(self, tree):
        """Without a scope column every node lives in one forest."""
        node = TreeNode(scope="ignored", name="root")
        tree.save(node)
        assert node.scope is None
        assert tree.get(None, node.id) is not None


class TestDirtySave:
    """Test attribute rewrites and pending flushes."""

    def test_attribute_rewrite(self, tree, abc_tree, store):
        """Changed payload is written, intervals are not touched."""
        d = abc_tree["D"]
        d.update(name="renamed")
        tree.save(abc_tree["A"])
        row = store.read_by_id(None, d.id)
        assert row["name"] == "renamed"
        assert (row["left"], row["right"]) == (3, 4)
        assert not d.dirty and not abc_tree["A"].dirty

    def test_only_changed_columns_are_written(self, store, abc_tree):
        """A clean save issues no statements."""
        from nested_set.core.tree import NestedSetTree

        counting = CountingStore(store)
        tree = NestedSetTree(counting)
        node = tree.get(None, abc_tree["C"].id)
        node.update(name="C2")
        tree.save(node)
        assert counting.calls == ["update_attributes"]
        counting.calls.clear()
        tree.save(node)
        assert counting.calls == []

    def test_pending_children_flush_most_recent_first(self, tree, abc_tree, intervals):
        """New children found while saving are queued and flushed LIFO."""
        c = abc_tree["C"]
        first = c.build_child(name="first")
        second = c.build_child(name="second")
        tree.save(abc_tree["A"])

        assert first.state is NodeState.COMMITTED
        assert second.state is NodeState.COMMITTED
        assert second.left < first.left
        assert intervals()["C"] == (8, 13)
        assert tree.verify() == 7

    def test_dirty_flag_reaches_nested_children(self, tree, abc_tree, store):
        """Saving the root flushes a new grandchild under a stored child."""
        e = abc_tree["E"]
        grandchild = e.build_child(name="deep")
        e.update(name="E2")
        tree.save(abc_tree["A"])
        assert grandchild.state is NodeState.COMMITTED
        assert grandchild.level == 4
        assert store.read_by_id(None, e.id)["name"] == "E2"
        assert tree.verify() == 6


class TestRollback:
    """Test failure handling."""

    def test_failed_insert_rolls_back_everything(self, tree, abc_tree, store, monkeypatch, intervals):
        """A store error after the shift leaves store and memory unchanged."""
        before = intervals()
        a, c = abc_tree["A"], abc_tree["C"]
        child = c.build_child(name="child")

        def _fail(*args, **kwargs):
            raise StoreOperationError("disk full")

        monkeypatch.setattr(store, "bulk_insert", _fail)
        with pytest.raises(StoreOperationError, match="disk full"):
            tree.save(child)

        assert intervals() == before
        assert (a.left, a.right) == (1, 10)
        assert (c.left, c.right) == (8, 9)
        assert child.state is NodeState.STAGED
        assert child.left is None

        monkeypatch.undo()
        tree.save(child)
        assert (child.left, child.right) == (9, 10)
        assert tree.verify() == 6

    def test_failed_move_restores_memory(self, tree, abc_tree, store, monkeypatch, intervals):
        """A failure after the move shift restores in-memory intervals."""
        before = intervals()
        b, c = abc_tree["B"], abc_tree["C"]

        def _fail(*args, **kwargs):
            raise StoreOperationError("locked")

        monkeypatch.setattr(store, "update_attributes", _fail)
        with pytest.raises(StoreOperationError):
            tree.move(c, b)

        assert intervals() == before
        assert (c.left, c.right, c.level) == (8, 9, 2)
        assert c.parent is abc_tree["A"]
        assert c in abc_tree["A"].children

    def test_failed_destroy_restores_states(self, tree, abc_tree, store, monkeypatch):
        """A failure during destroy leaves every node alive."""
        def _fail(*args, **kwargs):
            raise StoreOperationError("io")

        monkeypatch.setattr(store, "bulk_conditional_update", _fail)
        with pytest.raises(StoreOperationError):
            tree.destroy(abc_tree["B"])
        for name in ("B", "D", "E"):
            assert abc_tree[name].state is NodeState.COMMITTED
        assert abc_tree["B"] in abc_tree["A"].children
        assert len(store.select(None, All())) == 5


class CommitFailingConnection:
    """Connection wrapper whose COMMIT fails."""

    def __init__(self, conn):
        self._conn = conn

    def execute(self, sql, *args):
        if sql == "COMMIT":
            raise sqlite3.OperationalError("disk I/O error")
        return self._conn.execute(sql, *args)

    def close(self):
        self._conn.close()


class TestFailedCommit:
    """Test that a failed commit releases the write lock."""

    def test_driver_releases_connection(self, store):
        """The transaction connection is rolled back and closed."""
        manager = store._transaction_manager
        transaction_id = store.begin_transaction()
        manager._transactions[transaction_id] = CommitFailingConnection(
            manager._transactions[transaction_id]
        )

        with pytest.raises(TransactionError, match="Failed to commit"):
            store.commit_transaction(transaction_id)
        assert manager._transactions == {}

        # a second writer gets the lock
        next_id = store.begin_transaction()
        assert store.commit_transaction(next_id)

    def test_facade_rolls_back_after_failed_commit(
        self, tree, abc_tree, store, monkeypatch, intervals
    ):
        """A commit error rolls the transaction back and restores memory."""
        before = intervals()
        c = abc_tree["C"]

        def _fail(transaction_id):
            raise TransactionError("commit refused")

        monkeypatch.setattr(store, "commit_transaction", _fail)
        child = c.build_child(name="child")
        with pytest.raises(TransactionError, match="commit refused"):
            tree.save(child)

        assert store._transaction_manager._transactions == {}
        assert intervals() == before
        assert (c.left, c.right) == (8, 9)
        assert child.is_new

        monkeypatch.undo()
        tree.save(child)
        assert (child.left, child.right) == (9, 10)
        assert tree.verify() == 6
