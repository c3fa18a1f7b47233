"""
Tests for TreeNode and the live node registry.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

import gc

import pytest

from nested_set.core.exceptions import ConfigurationError, InvariantViolation, NodeStateError
from nested_set.core.node import LiveNodeRegistry, NodeState, TreeNode


class TestTreeNodeConstruction:
    """Test node construction."""

    def test_new_node_is_unattached(self):
        """A fresh node has an id and no interval."""
        node = TreeNode(name="a")
        assert node.state is NodeState.UNATTACHED
        assert node.is_new
        assert node.left is None and node.right is None
        assert len(node.id) == 36

    def test_ids_are_unique(self):
        """Every node gets its own id."""
        assert TreeNode().id != TreeNode().id

    @pytest.mark.parametrize("key", ["parent", "parent_id", "left", "right", "level", "id"])
    def test_structural_keys_rejected(self, key):
        """Parent and interval values cannot be passed in."""
        with pytest.raises(ConfigurationError) as exc:
            TreeNode(**{key: 1})
        assert exc.value.config_key == key

    def test_from_row(self):
        """Rows become committed nodes."""
        node = TreeNode.from_row(
            {"id": "x", "parent_id": "p", "left": 2, "right": 5, "level": 2, "scope": 3,
             "name": "n"},
            frozenset({"name"}),
        )
        assert node.state is NodeState.COMMITTED
        assert (node.id, node.parent_id, node.left, node.right) == ("x", "p", 2, 5)
        assert node.scope == 3
        assert node["name"] == "n"

    def test_from_row_rejects_bad_interval(self):
        """left >= right signals corruption."""
        with pytest.raises(InvariantViolation, match="invalid interval"):
            TreeNode.from_row({"id": "x", "left": 5, "right": 3})


class TestTreeNodeAttach:
    """Test attach and build_child."""

    def test_build_child_stages_node(self):
        """Children are staged and linked both ways."""
        parent = TreeNode(scope="s", name="p")
        child = parent.build_child(name="c")
        assert child.state is NodeState.STAGED
        assert child.parent is parent
        assert child.parent_id == parent.id
        assert child.scope == "s"
        assert parent.children == [child]

    def test_attach_new_parent_does_not_mark_dirty(self):
        """Staged batches don't need dirty flags."""
        parent = TreeNode(name="p")
        child = parent.build_child(name="c")
        assert not child.dirty
        assert not parent.dirty

    def test_attach_to_committed_parent_marks_chain_dirty(self):
        """Attaching under a stored node flags it and its ancestors."""
        root = TreeNode(name="r")
        root.state = NodeState.COMMITTED
        mid = TreeNode(name="m")
        mid.state = NodeState.COMMITTED
        mid.parent = root
        child = mid.build_child(name="c")
        assert child.dirty and mid.dirty and root.dirty

    def test_attach_twice_rejected(self):
        """A node with a parent can only be moved, not attached again."""
        a, b = TreeNode(name="a"), TreeNode(name="b")
        child = a.build_child(name="c")
        with pytest.raises(NodeStateError, match="move"):
            b.attach(child)

    def test_attach_committed_rejected(self):
        """Stored nodes cannot be attached."""
        stored = TreeNode(name="s")
        stored.state = NodeState.COMMITTED
        with pytest.raises(NodeStateError):
            TreeNode(name="p").attach(stored)

    def test_attach_to_destroyed_rejected(self):
        """Destroyed nodes take no children."""
        parent = TreeNode(name="p")
        parent.state = NodeState.DESTROYED
        with pytest.raises(NodeStateError, match="destroyed"):
            parent.build_child(name="c")


class TestTreeNodePayload:
    """Test payload access."""

    def test_update_marks_dirty_up_the_chain(self):
        """Updates propagate the dirty flag to ancestors."""
        root = TreeNode(name="r")
        child = root.build_child(name="c")
        child.update(name="c2")
        assert child.dirty and root.dirty
        assert child.changed_attributes() == {"name": "c2"}

    def test_update_rejects_structure(self):
        """Intervals are never updated directly."""
        with pytest.raises(ConfigurationError):
            TreeNode(name="a").update(left=3)

    def test_update_destroyed(self):
        """Destroyed nodes cannot be updated."""
        node = TreeNode(name="a")
        node.state = NodeState.DESTROYED
        with pytest.raises(NodeStateError):
            node.update(name="b")

    def test_unknown_payload_key(self):
        """Keys outside the bound columns are rejected."""
        node = TreeNode(name="a")
        node._columns = frozenset({"name"})
        with pytest.raises(ConfigurationError, match="Unknown payload"):
            node.update(colour="red")
        with pytest.raises(ConfigurationError, match="Unknown payload"):
            node["colour"]

    def test_getitem_unset_column(self):
        """Bound but unset columns read as None."""
        node = TreeNode()
        node._columns = frozenset({"name"})
        assert node["name"] is None


class TestTreeNodeSnapshot:
    """Test snapshot/restore."""

    def test_restore_round_trip(self):
        """restore() undoes changes made after snapshot()."""
        node = TreeNode(name="a")
        snapshot = node.snapshot()
        node.left, node.right, node.level = 3, 8, 2
        node.state = NodeState.COMMITTED
        node.children.append(TreeNode())
        node.restore(snapshot)
        assert (node.left, node.right, node.level) == (None, None, None)
        assert node.state is NodeState.UNATTACHED
        assert node.children == []


class TestLiveNodeRegistry:
    """Test LiveNodeRegistry."""

    def test_only_committed_nodes_are_live(self):
        """Staged and destroyed nodes are not reported."""
        registry = LiveNodeRegistry()
        committed, staged = TreeNode(), TreeNode()
        committed.state = NodeState.COMMITTED
        registry.register(committed)
        registry.register(staged)
        assert list(registry.live(None)) == [committed]
        committed.state = NodeState.DESTROYED
        assert registry.count(None) == 0

    def test_scopes_are_separate(self):
        """Nodes are grouped by scope."""
        registry = LiveNodeRegistry()
        node = TreeNode(scope=1)
        node.state = NodeState.COMMITTED
        registry.register(node)
        assert registry.count(1) == 1
        assert registry.count(2) == 0

    def test_references_are_weak(self):
        """Dropped nodes leave the registry."""
        registry = LiveNodeRegistry()
        node = TreeNode()
        node.state = NodeState.COMMITTED
        registry.register(node)
        del node
        gc.collect()
        assert registry.count(None) == 0
