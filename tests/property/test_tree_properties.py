"""
Property-based tests for tree invariants under random operation sequences.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

import tempfile
from contextlib import contextmanager
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from nested_set.core.exceptions import InvalidMoveError
from nested_set.core.row_store import create_row_store
from nested_set.core.tree import NestedSetTree
from nested_set.core.tree_config import TreeConfig


@contextmanager
def fresh_tree():
    """Tree over a throwaway database, one per example."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = create_row_store(
            "sqlite", {"path": str(Path(tmpdir) / "prop.db")}, TreeConfig()
        )
        store.ensure_schema()
        try:
            yield NestedSetTree(store)
        finally:
            store.disconnect()


def assert_memory_matches_store(tree, nodes):
    """Every live in-memory node agrees with its stored row."""
    for node in nodes:
        row = tree.store.read_by_id(None, node.id)
        assert row is not None, f"{node.payload['name']} has no row"
        assert (node.left, node.right, node.level) == (
            row["left"],
            row["right"],
            row["level"],
        )


# =============================================================================
# Strategies
# =============================================================================

operation_strategy = st.tuples(
    st.sampled_from(["add", "add", "move", "destroy"]),
    st.integers(min_value=0, max_value=50),
    st.integers(min_value=0, max_value=50),
)

shape_strategy = st.lists(st.integers(min_value=0, max_value=30), max_size=25)


@pytest.mark.hypothesis
class TestTreeProperties:
    """Invariants hold after any sequence of structural operations."""

    @given(operations=st.lists(operation_strategy, max_size=30))
    @settings(max_examples=40, deadline=None)
    def test_random_operations_keep_invariants(self, operations):
        """Intervals stay contiguous and in-memory nodes stay current."""
        with fresh_tree() as tree:
            live = []
            for step, (op, a, b) in enumerate(operations):
                if not live:
                    live.append(tree.save(tree.new_node(name=f"n{step}")))
                    continue
                node = live[a % len(live)]
                if op == "add":
                    live.append(tree.create_child(node, name=f"n{step}"))
                elif op == "move":
                    target = live[b % len(live)]
                    if node.left <= target.left and target.right <= node.right:
                        with pytest.raises(InvalidMoveError):
                            tree.move(node, target)
                    else:
                        tree.move(node, target)
                        assert target.left < node.left < node.right < target.right
                        assert node.level == target.level + 1
                else:
                    tree.destroy(node)
                    assert node.is_destroyed

                live = [n for n in live if not n.is_destroyed]
                assert tree.verify() == len(live)
                assert_memory_matches_store(tree, live)

    @given(shape=shape_strategy)
    @settings(max_examples=40, deadline=None)
    def test_staged_batch_saves_in_one_pass(self, shape):
        """A whole staged tree saved at once numbers every node contiguously."""
        with fresh_tree() as tree:
            root = tree.new_node(name="root")
            staged = [root]
            for i, pick in enumerate(shape):
                staged.append(staged[pick % len(staged)].build_child(name=f"s{i}"))
            tree.save(staged[-1])

            assert tree.verify() == len(staged)
            assert (root.left, root.right) == (1, 2 * len(staged))
            assert_memory_matches_store(tree, staged)
            for node in staged:
                assert tree.children_count(node) == len(tree.all_children(node))
