"""
Pytest fixtures for nested set tests.

Provides SQLite row stores and tree facades on temporary databases.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

import pytest

from nested_set.core.row_store import create_row_store
from nested_set.core.settings_manager import SettingsManager
from nested_set.core.tree import NestedSetTree
from nested_set.core.tree_config import TreeConfig


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "hypothesis: property-based tests")


@pytest.fixture(autouse=True)
def fresh_settings():
    """Give every test its own settings singleton."""
    SettingsManager.reset()
    yield
    SettingsManager.reset()


@pytest.fixture
def temp_db_path(tmp_path):
    """Create temporary database path."""
    return tmp_path / "tree.db"


@pytest.fixture
def tree_config():
    """Default layout: unscoped, levels tracked, one 'name' payload column."""
    return TreeConfig()


@pytest.fixture
def store(temp_db_path, tree_config):
    """Connected SQLite row store with the tree table created."""
    row_store = create_row_store("sqlite", {"path": str(temp_db_path)}, tree_config)
    row_store.ensure_schema()
    yield row_store
    row_store.disconnect()


@pytest.fixture
def tree(store):
    """Tree facade over the default store."""
    return NestedSetTree(store)


@pytest.fixture
def scoped_config():
    """Layout partitioned by a 'scope' column."""
    return TreeConfig(table_name="scoped_nodes", scope_column="scope")


@pytest.fixture
def scoped_store(tmp_path, scoped_config):
    """Connected SQLite row store for the scoped layout."""
    row_store = create_row_store(
        "sqlite", {"path": str(tmp_path / "scoped.db")}, scoped_config
    )
    row_store.ensure_schema()
    yield row_store
    row_store.disconnect()


@pytest.fixture
def scoped_tree(scoped_store):
    """Tree facade over the scoped store."""
    return NestedSetTree(scoped_store)


@pytest.fixture
def intervals(store):
    """Return a function reading {name: (left, right)} straight from the store."""
    from nested_set.core.row_store.predicates import All

    def _read(scope=None):
        return {
            row["name"]: (row["left"], row["right"])
            for row in store.select(scope, All())
        }

    return _read


@pytest.fixture
def abc_tree(tree):
    """Tree A(B(D, E), C) saved in one flush.

    Intervals: A(1,10) B(2,7) D(3,4) E(5,6) C(8,9).
    """
    a = tree.new_node(name="A")
    b = a.build_child(name="B")
    b.build_child(name="D")
    b.build_child(name="E")
    a.build_child(name="C")
    tree.save(a)
    nodes = {n.payload["name"]: n for n in [a, b, b.children[0], b.children[1], a.children[1]]}
    return nodes
