"""
CLI commands for building, reshaping and checking trees.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

# mypy: ignore-errors

import click
import json
import logging
import sys
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from ..core.row_store import create_row_store
from ..core.settings_manager import get_settings
from ..core.tree import NestedSetTree

logger = logging.getLogger(__name__)

scope_option = click.option(
    "--scope", default=None, help="Scope value (only used when scoping is enabled)"
)


@contextmanager
def _open_tree() -> Iterator[NestedSetTree]:
    """Connect the configured store, make sure the table exists and yield a tree."""
    settings = get_settings()
    tree_config = settings.tree_config()
    store = create_row_store(settings.db_driver_type, settings.store_config(), tree_config)
    try:
        store.ensure_schema()
        yield NestedSetTree(store, tree_config)
    finally:
        store.disconnect()


def _require_node(tree: NestedSetTree, scope: Optional[str], node_id: str):
    node = tree.get(scope, node_id)
    if node is None:
        click.echo(f"❌ Node not found: {node_id}", err=True)
        sys.exit(1)
    return node


def _node_dict(node) -> Dict[str, Any]:
    return {
        "id": node.id,
        "left": node.left,
        "right": node.right,
        "level": node.level,
        "payload": node.payload,
        "children": [_node_dict(c) for c in node.children],
    }


def _echo_subtree(node, depth: int = 0) -> None:
    label = node.payload.get("name") or ""
    click.echo(f"{'  ' * depth}{label} [{node.left}, {node.right}] {node.id}")
    for child in node.children:
        _echo_subtree(child, depth + 1)


@click.group()
def tree() -> None:
    """Tree operations - add, move, delete, show, check."""
    pass


@tree.command()
def init() -> None:
    """Create the tree table and indexes."""
    try:
        with _open_tree() as t:
            click.echo(f"✅ Table ready: {t.config.table_name} ({get_settings().db_path})")
    except Exception as e:
        click.echo(f"❌ Error creating table: {e}", err=True)
        sys.exit(1)


@tree.command()
@click.argument("name")
@click.option("--parent", "parent_id", default=None, help="Parent node id (omit for a root)")
@scope_option
def add(name: str, parent_id: Optional[str], scope: Optional[str]) -> None:
    """Add a node named NAME as the last child of --parent, or as the root."""
    try:
        with _open_tree() as t:
            if parent_id:
                parent = _require_node(t, scope, parent_id)
                node = t.create_child(parent, name=name)
            else:
                node = t.save(t.new_node(scope=scope, name=name))
            click.echo(node.id)
    except Exception as e:
        click.echo(f"❌ Error adding node: {e}", err=True)
        sys.exit(1)


@tree.command()
@click.argument("node_id")
@click.argument("parent_id")
@scope_option
def move(node_id: str, parent_id: str, scope: Optional[str]) -> None:
    """Make NODE_ID the last child of PARENT_ID."""
    try:
        with _open_tree() as t:
            node = _require_node(t, scope, node_id)
            parent = _require_node(t, scope, parent_id)
            t.move(node, parent)
            click.echo(f"✅ Moved {node_id} to [{node.left}, {node.right}]")
    except Exception as e:
        click.echo(f"❌ Error moving node: {e}", err=True)
        sys.exit(1)


@tree.command()
@click.argument("node_id")
@scope_option
def delete(node_id: str, scope: Optional[str]) -> None:
    """Delete NODE_ID and its whole subtree."""
    try:
        with _open_tree() as t:
            node = _require_node(t, scope, node_id)
            removed = t.children_count(node) + 1
            t.destroy(node)
            click.echo(f"✅ Deleted {removed} node(s)")
    except Exception as e:
        click.echo(f"❌ Error deleting node: {e}", err=True)
        sys.exit(1)


@tree.command()
@scope_option
@click.option("--depth", type=int, default=0, help="Levels to show below each root (0 = all)")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "text"]),
    default="text",
    help="Output format",
)
def show(scope: Optional[str], depth: int, output_format: str) -> None:
    """Print the tree of a scope."""
    try:
        with _open_tree() as t:
            roots = [t.load_subtree(root, depth) for root in t.roots(scope)]
            if output_format == "json":
                click.echo(json.dumps([_node_dict(r) for r in roots], indent=2))
                return
            if not roots:
                click.echo("(empty)")
            for root in roots:
                _echo_subtree(root)
    except Exception as e:
        click.echo(f"❌ Error reading tree: {e}", err=True)
        sys.exit(1)


@tree.command()
@scope_option
def check(scope: Optional[str]) -> None:
    """Verify every nested set invariant of a scope."""
    try:
        with _open_tree() as t:
            count = t.verify(scope)
            click.echo(f"✅ {count} node(s) OK")
    except Exception as e:
        click.echo(f"❌ Check failed: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    tree()
