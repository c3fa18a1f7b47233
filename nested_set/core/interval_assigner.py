"""
Interval assignment for staged subtrees.

Numbers a subtree of new nodes in one preorder pass: a node takes ``left``,
each child starts right after the previous sibling's right (or at
``left + 1`` for the first child) and the node closes one past its last
child. Levels grow by one per generation.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

from typing import Iterator, List, Optional

from .node import TreeNode


def assign(node: TreeNode, left: int, level: Optional[int] = None) -> int:
    """Assign left/right (and level) to ``node`` and its staged descendants.

    Only children that are not yet stored are numbered; committed children
    already carry their own intervals.

    Args:
        node: Root of the subtree to number
        left: Left value for ``node``
        level: Level for ``node``; None when levels are not tracked

    Returns:
        The right value assigned to ``node``
    """
    # Iterative postorder so deep staged chains don't hit the recursion limit
    node.left = left
    node.level = level
    stack = [(node, iter([c for c in node.children if c.is_new]))]
    cursor = left
    while stack:
        current, pending = stack[-1]
        child = next(pending, None)
        if child is None:
            cursor += 1
            current.right = cursor
            stack.pop()
            continue
        cursor += 1
        child.left = cursor
        child.level = None if current.level is None else current.level + 1
        stack.append((child, iter([c for c in child.children if c.is_new])))
    return node.right


def iter_subtree(node: TreeNode, new_only: bool = True) -> Iterator[TreeNode]:
    """Yield ``node`` and its descendants in preorder (parents first).

    Args:
        node: Subtree root
        new_only: Skip children that already have a stored row
    """
    stack: List[TreeNode] = [node]
    while stack:
        current = stack.pop()
        yield current
        children = [c for c in current.children if c.is_new or not new_only]
        stack.extend(reversed(children))
