"""
Nested Set Store

Hierarchical data in a flat row store using left/right interval encoding:
subtree, ancestor and sibling queries are interval comparisons, and every
insert, move or delete issues one bulk update.

Can be used as a library or via CLI commands.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

__version__ = "1.0.0"
__author__ = "Vasiliy Zdanovskiy"
__email__ = "vasilyvz@gmail.com"

from .core import (
    ConfigurationError,
    InvalidMoveError,
    InvariantViolation,
    NestedSetError,
    NestedSetTree,
    NodePosition,
    NodeState,
    NodeStateError,
    TreeConfig,
    TreeNode,
    create_row_store,
)

__all__ = [
    "ConfigurationError",
    "InvalidMoveError",
    "InvariantViolation",
    "NestedSetError",
    "NestedSetTree",
    "NodePosition",
    "NodeState",
    "NodeStateError",
    "TreeConfig",
    "TreeNode",
    "create_row_store",
]
