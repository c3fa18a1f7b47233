"""
Core functionality for nested set trees.

This module contains the node model, interval assignment, range shifting,
the commit protocol, queries and the tree facade.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from .commit_coordinator import CommitCoordinator, CommitSession
from .exceptions import (
    ConfigurationError,
    InvalidMoveError,
    InvariantViolation,
    NestedSetError,
    NodeStateError,
)
from .interval_assigner import assign, iter_subtree
from .node import LiveNodeRegistry, NodeState, TreeNode
from .range_shifter import MovePlan, RangeShifter, ShiftRule, ShiftSegment
from .row_store import create_row_store
from .tree import NestedSetTree
from .tree_config import TreeConfig
from .tree_queries import NodePosition

__all__ = [
    "CommitCoordinator",
    "CommitSession",
    "ConfigurationError",
    "InvalidMoveError",
    "InvariantViolation",
    "LiveNodeRegistry",
    "MovePlan",
    "NestedSetError",
    "NestedSetTree",
    "NodePosition",
    "NodeState",
    "NodeStateError",
    "RangeShifter",
    "ShiftRule",
    "ShiftSegment",
    "TreeConfig",
    "TreeNode",
    "assign",
    "create_row_store",
    "iter_subtree",
]
