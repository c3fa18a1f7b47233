"""
Range shifting for structural writes.

Every structural operation (insert, move, delete) adjusts existing stored
intervals with exactly one bulk conditional update. A ShiftRule describes that
update as a short list of disjoint inclusive segments, each with an offset:

- open gap: ``[L, inf) -> +width``
- close gap: ``[r + 1, inf) -> -width``
- move: moved range ``[l, r] -> new_left - l`` plus the interior range the
  subtree passes over, shifted by the subtree width in the opposite direction

A left or right value is shifted by the offset of the segment containing it
(evaluated on the pre-update value); values outside every segment stay put.
The same rule is applied to stored rows by the driver and to live in-memory
nodes by the tree facade.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .exceptions import InvalidMoveError
from .row_store.drivers.base import BaseRowStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShiftSegment:
    """Inclusive value range ``[lower, upper]`` shifted by ``offset``.

    ``upper`` of None means unbounded. ``level_offset`` is added to the level
    of rows whose left lies in the segment.
    """

    lower: int
    upper: Optional[int]
    offset: int
    level_offset: int = 0

    def contains(self, value: int) -> bool:
        """Check whether a left/right value falls inside the segment."""
        if value < self.lower:
            return False
        return self.upper is None or value <= self.upper

    @property
    def is_empty(self) -> bool:
        return self.upper is not None and self.upper < self.lower


@dataclass(frozen=True)
class ShiftRule:
    """One bulk conditional update, usable as ``(left, right) -> (left, right)``."""

    segments: Tuple[ShiftSegment, ...]

    def _segment_for(self, value: int) -> Optional[ShiftSegment]:
        for segment in self.segments:
            if segment.contains(value):
                return segment
        return None

    def shift(self, value: int) -> int:
        segment = self._segment_for(value)
        return value + segment.offset if segment else value

    def __call__(self, left: int, right: int) -> Tuple[int, int]:
        return self.shift(left), self.shift(right)

    def level_delta(self, left: int) -> int:
        """Level change for a row whose pre-update left is ``left``."""
        segment = self._segment_for(left)
        return segment.level_offset if segment else 0

    def touches(self, left: int, right: int) -> bool:
        """Whether a row with this interval is changed by the rule."""
        return self._segment_for(left) is not None or self._segment_for(right) is not None

    @property
    def is_noop(self) -> bool:
        return all(s.offset == 0 and s.level_offset == 0 for s in self.segments)


def _rule(*segments: ShiftSegment) -> ShiftRule:
    return ShiftRule(tuple(s for s in segments if not s.is_empty))


def open_gap_rule(insert_at: int, width: int) -> ShiftRule:
    """Rule making room for ``width`` values starting at ``insert_at``.

    Args:
        insert_at: Left value the inserted subtree will take
        width: Number of left/right values the subtree uses (2 per node)
    """
    return _rule(ShiftSegment(insert_at, None, width))


def close_gap_rule(deleted_left: int, deleted_right: int) -> ShiftRule:
    """Rule closing the hole left by a deleted subtree ``[deleted_left, deleted_right]``."""
    width = deleted_right - deleted_left + 1
    return _rule(ShiftSegment(deleted_right + 1, None, -width))


@dataclass(frozen=True)
class MovePlan:
    """Where a moved subtree lands and the rule that gets it there."""

    new_left: int
    new_right: int
    rule: ShiftRule


def move_plan(
    node_left: int,
    node_right: int,
    parent_right: int,
    level_offset: int = 0,
) -> MovePlan:
    """Plan relocation of subtree ``[node_left, node_right]`` to become the
    last child of the node whose right edge is ``parent_right``.

    Args:
        node_left: Current left of the moved node
        node_right: Current right of the moved node
        parent_right: Current right of the new parent
        level_offset: Depth change applied to every moved row

    Returns:
        MovePlan with the moved node's new interval and the shift rule

    Raises:
        InvalidMoveError: If the new parent lies inside the moved subtree
    """
    if node_left <= parent_right <= node_right:
        raise InvalidMoveError(
            "Cannot move a node into its own subtree",
            details={
                "node_left": node_left,
                "node_right": node_right,
                "parent_right": parent_right,
            },
        )
    span = node_right - node_left
    width = span + 1
    if parent_right > node_right:
        new_right = parent_right - 1
        new_left = new_right - span
        interior = ShiftSegment(node_right + 1, new_right, -width)
    else:
        new_left = parent_right
        new_right = parent_right + span
        interior = ShiftSegment(new_left, node_left - 1, width)
    moved = ShiftSegment(node_left, node_right, new_left - node_left, level_offset)
    return MovePlan(new_left, new_right, _rule(moved, interior))


class RangeShifter:
    """Issues shift rules against a row store, one statement per operation."""

    def __init__(self, store: BaseRowStore):
        self.store = store

    def _issue(
        self, operation: str, scope: Any, rule: ShiftRule, transaction_id: Optional[str]
    ) -> ShiftRule:
        if rule.is_noop:
            logger.debug("%s: nothing to shift in scope=%r", operation, scope)
            return rule
        affected = self.store.bulk_conditional_update(scope, rule, transaction_id)
        logger.info(
            "%s: scope=%r segments=%s rows=%s",
            operation,
            scope,
            [(s.lower, s.upper, s.offset) for s in rule.segments],
            affected,
        )
        return rule

    def open_gap(
        self,
        scope: Any,
        insert_at: int,
        width: int,
        transaction_id: Optional[str] = None,
    ) -> ShiftRule:
        """Widen every stored interval with an edge at or after ``insert_at``."""
        return self._issue(
            "open_gap", scope, open_gap_rule(insert_at, width), transaction_id
        )

    def close_gap(
        self,
        scope: Any,
        deleted_left: int,
        deleted_right: int,
        transaction_id: Optional[str] = None,
    ) -> ShiftRule:
        """Pull every edge after ``deleted_right`` down by the deleted width."""
        return self._issue(
            "close_gap",
            scope,
            close_gap_rule(deleted_left, deleted_right),
            transaction_id,
        )

    def move(
        self,
        scope: Any,
        node_left: int,
        node_right: int,
        parent_right: int,
        level_offset: int = 0,
        transaction_id: Optional[str] = None,
    ) -> MovePlan:
        """Relocate a stored subtree under a new parent."""
        plan = move_plan(node_left, node_right, parent_right, level_offset)
        self._issue("move", scope, plan.rule, transaction_id)
        return plan
