"""
Row predicates for scoped reads and deletes.

Each predicate compiles to a SQL clause over the physical columns of a
TreeConfig. Values are always bound as parameters.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from ..tree_config import TreeConfig

Clause = Tuple[str, Tuple[Any, ...]]


class Predicate:
    """Base class for row predicates."""

    def to_sql(self, config: TreeConfig) -> Clause:
        """Compile predicate into (clause, params)."""
        raise NotImplementedError


@dataclass(frozen=True)
class IdIs(Predicate):
    """Row with the given id."""

    node_id: str

    def to_sql(self, config: TreeConfig) -> Clause:
        return f"{config.id_column} = ?", (self.node_id,)


@dataclass(frozen=True)
class ParentIs(Predicate):
    """Rows whose stored parent id equals ``parent_id``; None selects roots."""

    parent_id: Optional[str]

    def to_sql(self, config: TreeConfig) -> Clause:
        if self.parent_id is None:
            return f"{config.parent_column} IS NULL", ()
        return f"{config.parent_column} = ?", (self.parent_id,)


@dataclass(frozen=True)
class LeftWithin(Predicate):
    """Rows with ``lower <= left <= upper``."""

    lower: int
    upper: int

    def to_sql(self, config: TreeConfig) -> Clause:
        return f"{config.left_column} BETWEEN ? AND ?", (self.lower, self.upper)


@dataclass(frozen=True)
class Inside(Predicate):
    """Rows strictly inside the interval ``(left, right)``: strict descendants."""

    left: int
    right: int

    def to_sql(self, config: TreeConfig) -> Clause:
        return (
            f"{config.left_column} > ? AND {config.right_column} < ?",
            (self.left, self.right),
        )


@dataclass(frozen=True)
class LevelAtMost(Predicate):
    """Rows at depth ``level`` or shallower; a no-op when levels are untracked."""

    level: int

    def to_sql(self, config: TreeConfig) -> Clause:
        if not config.tracks_level:
            return "1 = 1", ()
        return f"{config.level_column} <= ?", (self.level,)


class All(Predicate):
    """Conjunction of predicates; with no parts it matches every row."""

    def __init__(self, *parts: Predicate):
        self.parts = parts

    def __repr__(self) -> str:
        return f"All{self.parts!r}"

    def to_sql(self, config: TreeConfig) -> Clause:
        if not self.parts:
            return "1 = 1", ()
        clauses = []
        params: Tuple[Any, ...] = ()
        for part in self.parts:
            clause, part_params = part.to_sql(config)
            clauses.append(f"({clause})")
            params += part_params
        return " AND ".join(clauses), params
