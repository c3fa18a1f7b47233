"""
SQLite row operations for SQLite row store.

Builds and runs select, bulk insert, bulk conditional update, attribute
rewrite and delete statements against the tree table. Commit handling is
left to the driver, which knows whether a transaction is open.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from ...exceptions import ConfigurationError
from ...tree_config import STRUCTURAL_KEYS, TreeConfig
from ..exceptions import StoreOperationError
from ..predicates import Predicate

if TYPE_CHECKING:
    from ...range_shifter import ShiftRule, ShiftSegment

logger = logging.getLogger(__name__)

# Keys that only the engine's shift statements may change
_INTERVAL_KEYS = frozenset({"id", "left", "right", "level", "scope"})


class SQLiteOperations:
    """Builds and executes tree table statements."""

    def __init__(self, tree_config: TreeConfig):
        """Initialize operations manager.

        Args:
            tree_config: Table layout
        """
        self.tree_config = tree_config

    def scope_clause(self, scope: Any) -> Tuple[str, Tuple[Any, ...]]:
        """Compile the scope restriction; unscoped tables match everything."""
        c = self.tree_config
        if not c.is_scoped:
            return "1 = 1", ()
        if scope is None:
            return f"{c.scope_column} IS NULL", ()
        return f"{c.scope_column} = ?", (scope,)

    def row_from_db(self, db_row: sqlite3.Row) -> Dict[str, Any]:
        """Convert a physical row into a logical row dictionary."""
        c = self.tree_config
        keys = db_row.keys()
        row: Dict[str, Any] = {}
        for key, column in c.structural_columns().items():
            row[key] = db_row[column] if column and column in keys else None
        for name in c.payload_columns:
            row[name] = db_row[name] if name in keys else None
        return row

    def select(
        self,
        conn: sqlite3.Connection,
        scope: Any,
        predicate: Predicate,
        order_by: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Select rows in scope matching predicate, ordered by ``order_by`` or left."""
        c = self.tree_config
        try:
            order_column = c.column_for(order_by) if order_by else c.left_column
        except ConfigurationError as e:
            raise StoreOperationError(str(e)) from e
        scope_sql, scope_params = self.scope_clause(scope)
        pred_sql, pred_params = predicate.to_sql(c)
        sql = (
            f"SELECT * FROM {c.table_name} WHERE ({scope_sql}) AND ({pred_sql}) "
            f"ORDER BY {order_column}, {c.left_column}"
        )
        try:
            cursor = conn.execute(sql, scope_params + pred_params)
            return [self.row_from_db(r) for r in cursor.fetchall()]
        except Exception as e:
            raise StoreOperationError(f"Failed to select rows: {e}") from e

    def bulk_insert(
        self,
        conn: sqlite3.Connection,
        scope: Any,
        rows: Sequence[Dict[str, Any]],
    ) -> int:
        """Insert rows with one executemany call, preserving order."""
        if not rows:
            return 0
        c = self.tree_config
        keys = [k for k in STRUCTURAL_KEYS if c.structural_columns()[k]]
        keys.extend(c.payload_columns)
        columns = [c.column_for(k) for k in keys]
        placeholders = ", ".join("?" for _ in columns)
        sql = (
            f"INSERT INTO {c.table_name} ({', '.join(columns)}) "
            f"VALUES ({placeholders})"
        )
        values = [
            tuple(scope if k == "scope" else row.get(k) for k in keys) for row in rows
        ]
        try:
            conn.executemany(sql, values)
            logger.debug("Inserted %s rows into %s", len(values), c.table_name)
            return len(values)
        except Exception as e:
            raise StoreOperationError(f"Failed to insert rows: {e}") from e

    @staticmethod
    def _segment_condition(
        column: str, segment: "ShiftSegment"
    ) -> Tuple[str, Tuple[Any, ...]]:
        if segment.upper is None:
            return f"{column} >= ?", (segment.lower,)
        return f"{column} BETWEEN ? AND ?", (segment.lower, segment.upper)

    def _case(
        self, column: str, segments: Sequence["ShiftSegment"], attr: str
    ) -> Tuple[str, Tuple[Any, ...]]:
        whens = []
        params: Tuple[Any, ...] = ()
        for segment in segments:
            cond, cond_params = self._segment_condition(column, segment)
            whens.append(f"WHEN {cond} THEN ?")
            params += cond_params + (getattr(segment, attr),)
        return f"(CASE {' '.join(whens)} ELSE 0 END)", params

    def compile_shift(self, scope: Any, rule: "ShiftRule") -> Tuple[str, Tuple[Any, ...]]:
        """Compile a shift rule into a single UPDATE statement.

        All SET expressions read the row's pre-update values, so segment
        membership is decided before any edge moves.
        """
        c = self.tree_config
        segments = rule.segments
        lcol, rcol = c.left_column, c.right_column

        left_case, left_params = self._case(lcol, segments, "offset")
        right_case, right_params = self._case(rcol, segments, "offset")
        assignments = [f"{lcol} = {lcol} + {left_case}", f"{rcol} = {rcol} + {right_case}"]
        set_params = left_params + right_params

        if c.tracks_level and any(s.level_offset for s in segments):
            level_case, level_params = self._case(lcol, segments, "level_offset")
            assignments.append(f"{c.level_column} = {c.level_column} + {level_case}")
            set_params += level_params

        guards = []
        guard_params: Tuple[Any, ...] = ()
        for segment in segments:
            for column in (lcol, rcol):
                cond, cond_params = self._segment_condition(column, segment)
                guards.append(cond)
                guard_params += cond_params

        scope_sql, scope_params = self.scope_clause(scope)
        sql = (
            f"UPDATE {c.table_name} SET {', '.join(assignments)} "
            f"WHERE ({scope_sql}) AND ({' OR '.join(guards)})"
        )
        return sql, set_params + scope_params + guard_params

    def bulk_conditional_update(
        self, conn: sqlite3.Connection, scope: Any, rule: "ShiftRule"
    ) -> int:
        """Run one shift statement; returns affected row count."""
        if not rule.segments:
            return 0
        sql, params = self.compile_shift(scope, rule)
        try:
            cursor = conn.execute(sql, params)
            return cursor.rowcount
        except Exception as e:
            raise StoreOperationError(f"Failed to shift rows: {e}") from e

    def update_attributes(
        self,
        conn: sqlite3.Connection,
        scope: Any,
        node_id: str,
        data: Dict[str, Any],
    ) -> int:
        """Rewrite payload columns and/or parent_id of one row."""
        if not data:
            return 0
        forbidden = _INTERVAL_KEYS.intersection(data)
        if forbidden:
            raise StoreOperationError(
                f"Attribute rewrite may not touch {sorted(forbidden)}"
            )
        c = self.tree_config
        try:
            set_clauses = [f"{c.column_for(k)} = ?" for k in data]
        except ConfigurationError as e:
            raise StoreOperationError(str(e)) from e
        scope_sql, scope_params = self.scope_clause(scope)
        sql = (
            f"UPDATE {c.table_name} SET {', '.join(set_clauses)} "
            f"WHERE {c.id_column} = ? AND ({scope_sql})"
        )
        try:
            cursor = conn.execute(sql, tuple(data.values()) + (node_id,) + scope_params)
            return cursor.rowcount
        except Exception as e:
            raise StoreOperationError(f"Failed to update row {node_id}: {e}") from e

    def delete(self, conn: sqlite3.Connection, scope: Any, predicate: Predicate) -> int:
        """Delete rows in scope matching predicate."""
        c = self.tree_config
        scope_sql, scope_params = self.scope_clause(scope)
        pred_sql, pred_params = predicate.to_sql(c)
        sql = f"DELETE FROM {c.table_name} WHERE ({scope_sql}) AND ({pred_sql})"
        try:
            cursor = conn.execute(sql, scope_params + pred_params)
            return cursor.rowcount
        except Exception as e:
            raise StoreOperationError(f"Failed to delete rows: {e}") from e
