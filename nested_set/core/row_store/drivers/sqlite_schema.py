"""
SQLite schema management for SQLite row store.

Handles table bootstrap (ensure_schema) and table introspection.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ...tree_config import TreeConfig
from ..exceptions import StoreOperationError

logger = logging.getLogger(__name__)


class SQLiteSchemaManager:
    """Manages SQLite schema operations."""

    def __init__(self, connection, tree_config: TreeConfig):
        """Initialize schema manager.

        Args:
            connection: SQLite connection object
            tree_config: Table layout to create
        """
        self.conn = connection
        self.tree_config = tree_config

    def table_ddl(self) -> List[str]:
        """Build CREATE TABLE / CREATE INDEX statements for the tree table.

        Left and right get plain indexes, not UNIQUE constraints: SQLite checks
        uniqueness row by row during an UPDATE, which a bulk shift would trip.
        """
        c = self.tree_config
        table = c.table_name
        column_defs = [
            f"{c.id_column} TEXT PRIMARY KEY",
            f"{c.parent_column} TEXT NULL REFERENCES {table}({c.id_column})",
            f"{c.left_column} INTEGER NOT NULL",
            f"{c.right_column} INTEGER NOT NULL",
        ]
        if c.tracks_level:
            column_defs.append(f"{c.level_column} INTEGER NOT NULL")
        if c.is_scoped:
            # no declared type: scope values round-trip with their Python type
            column_defs.append(f"{c.scope_column}")
        for name, col_type in c.payload_columns.items():
            column_defs.append(f"{name} {col_type}")
        column_defs.append(
            f"CHECK ({c.left_column} > 0 AND {c.right_column} > {c.left_column})"
        )

        scope_prefix = f"{c.scope_column}, " if c.is_scoped else ""
        statements = [
            f"CREATE TABLE IF NOT EXISTS {table} ({', '.join(column_defs)})",
            f"CREATE INDEX IF NOT EXISTS idx_{table}_left "
            f"ON {table}({scope_prefix}{c.left_column})",
            f"CREATE INDEX IF NOT EXISTS idx_{table}_right "
            f"ON {table}({scope_prefix}{c.right_column})",
            f"CREATE INDEX IF NOT EXISTS idx_{table}_parent "
            f"ON {table}({c.parent_column})",
        ]
        if c.tracks_level:
            statements.append(
                f"CREATE INDEX IF NOT EXISTS idx_{table}_level "
                f"ON {table}({c.level_column})"
            )
        return statements

    def ensure_schema(self) -> None:
        """Create the tree table and its indexes if they don't exist.

        Raises:
            StoreOperationError: If operation fails
        """
        if not self.conn:
            raise StoreOperationError("Database connection not established")

        try:
            for sql in self.table_ddl():
                self.conn.execute(sql)
            self.conn.commit()
            logger.info("Schema ready for table %s", self.tree_config.table_name)
        except Exception as e:
            self.conn.rollback()
            raise StoreOperationError(f"Failed to create schema: {e}") from e

    def get_table_info(self, table_name: str) -> List[Dict[str, Any]]:
        """Get information about table columns.

        Args:
            table_name: Name of the table

        Returns:
            List of dictionaries with column information (name, type, nullable, etc.)

        Raises:
            StoreOperationError: If operation fails
        """
        if not self.conn:
            raise StoreOperationError("Database connection not established")

        try:
            cursor = self.conn.cursor()
            cursor.execute(f"PRAGMA table_info({table_name})")
            rows = cursor.fetchall()
            result = []
            for row in rows:
                result.append(
                    {
                        "name": row[1],
                        "type": row[2],
                        "nullable": not row[3],
                        "default": row[4],
                        "primary_key": bool(row[5]),
                    }
                )
            return result
        except Exception as e:
            raise StoreOperationError(f"Failed to get table info: {e}") from e
