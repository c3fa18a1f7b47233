"""
SQLite row store implementation.

Works with flat rows of one nested set table. Reads outside a transaction use
the main connection (WAL mode, so they see the last committed snapshot);
structural operations run on a dedicated transaction connection.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, TypeVar

from ...constants import DEFAULT_BUSY_TIMEOUT_MS
from ...tree_config import TreeConfig
from ..exceptions import StoreConnectionError, StoreOperationError
from ..predicates import Predicate
from .base import BaseRowStore, Row
from .sqlite_operations import SQLiteOperations
from .sqlite_schema import SQLiteSchemaManager
from .sqlite_transactions import SQLiteTransactionManager

if TYPE_CHECKING:
    from ...range_shifter import ShiftRule

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SQLiteRowStore(BaseRowStore):
    """SQLite row store for one nested set table.

    All writes outside an explicit transaction are committed immediately.
    Writes inside a transaction are committed by commit_transaction().
    """

    def __init__(self, tree_config: TreeConfig) -> None:
        """Initialize SQLite row store."""
        super().__init__(tree_config)
        self.conn: Optional[sqlite3.Connection] = None
        self.db_path: Optional[Path] = None
        self._transaction_manager: Optional[SQLiteTransactionManager] = None
        self._schema_manager: Optional[SQLiteSchemaManager] = None
        self._operations = SQLiteOperations(tree_config)

    def connect(self, config: Dict[str, Any]) -> None:
        """Establish SQLite connection.

        Args:
            config: Configuration dict with 'path' key pointing to database file
                and optional 'busy_timeout_ms'

        Raises:
            StoreConnectionError: If connection fails
        """
        if "path" not in config:
            raise StoreConnectionError("SQLite row store requires 'path' in config")

        busy_timeout_ms = int(config.get("busy_timeout_ms", DEFAULT_BUSY_TIMEOUT_MS))
        try:
            self.db_path = Path(config["path"]).resolve()
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.info("SQLite row store connecting to db_path=%s", self.db_path)

            self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA foreign_keys = ON")
            self.conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
            try:
                self.conn.execute("PRAGMA journal_mode = WAL")
            except sqlite3.DatabaseError as e:
                # Database still works without WAL, readers just block on writers
                logger.warning(
                    "Failed to enable WAL mode for database %s: %s. "
                    "Continuing without WAL mode.",
                    self.db_path,
                    e,
                )

            self._transaction_manager = SQLiteTransactionManager(
                self.db_path, busy_timeout_ms
            )
            self._schema_manager = SQLiteSchemaManager(self.conn, self.tree_config)
        except Exception as e:
            raise StoreConnectionError(f"Failed to connect to database: {e}") from e

    def disconnect(self) -> None:
        """Close SQLite connection.

        Raises:
            StoreConnectionError: If disconnection fails
        """
        try:
            if self._transaction_manager:
                self._transaction_manager.close_all()

            if self.conn:
                self.conn.close()
                self.conn = None
        except Exception as e:
            raise StoreConnectionError(f"Failed to disconnect: {e}") from e

    def ensure_schema(self) -> None:
        """Create the tree table and indexes."""
        if not self._schema_manager:
            raise StoreOperationError("Schema manager not initialized")
        self._schema_manager.ensure_schema()

    def get_table_info(self) -> List[Dict[str, Any]]:
        """Get information about the tree table's columns."""
        if not self._schema_manager:
            raise StoreOperationError("Schema manager not initialized")
        return self._schema_manager.get_table_info(self.tree_config.table_name)

    def _connection(self, transaction_id: Optional[str]) -> sqlite3.Connection:
        if transaction_id:
            if not self._transaction_manager:
                raise StoreOperationError("Transaction manager not initialized")
            return self._transaction_manager.connection_for(transaction_id)
        if not self.conn:
            raise StoreOperationError("Database connection not established")
        return self.conn

    def _write(
        self,
        transaction_id: Optional[str],
        operation: Callable[[sqlite3.Connection], T],
    ) -> T:
        """Run a write; outside a transaction commit it (or roll back on error)."""
        conn = self._connection(transaction_id)
        if transaction_id:
            return operation(conn)
        try:
            result = operation(conn)
            conn.commit()
            return result
        except Exception:
            conn.rollback()
            raise

    def select(
        self,
        scope: Any,
        predicate: Predicate,
        transaction_id: Optional[str] = None,
        order_by: Optional[str] = None,
    ) -> List[Row]:
        """Select rows in scope matching predicate."""
        conn = self._connection(transaction_id)
        return self._operations.select(conn, scope, predicate, order_by)

    def bulk_insert(
        self,
        scope: Any,
        rows: Sequence[Row],
        transaction_id: Optional[str] = None,
    ) -> int:
        """Insert rows in order with one executemany call."""
        return self._write(
            transaction_id, lambda conn: self._operations.bulk_insert(conn, scope, rows)
        )

    def bulk_conditional_update(
        self,
        scope: Any,
        rule: "ShiftRule",
        transaction_id: Optional[str] = None,
    ) -> int:
        """Apply a shift rule in a single UPDATE statement."""
        return self._write(
            transaction_id,
            lambda conn: self._operations.bulk_conditional_update(conn, scope, rule),
        )

    def update_attributes(
        self,
        scope: Any,
        node_id: str,
        data: Dict[str, Any],
        transaction_id: Optional[str] = None,
    ) -> int:
        """Rewrite payload columns and/or parent_id of one row."""
        return self._write(
            transaction_id,
            lambda conn: self._operations.update_attributes(conn, scope, node_id, data),
        )

    def delete(
        self,
        scope: Any,
        predicate: Predicate,
        transaction_id: Optional[str] = None,
    ) -> int:
        """Delete rows in scope matching predicate."""
        return self._write(
            transaction_id,
            lambda conn: self._operations.delete(conn, scope, predicate),
        )

    def begin_transaction(self) -> str:
        """Begin database transaction.

        Returns:
            Transaction ID (string)

        Raises:
            TransactionError: If transaction cannot be started
        """
        if not self._transaction_manager:
            raise StoreOperationError("Transaction manager not initialized")
        return self._transaction_manager.begin_transaction()

    def commit_transaction(self, transaction_id: str) -> bool:
        """Commit database transaction.

        Raises:
            TransactionError: If transaction cannot be committed
        """
        if not self._transaction_manager:
            raise StoreOperationError("Transaction manager not initialized")
        return self._transaction_manager.commit_transaction(transaction_id)

    def rollback_transaction(self, transaction_id: str) -> bool:
        """Rollback database transaction.

        Raises:
            TransactionError: If transaction cannot be rolled back
        """
        if not self._transaction_manager:
            raise StoreOperationError("Transaction manager not initialized")
        return self._transaction_manager.rollback_transaction(transaction_id)
