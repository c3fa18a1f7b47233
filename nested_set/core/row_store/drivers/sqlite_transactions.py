"""
SQLite transaction management for SQLite row store.

Each transaction gets its own connection opened with BEGIN IMMEDIATE, so the
write lock is taken up front and concurrent structural writers on the same
database file are serialized by SQLite.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Dict

from ..exceptions import TransactionError

logger = logging.getLogger(__name__)


def _short(transaction_id: str) -> str:
    return (transaction_id[:8] + "…") if len(transaction_id) > 8 else transaction_id


class SQLiteTransactionManager:
    """Manages SQLite transactions."""

    def __init__(self, db_path: Path, busy_timeout_ms: int):
        """Initialize transaction manager.

        Args:
            db_path: Path to database file
            busy_timeout_ms: How long to wait for the write lock
        """
        self.db_path = db_path
        self.busy_timeout_ms = busy_timeout_ms
        self._transactions: Dict[str, sqlite3.Connection] = {}

    def connection_for(self, transaction_id: str) -> sqlite3.Connection:
        """Return the connection bound to an open transaction.

        Raises:
            TransactionError: If transaction is not open
        """
        conn = self._transactions.get(transaction_id)
        if conn is None:
            raise TransactionError(f"Transaction {transaction_id} not found")
        return conn

    def begin_transaction(self) -> str:
        """Begin database transaction.

        Returns:
            Transaction ID (string)

        Raises:
            TransactionError: If transaction cannot be started
        """
        try:
            transaction_id = str(uuid.uuid4())
            logger.debug("begin_transaction tid=%s", _short(transaction_id))
            # isolation_level=None: explicit BEGIN/COMMIT only
            trans_conn = sqlite3.connect(
                str(self.db_path), check_same_thread=False, isolation_level=None
            )
            trans_conn.row_factory = sqlite3.Row
            trans_conn.execute("PRAGMA foreign_keys = ON")
            trans_conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
            trans_conn.execute("BEGIN IMMEDIATE")
            self._transactions[transaction_id] = trans_conn
            return transaction_id
        except Exception as e:
            raise TransactionError(f"Failed to begin transaction: {e}") from e

    def commit_transaction(self, transaction_id: str) -> bool:
        """Commit database transaction.

        Args:
            transaction_id: Transaction ID returned by begin_transaction()

        Returns:
            True if transaction was committed successfully

        Raises:
            TransactionError: If transaction cannot be committed
        """
        logger.debug(
            "commit_transaction tid=%s n_open=%s",
            _short(transaction_id),
            len(self._transactions),
        )
        conn = self.connection_for(transaction_id)
        try:
            conn.execute("COMMIT")
            return True
        except Exception as e:
            # release the write lock before giving the connection up
            try:
                conn.execute("ROLLBACK")
            except sqlite3.Error as rollback_error:
                logger.warning(
                    "Rollback after failed commit failed for tid=%s: %s",
                    _short(transaction_id),
                    rollback_error,
                )
            raise TransactionError(f"Failed to commit transaction: {e}") from e
        finally:
            conn.close()
            self._transactions.pop(transaction_id, None)

    def rollback_transaction(self, transaction_id: str) -> bool:
        """Rollback database transaction.

        Args:
            transaction_id: Transaction ID returned by begin_transaction()

        Returns:
            True if transaction was rolled back successfully

        Raises:
            TransactionError: If transaction cannot be rolled back
        """
        logger.debug(
            "rollback_transaction tid=%s n_open=%s",
            _short(transaction_id),
            len(self._transactions),
        )
        conn = self.connection_for(transaction_id)
        try:
            conn.execute("ROLLBACK")
            return True
        except Exception as e:
            raise TransactionError(f"Failed to rollback transaction: {e}") from e
        finally:
            conn.close()
            del self._transactions[transaction_id]

    def close_all(self) -> None:
        """Roll back and close all open transactions."""
        for transaction_id, conn in list(self._transactions.items()):
            try:
                conn.execute("ROLLBACK")
            except sqlite3.Error as e:
                logger.warning(
                    "Rollback on close failed for tid=%s: %s", _short(transaction_id), e
                )
            conn.close()
            del self._transactions[transaction_id]
