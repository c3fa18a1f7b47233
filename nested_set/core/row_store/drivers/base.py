"""
Base row store interface.

Defines the interface that all row store drivers must implement.
Drivers work with flat rows (dicts keyed by logical column names) and know
nothing about trees beyond the interval columns named by the TreeConfig.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence

from ...tree_config import TreeConfig
from ..predicates import IdIs, LeftWithin, Predicate

if TYPE_CHECKING:
    from ...range_shifter import ShiftRule

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class BaseRowStore(ABC):
    """Base class for all row store drivers (DB-agnostic abstraction).

    Every read and write is qualified by a scope value. When the TreeConfig
    has no scope column the scope value is ignored. Writes that belong to one
    structural operation are issued with the same ``transaction_id``.
    """

    def __init__(self, tree_config: TreeConfig) -> None:
        """Initialize driver.

        Args:
            tree_config: Table layout this store reads and writes
        """
        self.tree_config = tree_config

    @abstractmethod
    def connect(self, config: Dict[str, Any]) -> None:
        """Establish store connection.

        Args:
            config: Driver-specific configuration dictionary

        Raises:
            StoreConnectionError: If connection fails
        """
        raise NotImplementedError

    @abstractmethod
    def disconnect(self) -> None:
        """Close store connection.

        Raises:
            StoreConnectionError: If disconnection fails
        """
        raise NotImplementedError

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create the table and indexes described by the TreeConfig if missing.

        Raises:
            StoreOperationError: If operation fails
        """
        raise NotImplementedError

    @abstractmethod
    def select(
        self,
        scope: Any,
        predicate: Predicate,
        transaction_id: Optional[str] = None,
        order_by: Optional[str] = None,
    ) -> List[Row]:
        """Select rows in scope matching predicate.

        Args:
            scope: Scope discriminator value
            predicate: Row predicate
            transaction_id: Optional transaction ID
            order_by: Optional logical or physical column to order by
                (defaults to left)

        Returns:
            List of row dictionaries

        Raises:
            StoreOperationError: If operation fails
        """
        raise NotImplementedError

    def read_by_id(
        self, scope: Any, node_id: str, transaction_id: Optional[str] = None
    ) -> Optional[Row]:
        """Read one row by id.

        Returns:
            Row dictionary or None if not found
        """
        rows = self.select(scope, IdIs(node_id), transaction_id)
        return rows[0] if rows else None

    def read_range(
        self,
        scope: Any,
        left_bound: int,
        right_bound: int,
        transaction_id: Optional[str] = None,
    ) -> List[Row]:
        """Read rows whose left lies in ``[left_bound, right_bound]``, ordered by left."""
        return self.select(scope, LeftWithin(left_bound, right_bound), transaction_id)

    @abstractmethod
    def bulk_insert(
        self,
        scope: Any,
        rows: Sequence[Row],
        transaction_id: Optional[str] = None,
    ) -> int:
        """Insert rows in the given order with one batched statement.

        Args:
            scope: Scope discriminator value written into every row
            rows: Row dictionaries with structural and payload keys
            transaction_id: Optional transaction ID

        Returns:
            Number of inserted rows

        Raises:
            StoreOperationError: If operation fails
        """
        raise NotImplementedError

    @abstractmethod
    def bulk_conditional_update(
        self,
        scope: Any,
        rule: "ShiftRule",
        transaction_id: Optional[str] = None,
    ) -> int:
        """Apply a shift rule to every matching row in one statement.

        Membership and offsets are evaluated against each row's pre-update
        left and right.

        Args:
            scope: Scope discriminator value
            rule: Shift rule (segments with offsets)
            transaction_id: Optional transaction ID

        Returns:
            Number of affected rows

        Raises:
            StoreOperationError: If operation fails
        """
        raise NotImplementedError

    @abstractmethod
    def update_attributes(
        self,
        scope: Any,
        node_id: str,
        data: Dict[str, Any],
        transaction_id: Optional[str] = None,
    ) -> int:
        """Rewrite non-interval attributes of one row.

        Args:
            scope: Scope discriminator value
            node_id: Row id
            data: Payload columns and/or parent_id; never left, right or level
            transaction_id: Optional transaction ID

        Returns:
            Number of affected rows

        Raises:
            StoreOperationError: If operation fails or data touches interval columns
        """
        raise NotImplementedError

    @abstractmethod
    def delete(
        self,
        scope: Any,
        predicate: Predicate,
        transaction_id: Optional[str] = None,
    ) -> int:
        """Delete rows in scope matching predicate.

        Returns:
            Number of affected rows

        Raises:
            StoreOperationError: If operation fails
        """
        raise NotImplementedError

    @abstractmethod
    def begin_transaction(self) -> str:
        """Begin transaction.

        Returns:
            Transaction ID (string)

        Raises:
            TransactionError: If transaction cannot be started
        """
        raise NotImplementedError

    @abstractmethod
    def commit_transaction(self, transaction_id: str) -> bool:
        """Commit transaction.

        Raises:
            TransactionError: If transaction cannot be committed
        """
        raise NotImplementedError

    @abstractmethod
    def rollback_transaction(self, transaction_id: str) -> bool:
        """Rollback transaction.

        Raises:
            TransactionError: If transaction cannot be rolled back
        """
        raise NotImplementedError

    @contextmanager
    def transaction(self) -> Iterator[str]:
        """Run a block inside one transaction.

        Commits when the block exits normally; rolls back and re-raises
        otherwise.

        Yields:
            Transaction ID to pass to store calls inside the block
        """
        transaction_id = self.begin_transaction()
        try:
            yield transaction_id
        except BaseException:
            try:
                self.rollback_transaction(transaction_id)
            except Exception as rollback_error:
                logger.error(
                    "Rollback of transaction %s failed: %s",
                    transaction_id,
                    rollback_error,
                )
            raise
        else:
            self.commit_transaction(transaction_id)
