"""
Row store package: flat storage for nested set rows.

Provides the driver interface, the SQLite driver, row predicates and the
store exceptions.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from .driver_factory import create_row_store
from .drivers.base import BaseRowStore, Row
from .drivers.sqlite import SQLiteRowStore
from .exceptions import (
    StoreConnectionError,
    StoreError,
    StoreNotFoundError,
    StoreOperationError,
    TransactionError,
)
from .predicates import All, IdIs, Inside, LeftWithin, LevelAtMost, ParentIs, Predicate

__all__ = [
    # Drivers
    "BaseRowStore",
    "Row",
    "SQLiteRowStore",
    "create_row_store",
    # Predicates
    "Predicate",
    "All",
    "IdIs",
    "Inside",
    "LeftWithin",
    "LevelAtMost",
    "ParentIs",
    # Exceptions
    "StoreError",
    "StoreConnectionError",
    "StoreNotFoundError",
    "StoreOperationError",
    "TransactionError",
]
