"""
Exceptions for the row store package.

Store errors propagate unchanged through the tree engine; retrying is left to
the caller once the surrounding transaction has rolled back.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations


class StoreError(Exception):
    """Base exception for row store errors."""

    pass


class StoreConnectionError(StoreError):
    """Raised when store connection fails."""

    pass


class StoreOperationError(StoreError):
    """Raised when a store operation fails."""

    pass


class StoreNotFoundError(StoreError):
    """Raised when store driver type is not found."""

    pass


class TransactionError(StoreError):
    """Raised when transaction operation fails."""

    pass
