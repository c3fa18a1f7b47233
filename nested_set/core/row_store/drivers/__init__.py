"""
Row store driver implementations package.

Provides implementations for different row store drivers (SQLite, ...).

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from .base import BaseRowStore
from .sqlite import SQLiteRowStore

__all__ = ["BaseRowStore", "SQLiteRowStore"]
