"""
Driver factory for creating row store instances.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

from typing import Any, Dict

from ..tree_config import TreeConfig
from .drivers.base import BaseRowStore
from .drivers.sqlite import SQLiteRowStore
from .exceptions import StoreNotFoundError


def create_row_store(
    driver_type: str, config: Dict[str, Any], tree_config: TreeConfig
) -> BaseRowStore:
    """Create and connect a row store.

    Args:
        driver_type: Driver type ('sqlite', 'postgres', ...)
        config: Driver-specific configuration dictionary
        tree_config: Table layout the store reads and writes

    Returns:
        Connected row store instance

    Raises:
        StoreNotFoundError: If driver type is not found
    """
    driver_type_lower = driver_type.lower()

    if driver_type_lower == "sqlite":
        store = SQLiteRowStore(tree_config)
        store.connect(config)
        return store
    elif driver_type_lower == "postgres":
        raise StoreNotFoundError(f"Driver type '{driver_type}' not yet implemented")
    else:
        raise StoreNotFoundError(f"Unknown driver type: {driver_type}")
