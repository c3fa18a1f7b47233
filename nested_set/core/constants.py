"""
Project-wide constants.

Default values for settings; see settings_manager for overrides.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from typing import Dict

# ============================================================================
# Storage
# ============================================================================

DEFAULT_DB_PATH = "data/nested_set.db"
DEFAULT_DB_DRIVER_TYPE = "sqlite"

# Milliseconds a transaction connection waits for the write lock
DEFAULT_BUSY_TIMEOUT_MS = 30000

# ============================================================================
# Table layout
# ============================================================================

DEFAULT_TABLE_NAME = "nodes"
DEFAULT_ID_COLUMN = "id"
DEFAULT_PARENT_COLUMN = "parent_id"
# lft/rgt avoid the reserved words LEFT and RIGHT
DEFAULT_LEFT_COLUMN = "lft"
DEFAULT_RIGHT_COLUMN = "rgt"
DEFAULT_LEVEL_COLUMN = "level"
DEFAULT_SCOPE_COLUMN = "scope"

DEFAULT_TRACK_LEVEL = True

DEFAULT_PAYLOAD_COLUMNS: Dict[str, str] = {
    "name": "TEXT",
}

# Attributes a caller may never pass when constructing a node
RESERVED_NODE_ATTRIBUTES = frozenset(
    {"id", "parent", "parent_id", "left", "right", "level"}
)

# ============================================================================
# Logging
# ============================================================================

DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_LOG_FILE = ""

# ============================================================================
# Environment
# ============================================================================

ENV_PREFIX = "NESTED_SET_"
