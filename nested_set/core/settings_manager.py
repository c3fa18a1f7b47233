"""
Settings manager for unified configuration access.

Provides a single source of truth for all settings with priority:
1. CLI arguments (highest priority)
2. Environment variables (NESTED_SET_ prefix)
3. Constants (default values)

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

import os
import logging
from typing import Any, Dict, Optional

from .constants import (
    # Storage
    DEFAULT_BUSY_TIMEOUT_MS,
    DEFAULT_DB_DRIVER_TYPE,
    DEFAULT_DB_PATH,
    # Table layout
    DEFAULT_ID_COLUMN,
    DEFAULT_LEFT_COLUMN,
    DEFAULT_LEVEL_COLUMN,
    DEFAULT_PARENT_COLUMN,
    DEFAULT_PAYLOAD_COLUMNS,
    DEFAULT_RIGHT_COLUMN,
    DEFAULT_SCOPE_COLUMN,
    DEFAULT_TABLE_NAME,
    DEFAULT_TRACK_LEVEL,
    # Logging
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_LEVEL,
    # Environment
    ENV_PREFIX,
)
from .tree_config import TreeConfig

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _to_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _to_columns(value: str) -> Dict[str, str]:
    """Parse ``name:TYPE,other:TYPE`` into a payload column mapping."""
    columns: Dict[str, str] = {}
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        name, _, col_type = item.partition(":")
        columns[name.strip()] = col_type.strip() or "TEXT"
    return columns


class SettingsManager:
    """
    Unified settings manager with priority: CLI > ENV > Constants.

    This class provides a single source of truth for all configuration values.
    Settings can be overridden via CLI arguments or environment variables.
    """

    _instance: Optional["SettingsManager"] = None
    _cli_overrides: Dict[str, Any] = {}
    _initialized: bool = False

    def __new__(cls) -> "SettingsManager":
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Initialize settings manager."""
        if self._initialized:
            return

        self._cli_overrides = {}
        self._load_from_env()
        self._initialized = True
        logger.debug("SettingsManager initialized")

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton so the next access re-reads the environment."""
        cls._instance = None
        cls._initialized = False

    def _load_from_env(self) -> None:
        """Load settings from environment variables."""
        env_mappings: Dict[str, tuple] = {
            # Storage
            "db_path": (f"{ENV_PREFIX}DB_PATH", str),
            "db_driver_type": (f"{ENV_PREFIX}DB_DRIVER_TYPE", str),
            "busy_timeout_ms": (f"{ENV_PREFIX}BUSY_TIMEOUT_MS", int),
            # Table layout
            "table_name": (f"{ENV_PREFIX}TABLE_NAME", str),
            "id_column": (f"{ENV_PREFIX}ID_COLUMN", str),
            "parent_column": (f"{ENV_PREFIX}PARENT_COLUMN", str),
            "left_column": (f"{ENV_PREFIX}LEFT_COLUMN", str),
            "right_column": (f"{ENV_PREFIX}RIGHT_COLUMN", str),
            "level_column": (f"{ENV_PREFIX}LEVEL_COLUMN", str),
            "track_level": (f"{ENV_PREFIX}TRACK_LEVEL", _to_bool),
            "scope_column": (f"{ENV_PREFIX}SCOPE_COLUMN", str),
            "scoped": (f"{ENV_PREFIX}SCOPED", _to_bool),
            "order_column": (f"{ENV_PREFIX}ORDER_COLUMN", str),
            "payload_columns": (f"{ENV_PREFIX}PAYLOAD_COLUMNS", _to_columns),
            # Logging
            "log_level": (f"{ENV_PREFIX}LOG_LEVEL", str),
            "log_file": (f"{ENV_PREFIX}LOG_FILE", str),
        }

        for setting_name, (env_var, converter) in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                try:
                    value = converter(env_value)
                    self._cli_overrides[setting_name] = value
                    logger.debug(f"Loaded {setting_name} from environment: {value}")
                except (ValueError, TypeError) as e:
                    logger.warning(f"Failed to parse {env_var}={env_value}: {e}")

    def set_cli_overrides(self, overrides: Dict[str, Any]) -> None:
        """
        Set CLI argument overrides (highest priority).

        None values are ignored so unset CLI options keep lower-priority values.

        Args:
            overrides: Dictionary of setting names to values
        """
        applied = {k: v for k, v in overrides.items() if v is not None}
        self._cli_overrides.update(applied)
        logger.debug(f"CLI overrides set: {list(applied.keys())}")

    def get(self, setting_name: str, default: Any = None) -> Any:
        """
        Get setting value with priority: CLI > ENV > Constants.

        Args:
            setting_name: Name of the setting
            default: Default value if not found (optional)

        Returns:
            Setting value

        Raises:
            KeyError: If the setting is unknown and no default is given
        """
        if setting_name in self._cli_overrides:
            return self._cli_overrides[setting_name]

        constants_map = {
            # Storage
            "db_path": DEFAULT_DB_PATH,
            "db_driver_type": DEFAULT_DB_DRIVER_TYPE,
            "busy_timeout_ms": DEFAULT_BUSY_TIMEOUT_MS,
            # Table layout
            "table_name": DEFAULT_TABLE_NAME,
            "id_column": DEFAULT_ID_COLUMN,
            "parent_column": DEFAULT_PARENT_COLUMN,
            "left_column": DEFAULT_LEFT_COLUMN,
            "right_column": DEFAULT_RIGHT_COLUMN,
            "level_column": DEFAULT_LEVEL_COLUMN,
            "track_level": DEFAULT_TRACK_LEVEL,
            "scope_column": DEFAULT_SCOPE_COLUMN,
            "scoped": False,
            "order_column": None,
            "payload_columns": dict(DEFAULT_PAYLOAD_COLUMNS),
            # Logging
            "log_level": DEFAULT_LOG_LEVEL,
            "log_file": DEFAULT_LOG_FILE,
        }

        if setting_name in constants_map:
            return constants_map[setting_name]

        if default is not None:
            return default

        raise KeyError(f"Setting '{setting_name}' not found and no default provided")

    def as_dict(self) -> Dict[str, Any]:
        """All known settings with their effective values."""
        names = [
            "db_path",
            "db_driver_type",
            "busy_timeout_ms",
            "table_name",
            "id_column",
            "parent_column",
            "left_column",
            "right_column",
            "level_column",
            "track_level",
            "scope_column",
            "scoped",
            "order_column",
            "payload_columns",
            "log_level",
            "log_file",
        ]
        return {name: self.get(name) for name in names}

    def tree_config(self) -> TreeConfig:
        """
        Build the table layout from the effective settings.

        Returns:
            TreeConfig instance

        Raises:
            ConfigurationError: If the resulting layout is invalid
        """
        return TreeConfig(
            table_name=self.get("table_name"),
            id_column=self.get("id_column"),
            parent_column=self.get("parent_column"),
            left_column=self.get("left_column"),
            right_column=self.get("right_column"),
            level_column=self.get("level_column") if self.track_level else None,
            scope_column=self.get("scope_column") if self.get("scoped") else None,
            order_column=self.get("order_column"),
            payload_columns=dict(self.get("payload_columns")),
        )

    def store_config(self) -> Dict[str, Any]:
        """Driver configuration dictionary for create_row_store()."""
        return {"path": self.db_path, "busy_timeout_ms": self.get("busy_timeout_ms")}

    # Convenience properties for common settings
    @property
    def db_path(self) -> str:
        """Get database path."""
        return self.get("db_path")

    @property
    def db_driver_type(self) -> str:
        """Get database driver type."""
        return self.get("db_driver_type")

    @property
    def track_level(self) -> bool:
        """Get whether levels are stored."""
        return self.get("track_level")

    @property
    def log_level(self) -> str:
        """Get log level."""
        return self.get("log_level")

    @property
    def log_file(self) -> str:
        """Get log file path (empty for none)."""
        return self.get("log_file")


def get_settings() -> SettingsManager:
    """
    Get the global settings manager instance.

    Returns:
        SettingsManager instance
    """
    return SettingsManager()


# Convenience function for quick access
def get_setting(setting_name: str, default: Any = None) -> Any:
    """
    Get a setting value quickly.

    Args:
        setting_name: Name of the setting
        default: Default value if not found

    Returns:
        Setting value
    """
    return get_settings().get(setting_name, default)
