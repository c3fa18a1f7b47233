"""
Tests for SettingsManager.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

import pytest

from nested_set.core.exceptions import ConfigurationError
from nested_set.core.settings_manager import SettingsManager, get_setting, get_settings


class TestSettingsManagerSingleton:
    """Test singleton pattern."""

    def test_singleton_instance(self):
        """Test that SettingsManager is a singleton."""
        instance1 = SettingsManager()
        instance2 = SettingsManager()
        instance3 = get_settings()

        assert instance1 is instance2
        assert instance1 is instance3

    def test_reset_creates_new_instance(self):
        """reset() drops the cached instance."""
        first = get_settings()
        SettingsManager.reset()
        assert get_settings() is not first


class TestSettingsManagerDefaults:
    """Test default values from constants."""

    def test_table_defaults(self):
        """Test default table layout."""
        settings = SettingsManager()
        assert settings.get("table_name") == "nodes"
        assert settings.get("left_column") == "lft"
        assert settings.get("right_column") == "rgt"
        assert settings.get("scoped") is False
        assert settings.get("payload_columns") == {"name": "TEXT"}

    def test_db_defaults(self):
        """Test default storage settings."""
        settings = SettingsManager()
        assert settings.db_path == "data/nested_set.db"
        assert settings.db_driver_type == "sqlite"
        assert settings.get("busy_timeout_ms") == 30000

    def test_log_defaults(self):
        """Test default logging settings."""
        settings = SettingsManager()
        assert settings.log_level == "WARNING"
        assert settings.log_file == ""

    def test_unknown_setting_raises(self):
        """Test that unknown settings without default raise KeyError."""
        with pytest.raises(KeyError):
            SettingsManager().get("no_such_setting")

    def test_unknown_setting_with_default(self):
        """Test default for unknown settings."""
        assert get_setting("no_such_setting", 7) == 7


class TestSettingsManagerEnvironment:
    """Test environment variable overrides."""

    def test_env_overrides_default(self, monkeypatch):
        """Test that NESTED_SET_ variables override constants."""
        monkeypatch.setenv("NESTED_SET_DB_PATH", "/tmp/env.db")
        monkeypatch.setenv("NESTED_SET_BUSY_TIMEOUT_MS", "500")
        settings = SettingsManager()
        assert settings.db_path == "/tmp/env.db"
        assert settings.get("busy_timeout_ms") == 500

    def test_bool_parsing(self, monkeypatch):
        """Test boolean environment values."""
        monkeypatch.setenv("NESTED_SET_SCOPED", "yes")
        monkeypatch.setenv("NESTED_SET_TRACK_LEVEL", "0")
        settings = SettingsManager()
        assert settings.get("scoped") is True
        assert settings.track_level is False

    def test_payload_columns_parsing(self, monkeypatch):
        """Test name:TYPE lists."""
        monkeypatch.setenv("NESTED_SET_PAYLOAD_COLUMNS", "name:TEXT, rank:INTEGER,note")
        settings = SettingsManager()
        assert settings.get("payload_columns") == {
            "name": "TEXT",
            "rank": "INTEGER",
            "note": "TEXT",
        }

    def test_invalid_env_value_ignored(self, monkeypatch):
        """Test that unparsable values fall back to defaults."""
        monkeypatch.setenv("NESTED_SET_BUSY_TIMEOUT_MS", "soon")
        assert SettingsManager().get("busy_timeout_ms") == 30000


class TestSettingsManagerCliOverrides:
    """Test CLI overrides."""

    def test_cli_beats_env(self, monkeypatch):
        """Test that CLI overrides take priority over environment."""
        monkeypatch.setenv("NESTED_SET_DB_PATH", "/tmp/env.db")
        settings = SettingsManager()
        settings.set_cli_overrides({"db_path": "/tmp/cli.db"})
        assert settings.db_path == "/tmp/cli.db"

    def test_none_values_ignored(self):
        """Test that unset CLI options keep lower-priority values."""
        settings = SettingsManager()
        settings.set_cli_overrides({"log_level": None})
        assert settings.log_level == "WARNING"

    def test_as_dict(self):
        """Test effective settings dump."""
        settings = SettingsManager()
        settings.set_cli_overrides({"table_name": "tree"})
        values = settings.as_dict()
        assert values["table_name"] == "tree"
        assert "payload_columns" in values


class TestSettingsManagerBuilders:
    """Test TreeConfig and store config construction."""

    def test_tree_config_defaults(self):
        """Default settings give an unscoped, level-tracking layout."""
        config = SettingsManager().tree_config()
        assert config.table_name == "nodes"
        assert config.tracks_level
        assert not config.is_scoped

    def test_tree_config_scoped_without_levels(self, monkeypatch):
        """Scoping and level tracking follow their flags."""
        monkeypatch.setenv("NESTED_SET_SCOPED", "true")
        monkeypatch.setenv("NESTED_SET_SCOPE_COLUMN", "forest")
        monkeypatch.setenv("NESTED_SET_TRACK_LEVEL", "false")
        config = SettingsManager().tree_config()
        assert config.scope_column == "forest"
        assert config.level_column is None

    def test_tree_config_invalid(self):
        """Invalid identifiers surface as ConfigurationError."""
        settings = SettingsManager()
        settings.set_cli_overrides({"table_name": "bad name"})
        with pytest.raises(ConfigurationError):
            settings.tree_config()

    def test_store_config(self):
        """Driver configuration carries path and busy timeout."""
        settings = SettingsManager()
        settings.set_cli_overrides({"db_path": "/tmp/x.db"})
        assert settings.store_config() == {"path": "/tmp/x.db", "busy_timeout_ms": 30000}
