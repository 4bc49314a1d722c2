"""
Unit tests for tracker configuration.
"""

import pytest

from tracklog.tracker.categories import CATEGORY_LABELS
from tracklog.tracker.config import (
    ObservabilityConfig,
    StorageConfig,
    StoreBackend,
    TrackerConfig,
    TrackingConfig,
)
from tracklog.tracker.store.base import create_tracking_store
from tracklog.tracker.store.memory import InMemoryTrackingStore
from tracklog.tracker.store.sqlite_store import SqliteTrackingStore


class TestTrackerConfig:
    """Tests for loading and validating configuration."""

    def test_defaults(self, monkeypatch):
        """Test defaults when no environment is set."""
        for name in (
            "TRACKLOG_STORE",
            "TRACKING_ENABLED",
            "TRACKING_DEFAULT_STATEMENTS",
            "TRACKING_TABLE_SEPARATOR",
            "LOG_FORMAT",
        ):
            monkeypatch.delenv(name, raising=False)

        config = TrackerConfig.from_env()

        assert config.storage.backend is StoreBackend.SQLITE
        assert config.tracking.enabled is True
        assert config.tracking.default_statements == CATEGORY_LABELS
        assert config.tracking.table_separator == "__"
        assert config.export.temp_database == "tracklog_temp_db"
        assert config.export.content_type == "text/x-sql"
        assert config.observability.log_format == "json"

    def test_from_env(self, monkeypatch, tmp_path):
        """Test loading every section from the environment."""
        monkeypatch.setenv("TRACKLOG_STORE", "memory")
        monkeypatch.setenv("TRACKLOG_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("TRACKING_ENABLED", "false")
        monkeypatch.setenv("TRACKING_DEFAULT_STATEMENTS", "INSERT, UPDATE")
        monkeypatch.setenv("TRACKING_ADD_DROP_VIEW", "false")
        monkeypatch.setenv("EXPORT_TEMP_DATABASE", "scratch")
        monkeypatch.setenv("LOG_FORMAT", "text")

        config = TrackerConfig.from_env()

        assert config.storage.backend is StoreBackend.MEMORY
        assert config.storage.data_dir == str(tmp_path)
        assert config.tracking.enabled is False
        assert config.tracking.default_statements == ("INSERT", "UPDATE")
        assert config.tracking.add_drop_view is False
        assert config.tracking.add_drop_table is True
        assert config.export.temp_database == "scratch"

    def test_invalid_backend(self, monkeypatch):
        """Unknown store backends are rejected."""
        monkeypatch.setenv("TRACKLOG_STORE", "postgres")

        with pytest.raises(ValueError, match="TRACKLOG_STORE"):
            StorageConfig.from_env()

    def test_unknown_statement_rejected(self):
        """Unknown default statements fail validation."""
        config = TrackerConfig(tracking=TrackingConfig(default_statements=("INSERT", "SELECT")))

        with pytest.raises(ValueError, match="SELECT"):
            config.validate()

    def test_empty_separator_rejected(self):
        """An empty table separator fails validation."""
        config = TrackerConfig(tracking=TrackingConfig(table_separator=""))

        with pytest.raises(ValueError):
            config.validate()

    def test_invalid_log_format(self):
        """Unknown log formats fail validation."""
        config = TrackerConfig(observability=ObservabilityConfig(log_format="xml"))

        with pytest.raises(ValueError, match="LOG_FORMAT"):
            config.validate()


class TestCreateTrackingStore:
    """Tests for create_tracking_store."""

    def test_disabled_means_no_store(self):
        """Disabled tracking yields no store."""
        config = TrackerConfig(tracking=TrackingConfig(enabled=False))

        assert create_tracking_store(config) is None

    def test_memory_backend(self):
        """Test memory backend selection."""
        config = TrackerConfig(storage=StorageConfig(backend=StoreBackend.MEMORY))

        assert isinstance(create_tracking_store(config), InMemoryTrackingStore)

    def test_sqlite_backend(self, tmp_path):
        """Test SQLite backend selection and path."""
        config = TrackerConfig(
            storage=StorageConfig(backend=StoreBackend.SQLITE, control_db=str(tmp_path / "t.db"))
        )

        store = create_tracking_store(config)

        assert isinstance(store, SqliteTrackingStore)
        assert str(store.path) == str(tmp_path / "t.db")
