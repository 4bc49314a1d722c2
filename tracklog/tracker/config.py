"""
Configuration management for the tracker.

All configuration is done via environment variables - no config files are read.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Default tracking statements are drawn from the fixed category vocabulary
    - Paths are never created here; stores create them on first write

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep env var names stable; deployments set them explicitly
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

from .categories import CATEGORY_LABELS, parse_tracking_set

logger = logging.getLogger(__name__)


class StoreBackend(Enum):
    """Supported tracking store backends."""

    SQLITE = "sqlite"
    MEMORY = "memory"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class StorageConfig:
    """Tracking storage configuration.

    Attributes:
        backend: Which store implementation to use
        control_db: SQLite file holding the tracking table
        data_dir: Directory holding the tracked SQLite databases (<db>.db)
        busy_timeout_ms: SQLite busy timeout in milliseconds
        wal_mode: SQLite WAL journal mode enabled
    """

    backend: StoreBackend = StoreBackend.SQLITE
    control_db: str = "/var/lib/tracklog/tracking.db"
    data_dir: str = "/var/lib/tracklog/data"
    busy_timeout_ms: int = 5000
    wal_mode: bool = True

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        backend_str = os.getenv("TRACKLOG_STORE", "sqlite").lower()
        try:
            backend = StoreBackend(backend_str)
        except ValueError:
            raise ValueError(f"Invalid TRACKLOG_STORE '{backend_str}'. Must be one of: sqlite, memory")

        return cls(
            backend=backend,
            control_db=os.getenv("TRACKLOG_CONTROL_DB", "/var/lib/tracklog/tracking.db"),
            data_dir=os.getenv("TRACKLOG_DATA_DIR", "/var/lib/tracklog/data"),
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            wal_mode=_env_bool("SQLITE_WAL_MODE", "true"),
        )


@dataclass(frozen=True)
class TrackingConfig:
    """Tracking behaviour configuration.

    Attributes:
        enabled: Whether the tracking feature is available at all
        default_statements: Categories preselected for new versions
        add_drop_table: Seed table versions with DROP TABLE IF EXISTS
        add_drop_view: Seed view versions with DROP VIEW IF EXISTS
        table_separator: Separator used to group table names in the catalog
    """

    enabled: bool = True
    default_statements: tuple[str, ...] = CATEGORY_LABELS
    add_drop_table: bool = True
    add_drop_view: bool = True
    table_separator: str = "__"

    @classmethod
    def from_env(cls) -> TrackingConfig:
        """Load configuration from environment variables."""
        default_statements = os.getenv("TRACKING_DEFAULT_STATEMENTS")
        return cls(
            enabled=_env_bool("TRACKING_ENABLED", "true"),
            default_statements=(
                parse_tracking_set(default_statements)
                if default_statements is not None
                else CATEGORY_LABELS
            ),
            add_drop_table=_env_bool("TRACKING_ADD_DROP_TABLE", "true"),
            add_drop_view=_env_bool("TRACKING_ADD_DROP_VIEW", "true"),
            table_separator=os.getenv("TRACKING_TABLE_SEPARATOR", "__"),
        )


@dataclass(frozen=True)
class ExportConfig:
    """Export configuration.

    Attributes:
        temp_database: Database named in the script preamble
        content_type: MIME type of the downloadable dump
    """

    temp_database: str = "tracklog_temp_db"
    content_type: str = "text/x-sql"

    @classmethod
    def from_env(cls) -> ExportConfig:
        """Load configuration from environment variables."""
        return cls(
            temp_database=os.getenv("EXPORT_TEMP_DATABASE", "tracklog_temp_db"),
            content_type=os.getenv("EXPORT_CONTENT_TYPE", "text/x-sql"),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class TrackerConfig:
    """Complete tracker configuration.

    Attributes:
        storage: Storage configuration
        tracking: Tracking behaviour configuration
        export: Export configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> TrackerConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            tracking=TrackingConfig.from_env(),
            export=ExportConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        unknown = [s for s in self.tracking.default_statements if s not in CATEGORY_LABELS]
        if unknown:
            raise ValueError(f"Unknown tracking statements: {', '.join(unknown)}")

        if not self.tracking.table_separator:
            raise ValueError("TRACKING_TABLE_SEPARATOR must not be empty")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be json or text")

        if self.storage.backend == StoreBackend.SQLITE:
            if not self.storage.control_db:
                raise ValueError("TRACKLOG_CONTROL_DB is required when TRACKLOG_STORE=sqlite")
            if not os.path.exists(os.path.dirname(self.storage.control_db) or "."):
                logger.warning(
                    f"Control database directory does not exist: {self.storage.control_db}. "
                    "It will be created on first write."
                )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Tracker configuration loaded",
            extra={
                "store_backend": self.storage.backend.value,
                "control_db": self.storage.control_db,
                "data_dir": self.storage.data_dir,
                "tracking_enabled": self.tracking.enabled,
                "default_statements": ",".join(self.tracking.default_statements),
                "log_level": self.observability.log_level,
            },
        )
