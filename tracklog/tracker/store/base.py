"""
Base protocol for tracking store backends.

This module defines the TrackingStore protocol that all backends must
implement, plus the JSON helpers backends use to (de)serialize logs.

Invariants:
    - read_versions returns versions ordered by version number, descending
    - Every write returns True/False; backend errors are logged, not raised
    - write_log replaces the whole log of one kind

How to change safely:
    - Protocol changes require updating all implementations
    - Keep the log serialization format (JSON array of objects) stable
"""

from __future__ import annotations

import json
import logging
from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

from ..types import LogEntry, LogKind, TrackedVersion

if TYPE_CHECKING:
    from ..config import TrackerConfig

logger = logging.getLogger(__name__)


def encode_log(entries: Sequence[LogEntry]) -> str:
    """Serialize a log for storage."""
    return json.dumps([entry.to_dict() for entry in entries])


def decode_log(blob: str | None) -> list[LogEntry]:
    """Deserialize a stored log; an unreadable log reads as empty."""
    if not blob:
        return []
    try:
        data = json.loads(blob)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse stored log: {e}")
        return []
    if not isinstance(data, list):
        return []
    return [LogEntry.from_dict(item) for item in data if isinstance(item, dict)]


@runtime_checkable
class TrackingStore(Protocol):
    """Protocol for tracking store backends.

    Example:
        >>> store = SqliteTrackingStore("/var/lib/tracklog/tracking.db")
        >>> store.create_version(TrackedVersion("shop", "orders", 1))
        True
        >>> [v.version for v in store.read_versions("shop", "orders")]
        [1]
    """

    @abstractmethod
    def initialize(self) -> None:
        """Prepare backing storage.

        Raises:
            PersistenceError: If the storage cannot be prepared
        """
        ...

    @abstractmethod
    def read_versions(self, db: str, table: str) -> list[TrackedVersion]:
        """All versions of a table, newest first."""
        ...

    @abstractmethod
    def read_version(self, db: str, table: str, version: int) -> TrackedVersion | None:
        """One version of a table, or None."""
        ...

    @abstractmethod
    def read_head_versions(self, db: str) -> list[TrackedVersion]:
        """The highest version of every tracked table in db, by table name."""
        ...

    @abstractmethod
    def list_tracked_tables(self, db: str) -> list[str]:
        """Distinct names of tables with at least one version, sorted."""
        ...

    @abstractmethod
    def create_version(self, version: TrackedVersion) -> bool:
        """Persist a new version.

        Returns:
            False if the write failed (including a duplicate version number)
        """
        ...

    @abstractmethod
    def write_log(
        self,
        db: str,
        table: str,
        version: int,
        kind: LogKind,
        entries: Sequence[LogEntry],
    ) -> bool:
        """Replace the whole ddlog or dmlog of a version."""
        ...

    @abstractmethod
    def append_entry(
        self,
        db: str,
        table: str,
        version: int,
        kind: LogKind,
        entry: LogEntry,
    ) -> bool:
        """Append one entry to the ddlog or dmlog of a version."""
        ...

    @abstractmethod
    def set_active(self, db: str, table: str, version: int, active: bool) -> bool:
        """Flip the active flag of a version."""
        ...

    @abstractmethod
    def delete_version(self, db: str, table: str, version: int) -> bool:
        """Hard-delete a version with its logs and snapshot."""
        ...


def create_tracking_store(config: "TrackerConfig") -> TrackingStore | None:
    """Factory function to create a tracking store from configuration.

    Returns:
        The configured store, or None when tracking is disabled

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StoreBackend
    from .memory import InMemoryTrackingStore
    from .sqlite_store import SqliteTrackingStore

    if not config.tracking.enabled:
        logger.info("Tracking is disabled; no store created")
        return None

    if config.storage.backend == StoreBackend.SQLITE:
        return SqliteTrackingStore(
            config.storage.control_db,
            wal_mode=config.storage.wal_mode,
            busy_timeout_ms=config.storage.busy_timeout_ms,
        )
    elif config.storage.backend == StoreBackend.MEMORY:
        return InMemoryTrackingStore()
    else:
        raise ValueError(f"Unsupported store backend: {config.storage.backend}")
