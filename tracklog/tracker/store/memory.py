"""
In-memory tracking store implementation for testing.

This module provides a dict-backed store for:
- Unit tests
- Local experiments without a control database

Invariants:
    - All data is lost on process exit
    - Reads return copies; mutating a returned version never changes the store
    - Same ordering guarantees as the SQLite backend

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with TrackingStore protocol
"""

from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime
from typing import Dict, Sequence, Tuple

from ..types import LogEntry, LogKind, TrackedVersion, format_log_date

logger = logging.getLogger(__name__)

_Key = Tuple[str, str, int]


class InMemoryTrackingStore:
    """In-memory implementation of TrackingStore.

    Attributes:
        fail_writes: When True every write returns False (failure injection)

    Example:
        >>> store = InMemoryTrackingStore()
        >>> store.create_version(TrackedVersion("shop", "orders", 1))
        True
        >>> store.fail_writes = True
        >>> store.set_active("shop", "orders", 1, False)
        False
    """

    def __init__(self) -> None:
        self._versions: Dict[_Key, TrackedVersion] = {}
        self._lock = threading.Lock()
        self.fail_writes = False

    def initialize(self) -> None:
        pass

    def read_versions(self, db: str, table: str) -> list[TrackedVersion]:
        with self._lock:
            found = [
                copy.deepcopy(v)
                for (d, t, _), v in self._versions.items()
                if d == db and t == table
            ]
        return sorted(found, key=lambda v: v.version, reverse=True)

    def read_version(self, db: str, table: str, version: int) -> TrackedVersion | None:
        with self._lock:
            found = self._versions.get((db, table, version))
            return copy.deepcopy(found) if found is not None else None

    def read_head_versions(self, db: str) -> list[TrackedVersion]:
        heads: Dict[str, TrackedVersion] = {}
        with self._lock:
            for (d, t, number), v in self._versions.items():
                if d == db and (t not in heads or heads[t].version < number):
                    heads[t] = v
            return [copy.deepcopy(heads[name]) for name in sorted(heads)]

    def list_tracked_tables(self, db: str) -> list[str]:
        with self._lock:
            return sorted({t for (d, t, _) in self._versions if d == db})

    def create_version(self, version: TrackedVersion) -> bool:
        if self.fail_writes:
            return False
        key = (version.database, version.table, version.version)
        with self._lock:
            if key in self._versions:
                logger.error(
                    "Version already exists",
                    extra={"db": version.database, "table": version.table, "version": version.version},
                )
                return False
            self._versions[key] = copy.deepcopy(version)
        return True

    def write_log(
        self,
        db: str,
        table: str,
        version: int,
        kind: LogKind,
        entries: Sequence[LogEntry],
    ) -> bool:
        if self.fail_writes:
            return False
        with self._lock:
            found = self._versions.get((db, table, version))
            if found is None:
                return False
            setattr(found, kind.attribute, list(entries))
            found.date_updated = format_log_date(datetime.now())
        return True

    def append_entry(
        self,
        db: str,
        table: str,
        version: int,
        kind: LogKind,
        entry: LogEntry,
    ) -> bool:
        if self.fail_writes:
            return False
        with self._lock:
            found = self._versions.get((db, table, version))
            if found is None:
                return False
            found.log(kind).append(entry)
            found.date_updated = entry.date
        return True

    def set_active(self, db: str, table: str, version: int, active: bool) -> bool:
        if self.fail_writes:
            return False
        with self._lock:
            found = self._versions.get((db, table, version))
            if found is None:
                return False
            found.active = active
        return True

    def delete_version(self, db: str, table: str, version: int) -> bool:
        if self.fail_writes:
            return False
        with self._lock:
            return self._versions.pop((db, table, version), None) is not None

    # Testing helpers

    def get_version_count(self) -> int:
        """Total number of stored versions (testing helper)."""
        return len(self._versions)

    def clear(self) -> None:
        """Drop all versions (testing helper)."""
        with self._lock:
            self._versions.clear()
