"""
Log mutation: deleting single entries from a version's logs.

Entries are addressed by positional id, the 0-based index of the entry
in its log as last read. Deleting entry k shifts every later entry down
by one on the next read; ids are never persisted.

Invariants:
    - A malformed or out-of-range id is a no-op (log and store untouched)
    - The store receives the whole replacement log, never a row delete
    - If the store write fails, the in-memory log is restored

How to change safely:
    - Callers must re-read the version after every delete before issuing
      another one; ids from an older read may point at a different entry
"""

from __future__ import annotations

import logging
from typing import Any

from ..store.base import TrackingStore
from ..types import LogEntry, LogKind, OperationResult

logger = logging.getLogger(__name__)

_DELETED_KEYS = {LogKind.DDL: "ddl_entry_deleted", LogKind.DML: "dml_entry_deleted"}


def coerce_entry_id(value: Any) -> int | None:
    """Coerce a raw entry id to a non-negative integer.

    Accepts ints and strings of decimal digits (surrounding whitespace is
    ignored). Floats are accepted only when integral.

    Returns:
        The id, or None if the value is not a valid id
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value >= 0 else None
    if isinstance(value, str):
        text = value.strip()
        if text.isdecimal() and text.isascii():
            return int(text)
    return None


class LogMutationManager:
    """Deletes entries from tracked logs.

    Example:
        >>> mutations = LogMutationManager(store)
        >>> data = store.read_version("shop", "orders", 1)
        >>> mutations.delete_entry("shop", "orders", 1, LogKind.DML, "0", data.dmlog).message
        'Tracking data manipulation successfully deleted'
    """

    def __init__(self, store: TrackingStore | None) -> None:
        self.store = store

    def delete_entry(
        self,
        db: str,
        table: str,
        version: int,
        kind: LogKind,
        entry_id: Any,
        log: list[LogEntry],
    ) -> OperationResult:
        """Delete one entry from a log and persist the rest.

        Args:
            db: Database name
            table: Table name
            version: Version number
            kind: Which log the entry belongs to
            entry_id: Positional id (raw value, validated here)
            log: The current log; mutated in place on success

        Returns:
            OperationResult with "ddl_entry_deleted"/"dml_entry_deleted",
            "invalid_entry_id", "query_error" or "not_configured"
        """
        if self.store is None:
            return OperationResult.fail("not_configured")

        position = coerce_entry_id(entry_id)
        if position is None or position >= len(log):
            logger.info(
                "Ignoring delete of invalid log entry id",
                extra={"db": db, "table": table, "version": version, "entry_id": str(entry_id)},
            )
            return OperationResult.fail("invalid_entry_id", entry_id=entry_id)

        removed = log.pop(position)
        if not self.store.write_log(db, table, version, kind, log):
            log.insert(position, removed)
            return OperationResult.fail("query_error")

        logger.info(
            "Deleted tracking log entry",
            extra={
                "db": db,
                "table": table,
                "version": version,
                "log": kind.attribute,
                "entry_id": position,
            },
        )
        return OperationResult.ok(_DELETED_KEYS[kind], entry_id=position)

    def delete_report_rows(
        self,
        db: str,
        table: str,
        version: int,
        delete_ddlog: Any = None,
        delete_dmlog: Any = None,
    ) -> list[OperationResult]:
        """Apply the delete requests of one report submission.

        The version is read once; the ddlog delete (if any) runs before the
        dmlog delete. Missing requests are skipped.

        Returns:
            One result per requested delete, ddlog first
        """
        if self.store is None:
            return [OperationResult.fail("not_configured")]

        requests = [(LogKind.DDL, delete_ddlog), (LogKind.DML, delete_dmlog)]
        requests = [(kind, raw) for kind, raw in requests if raw is not None and raw != ""]
        if not requests:
            return []

        data = self.store.read_version(db, table, version)
        if data is None:
            return [
                OperationResult.fail("version_not_found", version=version, target=f"{db}.{table}")
            ]

        return [
            self.delete_entry(db, table, version, kind, raw, data.log(kind))
            for kind, raw in requests
        ]
