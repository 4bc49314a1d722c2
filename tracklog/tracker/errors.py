"""
Error types for the tracking subsystem.

This module defines all exception types raised by the tracker:
- TrackingError: Base exception
- NotConfiguredError: Tracking storage is unavailable
- PersistenceError: A storage write failed
- MalformedInputError: Caller-supplied input could not be parsed
- SnapshotDecodeError: A structural snapshot blob could not be decoded
- CatalogError: A database or table is unknown to the catalog
- StatementExecutionError: A single SQL statement failed
- SqlConnectionError: The SQL connection itself is unusable

Invariants:
    - All errors inherit from TrackingError
    - Store writes never raise PersistenceError across the store boundary;
      it is used by backends internally and by callers that want to raise
    - Every error carries a stable code for programmatic handling
"""

from __future__ import annotations

from typing import Any


class TrackingError(Exception):
    """Base exception for all tracking errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "TRACKING_ERROR"
        self.details = details or {}


class NotConfiguredError(TrackingError):
    """Tracking storage is not configured or disabled."""

    def __init__(self, message: str = "Tracking is not configured") -> None:
        super().__init__(message, code="NOT_CONFIGURED")


class PersistenceError(TrackingError):
    """A write to the tracking store failed."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message, code="PERSISTENCE_FAILURE", details={"operation": operation})
        self.operation = operation


class MalformedInputError(TrackingError):
    """Caller-supplied input could not be parsed.

    Raised when:
    - A report date is not a valid date
    - A log type or export type is unknown
    - An entry id is not a non-negative integer
    """

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        value: Any = None,
    ) -> None:
        super().__init__(
            message,
            code="MALFORMED_INPUT",
            details={"field": field_name, "value": value},
        )
        self.field_name = field_name
        self.value = value


class SnapshotDecodeError(TrackingError):
    """Structural snapshot blob could not be decoded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="SNAPSHOT_DECODE_FAILURE")


class CatalogError(TrackingError):
    """Database or table is unknown to the catalog."""

    def __init__(self, message: str, database: str, table: str | None = None) -> None:
        super().__init__(
            message,
            code="CATALOG_ERROR",
            details={"database": database, "table": table},
        )
        self.database = database
        self.table = table


class StatementExecutionError(TrackingError):
    """A single SQL statement failed to execute."""

    def __init__(self, message: str, statement: str) -> None:
        super().__init__(
            message,
            code="STATEMENT_FAILED",
            details={"statement": statement},
        )
        self.statement = statement


class SqlConnectionError(TrackingError):
    """The SQL connection is unusable (closed, unreachable, missing database)."""

    def __init__(self, message: str, database: str | None = None) -> None:
        super().__init__(message, code="CONNECTION_ERROR", details={"database": database})
        self.database = database
