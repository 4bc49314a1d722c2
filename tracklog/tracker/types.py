"""
Core data types for the tracking log.

Types:
    - LogEntry: A statement as stored in a version's ddlog/dmlog
    - ReportEntry: A filtered entry carrying its positional id
    - TrackedVersion: One tracked version of a table
    - StructuralSnapshot: Columns and indexes captured at version creation
    - TimeWindow: Inclusive report date range
    - OperationResult: Success flag plus a message key for the caller

Invariants:
    - Positional ids are never stored on LogEntry, only on ReportEntry
    - LogEntry dates are kept as the stored string; parsing happens at read
      time so that unparsable legacy dates survive a whole-log rewrite
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_log_date(value: datetime) -> str:
    """Format a datetime the way log entries store it."""
    return value.strftime(DATE_FORMAT)


class LogKind(Enum):
    """Which of a version's two logs an entry belongs to.

    The value is the marker handed to the store on whole-log writes.
    """

    DDL = "DDL"
    DML = "DML"

    @property
    def attribute(self) -> str:
        """Name of the TrackedVersion attribute holding this log."""
        return "ddlog" if self is LogKind.DDL else "dmlog"


class LogType(Enum):
    """Report selector: which logs feed a report."""

    SCHEMA = "schema"
    DATA = "data"
    SCHEMA_AND_DATA = "schema_and_data"

    @property
    def includes_ddl(self) -> bool:
        return self in (LogType.SCHEMA, LogType.SCHEMA_AND_DATA)

    @property
    def includes_dml(self) -> bool:
        return self in (LogType.DATA, LogType.SCHEMA_AND_DATA)


class ExportType(Enum):
    """The three mutually exclusive export projections."""

    SQLDUMPFILE = "sqldumpfile"
    SQLDUMP = "sqldump"
    EXECUTION = "execution"


@dataclass(frozen=True)
class LogEntry:
    """A statement recorded in a version's log.

    Attributes:
        date: Stored date string (YYYY-MM-DD HH:MM:SS)
        username: User who executed the statement
        statement: Statement text, including its terminating ";\\n"
    """

    date: str
    username: str
    statement: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for serialization."""
        return {"date": self.date, "username": self.username, "statement": self.statement}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LogEntry:
        """Create from dictionary."""
        return cls(
            date=str(data.get("date", "")),
            username=str(data.get("username", "")),
            statement=str(data.get("statement", "")),
        )


@dataclass(frozen=True)
class ReportEntry:
    """A log entry that passed a report filter.

    Attributes:
        id: 0-based index of the entry in its unfiltered log
        timestamp: Parsed entry date
        username: User who executed the statement
        statement: Statement text
        kind: Log the entry came from
    """

    id: int
    timestamp: datetime
    username: str
    statement: str
    kind: LogKind = LogKind.DDL

    def sort_key(self) -> tuple[datetime, int, str, str]:
        """Composite report ordering key."""
        return (self.timestamp, self.id, self.username, self.statement)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": format_log_date(self.timestamp),
            "username": self.username,
            "statement": self.statement,
            "kind": self.kind.value,
        }


@dataclass
class StructuralSnapshot:
    """Columns and indexes of a table at version creation time."""

    columns: list[dict[str, Any]] = field(default_factory=list)
    indexes: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"COLUMNS": self.columns, "INDEXES": self.indexes}

    @classmethod
    def empty(cls) -> StructuralSnapshot:
        return cls()


@dataclass
class TrackedVersion:
    """One tracked version of a table.

    Attributes:
        database: Database name
        table: Table (or view) name
        version: Caller-assigned version number
        tracking_set: Persisted tracking set, e.g. "ALTER TABLE,INSERT"
        is_view: Whether the tracked object is a view
        active: Whether new statements are recorded into this version
        ddlog: Data definition statements in append order
        dmlog: Data manipulation statements in append order
        schema_snapshot: Encoded StructuralSnapshot
        date_created: Creation date (YYYY-MM-DD HH:MM:SS)
        date_updated: Last log change date
    """

    database: str
    table: str
    version: int
    tracking_set: str = ""
    is_view: bool = False
    active: bool = True
    ddlog: list[LogEntry] = field(default_factory=list)
    dmlog: list[LogEntry] = field(default_factory=list)
    schema_snapshot: str = ""
    date_created: str = ""
    date_updated: str = ""

    @property
    def tracking_labels(self) -> tuple[str, ...]:
        return tuple(item for item in self.tracking_set.split(",") if item)

    def log(self, kind: LogKind) -> list[LogEntry]:
        """The log list for a kind (the live list, not a copy)."""
        return getattr(self, kind.attribute)

    def to_dict(self) -> dict[str, Any]:
        return {
            "database": self.database,
            "table": self.table,
            "version": self.version,
            "tracking_set": self.tracking_set,
            "is_view": self.is_view,
            "active": self.active,
            "ddlog": [entry.to_dict() for entry in self.ddlog],
            "dmlog": [entry.to_dict() for entry in self.dmlog],
            "date_created": self.date_created,
            "date_updated": self.date_updated,
        }


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive date range for reports."""

    start: datetime
    end: datetime

    def __contains__(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


MESSAGES: dict[str, str] = {
    "version_created": "Version {version} was created, tracking for {target} is active.",
    "version_create_failed": "Version {version} of {target} could not be created.",
    "tracking_activated": "Tracking for {target} was activated at version {version}.",
    "tracking_deactivated": "Tracking for {target} was deactivated at version {version}.",
    "tracking_change_failed": "Tracking for {target} could not be changed at version {version}.",
    "version_deleted": "Version {version} of {target} was deleted.",
    "version_delete_failed": "Version {version} of {target} could not be deleted.",
    "version_not_found": "Version {version} of {target} does not exist.",
    "ddl_entry_deleted": "Tracking data definition successfully deleted",
    "dml_entry_deleted": "Tracking data manipulation successfully deleted",
    "invalid_entry_id": "Invalid tracking entry id: {entry_id}",
    "query_error": "Query error",
    "statements_exported": "SQL statements exported. Please copy the dump or execute it.",
    "statements_executed": "SQL statements executed.",
    "execution_aborted": "Execution stopped at statement {index}: {error}",
    "catalog_error": "{error}",
    "not_configured": "Tracking is not configured.",
}


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a tracking operation.

    Attributes:
        success: Machine-checkable status
        message_key: Identifier of the user-facing message
        params: Values substituted into the message template
    """

    success: bool
    message_key: str
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        template = MESSAGES.get(self.message_key, self.message_key)
        return template.format(**self.params)

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message_key: str, **params: Any) -> OperationResult:
        return cls(True, message_key, params)

    @classmethod
    def fail(cls, message_key: str, **params: Any) -> OperationResult:
        return cls(False, message_key, params)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message_key": self.message_key,
            "message": self.message,
            "params": self.params,
        }


@dataclass(frozen=True)
class TableResult:
    """Per-table outcome of a bulk version creation."""

    table: str
    result: OperationResult
