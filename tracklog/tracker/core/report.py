"""
Report building: log filtering and merge-sorting.

This module turns a TrackedVersion into an ordered report:
- filter_log: time window + user filter over one log, tagging positional ids
- build_report: applies filter_log to the logs a LogType selects and sorts
  the union by (timestamp, id, username, statement)
- ReportFilter: typed filter parsed from raw form values

Invariants:
    - A positional id is the entry's index in the unfiltered log, so it
      stays a valid delete target for that log
    - Entries whose date cannot be parsed are excluded and counted, never
      raised
    - The "*" user matches every username

Example:
    >>> window = TimeWindow(datetime(2024, 1, 1), datetime(2024, 12, 31))
    >>> report = build_report(version, LogType.SCHEMA_AND_DATA, window, {"*"})
    >>> [entry.statement for entry in report]
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ..errors import MalformedInputError
from ..types import LogEntry, LogKind, LogType, ReportEntry, TimeWindow, TrackedVersion

logger = logging.getLogger(__name__)

WILDCARD_USER = "*"


def parse_log_date(text: str) -> datetime | None:
    """Parse a stored or user-supplied date.

    Accepts "YYYY-MM-DD HH:MM:SS", the "T" separated ISO form and plain
    "YYYY-MM-DD". Timezone-aware values are normalised to naive UTC.

    Returns:
        The parsed datetime, or None when the text is not a date
    """
    if not isinstance(text, str):
        return None
    text = text.strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def user_matches(username: str, allowed_users: Iterable[str]) -> bool:
    """Whether a username passes the user filter."""
    allowed = set(allowed_users)
    return WILDCARD_USER in allowed or username in allowed


@dataclass
class FilterResult:
    """Entries of one log that passed a filter.

    Attributes:
        entries: Matching entries in original log order
        unparsable: Number of entries skipped because of an invalid date
    """

    entries: list[ReportEntry] = field(default_factory=list)
    unparsable: int = 0

    def __iter__(self) -> Iterator[ReportEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def filter_log(
    entries: Sequence[LogEntry],
    window: TimeWindow,
    allowed_users: Iterable[str],
    kind: LogKind = LogKind.DDL,
) -> FilterResult:
    """Filter one log by time window and user set.

    Args:
        entries: Log entries in stored order
        window: Inclusive time window
        allowed_users: Usernames to keep; "*" keeps everyone
        kind: Log the entries belong to, copied onto each result

    Returns:
        FilterResult with entries tagged by their index in ``entries``
    """
    allowed = frozenset(allowed_users)
    result = FilterResult()

    for position, entry in enumerate(entries):
        timestamp = parse_log_date(entry.date)
        if timestamp is None:
            result.unparsable += 1
            logger.warning(
                "Skipping log entry with unparsable date",
                extra={"position": position, "date": entry.date, "kind": kind.value},
            )
            continue

        if timestamp in window and user_matches(entry.username, allowed):
            result.entries.append(
                ReportEntry(
                    id=position,
                    timestamp=timestamp,
                    username=entry.username,
                    statement=entry.statement,
                    kind=kind,
                )
            )

    return result


@dataclass
class Report:
    """Ordered report over a tracked version.

    Attributes:
        entries: Entries ordered by (timestamp, id, username, statement)
        ddl_count: How many entries came from the ddlog
        dml_count: How many entries came from the dmlog
        unparsable: Entries skipped because of invalid dates
    """

    entries: list[ReportEntry] = field(default_factory=list)
    ddl_count: int = 0
    dml_count: int = 0
    unparsable: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def __iter__(self) -> Iterator[ReportEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> dict:
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "ddl_count": self.ddl_count,
            "dml_count": self.dml_count,
            "unparsable": self.unparsable,
        }


def build_report(
    data: TrackedVersion,
    log_type: LogType,
    window: TimeWindow,
    allowed_users: Iterable[str],
) -> Report:
    """Filter the selected logs of a version and merge them into one order.

    Args:
        data: Tracked version to report on
        log_type: Which logs to include
        window: Inclusive time window
        allowed_users: Usernames to keep; "*" keeps everyone

    Returns:
        Report sorted ascending by (timestamp, id, username, statement)
    """
    allowed = frozenset(allowed_users)
    report = Report()

    if log_type.includes_ddl:
        ddl = filter_log(data.ddlog, window, allowed, LogKind.DDL)
        report.entries.extend(ddl.entries)
        report.ddl_count = len(ddl)
        report.unparsable += ddl.unparsable

    if log_type.includes_dml:
        dml = filter_log(data.dmlog, window, allowed, LogKind.DML)
        report.entries.extend(dml.entries)
        report.dml_count = len(dml)
        report.unparsable += dml.unparsable

    report.entries.sort(key=ReportEntry.sort_key)
    return report


def parse_users(text: str | None) -> frozenset[str]:
    """Parse a comma separated user list; empty means everyone."""
    users = frozenset(user.strip() for user in (text or "").split(",") if user.strip())
    return users or frozenset({WILDCARD_USER})


@dataclass(frozen=True)
class ReportFilter:
    """Typed report parameters.

    Attributes:
        log_type: Which logs to include
        window: Inclusive time window
        users: Allowed usernames ("*" for everyone)
    """

    log_type: LogType = LogType.SCHEMA_AND_DATA
    window: TimeWindow = field(
        default_factory=lambda: TimeWindow(datetime.min, datetime.max)
    )
    users: frozenset[str] = frozenset({WILDCARD_USER})

    @classmethod
    def from_form(
        cls,
        log_type: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        users: str | None = None,
        default_from: str | None = None,
        now: datetime | None = None,
    ) -> ReportFilter:
        """Build a filter from raw form values.

        Args:
            log_type: "schema", "data" or "schema_and_data" (default)
            date_from: Start date; empty falls back to default_from
            date_to: End date; empty means now
            users: Comma separated usernames; empty means everyone
            default_from: Usually the version's date_created
            now: Reference time for an empty date_to

        Raises:
            MalformedInputError: On an unknown log type or unparsable date
        """
        try:
            selected = LogType(log_type) if log_type else LogType.SCHEMA_AND_DATA
        except ValueError:
            raise MalformedInputError(f"Unknown log type '{log_type}'", "logtype", log_type)

        start_text = date_from or default_from
        if start_text:
            start = parse_log_date(start_text)
            if start is None:
                raise MalformedInputError(f"Invalid date '{start_text}'", "date_from", start_text)
        else:
            start = datetime.min

        if date_to:
            end = parse_log_date(date_to)
            if end is None:
                raise MalformedInputError(f"Invalid date '{date_to}'", "date_to", date_to)
        else:
            end = now or datetime.now()

        return cls(log_type=selected, window=TimeWindow(start, end), users=parse_users(users))

    def apply(self, data: TrackedVersion) -> Report:
        """Build the report this filter describes."""
        return build_report(data, self.log_type, self.window, self.users)
