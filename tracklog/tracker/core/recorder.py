"""
Statement recorder: the tracking hook of SQL connections.

A connection hands every successfully executed statement to the
recorder. The recorder classifies it into a statement category and a
target table, then appends it to that table's HEAD version when the
version is active and tracks the category.

Invariants:
    - Only the HEAD (highest) version of a table ever receives entries
    - DDL categories go to the ddlog, DML categories to the dmlog
    - Unclassifiable statements and untracked tables are ignored
    - Stored statements end with exactly one ";\\n"
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

from ..categories import kind_of
from ..store.base import TrackingStore
from ..types import LogEntry, format_log_date

logger = logging.getLogger(__name__)

# Optionally qualified identifier: `db`.`table`, "table", [table] or table
_IDENT = r"(?:`[^`]+`|\"[^\"]+\"|\[[^\]]+\]|[\w$]+)"
_NAME = rf"((?:{_IDENT}\s*\.\s*)?{_IDENT})"

# (label, pattern) tried in order; the first group is the target table
_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (label, re.compile(pattern, re.IGNORECASE | re.DOTALL))
    for label, pattern in (
        ("ALTER TABLE", rf"^ALTER\s+(?:ONLINE\s+|IGNORE\s+)*TABLE\s+{_NAME}"),
        ("RENAME TABLE", rf"^RENAME\s+TABLES?\s+{_NAME}"),
        (
            "CREATE TABLE",
            rf"^CREATE\s+(?:TEMP(?:ORARY)?\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?{_NAME}",
        ),
        ("DROP TABLE", rf"^DROP\s+(?:TEMP(?:ORARY)?\s+)?TABLE\s+(?:IF\s+EXISTS\s+)?{_NAME}"),
        ("ALTER VIEW", rf"^ALTER\s+(?:.*?\s+)?VIEW\s+{_NAME}"),
        (
            "CREATE VIEW",
            rf"^CREATE\s+(?:OR\s+REPLACE\s+)?(?:TEMP(?:ORARY)?\s+)?(?:\w+\s*=\s*\S+\s+)*"
            rf"VIEW\s+(?:IF\s+NOT\s+EXISTS\s+)?{_NAME}",
        ),
        ("DROP VIEW", rf"^DROP\s+VIEW\s+(?:IF\s+EXISTS\s+)?{_NAME}"),
        (
            "CREATE INDEX",
            rf"^CREATE\s+(?:UNIQUE\s+|FULLTEXT\s+|SPATIAL\s+)?INDEX\s+(?:IF\s+NOT\s+EXISTS\s+)?"
            rf"{_NAME}\s+ON\s+{_NAME}",
        ),
        ("DROP INDEX", rf"^DROP\s+INDEX\s+(?:IF\s+EXISTS\s+)?{_NAME}\s+ON\s+{_NAME}"),
        (
            "INSERT",
            rf"^(?:INSERT|REPLACE)\s+(?:OR\s+\w+\s+|LOW_PRIORITY\s+|DELAYED\s+|HIGH_PRIORITY\s+|IGNORE\s+)*"
            rf"(?:INTO\s+)?{_NAME}",
        ),
        ("UPDATE", rf"^UPDATE\s+(?:OR\s+\w+\s+|LOW_PRIORITY\s+|IGNORE\s+)*{_NAME}"),
        ("DELETE", rf"^DELETE\s+(?:LOW_PRIORITY\s+|QUICK\s+|IGNORE\s+)*FROM\s+{_NAME}"),
        ("TRUNCATE", rf"^TRUNCATE\s+(?:TABLE\s+)?{_NAME}"),
    )
)

_INDEX_CATEGORIES = frozenset({"CREATE INDEX", "DROP INDEX"})
_LEADING_COMMENTS = re.compile(r"^(?:\s+|--[^\n]*\n?|#[^\n]*\n?|/\*.*?\*/)*", re.DOTALL)


def _unquote(name: str) -> str:
    """Bare table name of a possibly quoted and qualified identifier."""
    last = re.findall(_IDENT, name)[-1]
    if last[:1] in ("`", '"', "[") and len(last) >= 2:
        return last[1:-1]
    return last


def classify_statement(statement: str) -> tuple[str, str] | None:
    """Category label and target table of a statement.

    Example:
        >>> classify_statement("INSERT INTO `orders` VALUES (1)")
        ('INSERT', 'orders')

    Returns:
        (label, table), or None if the statement is not trackable
    """
    text = _LEADING_COMMENTS.sub("", statement, count=1)
    for label, pattern in _PATTERNS:
        match = pattern.match(text)
        if match:
            # Index statements name the index first and the table after ON
            group = 2 if label in _INDEX_CATEGORIES else 1
            return label, _unquote(match.group(group))
    return None


def normalize_statement(statement: str) -> str:
    """Statement text as stored: trailing semicolons replaced by one ";\\n"."""
    return statement.strip().rstrip(";").rstrip() + ";\n"


class StatementRecorder:
    """Appends executed statements to the logs of tracked tables.

    Example:
        >>> recorder = StatementRecorder(store)
        >>> recorder.record("shop", "INSERT INTO orders VALUES (1)", "alice")
        True
    """

    def __init__(self, store: TrackingStore | None) -> None:
        self.store = store

    def record(
        self,
        db: str,
        statement: str,
        username: str,
        now: datetime | None = None,
    ) -> bool:
        """Record a statement if its table's HEAD version tracks it.

        Returns:
            True if the statement was appended to a log
        """
        if self.store is None:
            return False

        classified = classify_statement(statement)
        if classified is None:
            return False
        label, table = classified

        versions = self.store.read_versions(db, table)
        if not versions:
            return False
        head = versions[0]
        if not head.active or label not in head.tracking_labels:
            return False

        kind = kind_of(label)
        if kind is None:
            return False

        entry = LogEntry(
            date=format_log_date(now or datetime.now()),
            username=username,
            statement=normalize_statement(statement),
        )
        appended = self.store.append_entry(db, table, head.version, kind, entry)
        if appended:
            logger.debug(
                "Recorded tracked statement",
                extra={"db": db, "table": table, "version": head.version, "category": label},
            )
        return appended
