"""
SQLite tracking store.

This module keeps every tracked version in a single control database:
- One row per (db_name, table_name, version)
- ddlog and dmlog as JSON arrays of {date, username, statement}
- The structural snapshot as an encoded JSON document

Invariants:
    - Appends (read-modify-write) run in BEGIN IMMEDIATE transactions
    - Write failures are logged and returned as False, never raised
    - Log rewrites replace the whole column (last writer wins)

How to change safely:
    - Schema migrations must be backward compatible
    - Keep column names aligned with encode_log/decode_log

Table schema:
    tracking:
        - db_name TEXT
        - table_name TEXT
        - version INTEGER
        - date_created TEXT (YYYY-MM-DD HH:MM:SS)
        - date_updated TEXT
        - schema_snapshot TEXT (JSON)
        - ddlog TEXT (JSON array)
        - dmlog TEXT (JSON array)
        - tracking TEXT (comma-joined categories)
        - tracking_active INTEGER (0/1)
        - is_view INTEGER (0/1)
        - PRIMARY KEY (db_name, table_name, version)
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Sequence

from ..errors import PersistenceError
from ..types import LogEntry, LogKind, TrackedVersion, format_log_date
from .base import decode_log, encode_log

logger = logging.getLogger(__name__)

_LOG_COLUMNS = {LogKind.DDL: "ddlog", LogKind.DML: "dmlog"}


class SqliteTrackingStore:
    """SQLite implementation of TrackingStore.

    Thread safety:
        Each operation opens its own connection.
        SQLite handles concurrent access via WAL mode.

    Example:
        >>> store = SqliteTrackingStore("/var/lib/tracklog/tracking.db")
        >>> store.create_version(TrackedVersion("shop", "orders", 1))
        True
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the store.

        Args:
            path: Control database file
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.path = Path(path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._schema_ready = False

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection to the control database."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            if not self._schema_ready:
                self._create_schema(conn)
                self._schema_ready = True

            yield conn
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS tracking (
                db_name TEXT NOT NULL,
                table_name TEXT NOT NULL,
                version INTEGER NOT NULL,
                date_created TEXT NOT NULL,
                date_updated TEXT NOT NULL,
                schema_snapshot TEXT NOT NULL DEFAULT '',
                ddlog TEXT NOT NULL DEFAULT '[]',
                dmlog TEXT NOT NULL DEFAULT '[]',
                tracking TEXT NOT NULL DEFAULT '',
                tracking_active INTEGER NOT NULL DEFAULT 1,
                is_view INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (db_name, table_name, version)
            );

            CREATE INDEX IF NOT EXISTS idx_tracking_db ON tracking(db_name, table_name);

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    def initialize(self) -> None:
        """Create the control database and its schema.

        Raises:
            PersistenceError: If the control database cannot be opened
        """
        try:
            with self._get_connection():
                pass
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(
                f"Cannot open control database {self.path}: {e}", operation="initialize"
            ) from e
        logger.info(f"Tracking store ready: {self.path}")

    @staticmethod
    def _row_to_version(row: sqlite3.Row) -> TrackedVersion:
        return TrackedVersion(
            database=row["db_name"],
            table=row["table_name"],
            version=row["version"],
            tracking_set=row["tracking"],
            is_view=bool(row["is_view"]),
            active=bool(row["tracking_active"]),
            ddlog=decode_log(row["ddlog"]),
            dmlog=decode_log(row["dmlog"]),
            schema_snapshot=row["schema_snapshot"],
            date_created=row["date_created"],
            date_updated=row["date_updated"],
        )

    def read_versions(self, db: str, table: str) -> list[TrackedVersion]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM tracking
                WHERE db_name = ? AND table_name = ?
                ORDER BY version DESC
                """,
                (db, table),
            )
            return [self._row_to_version(row) for row in cursor.fetchall()]

    def read_version(self, db: str, table: str, version: int) -> TrackedVersion | None:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM tracking WHERE db_name = ? AND table_name = ? AND version = ?",
                (db, table, version),
            )
            row = cursor.fetchone()
            return self._row_to_version(row) if row else None

    def read_head_versions(self, db: str) -> list[TrackedVersion]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT t.* FROM tracking t
                JOIN (
                    SELECT table_name, MAX(version) AS version FROM tracking
                    WHERE db_name = ?
                    GROUP BY table_name
                ) head ON t.table_name = head.table_name AND t.version = head.version
                WHERE t.db_name = ?
                ORDER BY t.table_name ASC
                """,
                (db, db),
            )
            return [self._row_to_version(row) for row in cursor.fetchall()]

    def list_tracked_tables(self, db: str) -> list[str]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT DISTINCT table_name FROM tracking WHERE db_name = ? ORDER BY table_name",
                (db,),
            )
            return [row[0] for row in cursor.fetchall()]

    def create_version(self, version: TrackedVersion) -> bool:
        now = format_log_date(datetime.now())
        try:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO tracking (db_name, table_name, version, date_created,
                                          date_updated, schema_snapshot, ddlog, dmlog,
                                          tracking, tracking_active, is_view)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        version.database,
                        version.table,
                        version.version,
                        version.date_created or now,
                        version.date_updated or now,
                        version.schema_snapshot,
                        encode_log(version.ddlog),
                        encode_log(version.dmlog),
                        version.tracking_set,
                        int(version.active),
                        int(version.is_view),
                    ),
                )
        except sqlite3.Error:
            logger.error(
                "Failed to create tracking version",
                extra={"db": version.database, "table": version.table, "version": version.version},
                exc_info=True,
            )
            return False

        logger.debug(
            "Created tracking version",
            extra={"db": version.database, "table": version.table, "version": version.version},
        )
        return True

    def write_log(
        self,
        db: str,
        table: str,
        version: int,
        kind: LogKind,
        entries: Sequence[LogEntry],
    ) -> bool:
        column = _LOG_COLUMNS[kind]
        try:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    f"""
                    UPDATE tracking SET {column} = ?, date_updated = ?
                    WHERE db_name = ? AND table_name = ? AND version = ?
                    """,
                    (encode_log(entries), format_log_date(datetime.now()), db, table, version),
                )
                return cursor.rowcount > 0
        except sqlite3.Error:
            logger.error(
                "Failed to write tracking log",
                extra={"db": db, "table": table, "version": version, "log": kind.value},
                exc_info=True,
            )
            return False

    def append_entry(
        self,
        db: str,
        table: str,
        version: int,
        kind: LogKind,
        entry: LogEntry,
    ) -> bool:
        column = _LOG_COLUMNS[kind]
        try:
            with self._get_connection() as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    cursor = conn.execute(
                        f"""
                        SELECT {column} FROM tracking
                        WHERE db_name = ? AND table_name = ? AND version = ?
                        """,
                        (db, table, version),
                    )
                    row = cursor.fetchone()
                    if not row:
                        conn.execute("ROLLBACK")
                        return False

                    entries = decode_log(row[0])
                    entries.append(entry)
                    conn.execute(
                        f"""
                        UPDATE tracking SET {column} = ?, date_updated = ?
                        WHERE db_name = ? AND table_name = ? AND version = ?
                        """,
                        (encode_log(entries), entry.date, db, table, version),
                    )
                    conn.execute("COMMIT")

                except Exception:
                    conn.execute("ROLLBACK")
                    raise
        except sqlite3.Error:
            logger.error(
                "Failed to append tracking entry",
                extra={"db": db, "table": table, "version": version, "log": kind.value},
                exc_info=True,
            )
            return False

        return True

    def set_active(self, db: str, table: str, version: int, active: bool) -> bool:
        try:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    """
                    UPDATE tracking SET tracking_active = ?
                    WHERE db_name = ? AND table_name = ? AND version = ?
                    """,
                    (int(active), db, table, version),
                )
                return cursor.rowcount > 0
        except sqlite3.Error:
            logger.error(
                "Failed to change tracking state",
                extra={"db": db, "table": table, "version": version, "active": active},
                exc_info=True,
            )
            return False

    def delete_version(self, db: str, table: str, version: int) -> bool:
        try:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "DELETE FROM tracking WHERE db_name = ? AND table_name = ? AND version = ?",
                    (db, table, version),
                )
                return cursor.rowcount > 0
        except sqlite3.Error:
            logger.error(
                "Failed to delete tracking version",
                extra={"db": db, "table": table, "version": version},
                exc_info=True,
            )
            return False
