"""
SQLite catalog and connection.

Each tracked database is a SQLite file under a data directory:
<data_dir>/<db>.db. The catalog reads structure through PRAGMAs and
reports it with MySQL-style keys so snapshots look the same whichever
engine produced them.

Invariants:
    - Database names are sanitized before they touch the filesystem
    - Statements run in autocommit mode, one connection per call
    - The recorder sees a statement only after it executed successfully
    - Scripts are split into single statements; each is recorded on its own
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..errors import CatalogError, SqlConnectionError, StatementExecutionError
from ..types import StructuralSnapshot
from .base import StatementResult, group_table_names

if TYPE_CHECKING:
    from ..core.recorder import StatementRecorder

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    """Quote an SQLite identifier."""
    return '"' + name.replace('"', '""') + '"'


def split_statements(script: str) -> list[str]:
    """Split a script into single statements.

    Semicolons inside string literals, comments and trigger bodies do not
    end a statement. A trailing statement without a semicolon is kept.

    Example:
        >>> split_statements("INSERT INTO a VALUES (1); INSERT INTO b VALUES ('x;y')")
        ['INSERT INTO a VALUES (1);', "INSERT INTO b VALUES ('x;y')"]
    """
    parts = script.split(";")
    statements = []
    pending = ""
    for part in parts[:-1]:
        pending += part + ";"
        if sqlite3.complete_statement(pending):
            if pending.strip(" \t\r\n;"):
                statements.append(pending.strip())
            pending = ""
    # The last part has no semicolon of its own
    rest = (pending + parts[-1]).strip()
    if rest.strip(";"):
        statements.append(rest)
    return statements


class SqliteCatalog:
    """Catalog over a directory of SQLite databases.

    Example:
        >>> catalog = SqliteCatalog("/var/lib/tracklog/data")
        >>> catalog.create_database("shop")
        >>> catalog.table_names("shop")
        []
    """

    def __init__(
        self,
        data_dir: str,
        table_separator: str = "__",
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.table_separator = table_separator
        self.busy_timeout_ms = busy_timeout_ms

    def _get_db_path(self, db: str) -> Path:
        """Get database file path for a database name."""
        # Sanitize to prevent path traversal
        safe_name = "".join(c for c in db if c.isalnum() or c in "-_")
        return self.data_dir / f"{safe_name}.db"

    def database_exists(self, db: str) -> bool:
        return self._get_db_path(db).exists()

    def create_database(self, db: str) -> None:
        """Create an empty database file if it does not exist."""
        with self._get_connection(db, create=True):
            logger.info(f"Created database: {db}")

    @contextmanager
    def _get_connection(self, db: str, create: bool = False) -> Iterator[sqlite3.Connection]:
        """Open a connection to a tracked database.

        Raises:
            CatalogError: If the database doesn't exist and create=False
        """
        db_path = self._get_db_path(db)

        if not create and not db_path.exists():
            raise CatalogError(f"Database not found: {db}", database=db)

        db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            yield conn
        finally:
            conn.close()

    def _master_row(self, conn: sqlite3.Connection, db: str, table: str) -> sqlite3.Row:
        cursor = conn.execute(
            "SELECT type, sql FROM sqlite_master WHERE name = ? AND type IN ('table', 'view')",
            (table,),
        )
        row = cursor.fetchone()
        if row is None:
            raise CatalogError(f"Table not found: {db}.{table}", database=db, table=table)
        return row

    def table_names(self, db: str) -> list[str]:
        with self._get_connection(db) as conn:
            cursor = conn.execute(
                """
                SELECT name FROM sqlite_master
                WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%'
                ORDER BY name
                """
            )
            return [row[0] for row in cursor.fetchall()]

    def table_list(self, db: str) -> dict[str, Any]:
        return group_table_names(self.table_names(db), self.table_separator)

    def is_view(self, db: str, table: str) -> bool:
        with self._get_connection(db) as conn:
            return self._master_row(conn, db, table)["type"] == "view"

    def describe(self, db: str, table: str) -> StructuralSnapshot:
        with self._get_connection(db) as conn:
            self._master_row(conn, db, table)
            quoted = quote_identifier(table)

            columns = [
                {
                    "Field": row["name"],
                    "Type": row["type"],
                    "Null": "NO" if row["notnull"] else "YES",
                    "Default": row["dflt_value"],
                    "Key": "PRI" if row["pk"] else "",
                    "Extra": "",
                }
                for row in conn.execute(f"PRAGMA table_xinfo({quoted})").fetchall()
                if row["hidden"] == 0
            ]

            indexes = []
            for index in conn.execute(f"PRAGMA index_list({quoted})").fetchall():
                index_name = index["name"]
                info = conn.execute(f"PRAGMA index_info({quote_identifier(index_name)})")
                for part in info.fetchall():
                    indexes.append(
                        {
                            "Table": table,
                            "Non_unique": 0 if index["unique"] else 1,
                            "Key_name": index_name,
                            "Seq_in_index": part["seqno"] + 1,
                            "Column_name": part["name"],
                        }
                    )

        return StructuralSnapshot(columns=columns, indexes=indexes)

    def create_statement(self, db: str, table: str) -> str:
        with self._get_connection(db) as conn:
            sql = self._master_row(conn, db, table)["sql"]
        return sql.rstrip().rstrip(";") + ";\n"

    def connect(
        self,
        db: str,
        username: str = "root",
        recorder: StatementRecorder | None = None,
    ) -> SqliteConnection:
        """Open a statement connection bound to one database."""
        return SqliteConnection(self, db, username=username, recorder=recorder)


class SqliteConnection:
    """SqlConnection over one SQLite database.

    When a recorder is attached, successfully executed statements are
    offered to it unless the caller suppresses tracking.

    Attributes:
        db: Database the connection executes against
        username: Username recorded with tracked statements
    """

    def __init__(
        self,
        catalog: SqliteCatalog,
        db: str,
        username: str = "root",
        recorder: StatementRecorder | None = None,
    ) -> None:
        self.catalog = catalog
        self.db = db
        self.username = username
        self.recorder = recorder

    def execute(self, statement: str, suppress_tracking: bool = False) -> StatementResult:
        """Execute a statement or a script of several statements.

        Each statement of a script runs and is recorded on its own, so it
        lands in the log of its own target table. A failing statement stops
        the script; the statements before it stay executed and recorded.

        Raises:
            StatementExecutionError: If a statement fails
            SqlConnectionError: If the database cannot be opened
        """
        rowcount = 0
        try:
            with self.catalog._get_connection(self.db) as conn:
                for single in split_statements(statement):
                    before = conn.total_changes
                    try:
                        conn.executescript(single)
                    except sqlite3.Error as e:
                        raise StatementExecutionError(str(e), statement=single)
                    rowcount += conn.total_changes - before

                    if self.recorder is not None and not suppress_tracking:
                        self.recorder.record(self.db, single, self.username)
        except CatalogError as e:
            raise SqlConnectionError(e.message, database=self.db) from e

        logger.debug(
            "Executed statement",
            extra={"db": self.db, "rowcount": rowcount, "suppress_tracking": suppress_tracking},
        )
        return StatementResult(statement=statement, rowcount=rowcount)
