"""
Version lifecycle management.

The VersionManager creates, activates, deactivates and deletes tracked
versions, and answers the listing questions built on top of them
(HEAD versions, tracked and untracked tables, structure snapshots).

Invariants:
    - A new version starts with an empty dmlog and a ddlog seeded with the
      optional DROP statement followed by the current CREATE statement
    - Bulk creation attempts every table, whatever happened to the others
    - Without a store (tracking disabled) reads return nothing and writes
      fail with the "not_configured" message

How to change safely:
    - Keep message keys stable; callers match on them
    - Do not add rollback of partial creation here; a failed create means
      "version state unknown" and the caller re-reads
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..catalog.base import Catalog, group_flag
from ..categories import tracking_set_from_labels
from ..config import TrackingConfig
from ..errors import CatalogError
from ..store.base import TrackingStore
from ..types import (
    LogEntry,
    OperationResult,
    StructuralSnapshot,
    TableResult,
    TrackedVersion,
    format_log_date,
)
from .snapshot import decode_snapshot, encode_snapshot

logger = logging.getLogger(__name__)


@dataclass
class SnapshotView:
    """Structure of a table as captured by one version.

    Attributes:
        version: Version number
        sql: Leading DROP (if any) and CREATE statements of the ddlog
        columns: Snapshot columns
        indexes: Snapshot indexes
    """

    version: int
    sql: str = ""
    columns: list[dict[str, Any]] = field(default_factory=list)
    indexes: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "sql": self.sql,
            "columns": self.columns,
            "indexes": self.indexes,
        }


@dataclass(frozen=True)
class TrackedTable:
    """A table with at least one version."""

    name: str
    is_tracked: bool


def _target(db: str, table: str) -> str:
    return f"{db}.{table}"


class VersionManager:
    """Creates and manages tracked versions.

    Example:
        >>> manager = VersionManager(store, catalog)
        >>> manager.create_version("shop", "orders", 1, "CREATE TABLE,INSERT")
        OperationResult(success=True, message_key='version_created', ...)
        >>> manager.deactivate("shop", "orders", 1).message
        'Tracking for shop.orders was deactivated at version 1.'
    """

    def __init__(
        self,
        store: TrackingStore | None,
        catalog: Catalog,
        config: TrackingConfig | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            store: Tracking store, or None when tracking is not configured
            catalog: Catalog of the tracked databases
            config: Tracking configuration
        """
        self.store = store
        self.catalog = catalog
        self.config = config or TrackingConfig()

    @property
    def is_configured(self) -> bool:
        return self.store is not None

    # --- Writes ---

    def _seed_ddlog(
        self,
        db: str,
        table: str,
        is_view: bool,
        username: str,
        date: str,
    ) -> list[LogEntry]:
        """Initial ddlog: optional DROP, then the current CREATE statement."""
        seed = []
        quoted = f"`{table}`"
        if is_view and self.config.add_drop_view:
            seed.append(LogEntry(date, username, f"DROP VIEW IF EXISTS {quoted};\n"))
        elif not is_view and self.config.add_drop_table:
            seed.append(LogEntry(date, username, f"DROP TABLE IF EXISTS {quoted};\n"))
        seed.append(LogEntry(date, username, self.catalog.create_statement(db, table)))
        return seed

    def create_version(
        self,
        db: str,
        table: str,
        version: int,
        tracking_set: str | Iterable[str],
        is_view: bool | None = None,
        username: str = "root",
        now: datetime | None = None,
    ) -> OperationResult:
        """Create a new active version of a table.

        Args:
            db: Database name
            table: Table or view name
            version: Version number
            tracking_set: Persisted set string or an iterable of labels
            is_view: Whether the table is a view (asked from the catalog if None)
            username: User stamped on the seed ddlog entries
            now: Creation time (defaults to now)

        Returns:
            OperationResult with "version_created" or a failure key
        """
        params = {"version": version, "target": _target(db, table)}
        if self.store is None:
            return OperationResult.fail("not_configured", **params)

        if not isinstance(tracking_set, str):
            tracking_set = tracking_set_from_labels(tracking_set)

        date = format_log_date(now or datetime.now())
        try:
            if is_view is None:
                is_view = self.catalog.is_view(db, table)
            snapshot = self.catalog.describe(db, table)
            ddlog = self._seed_ddlog(db, table, is_view, username, date)
        except CatalogError as e:
            logger.warning(
                "Cannot create tracking version",
                extra={"db": db, "table": table, "version": version, "error": e.message},
            )
            return OperationResult.fail("catalog_error", error=e.message, **params)

        created = self.store.create_version(
            TrackedVersion(
                database=db,
                table=table,
                version=version,
                tracking_set=tracking_set,
                is_view=is_view,
                active=True,
                ddlog=ddlog,
                dmlog=[],
                schema_snapshot=encode_snapshot(snapshot),
                date_created=date,
                date_updated=date,
            )
        )
        if not created:
            return OperationResult.fail("version_create_failed", **params)

        logger.info(
            "Tracking version created",
            extra={"db": db, "table": table, "version": version, "tracking": tracking_set},
        )
        return OperationResult.ok("version_created", **params)

    def create_versions_for_tables(
        self,
        db: str,
        tables: Sequence[str],
        version: int,
        tracking_set: str | Iterable[str],
        username: str = "root",
    ) -> list[TableResult]:
        """Create the same version, with the same tracking set, for many tables.

        There is no atomicity across tables; every table is attempted.

        Returns:
            One TableResult per table, in input order
        """
        if not isinstance(tracking_set, str):
            tracking_set = tracking_set_from_labels(tracking_set)

        results = [
            TableResult(table, self.create_version(db, table, version, tracking_set, username=username))
            for table in tables
        ]
        failed = [r.table for r in results if not r.result.success]
        if failed:
            logger.warning(
                "Some tracking versions were not created",
                extra={"db": db, "version": version, "failed_tables": failed},
            )
        return results

    def _change_tracking(self, db: str, table: str, version: int, active: bool) -> OperationResult:
        params = {"version": version, "target": _target(db, table)}
        if self.store is None:
            return OperationResult.fail("not_configured", **params)

        if not self.store.set_active(db, table, version, active):
            return OperationResult.fail("tracking_change_failed", **params)

        logger.info(
            "Tracking state changed",
            extra={"db": db, "table": table, "version": version, "active": active},
        )
        return OperationResult.ok(
            "tracking_activated" if active else "tracking_deactivated", **params
        )

    def activate(self, db: str, table: str, version: int) -> OperationResult:
        """Resume recording statements into a version."""
        return self._change_tracking(db, table, version, True)

    def deactivate(self, db: str, table: str, version: int) -> OperationResult:
        """Stop recording statements into a version."""
        return self._change_tracking(db, table, version, False)

    def delete_version(self, db: str, table: str, version: int) -> OperationResult:
        """Hard-delete a version with its logs and snapshot."""
        params = {"version": version, "target": _target(db, table)}
        if self.store is None:
            return OperationResult.fail("not_configured", **params)

        if not self.store.delete_version(db, table, version):
            return OperationResult.fail("version_delete_failed", **params)

        logger.info("Tracking version deleted", extra={"db": db, "table": table, "version": version})
        return OperationResult.ok("version_deleted", **params)

    # --- Reads ---

    def list_versions(self, db: str, table: str) -> list[TrackedVersion]:
        """Versions of a table, newest first."""
        if self.store is None:
            return []
        return self.store.read_versions(db, table)

    def get_version(self, db: str, table: str, version: int) -> TrackedVersion | None:
        if self.store is None:
            return None
        return self.store.read_version(db, table, version)

    def get_last_version_number(self, db: str, table: str) -> int:
        """HEAD version number of a table, or -1 when it is not tracked."""
        versions = self.list_versions(db, table)
        return versions[0].version if versions else -1

    def is_tracked(self, db: str, table: str) -> bool:
        """Whether the table's HEAD version is active."""
        versions = self.list_versions(db, table)
        return bool(versions) and versions[0].active

    def list_tracked_tables(self, db: str) -> list[TrackedTable]:
        """Tables with at least one version, with their HEAD activation state."""
        return [TrackedTable(head.table, head.active) for head in self.list_head_versions(db)]

    def list_head_versions(self, db: str) -> list[TrackedVersion]:
        """HEAD version of every tracked table, sorted by table name."""
        if self.store is None:
            return []
        return self.store.read_head_versions(db)

    def extract_table_names(self, table_list: Mapping[str, Any], db: str) -> list[str]:
        """Untracked table names from a (possibly grouped) table list.

        Groups are flattened recursively; names found inside a group come
        before those collected so far at the current level.
        """
        flag = group_flag(self.config.table_separator)
        untracked: list[str] = []
        for value in table_list.values():
            if not isinstance(value, Mapping):
                continue
            if value.get(flag):
                untracked = self.extract_table_names(value, db) + untracked
            elif "Name" in value and self.get_last_version_number(db, value["Name"]) == -1:
                untracked.append(value["Name"])
        return untracked

    def get_untracked_tables(self, db: str) -> list[str]:
        """Catalog tables that have no version at all."""
        return self.extract_table_names(self.catalog.table_list(db), db)

    def get_schema_snapshot(self, db: str, table: str, version: int) -> SnapshotView | None:
        """Structure captured by a version, or None if the version is unknown."""
        data = self.get_version(db, table, version)
        if data is None:
            return None

        sql = ""
        if data.ddlog:
            sql = data.ddlog[0].statement
            first = data.ddlog[0].statement
            if ("DROP TABLE" in first or "DROP VIEW" in first) and len(data.ddlog) > 1:
                sql += data.ddlog[1].statement

        snapshot: StructuralSnapshot = decode_snapshot(data.schema_snapshot)
        return SnapshotView(
            version=version,
            sql=sql,
            columns=snapshot.columns,
            indexes=snapshot.indexes,
        )
