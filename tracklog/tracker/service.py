"""
Tracker service: wires store, catalog and core managers together.

The CLI and the console both build one TrackerService from a
TrackerConfig and call its methods; nothing here keeps request state.

Invariants:
    - Without a store (tracking disabled) reads return empty results and
      writes fail with "not_configured"
    - Connections handed out by connect() carry the statement recorder,
      so statements executed through them are tracked
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from .catalog.sqlite import SqliteCatalog, SqliteConnection
from .config import TrackerConfig
from .core.export import ExportOutcome, ExportProjector
from .core.mutations import LogMutationManager
from .core.recorder import StatementRecorder
from .core.report import Report, ReportFilter
from .core.versions import VersionManager
from .errors import NotConfiguredError
from .store.base import TrackingStore, create_tracking_store
from .types import ExportType, OperationResult, TrackedVersion

logger = logging.getLogger(__name__)


class TrackerService:
    """Facade over the tracking components.

    Attributes:
        config: Tracker configuration
        store: Tracking store, or None when tracking is disabled
        catalog: Catalog of tracked databases
        versions: Version lifecycle manager
        mutations: Log mutation manager
        recorder: Statement recorder used by connections
        projector: Export projector
    """

    def __init__(
        self,
        config: TrackerConfig,
        store: TrackingStore | None = None,
        catalog: SqliteCatalog | None = None,
    ) -> None:
        self.config = config
        self.store = store if store is not None else create_tracking_store(config)
        self.catalog = catalog or SqliteCatalog(
            config.storage.data_dir,
            table_separator=config.tracking.table_separator,
            busy_timeout_ms=config.storage.busy_timeout_ms,
        )
        self.versions = VersionManager(self.store, self.catalog, config.tracking)
        self.mutations = LogMutationManager(self.store)
        self.recorder = StatementRecorder(self.store)
        self.projector = ExportProjector(config.export)

    @property
    def is_configured(self) -> bool:
        return self.store is not None

    def initialize(self) -> None:
        """Prepare the tracking store.

        Raises:
            PersistenceError: If the store cannot be prepared
        """
        if self.store is not None:
            self.store.initialize()

    def require_configured(self) -> None:
        """Raises NotConfiguredError when tracking is disabled."""
        if self.store is None:
            raise NotConfiguredError()

    def connect(self, db: str, username: str = "root") -> SqliteConnection:
        """Tracked connection to a database."""
        return self.catalog.connect(db, username=username, recorder=self.recorder)

    def report(
        self,
        data: TrackedVersion,
        log_type: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        users: str | None = None,
        now: datetime | None = None,
    ) -> Report:
        """Report over a version from raw filter values.

        Raises:
            MalformedInputError: On an unknown log type or unparsable date
        """
        report_filter = ReportFilter.from_form(
            log_type=log_type,
            date_from=date_from,
            date_to=date_to,
            users=users,
            default_from=data.date_created,
            now=now,
        )
        report = report_filter.apply(data)
        if report.unparsable:
            logger.warning(
                "Report skipped entries with unparsable dates",
                extra={
                    "db": data.database,
                    "table": data.table,
                    "version": data.version,
                    "unparsable": report.unparsable,
                },
            )
        return report

    def export(
        self,
        data: TrackedVersion,
        export_type: ExportType,
        username: str = "root",
        **filters: Any,
    ) -> ExportOutcome:
        """Export the filtered report of a version.

        Execution runs against the version's own database, with tracking
        suppressed for every replayed statement.
        """
        report = self.report(data, **filters)
        connection = None
        if export_type is ExportType.EXECUTION:
            connection = self.connect(data.database, username=username)
        return self.projector.export(export_type, data.table, report.entries, connection)

    def version_not_found(self, db: str, table: str, version: int) -> OperationResult:
        return OperationResult.fail("version_not_found", version=version, target=f"{db}.{table}")
