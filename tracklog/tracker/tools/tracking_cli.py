# mypy: ignore-errors
"""
Tracking CLI tool for Tracklog.

This tool manages tracked versions and their logs:
- versions / create / activate / deactivate / delete: version lifecycle
- report: filtered, ordered view of a version's logs
- delete-entry: remove one entry by positional id
- export: script, direct execution or dump file
- snapshot / untracked: structure and coverage listings

Usage:
    tracklog-cli create --db shop --table orders --version 1
    tracklog-cli report --db shop --table orders --version 1 --users alice,bob
    tracklog-cli export --db shop --table orders --version 1 --type sqldumpfile -o log.sql

Invariants:
    - Exit code 0 on success, 1 on a failed operation or invalid input
    - JSON output is deterministic (sorted keys)
    - Positional ids printed by "report" are valid "delete-entry" targets
      until the log changes

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for scripts parsing it
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

import json_log_formatter

from ..categories import parse_tracking_set
from ..config import TrackerConfig
from ..core.export import ScriptExport, TerminalResponse
from ..errors import MalformedInputError, TrackingError
from ..service import TrackerService
from ..types import ExportType, LogKind, OperationResult

logger = logging.getLogger(__name__)


def setup_logging(config: TrackerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Tracker configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, sort_keys=True)


class TrackingCLI:
    """CLI commands over a TrackerService.

    Every command prints its output and returns an exit code.

    Example:
        >>> cli = TrackingCLI(TrackerService(TrackerConfig.from_env()))
        >>> cli.versions("shop", "orders")
        0
    """

    def __init__(self, service: TrackerService, as_json: bool = False) -> None:
        self.service = service
        self.as_json = as_json

    def _result(self, result: OperationResult) -> int:
        if self.as_json:
            print(_dump(result.to_dict()))
        else:
            print(result.message, file=sys.stdout if result.success else sys.stderr)
        return 0 if result.success else 1

    def _load_version(self, db: str, table: str, version: int):
        data = self.service.versions.get_version(db, table, version)
        if data is None:
            self._result(self.service.version_not_found(db, table, version))
        return data

    def versions(self, db: str, table: str) -> int:
        """List versions of a table, newest first."""
        versions = self.service.versions.list_versions(db, table)
        if self.as_json:
            print(_dump([v.to_dict() for v in versions]))
            return 0
        if not versions:
            print(f"{db}.{table} is not tracked")
            return 0
        for v in versions:
            state = "active" if v.active else "not active"
            print(f"{v.version:>5}  {v.date_created}  {v.date_updated}  {state:<10}  {v.tracking_set}")
        return 0

    def create(
        self,
        db: str,
        tables: list[str],
        version: int | None,
        statements: str | None,
        username: str,
    ) -> int:
        """Create a version for one or more tables."""
        labels = (
            parse_tracking_set(statements)
            if statements
            else self.service.config.tracking.default_statements
        )
        if version is None:
            # Next version after the table's HEAD (1 for untracked tables)
            version = self.service.versions.get_last_version_number(db, tables[0]) + 1
            version = max(version, 1)

        if len(tables) == 1:
            return self._result(
                self.service.versions.create_version(db, tables[0], version, labels, username=username)
            )

        results = self.service.versions.create_versions_for_tables(
            db, tables, version, labels, username=username
        )
        if self.as_json:
            print(_dump({r.table: r.result.to_dict() for r in results}))
        else:
            for r in results:
                print(f"{r.table}: {r.result.message}")
        return 0 if all(r.result.success for r in results) else 1

    def activate(self, db: str, table: str, version: int) -> int:
        return self._result(self.service.versions.activate(db, table, version))

    def deactivate(self, db: str, table: str, version: int) -> int:
        return self._result(self.service.versions.deactivate(db, table, version))

    def delete(self, db: str, table: str, version: int) -> int:
        return self._result(self.service.versions.delete_version(db, table, version))

    def report(self, db: str, table: str, version: int, **filters: Any) -> int:
        """Print the filtered report of a version."""
        data = self._load_version(db, table, version)
        if data is None:
            return 1

        report = self.service.report(data, **filters)
        if self.as_json:
            print(_dump(report.to_dict()))
            return 0
        if report.is_empty:
            print("No data")
            return 0
        for entry in report:
            print(
                f"#{entry.id:<4} {entry.kind.value}  {entry.to_dict()['date']}  "
                f"{entry.username:<12} {entry.statement.rstrip()}"
            )
        return 0

    def delete_entry(self, db: str, table: str, version: int, log: str, entry_id: str) -> int:
        """Delete one entry of a version's ddlog or dmlog."""
        data = self._load_version(db, table, version)
        if data is None:
            return 1
        kind = LogKind.DDL if log == "ddl" else LogKind.DML
        return self._result(
            self.service.mutations.delete_entry(db, table, version, kind, entry_id, data.log(kind))
        )

    def export(
        self,
        db: str,
        table: str,
        version: int,
        export_type: str,
        output: str | None,
        username: str,
        **filters: Any,
    ) -> int:
        """Export the filtered report as a script, execution or dump file."""
        data = self._load_version(db, table, version)
        if data is None:
            return 1

        outcome = self.service.export(data, ExportType(export_type), username=username, **filters)
        if isinstance(outcome, TerminalResponse):
            body = outcome.body
            if output:
                with open(output, "wb") as f:
                    f.write(body)
                print(f"Dump written to {output}", file=sys.stderr)
            else:
                sys.stdout.write(body.decode("utf-8"))
            return 0

        payload = outcome.payload
        if self.as_json:
            print(_dump(payload.to_dict()))
        elif isinstance(payload, ScriptExport):
            sys.stdout.write(payload.text)
        else:
            print(payload.result.message, file=sys.stdout if payload.success else sys.stderr)
        return 0 if outcome.result.success else 1

    def snapshot(self, db: str, table: str, version: int) -> int:
        """Print the structure captured by a version."""
        view = self.service.versions.get_schema_snapshot(db, table, version)
        if view is None:
            return self._result(self.service.version_not_found(db, table, version))
        if self.as_json:
            print(_dump(view.to_dict()))
            return 0
        sys.stdout.write(view.sql)
        for column in view.columns:
            print(f"  {column.get('Field')}  {column.get('Type')}  Null={column.get('Null')}")
        for index in view.indexes:
            print(f"  index {index.get('Key_name')} ({index.get('Column_name')})")
        return 0

    def untracked(self, db: str) -> int:
        """List catalog tables without any version."""
        tables = self.service.versions.get_untracked_tables(db)
        if self.as_json:
            print(_dump(tables))
        else:
            for name in tables:
                print(name)
        return 0


def _add_target(parser: argparse.ArgumentParser, version: bool = True) -> None:
    parser.add_argument("--db", required=True, help="Database name")
    parser.add_argument("--table", required=True, help="Table name")
    if version:
        parser.add_argument("--version", "-v", type=int, required=True, help="Version number")


def _add_filters(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--logtype",
        choices=["schema", "data", "schema_and_data"],
        default="schema_and_data",
        help="Logs to include",
    )
    parser.add_argument("--from", dest="date_from", help="Start date (default: version creation)")
    parser.add_argument("--to", dest="date_to", help="End date (default: now)")
    parser.add_argument("--users", default="*", help="Comma separated usernames ('*' for all)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tracklog change-tracking tool")
    parser.add_argument("--json", action="store_true", help="Print JSON output")
    parser.add_argument("--username", default="root", help="Acting username")
    subparsers = parser.add_subparsers(dest="command", required=True)

    versions_parser = subparsers.add_parser("versions", help="List versions of a table")
    _add_target(versions_parser, version=False)

    create_parser = subparsers.add_parser("create", help="Create a tracking version")
    create_parser.add_argument("--db", required=True, help="Database name")
    create_parser.add_argument(
        "--table", required=True, action="append", dest="tables", help="Table name (repeatable)"
    )
    create_parser.add_argument("--version", "-v", type=int, help="Version number (default: next)")
    create_parser.add_argument(
        "--statements", help="Comma separated categories, e.g. 'ALTER TABLE,INSERT'"
    )

    for name, help_text in (
        ("activate", "Resume tracking at a version"),
        ("deactivate", "Stop tracking at a version"),
        ("delete", "Delete a version"),
        ("snapshot", "Show the structure captured by a version"),
    ):
        _add_target(subparsers.add_parser(name, help=help_text))

    report_parser = subparsers.add_parser("report", help="Show a tracking report")
    _add_target(report_parser)
    _add_filters(report_parser)

    delete_entry_parser = subparsers.add_parser("delete-entry", help="Delete one log entry")
    _add_target(delete_entry_parser)
    delete_entry_parser.add_argument("--log", choices=["ddl", "dml"], required=True)
    delete_entry_parser.add_argument("--id", dest="entry_id", required=True, help="Positional id")

    export_parser = subparsers.add_parser("export", help="Export a tracking report")
    _add_target(export_parser)
    _add_filters(export_parser)
    export_parser.add_argument(
        "--type",
        dest="export_type",
        choices=[t.value for t in ExportType],
        default=ExportType.SQLDUMP.value,
        help="Export projection",
    )
    export_parser.add_argument("--output", "-o", help="Dump file (sqldumpfile only)")

    untracked_parser = subparsers.add_parser("untracked", help="List untracked tables")
    untracked_parser.add_argument("--db", required=True, help="Database name")

    return parser


def main(argv: list[str] | None = None, service: TrackerService | None = None) -> int:
    """CLI entry point for the tracking tool."""
    args = build_parser().parse_args(argv)

    if service is None:
        config = TrackerConfig.from_env()
        setup_logging(config)
        service = TrackerService(config)
        service.initialize()
    cli = TrackingCLI(service, as_json=args.json)

    try:
        if args.command == "versions":
            return cli.versions(args.db, args.table)
        elif args.command == "create":
            return cli.create(args.db, args.tables, args.version, args.statements, args.username)
        elif args.command == "activate":
            return cli.activate(args.db, args.table, args.version)
        elif args.command == "deactivate":
            return cli.deactivate(args.db, args.table, args.version)
        elif args.command == "delete":
            return cli.delete(args.db, args.table, args.version)
        elif args.command == "snapshot":
            return cli.snapshot(args.db, args.table, args.version)
        elif args.command == "untracked":
            return cli.untracked(args.db)
        elif args.command == "delete-entry":
            return cli.delete_entry(args.db, args.table, args.version, args.log, args.entry_id)

        filters = {
            "log_type": args.logtype,
            "date_from": args.date_from,
            "date_to": args.date_to,
            "users": args.users,
        }
        if args.command == "report":
            return cli.report(args.db, args.table, args.version, **filters)
        return cli.export(
            args.db,
            args.table,
            args.version,
            args.export_type,
            args.output,
            args.username,
            **filters,
        )
    except MalformedInputError as e:
        print(f"Invalid input: {e.message}", file=sys.stderr)
        return 1
    except TrackingError as e:
        logger.error(f"Command failed: {e.message}", extra={"code": e.code})
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
