"""
Export projections over an ordered report.

Three mutually exclusive projections:
- script: statements concatenated after a fixed preamble (pure text)
- execute: statements run in order against a live connection
- file_download: statements under a header comment, as a terminal response

Invariants:
    - Statements are concatenated verbatim; each carries its own ";\\n"
    - Execution always suppresses tracking, so replayed statements are
      never recorded again
    - Execution aborts at the first failing statement and reports it;
      connection failures propagate

How to change safely:
    - Keep the preamble text stable; users copy it into their own scripts
    - TerminalResponse is the end of a request; callers must not compose
      further output with it
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union

from ..catalog.base import SqlConnection
from ..config import ExportConfig
from ..errors import StatementExecutionError
from ..types import ExportType, OperationResult, ReportEntry, format_log_date

logger = logging.getLogger(__name__)

PREAMBLE_TEMPLATE = (
    "# You can execute the dump by creating and using a temporary database. "
    "Please ensure that you have the privileges to do so.\n"
    "# Comment out these two lines if you do not need them.\n"
    "\n"
    "CREATE database IF NOT EXISTS {temp_db}; \n"
    "USE {temp_db}; \n"
    "\n"
)

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ScriptExport:
    """Script projection result."""

    text: str
    result: OperationResult

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, **self.result.to_dict()}


@dataclass(frozen=True)
class ExecutionResult:
    """Direct execution outcome.

    Attributes:
        executed: Statements that ran successfully, in order
        failed_statement: Statement that stopped execution, if any
        error: Error message of the failed statement
        result: Status and message for the caller
    """

    executed: int
    failed_statement: str | None
    error: str | None
    result: OperationResult

    @property
    def success(self) -> bool:
        return self.result.success

    def to_dict(self) -> dict[str, Any]:
        return {
            "executed": self.executed,
            "failed_statement": self.failed_statement,
            "error": self.error,
            **self.result.to_dict(),
        }


@dataclass(frozen=True)
class TerminalResponse:
    """A downloadable dump that ends the request.

    Attributes:
        body: Encoded dump
        content_type: MIME type of the dump
        filename: Suggested download filename
    """

    body: bytes
    content_type: str
    filename: str

    @property
    def content_length(self) -> int:
        return len(self.body)

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Content-Disposition": f'attachment; filename="{self.filename}"',
            "Content-Length": str(self.content_length),
        }


@dataclass(frozen=True)
class ContinuePage:
    """A non-terminal export whose payload is shown with the report."""

    payload: Union[ScriptExport, ExecutionResult]

    @property
    def result(self) -> OperationResult:
        return self.payload.result


ExportOutcome = Union[ContinuePage, TerminalResponse]


def concatenate(entries: Iterable[ReportEntry]) -> str:
    """Statement texts joined with no separator of their own."""
    return "".join(entry.statement for entry in entries)


class ExportProjector:
    """Builds the export projections of a report.

    Example:
        >>> projector = ExportProjector(ExportConfig())
        >>> print(projector.script(report.entries).text)
        # You can execute the dump by creating and using a temporary database...
    """

    def __init__(self, config: ExportConfig | None = None) -> None:
        self.config = config or ExportConfig()

    def preamble(self) -> str:
        return PREAMBLE_TEMPLATE.format(temp_db=self.config.temp_database)

    def script(self, entries: Iterable[ReportEntry]) -> ScriptExport:
        """Statements as a replayable script."""
        return ScriptExport(
            text=self.preamble() + concatenate(entries),
            result=OperationResult.ok("statements_exported"),
        )

    def execute(self, entries: Iterable[ReportEntry], connection: SqlConnection) -> ExecutionResult:
        """Run the statements in order with tracking suppressed.

        Raises:
            SqlConnectionError: If the connection itself is unusable
        """
        executed = 0
        for entry in entries:
            try:
                connection.execute(entry.statement, suppress_tracking=True)
            except StatementExecutionError as e:
                logger.warning(
                    "Execution of exported statements aborted",
                    extra={"index": executed, "error": e.message},
                )
                return ExecutionResult(
                    executed=executed,
                    failed_statement=e.statement,
                    error=e.message,
                    result=OperationResult.fail("execution_aborted", index=executed, error=e.message),
                )
            executed += 1

        logger.info("Executed exported statements", extra={"executed": executed})
        return ExecutionResult(
            executed=executed,
            failed_statement=None,
            error=None,
            result=OperationResult.ok("statements_executed", executed=executed),
        )

    def file_download(
        self,
        table: str,
        entries: Iterable[ReportEntry],
        generated_at: datetime | None = None,
    ) -> TerminalResponse:
        """Statements as a downloadable dump with a header comment."""
        name = _WHITESPACE.sub(" ", table)
        header = (
            f"# Tracking report for table `{name}`\n"
            f"# {format_log_date(generated_at or datetime.now())}\n"
        )
        body = (header + concatenate(entries)).encode("utf-8")
        return TerminalResponse(
            body=body,
            content_type=self.config.content_type,
            filename=f"log_{name}.sql",
        )

    def export(
        self,
        export_type: ExportType,
        table: str,
        entries: Iterable[ReportEntry],
        connection: SqlConnection | None = None,
    ) -> ExportOutcome:
        """Dispatch to one projection.

        Raises:
            ValueError: If execution is requested without a connection
        """
        if export_type is ExportType.SQLDUMPFILE:
            return self.file_download(table, entries)
        if export_type is ExportType.SQLDUMP:
            return ContinuePage(self.script(entries))
        if connection is None:
            raise ValueError("Executing exported statements requires a connection")
        return ContinuePage(self.execute(entries, connection))
