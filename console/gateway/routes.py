"""
API routes for the Tracklog Console.

Provides JSON endpoints over the TrackerService. Operation outcomes are
returned as OperationResult dictionaries (success flag, message key and
rendered message); the HTTP status reflects the message key.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from tracklog.tracker.core.export import TerminalResponse
from tracklog.tracker.errors import MalformedInputError, NotConfiguredError
from tracklog.tracker.service import TrackerService
from tracklog.tracker.types import ExportType, LogKind, OperationResult, TrackedVersion

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tracklog"])

_FAILURE_STATUS = {
    "not_configured": 503,
    "version_not_found": 404,
    "catalog_error": 404,
    "invalid_entry_id": 400,
    "query_error": 500,
    "execution_aborted": 422,
}


# --- Request/Response Models ---


class VersionCreateRequest(BaseModel):
    """Request to create a version of one table."""

    version: int | None = Field(None, ge=0, description="Version number (default: next)")
    statements: list[str] | None = Field(None, description="Tracked statement categories")
    is_view: bool | None = Field(None, description="Whether the table is a view")


class BulkVersionCreateRequest(BaseModel):
    """Request to create the same version for several tables."""

    tables: list[str] = Field(..., min_length=1, description="Table names")
    version: int = Field(..., ge=0, description="Version number")
    statements: list[str] | None = Field(None, description="Tracked statement categories")


class DeleteRowsRequest(BaseModel):
    """Report row deletions (positional ids as shown in the report)."""

    delete_ddlog: str | int | None = Field(None, description="ddlog entry id")
    delete_dmlog: str | int | None = Field(None, description="dmlog entry id")


class ExecuteRequest(BaseModel):
    """Statement to execute through a tracked connection."""

    statement: str = Field(..., min_length=1, description="SQL statement")


class ExecuteExportRequest(BaseModel):
    """Report filter for replaying a version's statements."""

    logtype: str = Field("schema_and_data", description="schema, data or schema_and_data")
    date_from: str | None = Field(None, description="Start date (default: version creation)")
    date_to: str | None = Field(None, description="End date (default: now)")
    users: str = Field("*", description="Comma separated usernames")


class VersionResponse(BaseModel):
    """Tracked version summary."""

    database: str
    table: str
    version: int
    tracking_set: str
    is_view: bool
    active: bool
    date_created: str
    date_updated: str
    ddlog_entries: int
    dmlog_entries: int


# --- Dependencies ---


def get_tracker(request: Request) -> TrackerService:
    """Get tracker service from app state."""
    tracker = request.app.state.tracker
    if tracker is None:
        raise NotConfiguredError()
    return tracker


def get_username(request: Request, x_username: str | None = Query(None, alias="X-Username")) -> str:
    """Get acting username from header or query param."""
    username = request.headers.get("X-Username") or x_username
    return username or request.app.state.settings.default_username


def _result_response(result: OperationResult, success_status: int = 200) -> JSONResponse:
    status = success_status if result.success else _FAILURE_STATUS.get(result.message_key, 409)
    return JSONResponse(status_code=status, content=result.to_dict())


def _summary(data: TrackedVersion) -> VersionResponse:
    return VersionResponse(
        database=data.database,
        table=data.table,
        version=data.version,
        tracking_set=data.tracking_set,
        is_view=data.is_view,
        active=data.active,
        date_created=data.date_created,
        date_updated=data.date_updated,
        ddlog_entries=len(data.ddlog),
        dmlog_entries=len(data.dmlog),
    )


def _load_version(tracker: TrackerService, db: str, table: str, version: int) -> TrackedVersion | JSONResponse:
    tracker.require_configured()
    data = tracker.versions.get_version(db, table, version)
    if data is None:
        return _result_response(tracker.version_not_found(db, table, version))
    return data


# --- Database Routes ---


@router.get("/databases/{db}/tracked", response_model=list[VersionResponse])
def list_tracked(db: str, tracker: TrackerService = Depends(get_tracker)):
    """HEAD version of every tracked table in a database."""
    return [_summary(head) for head in tracker.versions.list_head_versions(db)]


@router.get("/databases/{db}/untracked")
def list_untracked(db: str, tracker: TrackerService = Depends(get_tracker)) -> dict[str, Any]:
    """Catalog tables without any version."""
    return {"tables": tracker.versions.get_untracked_tables(db)}


@router.post("/databases/{db}/versions")
def create_versions(
    db: str,
    body: BulkVersionCreateRequest,
    tracker: TrackerService = Depends(get_tracker),
    username: str = Depends(get_username),
):
    """Create the same version for several tables; one result per table."""
    statements = body.statements or tracker.config.tracking.default_statements
    results = tracker.versions.create_versions_for_tables(
        db, body.tables, body.version, statements, username=username
    )
    return {
        "success": all(r.result.success for r in results),
        "results": {r.table: r.result.to_dict() for r in results},
    }


@router.post("/databases/{db}/execute")
def execute_statement(
    db: str,
    body: ExecuteRequest,
    tracker: TrackerService = Depends(get_tracker),
    username: str = Depends(get_username),
) -> dict[str, Any]:
    """Execute a statement through a tracked connection."""
    result = tracker.connect(db, username=username).execute(body.statement)
    return {"statement": result.statement, "rowcount": result.rowcount}


# --- Version Routes ---


@router.get("/databases/{db}/tables/{table}/versions", response_model=list[VersionResponse])
def list_versions(db: str, table: str, tracker: TrackerService = Depends(get_tracker)):
    """Versions of a table, newest first."""
    return [_summary(v) for v in tracker.versions.list_versions(db, table)]


@router.post("/databases/{db}/tables/{table}/versions")
def create_version(
    db: str,
    table: str,
    body: VersionCreateRequest,
    tracker: TrackerService = Depends(get_tracker),
    username: str = Depends(get_username),
):
    """Create a version of a table."""
    version = body.version
    if version is None:
        version = max(tracker.versions.get_last_version_number(db, table) + 1, 1)
    statements = body.statements or tracker.config.tracking.default_statements
    result = tracker.versions.create_version(
        db, table, version, statements, is_view=body.is_view, username=username
    )
    return _result_response(result, success_status=201)


@router.post("/databases/{db}/tables/{table}/versions/{version}/activate")
def activate_version(db: str, table: str, version: int, tracker: TrackerService = Depends(get_tracker)):
    """Resume tracking at a version."""
    return _result_response(tracker.versions.activate(db, table, version))


@router.post("/databases/{db}/tables/{table}/versions/{version}/deactivate")
def deactivate_version(db: str, table: str, version: int, tracker: TrackerService = Depends(get_tracker)):
    """Stop tracking at a version."""
    return _result_response(tracker.versions.deactivate(db, table, version))


@router.delete("/databases/{db}/tables/{table}/versions/{version}")
def delete_version(db: str, table: str, version: int, tracker: TrackerService = Depends(get_tracker)):
    """Delete a version with its logs and snapshot."""
    return _result_response(tracker.versions.delete_version(db, table, version))


@router.get("/databases/{db}/tables/{table}/versions/{version}/snapshot")
def get_snapshot(db: str, table: str, version: int, tracker: TrackerService = Depends(get_tracker)):
    """Structure captured when the version was created."""
    view = tracker.versions.get_schema_snapshot(db, table, version)
    if view is None:
        return _result_response(tracker.version_not_found(db, table, version))
    return view.to_dict()


# --- Report Routes ---


@router.get("/databases/{db}/tables/{table}/versions/{version}/report")
def get_report(
    db: str,
    table: str,
    version: int,
    logtype: str = Query("schema_and_data", description="schema, data or schema_and_data"),
    date_from: str | None = Query(None, description="Start date (default: version creation)"),
    date_to: str | None = Query(None, description="End date (default: now)"),
    users: str = Query("*", description="Comma separated usernames"),
    tracker: TrackerService = Depends(get_tracker),
):
    """Filtered and ordered report over a version's logs."""
    data = _load_version(tracker, db, table, version)
    if isinstance(data, JSONResponse):
        return data
    report = tracker.report(data, log_type=logtype, date_from=date_from, date_to=date_to, users=users)
    return report.to_dict()


@router.delete("/databases/{db}/tables/{table}/versions/{version}/entries/{log}/{entry_id}")
def delete_entry(
    db: str,
    table: str,
    version: int,
    log: str,
    entry_id: str,
    tracker: TrackerService = Depends(get_tracker),
):
    """Delete one ddlog or dmlog entry by positional id."""
    if log not in ("ddl", "dml"):
        raise MalformedInputError(f"Unknown log '{log}'", "log", log)
    data = _load_version(tracker, db, table, version)
    if isinstance(data, JSONResponse):
        return data
    kind = LogKind.DDL if log == "ddl" else LogKind.DML
    return _result_response(
        tracker.mutations.delete_entry(db, table, version, kind, entry_id, data.log(kind))
    )


@router.post("/databases/{db}/tables/{table}/versions/{version}/report/delete")
def delete_report_rows(
    db: str,
    table: str,
    version: int,
    body: DeleteRowsRequest,
    tracker: TrackerService = Depends(get_tracker),
):
    """Apply the row deletions of a report submission, ddlog first."""
    tracker.require_configured()
    results = tracker.mutations.delete_report_rows(
        db, table, version, delete_ddlog=body.delete_ddlog, delete_dmlog=body.delete_dmlog
    )
    return {
        "success": all(r.success for r in results),
        "results": [r.to_dict() for r in results],
    }


@router.get("/databases/{db}/tables/{table}/versions/{version}/export")
def export_report(
    db: str,
    table: str,
    version: int,
    export_type: ExportType = Query(ExportType.SQLDUMP, alias="type", description="Export projection"),
    logtype: str = Query("schema_and_data", description="schema, data or schema_and_data"),
    date_from: str | None = Query(None, description="Start date (default: version creation)"),
    date_to: str | None = Query(None, description="End date (default: now)"),
    users: str = Query("*", description="Comma separated usernames"),
    tracker: TrackerService = Depends(get_tracker),
    username: str = Depends(get_username),
):
    """Export the filtered report.

    The sqldumpfile projection is a download and ends the response;
    the other projections return their payload as JSON. Execution
    replays statements and is only served by the POST route.
    """
    if export_type is ExportType.EXECUTION:
        return JSONResponse(
            status_code=405,
            content={
                "error": "METHOD_NOT_ALLOWED",
                "message": "Execution exports replay statements; use POST .../export/execute",
            },
            headers={"Allow": "POST"},
        )

    data = _load_version(tracker, db, table, version)
    if isinstance(data, JSONResponse):
        return data

    outcome = tracker.export(
        data,
        export_type,
        username=username,
        log_type=logtype,
        date_from=date_from,
        date_to=date_to,
        users=users,
    )
    if isinstance(outcome, TerminalResponse):
        return Response(
            content=outcome.body,
            media_type=outcome.content_type,
            headers=outcome.headers,
        )

    status = 200 if outcome.result.success else _FAILURE_STATUS.get(outcome.result.message_key, 409)
    return JSONResponse(status_code=status, content=outcome.payload.to_dict())


@router.post("/databases/{db}/tables/{table}/versions/{version}/export/execute")
def execute_export(
    db: str,
    table: str,
    version: int,
    body: ExecuteExportRequest,
    tracker: TrackerService = Depends(get_tracker),
    username: str = Depends(get_username),
):
    """Replay the filtered report against the database, untracked."""
    data = _load_version(tracker, db, table, version)
    if isinstance(data, JSONResponse):
        return data

    outcome = tracker.export(
        data,
        ExportType.EXECUTION,
        username=username,
        log_type=body.logtype,
        date_from=body.date_from,
        date_to=body.date_to,
        users=body.users,
    )
    status = 200 if outcome.result.success else _FAILURE_STATUS.get(outcome.result.message_key, 409)
    return JSONResponse(status_code=status, content=outcome.payload.to_dict())
