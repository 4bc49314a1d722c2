"""
Core tracking engine: reports, lifecycle, mutations, exports, recording.
"""

from .export import (
    ContinuePage,
    ExecutionResult,
    ExportProjector,
    ScriptExport,
    TerminalResponse,
)
from .mutations import LogMutationManager, coerce_entry_id
from .recorder import StatementRecorder, classify_statement
from .report import (
    FilterResult,
    Report,
    ReportFilter,
    build_report,
    filter_log,
    parse_log_date,
)
from .snapshot import decode_snapshot, encode_snapshot
from .versions import SnapshotView, TrackedTable, VersionManager

__all__ = [
    "ContinuePage",
    "ExecutionResult",
    "ExportProjector",
    "FilterResult",
    "LogMutationManager",
    "Report",
    "ReportFilter",
    "ScriptExport",
    "SnapshotView",
    "StatementRecorder",
    "TerminalResponse",
    "TrackedTable",
    "VersionManager",
    "build_report",
    "classify_statement",
    "coerce_entry_id",
    "decode_snapshot",
    "encode_snapshot",
    "filter_log",
    "parse_log_date",
]
