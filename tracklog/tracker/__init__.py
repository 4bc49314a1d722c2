"""
Tracklog Tracker - versioned change-tracking log for database tables.

This package records the structural (DDL) and data manipulation (DML)
statements executed against a table under user-assigned version numbers,
and turns those logs back into reports, replay scripts and dump files.

Architecture:
    ┌─────────────┐     ┌──────────────────┐     ┌──────────────────┐
    │ CLI/Console │────▶│ VersionManager   │────▶│  TrackingStore   │
    │             │     │ LogMutation      │     │ (SQLite/memory)  │
    └──────┬──────┘     └──────────────────┘     └────────▲─────────┘
           │                                              │
           │            ┌──────────────────┐              │
           ├───────────▶│ build_report     │──────────────┤
           │            │ (filter + sort)  │              │
           │            └────────┬─────────┘              │
           │                     ▼                        │
           │            ┌──────────────────┐     ┌────────┴─────────┐
           └───────────▶│ ExportProjector  │────▶│ SqlConnection    │
                        └──────────────────┘     │ + Recorder hook  │
                                                 └──────────────────┘

Invariants:
    - ddlog and dmlog entries are stored in append order
    - Positional entry ids are computed at read time, never persisted
    - Store writes report failure as False, never by raising
    - Replayed statements are executed with tracking suppressed

How to change safely:
    - Keep the statement category order stable; tracking sets are persisted
      as comma-joined strings in that order
    - New storage backends must implement the TrackingStore protocol
    - Keep the whole-log overwrite semantics of write_log unless the
      positional id scheme changes with it

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
