"""
Tracking store backends.

This module provides a pluggable store interface supporting:
- SQLite control database (production)
- In-memory (for testing)

Invariants:
    - Versions are keyed by (database, table, version)
    - Writes return booleans; a False write leaves the stored row unchanged
    - Logs are persisted as whole JSON arrays

How to change safely:
    - New backends must implement the TrackingStore protocol
    - Run the store unit tests against every backend
"""

from .base import TrackingStore, create_tracking_store, decode_log, encode_log
from .memory import InMemoryTrackingStore
from .sqlite_store import SqliteTrackingStore

__all__ = [
    # Protocol
    "TrackingStore",
    # Factory
    "create_tracking_store",
    # Serialization
    "encode_log",
    "decode_log",
    # Implementations
    "InMemoryTrackingStore",
    "SqliteTrackingStore",
]
