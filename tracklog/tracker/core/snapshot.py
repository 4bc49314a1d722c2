"""
Structural snapshot codec.

Snapshots are stored as JSON documents with at least the members
COLUMNS and INDEXES. Readers never fail a report because of a bad
snapshot: decode_snapshot falls back to an empty structure.
"""

from __future__ import annotations

import json
import logging

from ..errors import SnapshotDecodeError
from ..types import StructuralSnapshot

logger = logging.getLogger(__name__)


def encode_snapshot(snapshot: StructuralSnapshot) -> str:
    """Serialize a snapshot for storage."""
    return json.dumps(snapshot.to_dict(), sort_keys=True)


def decode_snapshot_strict(blob: str | bytes | None) -> StructuralSnapshot:
    """Deserialize a stored snapshot.

    Raises:
        SnapshotDecodeError: If the blob is empty, not JSON, or lacks
            list-valued COLUMNS/INDEXES members
    """
    if not blob:
        raise SnapshotDecodeError("Snapshot is empty")
    try:
        data = json.loads(blob)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SnapshotDecodeError(f"Failed to parse snapshot as JSON: {e}")

    if not isinstance(data, dict):
        raise SnapshotDecodeError("Snapshot is not a JSON object")

    columns = data.get("COLUMNS")
    indexes = data.get("INDEXES")
    if not isinstance(columns, list) or not isinstance(indexes, list):
        raise SnapshotDecodeError("Snapshot lacks COLUMNS/INDEXES lists")

    return StructuralSnapshot(columns=columns, indexes=indexes)


def decode_snapshot(blob: str | bytes | None) -> StructuralSnapshot:
    """Deserialize a stored snapshot, substituting an empty one on failure."""
    try:
        return decode_snapshot_strict(blob)
    except SnapshotDecodeError as e:
        logger.warning(f"Using empty structure snapshot: {e.message}")
        return StructuralSnapshot.empty()
