"""
Unit tests for the structural snapshot codec.
"""

import pytest

from tracklog.tracker.core.snapshot import decode_snapshot, decode_snapshot_strict, encode_snapshot
from tracklog.tracker.errors import SnapshotDecodeError
from tracklog.tracker.types import StructuralSnapshot


class TestSnapshotCodec:
    """Tests for encode_snapshot / decode_snapshot."""

    def test_decode_encoded(self):
        """Test decoding an encoded snapshot."""
        snapshot = StructuralSnapshot(
            columns=[{"Field": "id", "Type": "INTEGER", "Null": "NO"}],
            indexes=[{"Key_name": "idx_id", "Column_name": "id"}],
        )

        decoded = decode_snapshot(encode_snapshot(snapshot))

        assert decoded == snapshot

    def test_extra_members_are_ignored(self):
        """Unknown members are ignored."""
        decoded = decode_snapshot('{"COLUMNS": [], "INDEXES": [], "ENGINE": "InnoDB"}')

        assert decoded == StructuralSnapshot.empty()

    @pytest.mark.parametrize(
        "blob",
        ["", None, "not json", "[1, 2]", '{"COLUMNS": []}', '{"COLUMNS": {}, "INDEXES": []}'],
    )
    def test_fallback_to_empty(self, blob):
        """Undecodable snapshots become an empty structure."""
        assert decode_snapshot(blob) == StructuralSnapshot.empty()

    def test_strict_raises(self):
        """Strict decoding raises on bad input."""
        with pytest.raises(SnapshotDecodeError) as exc_info:
            decode_snapshot_strict("{broken")

        assert exc_info.value.code == "SNAPSHOT_DECODE_FAILURE"
