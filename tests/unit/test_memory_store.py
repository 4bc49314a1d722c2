"""
Unit tests for the in-memory tracking store.

Tests cover:
- Version creation and ordering
- Log writes and appends
- Copy-on-read isolation
- Failure injection
"""

import pytest

from tracklog.tracker.store.memory import InMemoryTrackingStore
from tracklog.tracker.types import LogEntry, LogKind, TrackedVersion


class TestInMemoryTrackingStore:
    """Tests for InMemoryTrackingStore."""

    @pytest.fixture
    def store(self):
        """Create a fresh store."""
        store = InMemoryTrackingStore()
        store.initialize()
        return store

    def test_versions_newest_first(self, store):
        """Versions are returned newest first."""
        for number in (1, 3, 2):
            assert store.create_version(TrackedVersion("shop", "orders", number))

        assert [v.version for v in store.read_versions("shop", "orders")] == [3, 2, 1]

    def test_duplicate_version_rejected(self, store):
        """Creating an existing version fails."""
        assert store.create_version(TrackedVersion("shop", "orders", 1))
        assert not store.create_version(TrackedVersion("shop", "orders", 1))
        assert store.get_version_count() == 1

    def test_read_missing_version(self, store):
        """Reading a missing version returns None."""
        assert store.read_version("shop", "orders", 9) is None
        assert store.read_versions("shop", "orders") == []

    def test_head_versions_sorted_by_table(self, store):
        """HEAD versions are sorted by table name."""
        store.create_version(TrackedVersion("shop", "users", 1))
        store.create_version(TrackedVersion("shop", "orders", 1))
        store.create_version(TrackedVersion("shop", "orders", 4, active=False))
        store.create_version(TrackedVersion("other", "audit", 1))

        heads = store.read_head_versions("shop")

        assert [(v.table, v.version) for v in heads] == [("orders", 4), ("users", 1)]
        assert heads[0].active is False
        assert store.list_tracked_tables("shop") == ["orders", "users"]

    def test_write_log_replaces_whole_log(self, store):
        """write_log replaces the whole log."""
        store.create_version(
            TrackedVersion("shop", "orders", 1, dmlog=[LogEntry("2024-01-01 00:00:00", "a", "X;\n")])
        )
        replacement = [LogEntry("2024-01-02 00:00:00", "b", "Y;\n")]

        assert store.write_log("shop", "orders", 1, LogKind.DML, replacement)

        assert store.read_version("shop", "orders", 1).dmlog == replacement

    def test_append_entry(self, store):
        """Test appending one entry."""
        store.create_version(TrackedVersion("shop", "orders", 1))
        entry = LogEntry("2024-01-01 00:00:00", "alice", "ALTER TABLE orders ADD x INT;\n")

        assert store.append_entry("shop", "orders", 1, LogKind.DDL, entry)

        data = store.read_version("shop", "orders", 1)
        assert data.ddlog == [entry]
        assert data.date_updated == entry.date

    def test_writes_to_missing_version_fail(self, store):
        """Writes to a missing version return False."""
        entry = LogEntry("2024-01-01 00:00:00", "a", "X;\n")

        assert not store.append_entry("shop", "orders", 1, LogKind.DDL, entry)
        assert not store.write_log("shop", "orders", 1, LogKind.DDL, [])
        assert not store.set_active("shop", "orders", 1, True)
        assert not store.delete_version("shop", "orders", 1)

    def test_reads_are_copies(self, store):
        """Mutating a read result does not touch the store."""
        store.create_version(TrackedVersion("shop", "orders", 1))

        data = store.read_version("shop", "orders", 1)
        data.ddlog.append(LogEntry("2024-01-01 00:00:00", "a", "X;\n"))

        assert store.read_version("shop", "orders", 1).ddlog == []

    def test_set_active_and_delete(self, store):
        """Test activation flag and deletion."""
        store.create_version(TrackedVersion("shop", "orders", 1))

        assert store.set_active("shop", "orders", 1, False)
        assert store.read_version("shop", "orders", 1).active is False

        assert store.delete_version("shop", "orders", 1)
        assert store.read_versions("shop", "orders") == []

    def test_fail_writes(self, store):
        """Simulated write failures return False."""
        store.create_version(TrackedVersion("shop", "orders", 1))
        store.fail_writes = True

        assert not store.set_active("shop", "orders", 1, False)
        assert not store.write_log("shop", "orders", 1, LogKind.DDL, [])
        assert store.read_version("shop", "orders", 1).active is True

    def test_clear(self, store):
        """Clear removes every version."""
        store.create_version(TrackedVersion("shop", "orders", 1))
        store.clear()

        assert store.get_version_count() == 0
