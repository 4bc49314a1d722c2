"""
End-to-end tracking flow against SQLite storage.

Tests cover:
- Version creation from the live catalog
- Statements executed through tracked connections landing in the HEAD logs
- Reports, entry deletion and replaying an export into another database
"""

import os
from datetime import datetime, timedelta

import pytest

from tracklog.tracker.config import StorageConfig, StoreBackend, TrackerConfig
from tracklog.tracker.core.export import ScriptExport
from tracklog.tracker.service import TrackerService
from tracklog.tracker.types import ExportType, LogKind


@pytest.fixture
def service(tmp_path):
    config = TrackerConfig(
        storage=StorageConfig(
            backend=StoreBackend.SQLITE,
            control_db=os.path.join(str(tmp_path), "tracking.db"),
            data_dir=os.path.join(str(tmp_path), "data"),
        )
    )
    service = TrackerService(config)
    service.initialize()
    service.catalog.create_database("shop")
    service.catalog.connect("shop").execute(
        "CREATE TABLE orders (id INTEGER PRIMARY KEY, total REAL)"
    )
    return service


class TestTrackingFlow:
    """Tests for the full create, record, report, export cycle."""

    def test_statements_are_recorded(self, service):
        """Tracked categories are recorded, others are not."""
        service.versions.create_version("shop", "orders", 1, ["INSERT", "UPDATE", "ALTER TABLE"])
        connection = service.connect("shop", username="alice")

        connection.execute("INSERT INTO orders VALUES (1, 5.0)")
        connection.execute("UPDATE orders SET total = 6.0 WHERE id = 1")
        connection.execute("DELETE FROM orders WHERE id = 1")
        connection.execute("ALTER TABLE orders ADD COLUMN note TEXT")

        data = service.versions.get_version("shop", "orders", 1)
        assert [e.statement for e in data.dmlog] == [
            "INSERT INTO orders VALUES (1, 5.0);\n",
            "UPDATE orders SET total = 6.0 WHERE id = 1;\n",
        ]
        assert data.ddlog[-1].statement == "ALTER TABLE orders ADD COLUMN note TEXT;\n"
        assert {e.username for e in data.dmlog} == {"alice"}

    def test_only_head_version_records(self, service):
        """Only the HEAD version records."""
        service.versions.create_version("shop", "orders", 1, ["INSERT"])
        service.versions.create_version("shop", "orders", 2, ["INSERT"])

        service.connect("shop").execute("INSERT INTO orders VALUES (1, 1.0)")

        assert service.versions.get_version("shop", "orders", 1).dmlog == []
        assert len(service.versions.get_version("shop", "orders", 2).dmlog) == 1

    def test_deactivated_version_stops_recording(self, service):
        """Deactivated versions record nothing."""
        service.versions.create_version("shop", "orders", 1, ["INSERT"])
        service.versions.deactivate("shop", "orders", 1)

        service.connect("shop").execute("INSERT INTO orders VALUES (1, 1.0)")

        assert service.versions.get_version("shop", "orders", 1).dmlog == []
        assert service.versions.get_untracked_tables("shop") == []

    def test_report_then_delete_entry(self, service):
        """Test report ids as delete targets."""
        service.versions.create_version("shop", "orders", 1, ["INSERT"])
        connection = service.connect("shop", username="bob")
        connection.execute("INSERT INTO orders VALUES (1, 1.0)")
        connection.execute("INSERT INTO orders VALUES (2, 2.0)")
        data = service.versions.get_version("shop", "orders", 1)

        report = service.report(data, log_type="data", now=datetime.now() + timedelta(seconds=1))
        assert [(e.id, e.kind) for e in report] == [(0, LogKind.DML), (1, LogKind.DML)]

        result = service.mutations.delete_entry("shop", "orders", 1, LogKind.DML, "0", data.dmlog)

        assert result.success
        data = service.versions.get_version("shop", "orders", 1)
        assert [e.statement for e in data.dmlog] == ["INSERT INTO orders VALUES (2, 2.0);\n"]

    def test_script_export_replays_into_another_database(self, service):
        """Exported schema statements rebuild the table elsewhere."""
        service.versions.create_version("shop", "orders", 1, ["INSERT"])
        service.connect("shop").execute("INSERT INTO orders VALUES (1, 1.0)")
        data = service.versions.get_version("shop", "orders", 1)

        outcome = service.export(data, ExportType.SQLDUMP, log_type="schema_and_data")
        assert isinstance(outcome.payload, ScriptExport)
        assert "INSERT INTO orders VALUES (1, 1.0);\n" in outcome.payload.text

        statements = "".join(e.statement for e in service.report(data, log_type="schema"))
        service.catalog.create_database("replica")
        service.catalog.connect("replica").execute(statements)

        snapshot = service.catalog.describe("replica", "orders")
        assert [c["Field"] for c in snapshot.columns] == ["id", "total"]

    def test_version_survives_service_restart(self, service):
        """Versions persist across service instances."""
        service.versions.create_version("shop", "orders", 1, ["INSERT"])
        service.connect("shop").execute("INSERT INTO orders VALUES (1, 1.0)")

        restarted = TrackerService(service.config)
        restarted.initialize()

        data = restarted.versions.get_version("shop", "orders", 1)
        assert data.tracking_set == "INSERT"
        assert len(data.dmlog) == 1
        assert restarted.versions.get_schema_snapshot("shop", "orders", 1).columns
