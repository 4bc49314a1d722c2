"""
Integration tests for the Tracklog Console API.

Tests cover:
- Version lifecycle endpoints
- Tracked statement execution and reports
- Entry deletion by positional id
- Exports (script JSON and dump download)
- Error mapping to HTTP status codes
"""

import os

import pytest
from fastapi.testclient import TestClient

from console.gateway.app import create_app
from console.gateway.config import Settings
from tracklog.tracker.config import StorageConfig, StoreBackend, TrackerConfig, TrackingConfig
from tracklog.tracker.service import TrackerService

BASE = "/api/v1/databases/shop"


class TestConsoleApi:
    """Tests for the console routes."""

    @pytest.fixture
    def service(self, tmp_path):
        config = TrackerConfig(
            storage=StorageConfig(
                backend=StoreBackend.SQLITE,
                control_db=os.path.join(str(tmp_path), "tracking.db"),
                data_dir=os.path.join(str(tmp_path), "data"),
                wal_mode=False,
            )
        )
        service = TrackerService(config)
        service.initialize()
        service.catalog.create_database("shop")
        conn = service.catalog.connect("shop")
        conn.execute("CREATE TABLE orders (id INTEGER PRIMARY KEY, total REAL)")
        conn.execute("CREATE TABLE customers (id INTEGER PRIMARY KEY)")
        return service

    @pytest.fixture
    def client(self, service):
        app = create_app(service=service, settings=Settings(default_username="console"))
        with TestClient(app) as client:
            yield client

    def create_version(self, client, table="orders", **body):
        return client.post(f"{BASE}/tables/{table}/versions", json=body)

    def test_health(self, client):
        """Test health endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["tracking"] == "enabled"

    def test_create_and_list_versions(self, client):
        """Test creating and listing versions."""
        response = self.create_version(client, statements=["INSERT", "ALTER TABLE"])

        assert response.status_code == 201
        assert response.json()["message_key"] == "version_created"

        versions = client.get(f"{BASE}/tables/orders/versions").json()
        assert len(versions) == 1
        assert versions[0]["version"] == 1
        assert versions[0]["tracking_set"] == "ALTER TABLE,INSERT"
        assert versions[0]["ddlog_entries"] == 2

    def test_create_unknown_table(self, client):
        """Unknown tables return 404."""
        response = self.create_version(client, table="missing")

        assert response.status_code == 404
        assert response.json()["message_key"] == "catalog_error"

    def test_bulk_create(self, client):
        """Test bulk creation."""
        response = client.post(
            f"{BASE}/versions", json={"tables": ["orders", "customers"], "version": 3}
        )

        body = response.json()
        assert body["success"] is True
        assert set(body["results"]) == {"orders", "customers"}

        tracked = client.get(f"{BASE}/tracked").json()
        assert [(t["table"], t["version"]) for t in tracked] == [("customers", 3), ("orders", 3)]

    def test_deactivate_activate_delete(self, client):
        """Test the version lifecycle routes."""
        self.create_version(client, version=1)

        response = client.post(f"{BASE}/tables/orders/versions/1/deactivate")
        assert response.json()["message_key"] == "tracking_deactivated"

        response = client.post(f"{BASE}/tables/orders/versions/1/activate")
        assert response.json()["message_key"] == "tracking_activated"

        response = client.delete(f"{BASE}/tables/orders/versions/1")
        assert response.json()["message_key"] == "version_deleted"
        assert "orders" in client.get(f"{BASE}/untracked").json()["tables"]

    def test_activate_missing_version(self, client):
        """Activating a missing version returns 409."""
        response = client.post(f"{BASE}/tables/orders/versions/9/activate")

        assert response.status_code == 409
        assert response.json()["success"] is False

    def test_executed_statements_appear_in_report(self, client):
        """Executed statements show up in reports."""
        self.create_version(client, version=1, statements=["INSERT"])

        response = client.post(
            f"{BASE}/execute",
            json={"statement": "INSERT INTO orders VALUES (1, 9.5)"},
            headers={"X-Username": "alice"},
        )
        assert response.json()["rowcount"] == 1
        client.post(f"{BASE}/execute", json={"statement": "INSERT INTO orders VALUES (2, 1.0)"})

        report = client.get(
            f"{BASE}/tables/orders/versions/1/report", params={"logtype": "data"}
        ).json()
        assert [(e["username"], e["id"]) for e in report["entries"]] == [("alice", 0), ("console", 1)]

        report = client.get(
            f"{BASE}/tables/orders/versions/1/report", params={"logtype": "data", "users": "alice"}
        ).json()
        assert [e["statement"] for e in report["entries"]] == ["INSERT INTO orders VALUES (1, 9.5);\n"]

    def test_report_invalid_date(self, client):
        """Bad dates return 400."""
        self.create_version(client, version=1)

        response = client.get(
            f"{BASE}/tables/orders/versions/1/report", params={"date_from": "soon"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "MALFORMED_INPUT"

    def test_report_missing_version(self, client):
        """Missing versions return 404."""
        response = client.get(f"{BASE}/tables/orders/versions/4/report")

        assert response.status_code == 404
        assert response.json()["message_key"] == "version_not_found"

    def test_delete_entry(self, client):
        """Test deleting entries by id."""
        self.create_version(client, version=1)

        response = client.delete(f"{BASE}/tables/orders/versions/1/entries/ddl/0")
        assert response.status_code == 200
        assert response.json()["message_key"] == "ddl_entry_deleted"

        response = client.delete(f"{BASE}/tables/orders/versions/1/entries/ddl/5")
        assert response.status_code == 400
        assert response.json()["message_key"] == "invalid_entry_id"

        versions = client.get(f"{BASE}/tables/orders/versions").json()
        assert versions[0]["ddlog_entries"] == 1

    def test_delete_report_rows(self, client):
        """Test report row deletion."""
        self.create_version(client, version=1)

        response = client.post(
            f"{BASE}/tables/orders/versions/1/report/delete", json={"delete_ddlog": "1"}
        )

        assert response.json()["success"] is True
        snapshot = client.get(f"{BASE}/tables/orders/versions/1/snapshot").json()
        assert snapshot["sql"] == "DROP TABLE IF EXISTS `orders`;\n"

    def test_export_script(self, client):
        """Test script export."""
        self.create_version(client, version=1)

        response = client.get(f"{BASE}/tables/orders/versions/1/export", params={"type": "sqldump"})

        body = response.json()
        assert response.status_code == 200
        assert body["message_key"] == "statements_exported"
        assert body["text"].startswith("# You can execute the dump")
        assert body["text"].endswith("CREATE TABLE orders (id INTEGER PRIMARY KEY, total REAL);\n")

    def test_export_download(self, client):
        """Test dump download headers."""
        self.create_version(client, version=1)

        response = client.get(
            f"{BASE}/tables/orders/versions/1/export", params={"type": "sqldumpfile"}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/x-sql")
        assert response.headers["content-disposition"] == 'attachment; filename="log_orders.sql"'
        assert response.text.startswith("# Tracking report for table `orders`\n")

    def test_export_execution_is_not_tracked(self, client, service):
        """Replayed statements run untracked."""
        self.create_version(client, version=1)

        response = client.post(
            f"{BASE}/tables/orders/versions/1/export/execute", json={"logtype": "schema"}
        )

        assert response.status_code == 200
        assert response.json()["executed"] == 2
        data = service.versions.get_version("shop", "orders", 1)
        assert len(data.ddlog) == 2
        assert data.dmlog == []

    def test_export_execution_rejected_on_get(self, client, service):
        """GET never replays statements."""
        self.create_version(client, version=1)

        response = client.get(
            f"{BASE}/tables/orders/versions/1/export", params={"type": "execution"}
        )

        assert response.status_code == 405
        assert response.headers["allow"] == "POST"
        assert response.json()["error"] == "METHOD_NOT_ALLOWED"
        assert "orders" in service.catalog.table_names("shop")

    def test_failed_statement_is_unprocessable(self, client):
        """A statement the database rejects returns 422."""
        response = client.post(f"{BASE}/execute", json={"statement": "INSERT INTO nowhere VALUES (1)"})

        assert response.status_code == 422
        assert response.json()["error"] == "STATEMENT_FAILED"

    def test_script_recorded_per_table(self, client, service):
        """Each statement of a script lands in its own table's log."""
        self.create_version(client, version=1, statements=["INSERT"])
        self.create_version(client, table="customers", version=1, statements=["INSERT"])

        response = client.post(
            f"{BASE}/execute",
            json={"statement": "INSERT INTO orders VALUES (1, 1.0); INSERT INTO customers VALUES (2);"},
        )

        assert response.status_code == 200
        orders = service.versions.get_version("shop", "orders", 1)
        customers = service.versions.get_version("shop", "customers", 1)
        assert [e.statement for e in orders.dmlog] == ["INSERT INTO orders VALUES (1, 1.0);\n"]
        assert [e.statement for e in customers.dmlog] == ["INSERT INTO customers VALUES (2);\n"]

    def test_unknown_database(self, client):
        """Unknown databases return 500."""
        response = client.post("/api/v1/databases/nowhere/execute", json={"statement": "SELECT 1"})

        assert response.status_code == 500
        assert response.json()["error"] == "CONNECTION_ERROR"


class TestConsoleNotConfigured:
    """Tests for the console with tracking disabled."""

    @pytest.fixture
    def client(self, tmp_path):
        config = TrackerConfig(
            storage=StorageConfig(data_dir=str(tmp_path)),
            tracking=TrackingConfig(enabled=False),
        )
        app = create_app(service=TrackerService(config))
        with TestClient(app) as client:
            yield client

    def test_reads_are_empty(self, client):
        """Without tracking reads are empty."""
        assert client.get(f"{BASE}/tables/orders/versions").json() == []

    def test_writes_unavailable(self, client):
        """Without tracking writes return 503."""
        response = client.post(f"{BASE}/tables/orders/versions", json={"version": 1})

        assert response.status_code == 503
        assert response.json()["message_key"] == "not_configured"

    def test_report_unavailable(self, client):
        """Without tracking reports return 503."""
        response = client.get(f"{BASE}/tables/orders/versions/1/report")

        assert response.status_code == 503
        assert response.json()["error"] == "NOT_CONFIGURED"
