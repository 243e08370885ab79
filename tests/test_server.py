"""Tests for FastAPI server module"""
from unittest.mock import patch

from fastapi.testclient import TestClient
from prometheus_client import CONTENT_TYPE_LATEST

from conftest import STATS_SQL, make_config
from sql_exporter.app.server import MetricsServer
from sql_exporter.collectors.sql import SQLExporter
from sql_exporter.config import Settings
from sql_exporter.errors import ConnectivityError


class TestMetricsServer:
    """Test FastAPI server against a real SQLite database"""

    def setup_server(self, sqlite_db, **settings):
        self.db = sqlite_db
        self.settings = Settings(**settings)
        self.exporter = SQLExporter(make_config((STATS_SQL, "stats", "Stats by region")), sqlite_db)
        self.server = MetricsServer(self.settings, self.exporter)
        self.client = TestClient(self.server.get_app())

    def test_metrics_endpoint(self, sqlite_db):
        """Test metrics endpoint runs the queries"""
        self.setup_server(sqlite_db)

        response = self.client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"] == CONTENT_TYPE_LATEST
        assert 'sql_stats{region="us"} 5.0' in response.text
        assert 'sql_stats{region="eu"} 7.0' in response.text
        assert "sql_exporter_scrape_failures_total" not in response.text

    def test_metrics_reflect_database_changes(self, sqlite_db):
        self.setup_server(sqlite_db)
        self.client.get("/metrics")

        with sqlite_db.engine.begin() as conn:
            conn.exec_driver_sql("UPDATE stats SET count = 11 WHERE region = 'us'")

        response = self.client.get("/metrics")

        assert 'sql_stats{region="us"} 11.0' in response.text

    def test_metrics_endpoint_scrape_failure(self, sqlite_db):
        """Test that a failing query is reported through the failure counter"""
        self.setup_server(sqlite_db)

        with sqlite_db.engine.begin() as conn:
            conn.exec_driver_sql("DROP TABLE stats")

        response = self.client.get("/metrics")

        assert response.status_code == 200
        assert "sql_exporter_scrape_failures_total 1.0" in response.text
        assert "sql_stats{" not in response.text

    def test_own_registry(self, sqlite_db):
        """Test that the collector is not registered on the default registry"""
        from prometheus_client import REGISTRY

        self.setup_server(sqlite_db)

        assert self.exporter not in REGISTRY._collector_to_names
        assert self.exporter in self.server.registry._collector_to_names

    def test_health_endpoint_healthy(self, sqlite_db):
        """Test health endpoint after a successful scrape"""
        self.setup_server(sqlite_db)
        self.client.get("/metrics")

        response = self.client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["total_scrapes"] == 1
        assert data["scrape_failures"] == 0
        assert data["last_error"] is None

    def test_health_endpoint_before_first_scrape(self, sqlite_db):
        self.setup_server(sqlite_db)

        response = self.client.get("/health")

        assert response.status_code == 200
        assert response.json()["last_scrape_seconds_ago"] is None

    def test_health_endpoint_unhealthy(self, sqlite_db):
        """Test health endpoint after a failed scrape"""
        self.setup_server(sqlite_db)

        with patch.object(self.db, "ping", side_effect=ConnectivityError("database ping failed: gone")):
            self.client.get("/metrics")

        response = self.client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["detail"]["status"] == "unhealthy"
        assert data["detail"]["scrape_failures"] == 1
        assert "gone" in data["detail"]["last_error"]

    def test_index_endpoint(self, sqlite_db):
        """Test index HTML endpoint"""
        self.setup_server(sqlite_db)

        response = self.client.get("/")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "SQL Exporter" in response.text
        assert "sql_stats" in response.text
        assert "region" in response.text

    def test_request_logging_header(self, sqlite_db):
        self.setup_server(sqlite_db, enable_request_logging=True)

        response = self.client.get("/health")

        assert "x-process-time" in response.headers

    def test_request_logging_disabled(self, sqlite_db):
        self.setup_server(sqlite_db, enable_request_logging=False)

        response = self.client.get("/health")

        assert "x-process-time" not in response.headers
