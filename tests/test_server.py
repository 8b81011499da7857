from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from pgmon_agent.collectors.sysmetrics import SystemMetric
from pgmon_agent.server import create_app


class FakeCollector:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def collect(self, secret_path, db_name, host, metric_names):
        self.calls.append((secret_path, db_name, host, list(metric_names)))
        if self.error is not None:
            raise self.error


class FakeSysMetrics:
    def collect_detailed(self):
        return [SystemMetric("system_cpu_cores", 8, "Number of CPU cores", datetime.now(timezone.utc))]


@pytest.fixture
def collector():
    return FakeCollector()


def test_collect_ok(collector, registry):
    client = TestClient(create_app(collector, registry))

    response = client.post(
        "/collect",
        json={"secret_path": "db/app1", "db_name": "app", "host": "h1", "metric_names": ["db_active_connections"]},
    )

    assert response.status_code == 200
    assert response.text == "metrics collected"
    assert collector.calls == [("db/app1", "app", "h1", ["db_active_connections"])]


def test_collect_failure_is_500(registry):
    client = TestClient(create_app(FakeCollector(error=RuntimeError("db down")), registry))

    response = client.post("/collect", json={"secret_path": "db/app1", "metric_names": ["x"]})

    assert response.status_code == 500
    assert "db down" in response.text


def test_malformed_body_is_400(collector, registry):
    client = TestClient(create_app(collector, registry))

    response = client.post("/collect", content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.text.startswith("invalid request")
    assert collector.calls == []


def test_missing_secret_path_is_400(collector, registry):
    client = TestClient(create_app(collector, registry))

    response = client.post("/collect", json={"metric_names": []})

    assert response.status_code == 400


def test_wrong_method_is_rejected(collector, registry):
    client = TestClient(create_app(collector, registry))

    assert client.get("/collect").status_code == 405


def test_metrics_exposition(registry):
    registry.register_gauge("db_active_connections", "Active connections", ["db_name", "host"])
    registry.set_gauge("db_active_connections", {"db_name": "app", "host": "h1"}, 3)
    client = TestClient(create_app(FakeCollector(), registry, sysmetrics=FakeSysMetrics()))

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert 'db_active_connections{db_name="app",host="h1"} 3.0' in response.text
    assert "system_cpu_cores 8.0" in response.text
