"""
DeployWatch - Integration Tests for API
"""
import pytest
from fastapi.testclient import TestClient

# Add backend to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx

from deploywatch.api.routes import get_service
from deploywatch.main import app


PROD = "https://orders.example.com/health"
UAT = "https://orders-uat.example.com/health"


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealthEndpoint:
    """Tests for /health and /metrics"""

    def test_health_returns_200(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_ready_returns_200(self, client):
        assert client.get("/ready").status_code == 200

    def test_version_header(self, client):
        response = client.get("/health")
        assert response.headers["X-DeployWatch-Version"] == response.json()["version"]

    def test_metrics_exposition(self, client):
        """Test metrics endpoint serves Prometheus text"""
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "deploywatch_probes_total" in response.text


class TestProxyCheckEndpoint:
    """Tests for /api/proxy/check"""

    def test_online_target(self, client, fake_services):
        fake_services.routes[PROD] = {"version": "3.2.1", "service": "orders"}

        response = client.post("/api/proxy/check", json={"url": PROD, "apiId": 7})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "online"
        assert data["httpStatus"] == 200
        assert data["version"] == "3.2.1"
        assert data["apiId"] == 7

    def test_offline_target_is_not_an_error(self, client, fake_services):
        """Test unreachable targets come back as 200 with offline status"""
        fake_services.routes[PROD] = httpx.ConnectError

        response = client.post("/api/proxy/check", json={"url": PROD})

        assert response.status_code == 200
        assert response.json()["status"] == "offline"

    def test_invalid_url_returns_400(self, client):
        response = client.post("/api/proxy/check", json={"url": "ftp://files.example.com"})
        assert response.status_code == 400

    def test_missing_url_returns_400(self, client):
        response = client.post("/api/proxy/check", json={})
        assert response.status_code == 400
        assert "url" in response.json()["detail"]

    def test_enhanced_check_echoes_environment(self, client, fake_services):
        fake_services.routes[PROD] = {"version": "1.0.0"}

        response = client.post("/api/enhanced-proxy/check", json={"url": PROD, "environment": "prod"})

        data = response.json()
        assert data["environment"] == "prod"
        assert data["region"]


class TestComplianceEndpoint:
    """Tests for /api/enhanced-proxy/compliance-check"""

    def test_violation_reported(self, client, fake_services):
        fake_services.routes[PROD] = {"version": "2.0.0"}
        fake_services.routes[UAT] = {"version": "1.0.0"}

        response = client.post("/api/enhanced-proxy/compliance-check", json={
            "urls": [PROD, UAT],
            "environments": ["prod", "uat"],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["compliant"] is False
        assert data["violations"] == ["CRITICAL: PROD version (2.0.0) is higher than UAT version (1.0.0)"]
        assert data["violationDetails"][0]["severity"] == "CRITICAL"
        assert data["results"]["prod"]["version"] == "2.0.0"

    def test_compliant_pipeline(self, client, fake_services):
        fake_services.routes[PROD] = {"version": "1.0.0"}
        fake_services.routes[UAT] = {"version": "1.1.0"}

        response = client.post("/api/enhanced-proxy/compliance-check", json={
            "urls": [PROD, UAT],
            "environments": ["prod", "uat"],
        })

        data = response.json()
        assert data["compliant"] is True
        assert data["violations"] == []

    def test_length_mismatch_returns_400(self, client):
        response = client.post("/api/enhanced-proxy/compliance-check", json={
            "urls": [PROD],
            "environments": ["prod", "uat"],
        })
        assert response.status_code == 400
        assert "same length" in response.json()["detail"]


class TestMonitorEndpoints:
    """Tests for /api/monitor/*"""

    def test_unknown_api_returns_404(self, client):
        response = client.post("/api/monitor/apis/999/check")
        assert response.status_code == 404

    def test_check_records_version(self, client, service, fake_services):
        fake_services.routes[PROD] = {"version": "1.0.0"}
        api = service.endpoints.register(PROD, "prod")

        response = client.post(f"/api/monitor/apis/{api.api_id}/check")

        assert response.status_code == 200
        assert response.json()["status"] == "online"
        assert service.endpoints.get(api.api_id).current_version == "1.0.0"

    def test_record_version_then_heartbeat(self, client, service):
        api = service.endpoints.register(PROD, "prod")
        url = f"/api/monitor/apis/{api.api_id}/versions"

        first = client.post(url, json={"version": "1.0.0", "environment": "prod"}).json()
        second = client.post(url, json={"version": "1.0.0", "environment": "prod"}).json()

        assert first["recorded"] is True
        assert first["entry"]["version_change_type"] == "initial"
        assert second == {"recorded": False, "entry": None}

    def test_statusless_heartbeat_keeps_endpoint_status(self, client, service):
        api = service.endpoints.register(PROD, "prod")
        service.endpoints.update_status(api.api_id, "online", 85)
        url = f"/api/monitor/apis/{api.api_id}/versions"

        client.post(url, json={"version": "1.0.0", "environment": "prod"})
        client.post(url, json={"version": "1.0.0", "environment": "prod"})

        endpoint = service.endpoints.get(api.api_id)
        assert endpoint.status.value == "online"
        assert endpoint.response_time_ms == 85

    def test_scan_keys_by_api_id(self, client, service, fake_services):
        fake_services.routes[PROD] = {"version": "1.0.0"}
        api = service.endpoints.register(PROD, "prod")

        data = client.post("/api/monitor/scan").json()

        assert data[str(api.api_id)]["status"] == "online"

    def test_health_summary(self, client, service):
        service.endpoints.register(PROD, "prod")

        data = client.get("/api/monitor/health-summary").json()

        assert data["totalApis"] == 1
        assert data["unknownApis"] == 1

    def test_metadata_lookup(self, client, fake_services):
        fake_services.routes[PROD] = {"version": "4.0.0", "service": "orders"}

        response = client.get("/api/monitor/metadata", params={"url": PROD})

        assert response.json() == {"version": "4.0.0", "service": "orders"}


class TestVersionHistoryEndpoints:
    """Tests for /api/data/apis/{id}/version-*"""

    def test_history_most_recent_first(self, client, service):
        api = service.endpoints.register(PROD, "prod")
        service.record_version_observation(api.api_id, "1.0.0", "prod")
        service.record_version_observation(api.api_id, "1.0.1", "prod")

        data = client.get(f"/api/data/apis/{api.api_id}/version-history").json()

        assert [e["version"] for e in data] == ["1.0.1", "1.0.0"]
        assert data[0]["previous_version"] == "1.0.0"
        assert data[0]["version_change_type"] == "patch"

    def test_history_environment_filter(self, client, service):
        api = service.endpoints.register(PROD, "prod")
        service.record_version_observation(api.api_id, "1.0.0", "prod")

        data = client.get(
            f"/api/data/apis/{api.api_id}/version-history", params={"environment": "uat"}
        ).json()

        assert data == []

    def test_analytics(self, client, service):
        api = service.endpoints.register(PROD, "prod")
        service.record_version_observation(api.api_id, "1.0.0", "prod")

        data = client.get(f"/api/data/apis/{api.api_id}/version-analytics").json()

        assert data["latestVersionsByEnvironment"] == {"prod": "1.0.0"}
        assert data["changeStats"]["totalChanges"] == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
