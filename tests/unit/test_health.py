"""Unit tests for health endpoints."""

from fastapi.testclient import TestClient

from backinstock_service.config import Settings, get_settings


def test_health_check(client: TestClient) -> None:
    """Test basic health check returns healthy status."""
    response = client.get("/api/v1/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "healthy"
    assert data["environment"] == "test"
    assert data["shops_configured"] == 1
    assert "version" in data
    assert "timestamp" in data


def test_liveness_check(client: TestClient) -> None:
    """Test liveness check returns alive status."""
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "alive"


def test_readiness_check(client: TestClient) -> None:
    """Test readiness check returns expected structure."""
    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200

    data = response.json()
    assert data["ready"] is True
    assert data["checks"] == {"shops": True, "flow_secret": True, "dispatcher": True}


def test_readiness_without_flow_secret(app, client: TestClient, test_settings: Settings) -> None:
    unready = test_settings.model_copy(update={"flow_shared_secret": ""})
    app.dependency_overrides[get_settings] = lambda: unready

    data = client.get("/api/v1/health/ready").json()

    assert data["ready"] is False
    assert data["checks"]["flow_secret"] is False


def test_root_healthz(client: TestClient) -> None:
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "source": "healthz route"}
