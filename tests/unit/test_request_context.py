"""Unit tests for the request context middleware."""

from fastapi.testclient import TestClient


def test_generates_request_id(client: TestClient) -> None:
    response = client.get("/api/v1/health/live")
    assert len(response.headers["X-Request-ID"]) == 32
    assert float(response.headers["X-Response-Time-Ms"]) >= 0


def test_propagates_incoming_request_id(client: TestClient) -> None:
    response = client.get("/api/v1/health/live", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"


def test_error_responses_carry_request_id(client: TestClient) -> None:
    response = client.post("/api/v1/stock-restored", json={}, headers={"X-Flow-Secret": "wrong"})
    assert response.status_code == 401
    assert "X-Request-ID" in response.headers
