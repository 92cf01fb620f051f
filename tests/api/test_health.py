"""Tests for health and API root endpoints."""

from fastapi.testclient import TestClient


def test_health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert set(data["jobs"]) == {"pending", "processing"}
    assert data["generation_backend_configured"] is False
    assert data["uptime_seconds"] >= 0


def test_health_reports_backend_credentials(client: TestClient, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")

    assert client.get("/health").json()["generation_backend_configured"] is True


def test_api_root(client: TestClient):
    data = client.get("/api").json()

    assert data["name"] == "Offline Auto-Reply API"
    assert "settings" in data["endpoints"]
