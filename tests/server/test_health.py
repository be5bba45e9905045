"""Tests for health and info endpoints.

This module tests the core API endpoints including health checks,
system information, and root endpoint.
"""

from datetime import datetime, timedelta

from fastapi import status
from fastapi.testclient import TestClient


def test_health_endpoint(client_no_db: TestClient):
    """Test GET /health endpoint returns healthy status.

    Asserts:
        - Response status code is 200
        - Status is 'healthy'
        - Scheduler is not running by default
    """
    response = client_no_db.get("/health")

    assert response.status_code == status.HTTP_200_OK

    data = response.json()
    assert data["status"] == "healthy"
    timestamp = datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00"))
    assert timestamp.utcoffset() == timedelta(0)
    assert data["scheduler_running"] is False


def test_root_endpoint(client_no_db: TestClient):
    """Test GET / endpoint returns welcome message and links."""
    response = client_no_db.get("/")

    assert response.status_code == status.HTTP_200_OK

    data = response.json()
    assert "Wheel Tracker API" in data["message"]
    assert "version" in data
    assert data["docs"] == "/docs"
    assert data["health"] == "/health"
    assert data["api"] == "/api/v1/info"


def test_api_v1_info_endpoint(client: TestClient):
    """Test GET /api/v1/info endpoint returns system information.

    Asserts:
        - Response status code is 200
        - Response contains app_name, version, status
        - Response contains database_connected and live_prices booleans
    """
    response = client.get("/api/v1/info")

    assert response.status_code == status.HTTP_200_OK

    data = response.json()
    assert data["app_name"] == "Wheel Tracker API"
    assert data["status"] == "running"
    assert isinstance(data["database_connected"], bool)
    assert isinstance(data["live_prices"], bool)


def test_openapi_docs_available(client_no_db: TestClient):
    """Test that OpenAPI documentation lists the v1 endpoints."""
    response = client_no_db.get("/openapi.json")

    assert response.status_code == status.HTTP_200_OK
    paths = response.json()["paths"]
    assert "/api/v1/events" in paths
    assert "/api/v1/dashboard" in paths
    assert "/api/v1/positions/{position_id}" in paths


def test_unknown_route_returns_404(client_no_db: TestClient):
    """Test that unknown routes return 404."""
    response = client_no_db.get("/api/v1/nonexistent")

    assert response.status_code == status.HTTP_404_NOT_FOUND
