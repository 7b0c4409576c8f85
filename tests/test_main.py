"""Tests for FastAPI application endpoints.

Tests cover:
- Health check endpoint (/health) - P0 critical for deployment
- Route registration
- Plan limit exception handler
"""

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from app.exceptions import UploadLimitExceeded
from app.main import app, upload_limit_exceeded_handler


@pytest.fixture
def client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: Synchronous client for testing FastAPI endpoints.
    """
    return TestClient(app)


class TestHealthEndpoint:
    """Tests for /health endpoint (P0 - Critical for deployment)."""

    def test_health_endpoint_returns_200(self, client: TestClient) -> None:
        """[P0] Test health endpoint returns 200 OK status.

        GIVEN: FastAPI application is running
        WHEN: GET request to /health endpoint
        THEN: Returns 200 OK status code
        """
        # WHEN: Requesting health endpoint
        response = client.get("/health")

        # THEN: Returns 200 OK
        assert response.status_code == status.HTTP_200_OK

    def test_health_endpoint_returns_service_info(self, client: TestClient) -> None:
        """[P0] Test health endpoint returns healthy status and service name.

        GIVEN: FastAPI application is running
        WHEN: GET request to /health endpoint
        THEN: Response contains status="healthy" and service="podcast-processor"
        """
        data = client.get("/health").json()

        assert data == {"status": "healthy", "service": "podcast-processor"}


class TestApplication:
    """App wiring."""

    def test_project_routes_registered(self) -> None:
        """[P1] Upload and progress routes are mounted."""
        paths = {route.path for route in app.routes}

        assert "/api/v1/projects" in paths
        assert "/api/v1/projects/{project_id}" in paths
        assert "/api/v1/projects/{project_id}/progress" in paths

    @pytest.mark.asyncio
    async def test_upload_limit_handler_returns_403(self) -> None:
        """[P1] Plan limit rejection is mapped to 403 with structured detail."""
        exc = UploadLimitExceeded(
            "You've reached your plan limit of 3 total projects",
            reason="project_limit",
            current_count=3,
            limit=3,
        )

        response = await upload_limit_exceeded_handler(None, exc)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.body == (
            b'{"detail":{"reason":"project_limit",'
            b'"message":"You\'ve reached your plan limit of 3 total projects",'
            b'"current_count":3,"limit":3}}'
        )
