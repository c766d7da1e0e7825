"""Tests for FastAPI application factory and middleware."""

# pylint: disable=redefined-outer-name  # standard pytest fixture pattern

from typing import Any, Callable

from fastapi import FastAPI
from fastapi.testclient import TestClient

from climbscan.analysis.client import RouteAnalysisClient
from climbscan.app import _AnalyzeRateLimiter, create_app
from climbscan.camera.adapter import CameraAdapter
from climbscan.config import Settings
from climbscan.models import AppStatus
from climbscan.rendering.renderer import RouteRenderer
from climbscan.session import ScanSession


class TestCreateApp:
    """Tests for the create_app factory function."""

    def test_returns_fastapi_with_state(self) -> None:
        """Factory should attach settings and collaborators to app.state."""
        app = create_app({"testing": True, "gemini_api_key": "k"})
        assert isinstance(app, FastAPI)
        assert isinstance(app.state.settings, Settings)
        assert isinstance(app.state.analyzer, RouteAnalysisClient)
        assert isinstance(app.state.renderer, RouteRenderer)
        assert isinstance(app.state.session, ScanSession)

    def test_config_override(self) -> None:
        """Config override should modify application settings."""
        app = create_app({"app_version": "1.2.3", "app_name": "wall", "testing": True})
        assert app.state.settings.app_version == "1.2.3"
        assert app.title == "wall"

    def test_analyzer_built_from_settings(self) -> None:
        """The default analyzer should use the configured model."""
        app = create_app({"testing": True, "gemini_model": "gemini-x"})
        assert app.state.analyzer.model == "gemini-x"

    def test_injected_analyzer_used(self, analysis_client: RouteAnalysisClient) -> None:
        """An injected analyzer should replace the default."""
        app = create_app({"testing": True}, analyzer=analysis_client)
        assert app.state.analyzer is analysis_client

    def test_docs_only_in_debug_or_testing(self) -> None:
        """Docs endpoints should be disabled in production."""
        assert create_app({"debug": True, "testing": False}).docs_url == "/docs"
        assert create_app({"debug": False, "testing": True}).docs_url == "/docs"
        production = create_app({"debug": False, "testing": False})
        assert production.docs_url is None
        assert production.openapi_url is None


class TestLifespan:
    """Tests for startup and shutdown handling."""

    def test_shutdown_releases_camera(
        self,
        analysis_client: RouteAnalysisClient,
        camera_factory: Callable[[], CameraAdapter],
        capture_factory: Any,
    ) -> None:
        """Application shutdown should release an open camera."""
        app = create_app(
            {"testing": True}, analyzer=analysis_client, camera_factory=camera_factory
        )
        with TestClient(app) as client:
            assert client.post("/api/v1/session/scan").status_code == 200
            assert not capture_factory.handles[0].released

        assert capture_factory.handles[0].released
        assert app.state.session.status is AppStatus.IDLE


class TestCorsMiddleware:
    """Tests for CORS middleware configuration."""

    def test_cors_headers(self, client: TestClient) -> None:
        """CORS should allow requests from configured origins."""
        response = client.get("/health", headers={"Origin": "http://localhost:3000"})
        assert response.headers.get("access-control-allow-origin") in [
            "http://localhost:3000",
            "*",
        ]


class TestRequestIdMiddleware:
    """Tests for request ID middleware."""

    def test_generated(self, client: TestClient) -> None:
        """A request ID should be generated when none is provided."""
        response = client.get("/health")
        assert len(response.headers["X-Request-ID"]) == 36

    def test_preserved(self, client: TestClient) -> None:
        """An incoming request ID should be echoed back."""
        response = client.get("/health", headers={"X-Request-ID": "wall-42"})
        assert response.headers["X-Request-ID"] == "wall-42"


class TestApiKeyMiddleware:
    """Tests for optional API key authentication."""

    def test_missing_key_rejected(
        self, analysis_client: RouteAnalysisClient
    ) -> None:
        """Non-health endpoints should require the key when one is set."""
        app = create_app({"testing": True, "api_key": "secret"}, analyzer=analysis_client)
        response = TestClient(app).get("/api/v1/session")
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or missing API key"

    def test_valid_key_accepted(self, analysis_client: RouteAnalysisClient) -> None:
        """The configured key should grant access."""
        app = create_app({"testing": True, "api_key": "secret"}, analyzer=analysis_client)
        response = TestClient(app).get(
            "/api/v1/session", headers={"X-API-Key": "secret"}
        )
        assert response.status_code == 200

    def test_health_analysis_open(self, analysis_client: RouteAnalysisClient) -> None:
        """Health sub-paths should not require the key."""
        app = create_app({"testing": True, "api_key": "secret"}, analyzer=analysis_client)
        assert TestClient(app).get("/api/v1/health/analysis").status_code == 200


class TestRateLimit:
    """Tests for the analyze rate limiter."""

    def test_limiter_window(self) -> None:
        """The limiter should allow up to max requests per client."""
        limiter = _AnalyzeRateLimiter()
        assert limiter.is_allowed("1.1.1.1", 2)
        assert limiter.is_allowed("1.1.1.1", 2)
        assert not limiter.is_allowed("1.1.1.1", 2)
        assert limiter.is_allowed("2.2.2.2", 2)

    def test_analyze_endpoint_limited(
        self, analysis_client: RouteAnalysisClient
    ) -> None:
        """Excess analyze requests should get 429."""
        app = create_app(
            {"testing": True, "rate_limit_analyze": 2}, analyzer=analysis_client
        )
        client = TestClient(app)
        codes = [client.post("/api/v1/analyze").status_code for _ in range(3)]
        assert codes[:2] == [422, 422]
        assert codes[2] == 429

    def test_other_endpoints_not_limited(
        self, analysis_client: RouteAnalysisClient
    ) -> None:
        """Only the stateless analyze endpoint is rate limited."""
        app = create_app(
            {"testing": True, "rate_limit_analyze": 1}, analyzer=analysis_client
        )
        client = TestClient(app)
        codes = [client.get("/api/v1/session").status_code for _ in range(3)]
        assert codes == [200, 200, 200]
