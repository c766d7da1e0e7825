"""ClimbScan HTTP service.

``create_app`` wires settings, the Gemini analysis client, the renderer
and the single scan session onto ``app.state``, installs middleware and
mounts the routers. Run with
``uvicorn climbscan.app:create_default_app --factory``.
"""

import threading
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from climbscan.analysis.client import RouteAnalysisClient
from climbscan.camera.adapter import CameraAdapter
from climbscan.config import Settings, get_settings, get_settings_override
from climbscan.logging_config import configure_logging, get_logger
from climbscan.rendering.renderer import RouteRenderer
from climbscan.routes import analyze_router, health_router, session_router
from climbscan.session import RouteAnalyzer, ScanSession

logger = get_logger(__name__)

# Probes stay reachable without X-API-Key
_HEALTH_PATHS = {"/health", "/api/v1/health"}

# Stateless analysis path subject to per-IP rate limiting
_ANALYZE_PATH = "/api/v1/analyze"


class _AnalyzeRateLimiter:
    """Thread-safe sliding-window rate limiter for analysis requests.

    Tracks request timestamps per client IP in a 60-second window. Each
    application instance gets its own limiter.
    """

    _WINDOW_SECONDS: int = 60

    def __init__(self) -> None:
        self._timestamps: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def is_allowed(self, client_ip: str, max_requests: int) -> bool:
        """Record a request from ``client_ip`` if it fits in the window.

        Args:
            client_ip: Remote address of the caller.
            max_requests: Analyze calls allowed per 60-second window.

        Returns:
            False when the caller has used up the window.
        """
        now = time.monotonic()
        cutoff = now - self._WINDOW_SECONDS
        with self._lock:
            timestamps = [t for t in self._timestamps.get(client_ip, []) if t > cutoff]
            if len(timestamps) >= max_requests:
                self._timestamps[client_ip] = timestamps
                return False
            timestamps.append(now)
            self._timestamps[client_ip] = timestamps
            return True


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Log startup, then shut the scan session down on exit.

    Shutdown releases the camera and abandons any in-flight analysis.
    """
    logger.info(
        "Application starting",
        extra={
            "app_name": app.state.settings.app_name,
            "version": app.state.settings.app_version,
            "model": app.state.settings.gemini_model,
        },
    )
    yield
    await app.state.session.shutdown()
    logger.info("Application shutting down")


def create_app(
    config_override: dict[str, Any] | None = None,
    *,
    analyzer: RouteAnalyzer | None = None,
    camera_factory: Callable[[], CameraAdapter] | None = None,
) -> FastAPI:
    """Build the ClimbScan API.

    Args:
        config_override: Settings fields to set explicitly instead of
            reading them from the environment.
        analyzer: Analysis client to use instead of one built from
            settings (tests pass a fake).
        camera_factory: Camera adapter factory to use instead of one built
            from settings.

    Returns:
        The application, with its scan session idle and no camera open.

    Example:
        >>> app = create_app()
        >>> test_app = create_app({"testing": True}, analyzer=FakeAnalyzer())
    """
    if config_override:
        settings = get_settings_override(config_override)
    else:
        settings = get_settings()

    json_output = not settings.debug
    configure_logging(settings.log_level, json_output=json_output, service=settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Climbing wall capture, AI route analysis and overlay rendering API",
        docs_url="/docs" if settings.debug or settings.testing else None,
        redoc_url="/redoc" if settings.debug or settings.testing else None,
        openapi_url="/openapi.json" if settings.debug or settings.testing else None,
        lifespan=lifespan,
    )

    if analyzer is None:
        analyzer = RouteAnalysisClient.from_settings(settings)
        if not analyzer.is_configured:
            logger.warning("CS_GEMINI_API_KEY is not set; analysis requests will fail")
    if camera_factory is None:

        def camera_factory() -> CameraAdapter:
            return CameraAdapter.from_settings(settings)

    app.state.settings = settings
    app.state.analyzer = analyzer
    app.state.renderer = RouteRenderer()
    app.state.session = ScanSession(analyzer=analyzer, camera_factory=camera_factory)

    _configure_middleware(app, settings)
    _register_routes(app)

    return app


def _configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Install CORS, request-ID, API-key and analyze rate-limit middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Add a request ID to each request for tracing.

        An incoming X-Request-ID header is preserved; otherwise a new UUID
        is generated.
        """
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        request.state.request_id = request_id

        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response

    @app.middleware("http")
    async def api_key_auth(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Require X-API-Key everywhere except the health probes.

        Skipped when ``settings.api_key`` is empty (open mode).
        """
        path = request.url.path
        is_health = any(path == p or path.startswith(p + "/") for p in _HEALTH_PATHS)
        if settings.api_key and not is_health:
            provided_key = request.headers.get("X-API-Key", "")
            if provided_key != settings.api_key:
                return JSONResponse(
                    status_code=401,
                    content={"detail": "Invalid or missing API key"},
                )
        return await call_next(request)

    analyze_rate_limiter = _AnalyzeRateLimiter()

    @app.middleware("http")
    async def rate_limit_analyze(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Rate-limit POST requests to the stateless analyze endpoint.

        Disabled when ``settings.rate_limit_analyze`` is 0.
        """
        max_requests = settings.rate_limit_analyze
        if (
            max_requests > 0
            and request.method == "POST"
            and request.url.path == _ANALYZE_PATH
        ):
            client_ip = request.client.host if request.client else "unknown"
            if not analyze_rate_limiter.is_allowed(client_ip, max_requests):
                return JSONResponse(
                    status_code=429,
                    content={"detail": "Rate limit exceeded. Please try again later."},
                )
        return await call_next(request)


def _register_routes(app: FastAPI) -> None:
    """Mount health (root and /api/v1), session and analyze routers."""
    app.include_router(health_router, tags=["health"])
    app.include_router(health_router, prefix="/api/v1", tags=["health-v1"])
    app.include_router(session_router)
    app.include_router(analyze_router)


def create_default_app() -> FastAPI:
    """Factory for uvicorn.

    Usage: uvicorn climbscan.app:create_default_app --factory
    """
    return create_app()
