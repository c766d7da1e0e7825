"""Health check endpoints.

Provides liveness for load balancers and a configuration check for the
analysis service.
"""

from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict

from climbscan.routes.shared import get_analyzer, get_app_settings

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response model.

    Attributes:
        status: Current health status of the application.
        version: Application version string.
        timestamp: ISO 8601 timestamp of the health check.
    """

    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    timestamp: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "version": "0.1.0",
                "timestamp": "2026-01-14T12:00:00Z",
            }
        }
    )


class AnalysisHealthResponse(BaseModel):
    """Analysis service readiness.

    Attributes:
        status: ``healthy`` when a credential is configured, else ``degraded``.
        model: Model name requests are sent to.
        version: Application version string.
        timestamp: ISO 8601 timestamp of the check.
    """

    status: Literal["healthy", "degraded"]
    model: str
    version: str
    timestamp: datetime


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Returns the current health status of the application.",
)
async def health_check(request: Request) -> HealthResponse:
    """Check application health status.

    Returns:
        HealthResponse with status, version, and UTC timestamp.
    """
    settings = get_app_settings(request)

    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/health/analysis",
    response_model=AnalysisHealthResponse,
    summary="Analysis Service Check",
    description=(
        "Reports whether the analysis client has a credential. Does not "
        "call the external service."
    ),
)
async def analysis_health_check(request: Request) -> AnalysisHealthResponse:
    """Check that route analysis can be attempted.

    Returns:
        AnalysisHealthResponse with ``degraded`` status when no Gemini
        credential is configured.
    """
    settings = get_app_settings(request)
    analyzer = get_analyzer(request)
    configured = bool(getattr(analyzer, "is_configured", True))

    return AnalysisHealthResponse(
        status="healthy" if configured else "degraded",
        model=str(getattr(analyzer, "model", settings.gemini_model)),
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc),
    )
