"""Shared response models and request-scoped accessors for route modules."""

from typing import Any, cast

import PIL.Image as PILImage
from fastapi import Request, Response
from pydantic import BaseModel

from climbscan.config import Settings
from climbscan.rendering.renderer import RouteRenderer, to_png_bytes
from climbscan.session import ScanSession


class ErrorResponse(BaseModel):
    """Standard error response model for all API endpoints.

    Attributes:
        detail: Human-readable error message.
        error_code: Optional machine-readable error code.
    """

    detail: str
    error_code: str | None = None


def get_app_settings(request: Request) -> Settings:
    """Settings attached to the running application."""
    return cast(Settings, request.app.state.settings)


def get_session(request: Request) -> ScanSession:
    """The application's scan session."""
    return cast(ScanSession, request.app.state.session)


def get_analyzer(request: Request) -> Any:
    """The application's analysis client (a RouteAnalysisClient or test double)."""
    return request.app.state.analyzer


def get_renderer(request: Request) -> RouteRenderer:
    """The application's route renderer."""
    return cast(RouteRenderer, request.app.state.renderer)


def png_response(image: PILImage.Image) -> Response:
    """Wrap a rendered image in a PNG response."""
    return Response(content=to_png_bytes(image), media_type="image/png")
