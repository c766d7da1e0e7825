"""Scan session endpoints.

These endpoints drive the single :class:`~climbscan.session.ScanSession`
owned by the application: enter the camera view, preview and capture,
read back the analysis and its rendered overlay, and reset.
"""

import asyncio
import base64

from fastapi import APIRouter, HTTPException, Query, Request, Response, status

from climbscan.camera.exceptions import (
    CameraError,
    CameraNotActiveError,
)
from climbscan.logging_config import get_logger
from climbscan.rendering.renderer import RenderError
from climbscan.routes.shared import (
    ErrorResponse,
    get_renderer,
    get_session,
    png_response,
)
from climbscan.session import InvalidTransitionError, SessionState

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/session", tags=["session"])

_CONFLICT = {409: {"model": ErrorResponse, "description": "Not allowed in current status"}}


def _camera_http_error(error: CameraError) -> HTTPException:
    """Map a camera fault to an HTTP error: 409 when not streaming, else 503."""
    code = (
        status.HTTP_409_CONFLICT
        if isinstance(error, CameraNotActiveError)
        else status.HTTP_503_SERVICE_UNAVAILABLE
    )
    return HTTPException(status_code=code, detail=error.message)


def _conflict(error: InvalidTransitionError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error.message)


@router.get("", response_model=SessionState, summary="Current session state")
async def get_state(request: Request) -> SessionState:
    """Return the current session state."""
    return get_session(request).snapshot()


@router.post("/scan", response_model=SessionState, responses=_CONFLICT)
async def start_scan(request: Request) -> SessionState:
    """Enter the camera view.

    A camera that cannot be opened is reported in ``camera_error`` while
    the session stays in ``camera``.
    """
    try:
        return await get_session(request).start_scan()
    except InvalidTransitionError as e:
        raise _conflict(e) from e


@router.post("/camera/retry", response_model=SessionState, responses=_CONFLICT)
async def retry_camera(request: Request) -> SessionState:
    """Re-attempt camera acquisition after a device error."""
    try:
        return await get_session(request).retry_camera()
    except InvalidTransitionError as e:
        raise _conflict(e) from e


@router.post("/camera/close", response_model=SessionState, responses=_CONFLICT)
async def close_camera(request: Request) -> SessionState:
    """Leave the camera view without capturing."""
    try:
        return await get_session(request).close_camera()
    except InvalidTransitionError as e:
        raise _conflict(e) from e


@router.get(
    "/camera/preview",
    response_class=Response,
    responses={
        200: {"content": {"image/jpeg": {}}, "description": "Guide-annotated frame"},
        **_CONFLICT,
        503: {"model": ErrorResponse, "description": "Camera fault"},
    },
)
async def camera_preview(request: Request) -> Response:
    """Current camera frame with the framing guide drawn on it."""
    try:
        frame = await get_session(request).preview()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    except CameraError as e:
        raise _camera_http_error(e) from e
    return Response(content=frame, media_type="image/jpeg")


@router.post(
    "/capture",
    response_model=SessionState,
    responses={
        **_CONFLICT,
        503: {"model": ErrorResponse, "description": "Camera fault"},
    },
)
async def capture(request: Request) -> SessionState:
    """Capture a still and analyze it.

    Responds after the analysis has finished, with the session in
    ``results`` or ``error``.
    """
    try:
        return await get_session(request).capture()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    except CameraError as e:
        logger.warning(
            "Capture failed",
            extra={"error": e.message, "error_type": type(e).__name__},
        )
        raise _camera_http_error(e) from e


@router.post("/reset", response_model=SessionState, responses=_CONFLICT)
async def reset(request: Request) -> SessionState:
    """Discard the capture and analysis and return to idle."""
    try:
        return get_session(request).reset()
    except InvalidTransitionError as e:
        raise _conflict(e) from e


@router.get(
    "/image",
    response_class=Response,
    responses={
        200: {"content": {"image/jpeg": {}}, "description": "Captured image"},
        404: {"model": ErrorResponse, "description": "No captured image"},
    },
)
async def captured_image(request: Request) -> Response:
    """The captured JPEG, while the session holds one."""
    image = get_session(request).captured_image
    if image is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No captured image"
        )
    return Response(content=base64.b64decode(image), media_type="image/jpeg")


@router.get(
    "/render",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}, "description": "Annotated route"},
        404: {"model": ErrorResponse, "description": "No analysis to render"},
    },
)
async def render_results(
    request: Request,
    include_beta: bool = Query(default=False, description="Append the beta panel"),
) -> Response:
    """Render the current analysis over the captured image."""
    session = get_session(request)
    image, analysis = session.captured_image, session.analysis
    if image is None or analysis is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No analysis to render"
        )

    try:
        # Run in thread to avoid blocking the event loop
        rendered = await asyncio.to_thread(
            get_renderer(request).render, image, analysis, include_beta
        )
    except RenderError as e:
        logger.error("Render failed", extra={"error": e.message})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to render route",
        ) from e
    return png_response(rendered)
