"""Stateless analysis and rendering endpoints.

These endpoints accept an uploaded wall photo instead of using the host
camera, for clients that capture on their own device. They do not touch
the scan session.
"""

import asyncio
import base64
import io
from typing import Annotated

import PIL.Image as PILImage
from fastapi import (
    APIRouter,
    File,
    Form,
    HTTPException,
    Request,
    Response,
    UploadFile,
    status,
)
from pydantic import ValidationError

from climbscan.analysis.exceptions import (
    AnalysisConfigurationError,
    AnalysisError,
    InvalidImageError,
)
from climbscan.camera.adapter import DEFAULT_JPEG_QUALITY
from climbscan.logging_config import get_logger
from climbscan.models import RouteAnalysis
from climbscan.rendering.renderer import RenderError
from climbscan.routes.shared import (
    ErrorResponse,
    get_analyzer,
    get_app_settings,
    get_renderer,
    png_response,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["analysis"])

# JPEG signature: FF D8 FF
_JPEG_SIGNATURE = b"\xff\xd8\xff"
# PNG signature: 89 50 4E 47 0D 0A 1A 0A
_PNG_SIGNATURE = b"\x89\x50\x4e\x47\x0d\x0a\x1a\x0a"


def format_bytes(size_bytes: int) -> str:
    """Convert bytes to human-readable format.

    Example:
        >>> format_bytes(1024)
        '1.00 KB'
    """
    size = float(size_bytes)
    for unit in ["bytes", "KB", "MB", "GB"]:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0
    return f"{size:.2f} TB"


def validate_file_signature(file_data: bytes, content_type: str) -> None:
    """Validate that the file's magic bytes match its declared content type.

    Args:
        file_data: Raw file bytes to validate.
        content_type: Declared MIME type.

    Raises:
        HTTPException: 400 if the signature does not match.
    """
    if len(file_data) < 8:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File is too small to be a valid image",
        )

    if content_type == "image/jpeg" and not file_data.startswith(_JPEG_SIGNATURE):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File content does not match JPEG signature",
        )
    if content_type == "image/png" and file_data[:8] != _PNG_SIGNATURE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File content does not match PNG signature",
        )


async def read_image_upload(file: UploadFile, request: Request) -> bytes:
    """Read and validate an uploaded image.

    Checks presence, content type against ``allowed_image_types``, size
    against ``max_upload_size_mb`` and the magic bytes.

    Args:
        file: Uploaded file from FastAPI.
        request: Request used to reach the app settings.

    Returns:
        The raw file bytes.

    Raises:
        HTTPException: 400 if any check fails.
    """
    settings = get_app_settings(request)

    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided"
        )

    if file.content_type not in settings.allowed_image_types:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Invalid file type '{file.content_type}'. "
                f"Allowed types: {', '.join(settings.allowed_image_types)}"
            ),
        )

    data = await file.read()
    max_size_bytes = settings.max_upload_size_mb * 1024 * 1024
    if len(data) > max_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"File size ({format_bytes(len(data))}) exceeds maximum "
                f"allowed size ({format_bytes(max_size_bytes)})"
            ),
        )

    validate_file_signature(data, file.content_type or "image/jpeg")
    return data


def to_jpeg_base64(data: bytes, content_type: str) -> str:
    """Return base64 JPEG text for an uploaded JPEG or PNG.

    JPEG uploads pass through unchanged; anything else is re-encoded at
    the capture quality so the analysis request always carries a JPEG.
    """
    if content_type != "image/jpeg":
        image = PILImage.open(io.BytesIO(data)).convert("RGB")
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=DEFAULT_JPEG_QUALITY)
        data = buffer.getvalue()
    return base64.b64encode(data).decode("ascii")


@router.post(
    "/analyze",
    response_model=RouteAnalysis,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid image upload"},
        502: {"model": ErrorResponse, "description": "Analysis service failure"},
        503: {"model": ErrorResponse, "description": "Analysis not configured"},
    },
)
async def analyze_image(
    file: Annotated[UploadFile, File(description="Wall photo (JPEG or PNG)")],
    request: Request,
) -> RouteAnalysis:
    """Analyze an uploaded wall photo.

    Example:
        ```bash
        curl -X POST "http://localhost:8000/api/v1/analyze" \\
             -F "file=@wall.jpg"
        ```
    """
    data = await read_image_upload(file, request)
    content_type = file.content_type or "image/jpeg"

    try:
        image_b64 = await asyncio.to_thread(to_jpeg_base64, data, content_type)
    except (OSError, PILImage.DecompressionBombError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Image could not be decoded",
        ) from e

    try:
        return await get_analyzer(request).analyze(image_b64)
    except AnalysisConfigurationError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message
        ) from e
    except InvalidImageError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=e.message
        ) from e
    except AnalysisError as e:
        logger.warning(
            "Upload analysis failed",
            extra={"error": e.message, "error_type": type(e).__name__},
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message
        ) from e


@router.post(
    "/render",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}, "description": "Annotated route"},
        400: {"model": ErrorResponse, "description": "Invalid image upload"},
        422: {"model": ErrorResponse, "description": "Invalid analysis JSON"},
    },
)
async def render_image(
    file: Annotated[UploadFile, File(description="Wall photo (JPEG or PNG)")],
    analysis: Annotated[str, Form(description="RouteAnalysis as JSON")],
    request: Request,
    include_beta: Annotated[bool, Form()] = False,
) -> Response:
    """Render a RouteAnalysis over an uploaded wall photo."""
    data = await read_image_upload(file, request)

    try:
        route = RouteAnalysis.model_validate_json(analysis)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail="Analysis is not a valid RouteAnalysis",
        ) from e

    try:
        rendered = await asyncio.to_thread(
            get_renderer(request).render, data, route, include_beta
        )
    except RenderError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=e.message
        ) from e
    return png_response(rendered)
