"""Route analysis client for the Gemini structured-output API.

``RouteAnalysisClient`` sends one captured wall image plus a fixed
instruction prompt and response schema, then parses the returned JSON
into a :class:`~climbscan.models.RouteAnalysis`. Parsing is all-or-nothing:
a call either returns a fully validated analysis or raises an
:class:`~climbscan.analysis.exceptions.AnalysisError`.

The client is constructed explicitly with its credential. Tests inject a
fake SDK client through the ``client`` argument.

Example:
    >>> client = RouteAnalysisClient(api_key="...", model="gemini-3-flash-preview")
    >>> analysis = await client.analyze(image_b64)
    >>> analysis.grade
    'V4'
"""

import base64
import binascii
import re
import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Final

from google import genai
from google.genai import types
from pydantic import ValidationError

from climbscan.analysis.exceptions import (
    AnalysisConfigurationError,
    AnalysisError,
    AnalysisServiceError,
    EmptyResponseError,
    InvalidImageError,
    InvalidResponseFormatError,
)
from climbscan.analysis.prompt import ANALYSIS_PROMPT, RESPONSE_SCHEMA
from climbscan.config import Settings
from climbscan.logging_config import get_logger
from climbscan.models import RouteAnalysis

logger = get_logger(__name__)

DEFAULT_MODEL: Final[str] = "gemini-3-flash-preview"
IMAGE_MIME_TYPE: Final[str] = "image/jpeg"

EMPTY_RESPONSE_MESSAGE: Final[str] = "Empty response from the analysis service."
INVALID_FORMAT_MESSAGE: Final[str] = "Invalid response format from the analysis service."
SERVICE_FAILURE_MESSAGE: Final[str] = (
    "Route analysis failed. Check your connection and try again."
)

_DATA_URI_PREFIX = re.compile(r"^data:[\w/+.-]+;base64,")
_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@contextmanager
def _service_op(context: str) -> Generator[None, None, None]:
    """Translate SDK and transport failures into AnalysisServiceError.

    Args:
        context: Description of the operation for the log record.

    Yields:
        None

    Raises:
        AnalysisServiceError: If any non-AnalysisError exception is raised.
    """
    try:
        yield
    except AnalysisError:
        raise
    except Exception as e:
        logger.error(
            context,
            extra={"error": str(e), "error_type": type(e).__name__},
        )
        raise AnalysisServiceError(SERVICE_FAILURE_MESSAGE) from e


def decode_image(image_base64: str) -> bytes:
    """Decode base64 image text, tolerating a ``data:`` URI prefix.

    Args:
        image_base64: Base64 text of a JPEG image.

    Returns:
        Raw image bytes.

    Raises:
        InvalidImageError: If the text is empty or not valid base64.
    """
    payload = _DATA_URI_PREFIX.sub("", image_base64.strip())
    if not payload:
        raise InvalidImageError("No image data to analyze.")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError("Image data is not valid base64.") from e


def parse_route_analysis(text: str | None) -> RouteAnalysis:
    """Parse the service's text payload into a RouteAnalysis.

    Args:
        text: JSON text returned by the model, possibly wrapped in a
            markdown code fence.

    Returns:
        Validated, immutable RouteAnalysis.

    Raises:
        EmptyResponseError: If ``text`` is None or blank.
        InvalidResponseFormatError: If ``text`` is not JSON matching the
            RouteAnalysis shape.
    """
    if text is None or not text.strip():
        raise EmptyResponseError(EMPTY_RESPONSE_MESSAGE)

    payload = text.strip()
    fenced = _CODE_FENCE.match(payload)
    if fenced:
        payload = fenced.group(1)

    try:
        return RouteAnalysis.model_validate_json(payload)
    except ValidationError as e:
        logger.error(
            "Failed to parse analysis response",
            extra={
                "error_count": e.error_count(),
                "payload_preview": payload[:200],
            },
        )
        raise InvalidResponseFormatError(INVALID_FORMAT_MESSAGE) from e


def _response_text(response: Any) -> str | None:
    """Text payload of an SDK response; None when it carries no text part."""
    return getattr(response, "text", None)


class RouteAnalysisClient:
    """Client for one-shot route analysis requests.

    Args:
        api_key: Gemini API credential. Required before the first request
            unless ``client`` is supplied.
        model: Model name used for ``generate_content``.
        timeout_seconds: Request timeout passed to the SDK.
        client: Pre-built ``google.genai.Client`` (or a test double). When
            omitted, one is created from ``api_key`` on first use.
    """

    def __init__(
        self,
        api_key: str = "",
        model: str = DEFAULT_MODEL,
        timeout_seconds: float = 60.0,
        client: Any | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "RouteAnalysisClient":
        """Build a client from application settings."""
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout_seconds=settings.gemini_timeout_seconds,
        )

    @property
    def model(self) -> str:
        """Model name used for requests."""
        return self._model

    @property
    def is_configured(self) -> bool:
        """True when a credential or an injected client is available."""
        return self._client is not None or bool(self._api_key)

    def _get_client(self) -> Any:
        """Return the SDK client, creating it from the credential if needed.

        Raises:
            AnalysisConfigurationError: If no credential was provided.
        """
        if self._client is None:
            if not self._api_key:
                raise AnalysisConfigurationError(
                    "Analysis service is not configured: set CS_GEMINI_API_KEY."
                )
            self._client = genai.Client(
                api_key=self._api_key,
                http_options=types.HttpOptions(
                    timeout=int(self._timeout_seconds * 1000)
                ),
            )
        return self._client

    def build_contents(self, image_bytes: bytes) -> list[types.Content]:
        """Build the request contents: instruction text then inline image."""
        return [
            types.Content(
                role="user",
                parts=[
                    types.Part.from_text(text=ANALYSIS_PROMPT),
                    types.Part.from_bytes(data=image_bytes, mime_type=IMAGE_MIME_TYPE),
                ],
            )
        ]

    def build_config(self) -> types.GenerateContentConfig:
        """Build the generation config declaring the JSON response schema."""
        return types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=RESPONSE_SCHEMA,
        )

    async def analyze(self, image_base64: str) -> RouteAnalysis:
        """Analyze a wall photograph.

        Args:
            image_base64: Base64 JPEG with no data-URI prefix.

        Returns:
            Parsed RouteAnalysis.

        Raises:
            InvalidImageError: If the image text does not decode.
            AnalysisConfigurationError: If no credential is available.
            AnalysisServiceError: If the request fails.
            EmptyResponseError: If the response has no text payload.
            InvalidResponseFormatError: If the payload does not parse.
        """
        image_bytes = decode_image(image_base64)
        client = self._get_client()

        started = time.monotonic()
        with _service_op("Route analysis request failed"):
            response = await client.aio.models.generate_content(
                model=self._model,
                contents=self.build_contents(image_bytes),
                config=self.build_config(),
            )

        text = _response_text(response)
        analysis = parse_route_analysis(text)

        logger.info(
            "Route analysis completed",
            extra={
                "model": self._model,
                "image_bytes": len(image_bytes),
                "hold_count": len(analysis.holds),
                "beta_count": len(analysis.beta),
                "grade": analysis.grade,
                "elapsed_ms": round((time.monotonic() - started) * 1000),
            },
        )
        return analysis
