"""
Pytest configuration and fixtures for ClimbScan tests.
"""

import base64
import io
import json
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import cv2
import numpy as np
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image

from climbscan.analysis.client import RouteAnalysisClient
from climbscan.app import create_app
from climbscan.camera.adapter import CameraAdapter
from climbscan.models import RouteAnalysis

SAMPLE_ANALYSIS: dict[str, Any] = {
    "name": "Crimson Arete",
    "grade": "V4",
    "description": "Technical arete with a committing top-out.",
    "style": "Technical",
    "holds": [
        {"x": 50, "y": 90, "type": "start"},
        {"x": 55, "y": 10, "type": "top"},
    ],
    "beta": [{"step": 1, "action": "Start", "description": "Match both hands."}],
}


class FakeVideoCapture:
    """Stand-in for ``cv2.VideoCapture`` serving a fixed frame.

    Args:
        frame: BGR frame returned by ``read``; None simulates a dead feed.
        opened: Whether ``isOpened`` reports success.
    """

    def __init__(self, frame: np.ndarray | None, opened: bool = True) -> None:
        self.frame = frame
        self.opened = opened
        self.released = False
        self.requested: dict[int, float] = {}

    def isOpened(self) -> bool:  # pylint: disable=invalid-name
        return self.opened

    def set(self, prop: int, value: float) -> bool:
        self.requested[prop] = value
        return True

    def get(self, prop: int) -> float:
        if self.frame is None:
            return 0.0
        if prop == cv2.CAP_PROP_FRAME_WIDTH:
            return float(self.frame.shape[1])
        if prop == cv2.CAP_PROP_FRAME_HEIGHT:
            return float(self.frame.shape[0])
        return 0.0

    def read(self) -> tuple[bool, np.ndarray | None]:
        if self.frame is None:
            return False, None
        return True, self.frame.copy()

    def release(self) -> None:
        self.released = True


class CaptureFactory:
    """Callable replacing ``cv2.VideoCapture`` that records every handle.

    ``available`` can be toggled between calls to simulate a device that
    comes back after a retry.
    """

    def __init__(self, frame: np.ndarray | None, available: bool = True) -> None:
        self.frame = frame
        self.available = available
        self.handles: list[FakeVideoCapture] = []

    def __call__(self, source: int | str) -> FakeVideoCapture:
        handle = FakeVideoCapture(self.frame, opened=self.available)
        self.handles.append(handle)
        return handle


@pytest.fixture
def sample_frame() -> np.ndarray:
    """A 640x480 BGR frame with some structure so JPEG encoding is non-trivial."""
    frame = np.zeros((480, 640, 3), dtype=np.uint8)
    frame[:, :320] = (40, 80, 160)
    frame[100:200, 400:500] = (255, 255, 255)
    return frame


@pytest.fixture
def capture_factory(sample_frame: np.ndarray) -> CaptureFactory:
    """Capture factory serving ``sample_frame``."""
    return CaptureFactory(sample_frame)


@pytest.fixture
def camera_factory(
    capture_factory: CaptureFactory,
) -> Callable[[], CameraAdapter]:
    """Factory of unopened CameraAdapters backed by the fake device."""

    def factory() -> CameraAdapter:
        return CameraAdapter(source=0, capture_factory=capture_factory)

    return factory


@pytest.fixture
def sample_analysis_data() -> dict[str, Any]:
    """Provide a well-formed analysis payload as returned by the service."""
    return json.loads(json.dumps(SAMPLE_ANALYSIS))


@pytest.fixture
def sample_analysis(sample_analysis_data: dict[str, Any]) -> RouteAnalysis:
    """Parsed RouteAnalysis for the sample payload."""
    return RouteAnalysis.model_validate(sample_analysis_data)


@pytest.fixture
def sample_jpeg_bytes() -> bytes:
    """Create a valid 200x150 JPEG image."""
    img = Image.new("RGB", (200, 150), color=(90, 60, 30))
    img_bytes = io.BytesIO()
    img.save(img_bytes, format="JPEG", quality=90)
    return img_bytes.getvalue()


@pytest.fixture
def sample_png_bytes() -> bytes:
    """Create a valid 200x150 PNG image."""
    img = Image.new("RGB", (200, 150), color=(30, 60, 90))
    img_bytes = io.BytesIO()
    img.save(img_bytes, format="PNG")
    return img_bytes.getvalue()


@pytest.fixture
def sample_image_b64(sample_jpeg_bytes: bytes) -> str:
    """Base64 text of ``sample_jpeg_bytes``."""
    return base64.b64encode(sample_jpeg_bytes).decode("ascii")


def make_genai_client(text: str | None = None, error: Exception | None = None) -> Any:
    """Build a fake ``google.genai.Client`` for ``aio.models.generate_content``.

    Args:
        text: Value of ``response.text``.
        error: Exception raised by ``generate_content`` instead of returning.

    Returns:
        MagicMock whose ``aio.models.generate_content`` is an AsyncMock.
    """
    client = MagicMock()
    response = MagicMock()
    response.text = text
    client.aio.models.generate_content = AsyncMock(
        return_value=response, side_effect=error
    )
    return client


@pytest.fixture
def genai_client(sample_analysis_data: dict[str, Any]) -> Any:
    """Fake SDK client returning the sample analysis as JSON text."""
    return make_genai_client(json.dumps(sample_analysis_data))


@pytest.fixture
def analysis_client(genai_client: Any) -> RouteAnalysisClient:
    """RouteAnalysisClient wired to the fake SDK client."""
    return RouteAnalysisClient(api_key="test-key", model="test-model", client=genai_client)


@pytest.fixture
def test_settings() -> dict[str, Any]:
    """Settings overrides used by the application fixtures."""
    return {
        "testing": True,
        "debug": True,
        "api_key": "",
        "gemini_api_key": "test-key",
        "rate_limit_analyze": 0,
    }


@pytest.fixture
def app(
    test_settings: dict[str, Any],
    analysis_client: RouteAnalysisClient,
    camera_factory: Callable[[], CameraAdapter],
) -> FastAPI:
    """Create a test application with fake camera and analysis service."""
    return create_app(
        test_settings, analyzer=analysis_client, camera_factory=camera_factory
    )


@pytest.fixture
def client(app: FastAPI) -> TestClient:  # pylint: disable=redefined-outer-name
    """Create a test client for the application."""
    return TestClient(app)


@pytest.fixture
def make_capture_factory() -> type[CaptureFactory]:
    """The CaptureFactory class, for tests that need a custom device."""
    return CaptureFactory


@pytest.fixture
def make_genai() -> Callable[..., Any]:
    """The fake SDK client builder, for tests that need a custom response."""
    return make_genai_client
