"""Device capture adapter built on OpenCV.

``CameraAdapter`` owns one ``cv2.VideoCapture`` handle for its active
lifetime. It asks for a preferred resolution (best effort), produces
quality-90 JPEG snapshots as base64 text, and renders preview frames with
the framing guide. The handle is released on ``close()`` and on context
manager exit.

Example:
    >>> with CameraAdapter(source=0) as camera:
    ...     image_b64 = camera.capture()
"""

import base64
import threading
from typing import Any, Callable, Final

import cv2
import numpy as np

from climbscan.camera.exceptions import (
    CameraNotActiveError,
    CameraUnavailableError,
    CaptureError,
)
from climbscan.camera.guide import draw_framing_guide
from climbscan.config import Settings
from climbscan.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_RESOLUTION: Final[tuple[int, int]] = (1920, 1080)
DEFAULT_JPEG_QUALITY: Final[int] = 90

CAMERA_UNAVAILABLE_MESSAGE: Final[str] = (
    "Camera unavailable. Check that the device is connected and that "
    "camera access is allowed."
)

# Type alias for the VideoCapture constructor (swappable in tests)
CaptureFactory = Callable[[int | str], Any]


def encode_jpeg(frame: np.ndarray, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Encode a BGR frame as JPEG.

    Args:
        frame: BGR image array.
        quality: JPEG quality from 1 to 100.

    Returns:
        Encoded JPEG bytes.

    Raises:
        CaptureError: If OpenCV fails to encode the frame.
    """
    ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise CaptureError("Failed to encode camera frame as JPEG")
    return buffer.tobytes()


class CameraAdapter:
    """Exclusive owner of one camera stream.

    Args:
        source: OpenCV device index or stream URL.
        resolution: Preferred ``(width, height)``; the device may deliver less.
        jpeg_quality: Quality used by :meth:`capture`.
        capture_factory: Constructor for the capture handle. Defaults to
            ``cv2.VideoCapture``.
    """

    def __init__(
        self,
        source: int | str = 0,
        resolution: tuple[int, int] = DEFAULT_RESOLUTION,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
        capture_factory: CaptureFactory | None = None,
    ) -> None:
        self._source = source
        self._resolution = resolution
        self._jpeg_quality = jpeg_quality
        self._capture_factory: CaptureFactory = capture_factory or cv2.VideoCapture
        self._cap: Any = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls, settings: Settings, capture_factory: CaptureFactory | None = None
    ) -> "CameraAdapter":
        """Build an adapter from application settings."""
        return cls(
            source=settings.camera_source,
            resolution=(settings.camera_width, settings.camera_height),
            jpeg_quality=settings.jpeg_quality,
            capture_factory=capture_factory,
        )

    @property
    def is_active(self) -> bool:
        """True while a stream handle is open."""
        return self._cap is not None

    @property
    def resolution(self) -> tuple[int, int] | None:
        """Native ``(width, height)`` reported by the open stream, or None."""
        with self._lock:
            if self._cap is None:
                return None
            return (
                int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
                int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            )

    def open(self) -> None:
        """Acquire the camera stream.

        Calling ``open`` on an active adapter is a no-op.

        Raises:
            CameraUnavailableError: If the device cannot be opened.
        """
        with self._lock:
            if self._cap is not None:
                return

            try:
                cap = self._capture_factory(self._source)
            except cv2.error as e:
                logger.error(
                    "Camera open raised",
                    extra={"source": str(self._source), "error": str(e)},
                )
                raise CameraUnavailableError(CAMERA_UNAVAILABLE_MESSAGE) from e

            if cap is None or not cap.isOpened():
                if cap is not None:
                    cap.release()
                logger.warning("Camera unavailable", extra={"source": str(self._source)})
                raise CameraUnavailableError(CAMERA_UNAVAILABLE_MESSAGE)

            width, height = self._resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
            self._cap = cap

        logger.info(
            "Camera opened",
            extra={"source": str(self._source), "requested": f"{width}x{height}"},
        )

    def retry(self) -> None:
        """Release any existing handle and re-attempt :meth:`open`.

        Raises:
            CameraUnavailableError: If the device still cannot be opened.
        """
        self.close()
        self.open()

    def read_frame(self) -> np.ndarray:
        """Read the current frame at the stream's native resolution.

        Returns:
            BGR image array.

        Raises:
            CameraNotActiveError: If the stream is not open.
            CaptureError: If the device returns no frame.
        """
        with self._lock:
            if self._cap is None:
                raise CameraNotActiveError("Camera stream is not active")
            ok, frame = self._cap.read()

        if not ok or frame is None:
            raise CaptureError("Camera returned no frame")
        return frame

    def capture(self) -> str:
        """Snapshot the current frame as base64 JPEG text.

        Returns:
            Base64 of a JPEG encoded at the configured quality, with no
            data-URI prefix. The JPEG has the frame's native dimensions.

        Raises:
            CameraNotActiveError: If the stream is not open.
            CaptureError: If no frame is available or encoding fails.
        """
        frame = self.read_frame()
        jpeg = encode_jpeg(frame, self._jpeg_quality)
        height, width = frame.shape[:2]
        logger.info(
            "Frame captured",
            extra={"width": width, "height": height, "jpeg_bytes": len(jpeg)},
        )
        return base64.b64encode(jpeg).decode("ascii")

    def preview(self) -> bytes:
        """Return the current frame as JPEG with the framing guide drawn on it."""
        return encode_jpeg(draw_framing_guide(self.read_frame()), quality=80)

    def close(self) -> None:
        """Release the stream. Safe to call when already closed."""
        with self._lock:
            cap, self._cap = self._cap, None
        if cap is not None:
            cap.release()
            logger.info("Camera released", extra={"source": str(self._source)})

    def __enter__(self) -> "CameraAdapter":
        self.open()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
