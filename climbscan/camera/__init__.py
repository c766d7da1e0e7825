"""Device capture: camera stream ownership, snapshots and framing guide."""

from climbscan.camera.adapter import (
    CAMERA_UNAVAILABLE_MESSAGE,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_RESOLUTION,
    CameraAdapter,
    encode_jpeg,
)
from climbscan.camera.exceptions import (
    CameraError,
    CameraNotActiveError,
    CameraUnavailableError,
    CaptureError,
)
from climbscan.camera.guide import draw_framing_guide, guide_box

__all__ = [
    "CAMERA_UNAVAILABLE_MESSAGE",
    "DEFAULT_JPEG_QUALITY",
    "DEFAULT_RESOLUTION",
    "CameraAdapter",
    "CameraError",
    "CameraNotActiveError",
    "CameraUnavailableError",
    "CaptureError",
    "draw_framing_guide",
    "encode_jpeg",
    "guide_box",
]
