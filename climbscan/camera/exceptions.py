"""Camera exception hierarchy.

All camera faults derive from CameraError so the session can surface any
device problem with a single except clause.
"""


class CameraError(Exception):
    """Base class for camera adapter errors.

    Attributes:
        message: User-facing description of the fault.
    """

    def __init__(self, message: str) -> None:
        """Initialize CameraError with a message.

        Args:
            message: Description of the camera fault.
        """
        self.message = message
        super().__init__(self.message)


class CameraUnavailableError(CameraError):
    """Raised when the camera cannot be opened (permission or hardware)."""


class CameraNotActiveError(CameraError):
    """Raised when a frame is requested before the stream is active."""


class CaptureError(CameraError):
    """Raised when an active stream fails to deliver or encode a frame."""
