"""Scan session: the idle → camera → analyzing → results | error machine.

``ScanSession`` sequences the camera adapter, the analysis client and
(through the HTTP layer) the renderer. Every event checks and updates the
status synchronously before its first ``await``, so two overlapping
requests can never both pass the same transition. Each analysis also
carries a request token; a completion whose token is no longer current
(for example after :meth:`ScanSession.shutdown`) is discarded.

Transitions:

    idle      --start_scan-->    camera
    camera    --retry_camera-->  camera
    camera    --close_camera-->  idle
    camera    --capture-->       analyzing --> results | error
    results   --reset-->         idle
    error     --reset-->         idle
"""

import asyncio
from typing import Callable, Protocol
from uuid import uuid4

from pydantic import BaseModel, ConfigDict

from climbscan.analysis.exceptions import AnalysisError
from climbscan.camera.adapter import CameraAdapter
from climbscan.camera.exceptions import CameraNotActiveError, CameraUnavailableError
from climbscan.logging_config import get_logger
from climbscan.models import AppStatus, RouteAnalysis

logger = get_logger(__name__)

UNEXPECTED_ANALYSIS_MESSAGE = "Analysis failed unexpectedly. Please try again."


class RouteAnalyzer(Protocol):
    """Anything that turns a base64 JPEG into a RouteAnalysis."""

    async def analyze(self, image_base64: str) -> RouteAnalysis:
        """Analyze one wall image."""
        ...  # pylint: disable=unnecessary-ellipsis


class SessionError(Exception):
    """Base class for scan session errors.

    Attributes:
        message: Human-readable description of the error.
    """

    def __init__(self, message: str) -> None:
        """Initialize SessionError with a message.

        Args:
            message: Description of the session error.
        """
        self.message = message
        super().__init__(self.message)


class InvalidTransitionError(SessionError):
    """Raised when an event is not allowed in the current status."""

    def __init__(self, event: str, status: AppStatus) -> None:
        self.event = event
        self.status = status
        super().__init__(f"Cannot {event.replace('_', ' ')} while {status.value}")


class SessionState(BaseModel):
    """Immutable view of the session for callers and the HTTP layer.

    Attributes:
        status: Current status.
        error: Analysis error message, set only in ``error``.
        camera_error: Device error shown in place while in ``camera``.
        camera_active: True while the camera stream is open.
        has_image: True when a captured image is held.
        analysis: Result of the last analysis, set only in ``results``.
    """

    model_config = ConfigDict(frozen=True)

    status: AppStatus
    error: str | None = None
    camera_error: str | None = None
    camera_active: bool = False
    has_image: bool = False
    analysis: RouteAnalysis | None = None


class ScanSession:
    """Single-user scan session.

    Args:
        analyzer: Analysis client used for captured images.
        camera_factory: Builds a fresh, unopened CameraAdapter for each
            camera view.
    """

    def __init__(
        self,
        analyzer: RouteAnalyzer,
        camera_factory: Callable[[], CameraAdapter],
    ) -> None:
        self._analyzer = analyzer
        self._camera_factory = camera_factory
        self._status = AppStatus.IDLE
        self._camera: CameraAdapter | None = None
        self._camera_error: str | None = None
        self._capturing = False
        self._captured_image: str | None = None
        self._analysis: RouteAnalysis | None = None
        self._error: str | None = None
        self._active_token: str | None = None

    @property
    def status(self) -> AppStatus:
        """Current status."""
        return self._status

    @property
    def captured_image(self) -> str | None:
        """Base64 JPEG of the last capture, cleared on reset."""
        return self._captured_image

    @property
    def analysis(self) -> RouteAnalysis | None:
        """Last successful analysis, cleared on reset."""
        return self._analysis

    @property
    def error(self) -> str | None:
        """Message of the last analysis failure, cleared on reset."""
        return self._error

    def snapshot(self) -> SessionState:
        """Return an immutable view of the current state."""
        return SessionState(
            status=self._status,
            error=self._error,
            camera_error=self._camera_error,
            camera_active=self._camera is not None and self._camera.is_active,
            has_image=self._captured_image is not None,
            analysis=self._analysis,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require(self, event: str, *allowed: AppStatus) -> None:
        if self._status not in allowed:
            raise InvalidTransitionError(event, self._status)

    def _transition(self, new_status: AppStatus) -> None:
        logger.info(
            "Session transition",
            extra={"from_status": self._status.value, "to_status": new_status.value},
        )
        self._status = new_status

    def _active_camera(self) -> CameraAdapter:
        camera = self._camera
        if camera is None or not camera.is_active:
            raise CameraNotActiveError(
                self._camera_error or "Camera stream is not active"
            )
        return camera

    async def _open_camera(self, camera: CameraAdapter, retry: bool = False) -> None:
        """Open (or retry) ``camera``, recording a device error in place."""
        try:
            await asyncio.to_thread(camera.retry if retry else camera.open)
        except CameraUnavailableError as e:
            if self._camera is camera:
                self._camera_error = e.message
            return

        if self._camera is not camera:
            # Camera view was closed while the device was opening
            await asyncio.to_thread(camera.close)
            return
        self._camera_error = None

    async def _release_camera(self) -> None:
        camera, self._camera = self._camera, None
        self._camera_error = None
        if camera is not None:
            await asyncio.to_thread(camera.close)

    def _finish(
        self,
        token: str,
        analysis: RouteAnalysis | None = None,
        error: str | None = None,
    ) -> None:
        """Apply an analysis outcome if ``token`` is still the active one."""
        if token != self._active_token:
            logger.warning("Discarding stale analysis result", extra={"token": token})
            return
        self._active_token = None
        if analysis is not None:
            self._analysis = analysis
            self._transition(AppStatus.RESULTS)
        else:
            self._error = error
            self._transition(AppStatus.ERROR)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def start_scan(self) -> SessionState:
        """Enter the camera view and acquire the camera.

        A device failure keeps the session in ``camera`` with
        ``camera_error`` set; use :meth:`retry_camera` to try again.

        Raises:
            InvalidTransitionError: If the session is not idle.
        """
        self._require("start_scan", AppStatus.IDLE)
        self._transition(AppStatus.CAMERA)
        camera = self._camera_factory()
        self._camera = camera
        await self._open_camera(camera)
        return self.snapshot()

    async def retry_camera(self) -> SessionState:
        """Re-attempt camera acquisition without leaving the camera view.

        Raises:
            InvalidTransitionError: If the session is not in ``camera``.
        """
        self._require("retry_camera", AppStatus.CAMERA)
        if self._camera is None:
            self._camera = self._camera_factory()
        await self._open_camera(self._camera, retry=True)
        return self.snapshot()

    async def close_camera(self) -> SessionState:
        """Leave the camera view without capturing.

        Raises:
            InvalidTransitionError: If the session is not in ``camera``.
        """
        self._require("close_camera", AppStatus.CAMERA)
        self._transition(AppStatus.IDLE)
        await self._release_camera()
        return self.snapshot()

    async def preview(self) -> bytes:
        """Current camera frame as JPEG with the framing guide.

        Raises:
            InvalidTransitionError: If the session is not in ``camera``.
            CameraNotActiveError: If the camera is not streaming.
            CaptureError: If the device returns no frame.
        """
        self._require("preview", AppStatus.CAMERA)
        camera = self._active_camera()
        return await asyncio.to_thread(camera.preview)

    async def capture(self) -> SessionState:
        """Snapshot the camera and analyze the image.

        Returns once the analysis has finished; the session is then in
        ``results`` or ``error``.

        Raises:
            InvalidTransitionError: If the session is not in ``camera`` or a
                capture is already underway.
            CameraNotActiveError: If the camera is not streaming.
            CaptureError: If the device returns no frame. The session stays
                in ``camera``.
        """
        self._require("capture", AppStatus.CAMERA)
        if self._capturing:
            raise InvalidTransitionError("capture", AppStatus.ANALYZING)
        camera = self._active_camera()

        self._capturing = True
        try:
            image_base64 = await asyncio.to_thread(camera.capture)
        finally:
            self._capturing = False
        return await self.submit_capture(image_base64)

    async def submit_capture(self, image_base64: str) -> SessionState:
        """Handle a successful capture: enter ``analyzing`` and run analysis.

        Args:
            image_base64: Captured JPEG as base64 text.

        Returns:
            State after the analysis finished (``results`` or ``error``).

        Raises:
            InvalidTransitionError: If the session is not in ``camera``.
        """
        self._require("capture", AppStatus.CAMERA)
        token = uuid4().hex
        self._active_token = token
        self._captured_image = image_base64
        self._analysis = None
        self._error = None
        self._transition(AppStatus.ANALYZING)
        await self._release_camera()

        try:
            analysis = await self._analyzer.analyze(image_base64)
        except AnalysisError as e:
            logger.warning(
                "Analysis failed",
                extra={"error": e.message, "error_type": type(e).__name__},
            )
            self._finish(token, error=e.message)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.exception(
                "Unexpected analysis failure",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            self._finish(token, error=UNEXPECTED_ANALYSIS_MESSAGE)
        else:
            self._finish(token, analysis=analysis)

        return self.snapshot()

    def reset(self) -> SessionState:
        """Return to ``idle``, discarding the captured image and analysis.

        Raises:
            InvalidTransitionError: If the session is not in ``results`` or
                ``error``.
        """
        self._require("reset", AppStatus.RESULTS, AppStatus.ERROR)
        self._captured_image = None
        self._analysis = None
        self._error = None
        self._transition(AppStatus.IDLE)
        return self.snapshot()

    async def shutdown(self) -> None:
        """Release the camera and abandon any in-flight analysis."""
        self._active_token = None
        await self._release_camera()
        self._captured_image = None
        self._analysis = None
        self._error = None
        if self._status is not AppStatus.IDLE:
            self._transition(AppStatus.IDLE)
