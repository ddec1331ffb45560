"""Video frame sources for the session monitor."""

import logging
from typing import Optional, Union

import cv2
from typing_extensions import Protocol

logger = logging.getLogger(__name__)


class CameraError(Exception):
    """Base exception for camera errors."""
    pass


class CameraUnavailableError(CameraError):
    """Exception raised when the capture device cannot be opened."""
    pass


class FrameCaptureError(CameraError):
    """Exception raised when a frame cannot be read or encoded."""
    pass


class FrameSource(Protocol):
    """Live video source sampled by the monitor."""

    def open(self) -> None:
        ...

    def capture_jpeg(self, quality: int) -> bytes:
        ...

    def release(self) -> None:
        ...


class OpenCVFrameSource:
    """Webcam (or video file) read through ``cv2.VideoCapture``."""

    def __init__(self, device: Union[int, str] = 0, width: int = 320, height: int = 240):
        self.device = device
        self.width = width
        self.height = height
        self._capture: Optional[cv2.VideoCapture] = None

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def open(self) -> None:
        capture = cv2.VideoCapture(self.device)
        if not capture.isOpened():
            capture.release()
            raise CameraUnavailableError(f"Cannot open capture device {self.device!r}")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture = capture
        logger.info(f"Camera {self.device!r} opened")

    def capture_jpeg(self, quality: int = 70) -> bytes:
        """Grab one frame, resized to the configured size, as JPEG bytes."""
        if self._capture is None:
            raise FrameCaptureError("Camera is not open")

        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise FrameCaptureError("Failed to read frame from camera")

        frame = cv2.resize(frame, (self.width, self.height))
        ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, quality])
        if not ok:
            raise FrameCaptureError("Failed to encode frame as JPEG")
        return buffer.tobytes()

    def release(self) -> None:
        """Stop the capture; safe to call more than once."""
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"Camera {self.device!r} released")
