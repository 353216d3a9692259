"""Camera backends for posture capture.

The capture controller only depends on ``CameraDevice``; tests and kiosks
without a webcam plug in their own implementation.
"""
import logging
from abc import ABC, abstractmethod

from PIL import Image

logger = logging.getLogger(__name__)


class CameraUnavailableError(Exception):
    """The device could not be opened (missing, busy or permission denied)."""


class CameraDevice(ABC):
    @abstractmethod
    def open(self) -> None:
        """Acquire the video stream. Raises CameraUnavailableError."""

    @abstractmethod
    def read_frame(self) -> Image.Image | None:
        """Current frame as an RGB image, or None if no frame is available."""

    @abstractmethod
    def native_size(self) -> tuple[int, int] | None:
        ...

    @abstractmethod
    def release(self) -> None:
        ...

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...


class OpenCVCamera(CameraDevice):
    """User-facing webcam through OpenCV. Video only, no audio track."""

    def __init__(self, device_index: int = 0):
        self.device_index = device_index
        self._capture = None

    def open(self) -> None:
        try:
            import cv2
        except ImportError as e:
            raise CameraUnavailableError("OpenCV backend not installed (pip install gym-posture[camera])") from e

        capture = cv2.VideoCapture(self.device_index)
        if not capture.isOpened():
            capture.release()
            raise CameraUnavailableError(f"Camera {self.device_index} could not be opened")
        self._capture = capture
        logger.info("Camera %d opened", self.device_index)

    def read_frame(self) -> Image.Image | None:
        import cv2

        if self._capture is None:
            return None
        ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        return Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))

    def native_size(self) -> tuple[int, int] | None:
        import cv2

        if self._capture is None:
            return None
        width = int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        if width <= 0 or height <= 0:
            return None
        return width, height

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera %d released", self.device_index)

    @property
    def is_open(self) -> bool:
        return self._capture is not None
