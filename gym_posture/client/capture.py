import asyncio
import base64
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from gym_posture.client.camera import CameraDevice, CameraUnavailableError
from gym_posture.client.errors import CaptureError, SizeExceededError, ValidationError
from gym_posture.constants import (
    ALL_POSTURE_POSITIONS,
    DEFAULT_CANVAS_SIZE,
    JPEG_MIME_TYPE,
    JPEG_QUALITY,
    MAX_FILE_SIZE_BYTES,
    PosturePosition,
)

logger = logging.getLogger(__name__)


@dataclass
class CapturedFrame:
    position: PosturePosition
    data: bytes
    width: int
    height: int
    preview_url: str
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def size(self) -> int:
        return len(self.data)


def local_preview_url(data: bytes, mime_type: str = JPEG_MIME_TYPE) -> str:
    """Displayable URL for a blob that never left this process."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def to_position(value: PosturePosition | str) -> PosturePosition:
    try:
        return PosturePosition(value)
    except ValueError as e:
        raise ValidationError(f"Unknown posture position: {value}") from e


def next_unfilled_position(filled: Iterable[PosturePosition | str]) -> PosturePosition:
    """First canonical slot without a photo; wraps to the first slot when all are taken."""
    taken = {PosturePosition(p) for p in filled}
    for position in ALL_POSTURE_POSITIONS:
        if position not in taken:
            return position
    return ALL_POSTURE_POSITIONS[0]


class CaptureController:
    """Owns the camera for one capture screen and turns frames into JPEG blobs.

    Use as an async context manager so the camera is released on every exit
    path, including a capture that raised halfway through.
    """

    def __init__(
        self,
        camera: CameraDevice,
        max_bytes: int = MAX_FILE_SIZE_BYTES,
        quality: int = JPEG_QUALITY,
        default_size: tuple[int, int] = DEFAULT_CANVAS_SIZE,
    ):
        self.camera = camera
        self.max_bytes = max_bytes
        self.quality = quality
        self.default_size = default_size

    @property
    def is_active(self) -> bool:
        return self.camera.is_open

    async def __aenter__(self) -> "CaptureController":
        await self.start_camera()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.stop_camera()

    async def start_camera(self) -> None:
        if self.is_active:
            return
        try:
            await asyncio.to_thread(self.camera.open)
        except (CameraUnavailableError, OSError) as e:
            logger.error("Camera start failed: %s", e)
            raise CaptureError(f"Could not access the camera: {e}") from e

    def stop_camera(self) -> None:
        if self.camera.is_open:
            self.camera.release()

    def capture_frame(self, position: PosturePosition | str) -> CapturedFrame:
        position = to_position(position)
        if not self.is_active:
            raise CaptureError("Camera is not started")

        frame = self.camera.read_frame()
        if frame is None:
            raise CaptureError("No camera frame available")

        width, height = self.camera.native_size() or self.default_size
        canvas = frame.convert("RGB")
        if canvas.size != (width, height):
            canvas = canvas.resize((width, height))

        buffer = io.BytesIO()
        try:
            canvas.save(buffer, format="JPEG", quality=self.quality)
        except OSError as e:
            raise CaptureError(f"Failed to encode image: {e}") from e
        data = buffer.getvalue()

        if len(data) > self.max_bytes:
            logger.warning("Captured %s frame too large: %d bytes", position.value, len(data))
            raise SizeExceededError(len(data), self.max_bytes)

        logger.debug("Captured %s frame %dx%d (%d bytes)", position.value, width, height, len(data))
        return CapturedFrame(
            position=position,
            data=data,
            width=width,
            height=height,
            preview_url=local_preview_url(data),
        )
