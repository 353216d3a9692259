"""Values shared by the API and the client core.

Signed-URL limits must stay identical on both sides: the client validates
``expires_in`` before sending it and the API rejects anything outside the
same range.
"""
from enum import Enum


class PosturePosition(str, Enum):
    FRONT = "front"
    RIGHT = "right"
    BACK = "back"
    LEFT = "left"


ALL_POSTURE_POSITIONS: tuple[PosturePosition, ...] = (
    PosturePosition.FRONT,
    PosturePosition.RIGHT,
    PosturePosition.BACK,
    PosturePosition.LEFT,
)


def is_posture_position(value: str) -> bool:
    return value in {p.value for p in PosturePosition}


ONE_HOUR_IN_SECONDS = 3600
SEVEN_DAYS_IN_SECONDS = 604800

DEFAULT_SIGNED_URL_EXPIRES_IN = ONE_HOUR_IN_SECONDS
MIN_SIGNED_URL_EXPIRES_IN = 60
MAX_SIGNED_URL_EXPIRES_IN = SEVEN_DAYS_IN_SECONDS
MAX_BATCH_SIGNED_URL_COUNT = 50

TEMPORARY_GROUP_PREFIX = "temp-"

JPEG_MIME_TYPE = "image/jpeg"
JPEG_QUALITY = 92
DEFAULT_CANVAS_SIZE = (640, 480)
MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024
