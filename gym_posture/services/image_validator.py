"""Check uploaded posture photographs before they reach object storage."""
import io
import logging

from PIL import Image, UnidentifiedImageError

from gym_posture.config import settings
from gym_posture.utils.exceptions import InvalidImageError, PayloadTooLargeError

logger = logging.getLogger(__name__)

ACCEPTED_FORMATS = {"JPEG", "PNG", "WEBP"}


def validate_photo(content: bytes, max_bytes: int | None = None) -> tuple[int, int]:
    """Validate size and decodability of an uploaded photo.

    Returns the (width, height) of the image.
    """
    limit = max_bytes if max_bytes is not None else settings.max_photo_size_bytes
    if not content:
        raise InvalidImageError("Uploaded file is empty")
    if len(content) > limit:
        raise PayloadTooLargeError(len(content), limit)

    try:
        with Image.open(io.BytesIO(content)) as img:
            img.verify()
            image_format = img.format
            size = img.size
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.info("Rejected upload that is not a decodable image: %s", e)
        raise InvalidImageError("Uploaded file is not a valid image") from e

    if image_format not in ACCEPTED_FORMATS:
        raise InvalidImageError(f"Unsupported image format: {image_format}")
    return size
