import logging
from datetime import datetime, timedelta, timezone

from gym_posture.models.posture import PostureImage
from gym_posture.schemas.posture import PostureImageResponse
from gym_posture.services.object_storage import ObjectStorageGateway
from gym_posture.utils.exceptions import StorageError

logger = logging.getLogger(__name__)


def expires_at(expires_in: int, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return (now + timedelta(seconds=expires_in)).isoformat()


def signed_url_with_fallback(storage: ObjectStorageGateway, storage_key: str, expires_in: int) -> str | None:
    """Signed URL for ``storage_key``, else its public URL, else None."""
    if not storage_key:
        return None
    try:
        return storage.create_signed_url(storage_key, expires_in)
    except StorageError as e:
        logger.error("Error creating signed URL for %s: %s", storage_key, e)

    try:
        return storage.get_public_url(storage_key)
    except StorageError as e:
        logger.warning("Public URL fallback failed for %s: %s", storage_key, e)
        return None


def sign_batch(storage: ObjectStorageGateway, images: list[PostureImage], expires_in: int) -> dict[str, str]:
    """Map image id -> signed URL; images that cannot be signed are left out."""
    urls: dict[str, str] = {}
    for image in images:
        try:
            urls[image.id] = storage.create_signed_url(image.storage_key, expires_in)
        except StorageError as e:
            logger.warning("Skipping image %s in batch signing: %s", image.id, e)
    return urls


def image_response(image: PostureImage, signed_url: str | None) -> PostureImageResponse:
    return PostureImageResponse(
        id=image.id,
        posture_group_id=image.posture_group_id or image.staging_token,
        storage_key=image.storage_key,
        position=image.position,
        taken_at=image.taken_at,
        created_at=image.created_at,
        signed_url=signed_url,
        consent_publication=bool(image.consent_publication),
    )
