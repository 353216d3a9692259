import logging
from typing import Iterable

from gym_posture.client.errors import ApiError, MalformedResponse, SigningError, ValidationError
from gym_posture.client.http import ApiClient, parse_response
from gym_posture.constants import (
    MAX_BATCH_SIGNED_URL_COUNT,
    MAX_SIGNED_URL_EXPIRES_IN,
    MIN_SIGNED_URL_EXPIRES_IN,
)
from gym_posture.schemas.posture import SignedUrlBatchResponse
from gym_posture.services.object_storage import ObjectStorageGateway
from gym_posture.utils.exceptions import StorageError

logger = logging.getLogger(__name__)


def _check_expiry(expires_in: int) -> None:
    if not MIN_SIGNED_URL_EXPIRES_IN <= expires_in <= MAX_SIGNED_URL_EXPIRES_IN:
        raise ValidationError(
            f"expires_in must be between {MIN_SIGNED_URL_EXPIRES_IN} and {MAX_SIGNED_URL_EXPIRES_IN} seconds"
        )


class SignedUrlResolver:
    """Turns image ids or storage keys into time-limited URLs.

    URLs are opaque: resolving the same image twice may return a different
    signature, and an expired URL has to be resolved again.
    """

    def __init__(self, api: ApiClient, storage: ObjectStorageGateway | None = None):
        self.api = api
        self.storage = storage

    async def resolve_batch(self, image_ids: Iterable[str], expires_in: int) -> dict[str, str]:
        """Map each requested id to a URL; ids the server could not sign are absent."""
        _check_expiry(expires_in)
        requested = [image_id for image_id in dict.fromkeys(image_ids) if image_id]
        if not requested:
            return {}

        urls: dict[str, str] = {}
        for start in range(0, len(requested), MAX_BATCH_SIGNED_URL_COUNT):
            chunk = requested[start:start + MAX_BATCH_SIGNED_URL_COUNT]
            logger.debug("Fetching batch signed URLs for %d images", len(chunk))
            try:
                raw = await self.api.post(
                    "/posture-images/signed-urls",
                    json={"imageIds": chunk, "expiresIn": expires_in},
                )
                response = parse_response(SignedUrlBatchResponse, raw)
            except (ApiError, MalformedResponse) as e:
                logger.error("Failed to generate batch signed URLs: %s", e.message)
                raise SigningError(f"Could not load image URLs: {e.message}") from e

            wanted = set(chunk)
            for entry in response.urls:
                if entry.image_id in wanted and entry.signed_url:
                    urls[entry.image_id] = entry.signed_url

        missing = len(requested) - len(urls)
        if missing:
            logger.warning("%d of %d images came back without a signed URL", missing, len(requested))
        return urls

    def resolve_one(self, storage_key: str | None, expires_in: int) -> str | None:
        """Signed URL for a storage key, falling back to its public URL; None if neither works."""
        _check_expiry(expires_in)
        if not storage_key:
            return None
        if self.storage is None:
            raise SigningError("No object storage configured for direct URL resolution")

        try:
            return self.storage.create_signed_url(storage_key, expires_in)
        except StorageError as e:
            logger.error("Error creating signed URL for %s: %s", storage_key, e)

        try:
            return self.storage.get_public_url(storage_key)
        except StorageError as e:
            logger.warning("No URL available for %s, excluding it: %s", storage_key, e)
            return None
