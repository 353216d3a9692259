import logging
import uuid as uuid_mod

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from gym_posture.constants import (
    DEFAULT_SIGNED_URL_EXPIRES_IN,
    MAX_SIGNED_URL_EXPIRES_IN,
    MIN_SIGNED_URL_EXPIRES_IN,
    ONE_HOUR_IN_SECONDS,
    TEMPORARY_GROUP_PREFIX,
    is_posture_position,
)
from gym_posture.database import get_db
from gym_posture.dependencies import get_storage
from gym_posture.models.customer import Customer
from gym_posture.schemas.posture import (
    SignedUrlBatchRequest,
    SignedUrlBatchResponse,
    SignedUrlEntry,
    SignedUrlResponse,
)
from gym_posture.services import posture_repository as repo
from gym_posture.services.image_validator import validate_photo
from gym_posture.services.object_storage import ObjectStorageGateway
from gym_posture.services.signed_urls import expires_at, image_response, sign_batch, signed_url_with_fallback
from gym_posture.utils.exceptions import AppException, InvalidImageError, StorageError
from gym_posture.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posture-images", tags=["posture-images"])


@router.post("/upload", status_code=201)
async def upload_image(
    file: UploadFile = File(...),
    posture_group_id: str = Form(..., alias="postureGroupId"),
    position: str = Form(...),
    consent_publication: bool = Form(False, alias="consentPublication"),
    customer_id: str | None = Form(None, alias="customerId"),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorageGateway = Depends(get_storage),
):
    if not is_posture_position(position):
        raise InvalidImageError(f"Invalid posture position: {position}")

    # A temporary id only tags the upload; it is never stored as a foreign key
    is_temporary = posture_group_id.startswith(TEMPORARY_GROUP_PREFIX)
    group = None
    if is_temporary:
        if customer_id and not await db.get(Customer, customer_id):
            raise HTTPException(status_code=404, detail="Customer not found")
    else:
        group = await repo.get_group(db, posture_group_id)
        if not group:
            raise HTTPException(status_code=404, detail="Posture group not found")

    content = await file.read()
    validate_photo(content)

    image_id = str(uuid_mod.uuid4())
    storage_key = f"{posture_group_id}/{position}-{image_id}.jpg"
    try:
        storage.upload(storage_key, content)
    except StorageError as e:
        logger.error("Storing posture image %s failed: %s", storage_key, e)
        raise AppException("Failed to store image", status_code=502) from e

    image = await repo.add_image(
        db,
        image_id=image_id,
        storage_key=storage_key,
        position=position,
        group=group,
        staging_token=posture_group_id if is_temporary else None,
        customer_id=customer_id,
        consent_publication=consent_publication,
    )
    logger.info("Uploaded posture image %s (%s, %d bytes) to %s", image.id, position, len(content), storage_key)

    signed_url = signed_url_with_fallback(storage, storage_key, ONE_HOUR_IN_SECONDS)
    return success_response(data=image_response(image, signed_url))


@router.post("/signed-urls")
async def create_signed_urls(
    payload: SignedUrlBatchRequest,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorageGateway = Depends(get_storage),
):
    images = await repo.get_images(db, payload.image_ids)
    urls = sign_batch(storage, images, payload.expires_in)
    expiry = expires_at(payload.expires_in)

    logger.info("Signed %d of %d requested posture images", len(urls), len(payload.image_ids))
    data = SignedUrlBatchResponse(
        urls=[SignedUrlEntry(image_id=image_id, signed_url=url, expires_at=expiry) for image_id, url in urls.items()]
    )
    return success_response(data=data)


@router.get("/{image_id}/signed-url")
async def get_signed_url(
    image_id: str,
    expires_in: int = Query(
        DEFAULT_SIGNED_URL_EXPIRES_IN,
        alias="expiresIn",
        ge=MIN_SIGNED_URL_EXPIRES_IN,
        le=MAX_SIGNED_URL_EXPIRES_IN,
    ),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorageGateway = Depends(get_storage),
):
    image = await repo.get_image(db, image_id)
    if not image:
        raise HTTPException(status_code=404, detail="Posture image not found")

    try:
        url = storage.create_signed_url(image.storage_key, expires_in)
    except StorageError as e:
        logger.error("Error creating signed URL for image %s: %s", image_id, e)
        raise AppException("Failed to create signed URL", status_code=502) from e

    return success_response(data=SignedUrlResponse(signed_url=url, expires_at=expires_at(expires_in)))


@router.delete("/{image_id}")
async def delete_image(
    image_id: str,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorageGateway = Depends(get_storage),
):
    image = await repo.get_image(db, image_id)
    if not image:
        raise HTTPException(status_code=404, detail="Posture image not found")

    # Storage removal is best-effort; the metadata row is authoritative
    try:
        storage.remove([image.storage_key])
    except StorageError as e:
        logger.error("Storage delete failed for %s, object may be orphaned: %s", image.storage_key, e)

    await repo.delete_image(db, image)
    logger.info("Deleted posture image %s", image_id)
    return success_response(data={"id": image_id})
