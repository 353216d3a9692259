from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from gym_posture.constants import ONE_HOUR_IN_SECONDS
from gym_posture.database import get_db
from gym_posture.dependencies import get_storage
from gym_posture.schemas.posture import PostureCompareRequest, PostureCompareResponse
from gym_posture.services import posture_repository as repo
from gym_posture.services.object_storage import ObjectStorageGateway
from gym_posture.services.posture_analysis import compare_postures
from gym_posture.services.signed_urls import image_response, signed_url_with_fallback
from gym_posture.utils.exceptions import AppException
from gym_posture.utils.response import success_response

router = APIRouter(prefix="/postures", tags=["postures"])


@router.post("/compare")
async def compare(
    payload: PostureCompareRequest,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorageGateway = Depends(get_storage),
):
    if payload.before_id == payload.after_id:
        raise AppException("beforeId and afterId must be different images", status_code=422)

    before = await repo.get_image(db, payload.before_id)
    after = await repo.get_image(db, payload.after_id)
    if not before or not after:
        raise HTTPException(status_code=404, detail="Posture image not found")

    days_between = abs(
        (datetime.fromisoformat(after.taken_at).date() - datetime.fromisoformat(before.taken_at).date()).days
    )
    data = PostureCompareResponse(
        before=image_response(before, signed_url_with_fallback(storage, before.storage_key, ONE_HOUR_IN_SECONDS)),
        after=image_response(after, signed_url_with_fallback(storage, after.storage_key, ONE_HOUR_IN_SECONDS)),
        same_position=before.position == after.position,
        days_between=days_between,
        analysis=compare_postures(storage, before, after),
    )
    return success_response(data=data)
