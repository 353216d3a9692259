import logging
import uuid as uuid_mod
from datetime import datetime, timezone

from fastapi import APIRouter, Body, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from gym_posture.constants import ONE_HOUR_IN_SECONDS, TEMPORARY_GROUP_PREFIX
from gym_posture.database import get_db
from gym_posture.dependencies import get_storage
from gym_posture.models.customer import Customer
from gym_posture.models.lesson import Lesson
from gym_posture.schemas.lesson import LessonCreate, LessonDetailResponse, LessonResponse
from gym_posture.schemas.posture import PostureGroupLinkRequest, PostureGroupResponse
from gym_posture.services import posture_repository as repo
from gym_posture.services.object_storage import ObjectStorageGateway
from gym_posture.services.signed_urls import image_response, signed_url_with_fallback
from gym_posture.utils.exceptions import AppException
from gym_posture.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["lessons"])


@router.post("/customers/{customer_id}/lessons", status_code=201)
async def create_lesson(customer_id: str, payload: LessonCreate, db: AsyncSession = Depends(get_db)):
    customer = await db.get(Customer, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")

    lesson = Lesson(
        id=str(uuid_mod.uuid4()),
        customer_id=customer_id,
        start_date=payload.start_date.isoformat(),
        end_date=payload.end_date.isoformat(),
        condition=payload.condition,
        weight=payload.weight,
        memo=payload.memo,
        created_at=datetime.now(timezone.utc).isoformat(),
    )
    db.add(lesson)
    await db.commit()
    await db.refresh(lesson)

    logger.info("Created lesson %s for customer %s", lesson.id, customer_id)
    return success_response(data=LessonResponse.model_validate(lesson))


@router.get("/lessons/{lesson_id}")
async def get_lesson(
    lesson_id: str,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorageGateway = Depends(get_storage),
):
    lesson = await db.get(Lesson, lesson_id)
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")

    group = await repo.get_group_for_lesson(db, lesson_id)
    images = await repo.get_group_images(db, group.id) if group else []

    detail = LessonDetailResponse.model_validate(lesson)
    detail.posture_group_id = group.id if group else None
    detail.posture_images = [
        image_response(img, signed_url_with_fallback(storage, img.storage_key, ONE_HOUR_IN_SECONDS))
        for img in images
    ]
    return success_response(data=detail)


@router.post("/lessons/{lesson_id}/posture_groups", status_code=201)
async def create_posture_group(
    lesson_id: str,
    response: Response,
    payload: PostureGroupLinkRequest | None = Body(default=None),
    db: AsyncSession = Depends(get_db),
):
    lesson = await db.get(Lesson, lesson_id)
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")

    temporary_group_id = payload.temporary_group_id if payload else None
    if temporary_group_id and not temporary_group_id.startswith(TEMPORARY_GROUP_PREFIX):
        raise AppException("temporaryGroupId is not a temporary posture group id", status_code=422)

    group, created = await repo.create_group_for_lesson(db, lesson, temporary_group_id)
    if not created:
        response.status_code = 200
    logger.info("Posture group %s linked to lesson %s (created=%s)", group.id, lesson_id, created)

    images = await repo.get_group_images(db, group.id)
    data = PostureGroupResponse(
        id=group.id,
        lesson_id=group.lesson_id,
        customer_id=group.customer_id,
        captured_at=group.captured_at,
        lesson_start_date=lesson.start_date,
        images=[image_response(img, None) for img in images],
    )
    return success_response(data=data)
