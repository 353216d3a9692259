from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gym_posture.constants import SEVEN_DAYS_IN_SECONDS
from gym_posture.database import get_db
from gym_posture.dependencies import get_storage
from gym_posture.models.customer import Customer
from gym_posture.schemas.customer import CustomerResponse
from gym_posture.schemas.posture import PostureGroupResponse
from gym_posture.services import posture_repository as repo
from gym_posture.services.object_storage import ObjectStorageGateway
from gym_posture.services.signed_urls import image_response, signed_url_with_fallback
from gym_posture.utils.response import success_response

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("")
async def list_customers(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Customer).order_by(Customer.name))
    customers = result.scalars().all()
    return success_response(data=[CustomerResponse.model_validate(c) for c in customers])


@router.get("/{customer_id}/posture_groups")
async def list_posture_groups(
    customer_id: str,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorageGateway = Depends(get_storage),
):
    customer = await db.get(Customer, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")

    data = []
    for group, lesson, images in await repo.list_groups_for_customer(db, customer_id):
        data.append(PostureGroupResponse(
            id=group.id,
            lesson_id=group.lesson_id,
            customer_id=group.customer_id,
            captured_at=group.captured_at,
            lesson_start_date=lesson.start_date if lesson else None,
            images=[
                image_response(img, signed_url_with_fallback(storage, img.storage_key, SEVEN_DAYS_IN_SECONDS))
                for img in images
            ],
        ))
    return success_response(data=data)
