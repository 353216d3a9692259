"""Persistence of posture groups and posture image metadata."""
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gym_posture.models.lesson import Lesson
from gym_posture.models.posture import PostureGroup, PostureImage

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def get_group(db: AsyncSession, group_id: str) -> PostureGroup | None:
    return await db.get(PostureGroup, group_id)


async def get_group_for_lesson(db: AsyncSession, lesson_id: str) -> PostureGroup | None:
    result = await db.execute(select(PostureGroup).where(PostureGroup.lesson_id == lesson_id))
    return result.scalars().first()


async def get_staged_images(db: AsyncSession, staging_token: str) -> list[PostureImage]:
    result = await db.execute(
        select(PostureImage).where(
            PostureImage.staging_token == staging_token,
            PostureImage.posture_group_id.is_(None),
        )
    )
    return list(result.scalars().all())


async def create_group_for_lesson(
    db: AsyncSession,
    lesson: Lesson,
    temporary_group_id: str | None = None,
) -> tuple[PostureGroup, bool]:
    """Return the lesson's posture group, creating it on first call.

    Images staged under ``temporary_group_id`` are moved into the group and
    their staging token is cleared. Returns (group, created).
    """
    group = await get_group_for_lesson(db, lesson.id)
    created = group is None
    if created:
        group = PostureGroup(
            id=str(uuid.uuid4()),
            customer_id=lesson.customer_id,
            lesson_id=lesson.id,
            captured_at=_now(),
        )
        db.add(group)
        await db.flush()

    if temporary_group_id:
        adopted = 0
        for image in await get_staged_images(db, temporary_group_id):
            if image.customer_id and image.customer_id != lesson.customer_id:
                logger.warning(
                    "Staged image %s belongs to customer %s, not adopting into lesson %s",
                    image.id, image.customer_id, lesson.id,
                )
                continue
            image.posture_group_id = group.id
            image.staging_token = None
            image.customer_id = lesson.customer_id
            adopted += 1
        logger.info("Adopted %d staged image(s) into posture group %s", adopted, group.id)

    await db.commit()
    await db.refresh(group)
    return group, created


async def add_image(
    db: AsyncSession,
    *,
    storage_key: str,
    position: str,
    image_id: str | None = None,
    group: PostureGroup | None = None,
    staging_token: str | None = None,
    customer_id: str | None = None,
    consent_publication: bool = False,
) -> PostureImage:
    if group is None and not staging_token:
        raise ValueError("An image needs either a posture group or a staging token")

    now = _now()
    image = PostureImage(
        id=image_id or str(uuid.uuid4()),
        posture_group_id=group.id if group else None,
        staging_token=None if group else staging_token,
        customer_id=group.customer_id if group else customer_id,
        storage_key=storage_key,
        position=position,
        taken_at=now,
        created_at=now,
        consent_publication=1 if consent_publication else 0,
    )
    db.add(image)
    await db.commit()
    await db.refresh(image)
    return image


async def get_image(db: AsyncSession, image_id: str) -> PostureImage | None:
    return await db.get(PostureImage, image_id)


async def get_images(db: AsyncSession, image_ids: list[str]) -> list[PostureImage]:
    result = await db.execute(select(PostureImage).where(PostureImage.id.in_(image_ids)))
    by_id = {image.id: image for image in result.scalars().all()}
    return [by_id[image_id] for image_id in dict.fromkeys(image_ids) if image_id in by_id]


async def get_group_images(db: AsyncSession, group_id: str) -> list[PostureImage]:
    result = await db.execute(
        select(PostureImage)
        .where(PostureImage.posture_group_id == group_id)
        .order_by(PostureImage.taken_at.desc())
    )
    return list(result.scalars().all())


async def delete_image(db: AsyncSession, image: PostureImage) -> None:
    await db.delete(image)
    await db.commit()


async def list_groups_for_customer(db: AsyncSession, customer_id: str) -> list[tuple[PostureGroup, Lesson | None, list[PostureImage]]]:
    result = await db.execute(
        select(PostureGroup)
        .where(PostureGroup.customer_id == customer_id)
        .order_by(PostureGroup.captured_at.desc())
    )
    groups = result.scalars().all()

    data = []
    for group in groups:
        lesson = await db.get(Lesson, group.lesson_id)
        images = await get_group_images(db, group.id)
        data.append((group, lesson, images))
    return data
