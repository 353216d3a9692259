import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gym_posture.models.customer import Customer


SEED_CUSTOMERS = [
    {"id": str(uuid.uuid5(uuid.NAMESPACE_DNS, "customer-001")), "name": "Aiko Tanaka"},
    {"id": str(uuid.uuid5(uuid.NAMESPACE_DNS, "customer-002")), "name": "Marco Rossi"},
    {"id": str(uuid.uuid5(uuid.NAMESPACE_DNS, "customer-003")), "name": "Dana Whitfield"},
]


async def seed_data(session: AsyncSession) -> None:
    result = await session.execute(select(Customer).limit(1))
    if result.scalars().first() is not None:
        return

    now = datetime.now(timezone.utc).isoformat()
    for c in SEED_CUSTOMERS:
        session.add(Customer(created_at=now, **c))

    await session.commit()
