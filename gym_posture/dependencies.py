from fastapi import Header, HTTPException

from gym_posture.config import settings
from gym_posture.services.object_storage import ObjectStorageGateway, get_object_storage


async def verify_api_key(x_api_key: str = Header(default="")) -> None:
    if not settings.api_key:
        return
    if x_api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Invalid or missing API key")


def get_storage() -> ObjectStorageGateway:
    return get_object_storage()
