from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse

from gym_posture.constants import JPEG_MIME_TYPE
from gym_posture.dependencies import get_storage
from gym_posture.services.object_storage import LocalObjectStorage, ObjectStorageGateway

router = APIRouter(prefix="/storage", tags=["storage"])


def _local_storage(storage: ObjectStorageGateway) -> LocalObjectStorage:
    if not isinstance(storage, LocalObjectStorage):
        raise HTTPException(status_code=404, detail="Not served by this backend")
    return storage


def _file_response(storage: LocalObjectStorage, key: str) -> FileResponse:
    if not storage.exists(key):
        raise HTTPException(status_code=404, detail="Object not found")
    return FileResponse(storage.local_path(key), media_type=JPEG_MIME_TYPE)


@router.get("/signed/{key:path}")
async def read_signed(
    key: str,
    expires: int = Query(...),
    signature: str = Query(...),
    storage: ObjectStorageGateway = Depends(get_storage),
):
    local = _local_storage(storage)
    if not local.verify_signature(key, expires, signature):
        raise HTTPException(status_code=403, detail="Signature invalid or expired")
    return _file_response(local, key)


@router.get("/public/{key:path}")
async def read_public(key: str, storage: ObjectStorageGateway = Depends(get_storage)):
    local = _local_storage(storage)
    if not local.public_read:
        raise HTTPException(status_code=403, detail="Bucket is not public")
    return _file_response(local, key)
