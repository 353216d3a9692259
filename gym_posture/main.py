from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

from gym_posture.config import settings
from gym_posture.database import init_db
from gym_posture.dependencies import verify_api_key
from gym_posture.routers.customers import router as customers_router
from gym_posture.routers.lessons import router as lessons_router
from gym_posture.routers.posture_images import router as posture_images_router
from gym_posture.routers.postures import router as postures_router
from gym_posture.routers.storage import router as storage_router
from gym_posture.utils.exceptions import register_exception_handlers

SERVICE_NAME = "gym-posture-api"
VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


app = FastAPI(
    title="Gym Posture API",
    description="Posture photo capture, storage and comparison for gym lessons",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

_api_key_dep = [Depends(verify_api_key)]

app.include_router(customers_router, prefix="/api/v1", dependencies=_api_key_dep)
app.include_router(lessons_router, prefix="/api/v1", dependencies=_api_key_dep)
app.include_router(posture_images_router, prefix="/api/v1", dependencies=_api_key_dep)
app.include_router(postures_router, prefix="/api/v1", dependencies=_api_key_dep)
# signed URLs carry their own credential
app.include_router(storage_router)


@app.get("/health")
async def health_check():
    return {"status": "success", "data": {"service": SERVICE_NAME, "version": VERSION}, "message": None}
