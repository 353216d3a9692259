from pydantic import Field

from gym_posture.constants import (
    DEFAULT_SIGNED_URL_EXPIRES_IN,
    MAX_BATCH_SIGNED_URL_COUNT,
    MAX_SIGNED_URL_EXPIRES_IN,
    MIN_SIGNED_URL_EXPIRES_IN,
)
from gym_posture.schemas.base import CamelModel


class PostureImageResponse(CamelModel):
    id: str
    posture_group_id: str | None = None
    storage_key: str
    position: str
    taken_at: str
    created_at: str
    signed_url: str | None = None
    consent_publication: bool = False


class SignedUrlBatchRequest(CamelModel):
    image_ids: list[str] = Field(min_length=1, max_length=MAX_BATCH_SIGNED_URL_COUNT)
    expires_in: int = Field(
        default=DEFAULT_SIGNED_URL_EXPIRES_IN,
        ge=MIN_SIGNED_URL_EXPIRES_IN,
        le=MAX_SIGNED_URL_EXPIRES_IN,
    )


class SignedUrlEntry(CamelModel):
    image_id: str
    signed_url: str
    expires_at: str


class SignedUrlBatchResponse(CamelModel):
    urls: list[SignedUrlEntry]


class SignedUrlResponse(CamelModel):
    signed_url: str
    expires_at: str


class PostureGroupLinkRequest(CamelModel):
    temporary_group_id: str | None = None


class PostureGroupResponse(CamelModel):
    id: str
    lesson_id: str
    customer_id: str
    captured_at: str
    lesson_start_date: str | None = None
    images: list[PostureImageResponse] = []


class PostureCompareRequest(CamelModel):
    before_id: str
    after_id: str


class PostureAnalysis(CamelModel):
    status: str
    summary: str | None = None
    observations: list[str] = []


class PostureCompareResponse(CamelModel):
    before: PostureImageResponse
    after: PostureImageResponse
    same_position: bool
    days_between: int
    analysis: PostureAnalysis
