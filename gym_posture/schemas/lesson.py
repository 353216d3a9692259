from datetime import datetime

from pydantic import Field, model_validator

from gym_posture.schemas.base import CamelModel
from gym_posture.schemas.posture import PostureImageResponse


class LessonCreate(CamelModel):
    start_date: datetime
    end_date: datetime
    condition: str | None = None
    weight: float | None = Field(default=None, ge=30, le=300)
    memo: str | None = None

    @model_validator(mode="after")
    def check_date_range(self):
        if self.end_date <= self.start_date:
            raise ValueError("endDate must be after startDate")
        return self


class LessonResponse(CamelModel):
    id: str
    customer_id: str
    start_date: str
    end_date: str
    condition: str | None = None
    weight: float | None = None
    memo: str | None = None
    created_at: str


class LessonDetailResponse(LessonResponse):
    posture_group_id: str | None = None
    posture_images: list[PostureImageResponse] = []
