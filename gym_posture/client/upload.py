"""Posture group provisioning and image upload for a lesson being created.

A lesson's posture group can only be created server-side once the lesson
exists, but photos are taken while the lesson form is still open. Uploads are
therefore tagged with a client-side ``TemporaryGroupId``; after the lesson is
saved, ``link_group_to_lesson`` asks the API to create the real group and
adopt the staged photos, and the coordinator switches to the
``PersistedGroupId`` it gets back.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Union

from gym_posture.client.errors import ApiError, MalformedResponse, ReconciliationError, UploadError, ValidationError
from gym_posture.client.http import ApiClient, parse_response
from gym_posture.constants import JPEG_MIME_TYPE, TEMPORARY_GROUP_PREFIX, PosturePosition
from gym_posture.schemas.posture import PostureGroupResponse, PostureImageResponse

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/posture-images/upload"


@dataclass(frozen=True)
class TemporaryGroupId:
    token: str

    @classmethod
    def generate(cls, clock=time.time) -> "TemporaryGroupId":
        return cls(f"{TEMPORARY_GROUP_PREFIX}{int(clock() * 1000)}")

    @property
    def wire_value(self) -> str:
        return self.token


@dataclass(frozen=True)
class PersistedGroupId:
    id: str

    @property
    def wire_value(self) -> str:
        return self.id


GroupId = Union[TemporaryGroupId, PersistedGroupId]


class CoordinatorState(str, Enum):
    NO_GROUP = "no_group"
    TEMP_GROUP = "temp_group"
    LINKED = "linked"
    PERSISTED = "persisted"


@dataclass
class UploadResult:
    image_id: str
    storage_key: str
    signed_url: str | None
    position: PosturePosition
    group_id: str


class UploadCoordinator:
    """Single writer of the temporary-to-real group transition for one lesson form."""

    def __init__(
        self,
        api: ApiClient,
        customer_id: str | None = None,
        group: PersistedGroupId | None = None,
        clock=time.time,
    ):
        self.api = api
        self.customer_id = customer_id
        self._clock = clock
        self._group: GroupId | None = group
        self._linked_lesson_id: str | None = None
        self._attempted_lesson_id: str | None = None
        self.state = CoordinatorState.PERSISTED if group else CoordinatorState.NO_GROUP

    @property
    def group(self) -> GroupId | None:
        return self._group

    def select_customer(self, customer_id: str | None) -> None:
        if self._group is not None and customer_id != self.customer_id:
            raise ValidationError("Customer cannot change once photos are attached to this lesson")
        self.customer_id = customer_id

    def ensure_group(self) -> GroupId:
        """Group for this capture session; allocates a temporary one on first use."""
        if self._group is not None:
            return self._group
        if not self.customer_id:
            raise ValidationError("Please select a customer")

        self._group = TemporaryGroupId.generate(self._clock)
        self.state = CoordinatorState.TEMP_GROUP
        logger.debug("Temporary posture group id created: %s", self._group.token)
        return self._group

    async def upload_image(
        self,
        data: bytes,
        group: GroupId,
        position: PosturePosition | str,
        consent: bool = False,
    ) -> UploadResult:
        position = PosturePosition(position)
        form = {
            "postureGroupId": group.wire_value,
            "position": position.value,
            "consentPublication": "true" if consent else "false",
        }
        if isinstance(group, TemporaryGroupId) and self.customer_id:
            form["customerId"] = self.customer_id

        logger.debug("Uploading %s image (%d bytes) to group %s", position.value, len(data), group.wire_value)
        try:
            raw = await self.api.post_form_data(
                UPLOAD_PATH,
                data=form,
                files={"file": (f"{position.value}.jpg", data, JPEG_MIME_TYPE)},
            )
            image = parse_response(PostureImageResponse, raw)
        except (ApiError, MalformedResponse) as e:
            logger.error("Failed to upload %s image: %s", position.value, e.message)
            raise UploadError(f"Image upload failed: {e.message}") from e

        if not image.signed_url:
            logger.warning("Upload of %s returned no signed URL", position.value)
        return UploadResult(
            image_id=image.id,
            storage_key=image.storage_key,
            signed_url=image.signed_url,
            position=position,
            group_id=group.wire_value,
        )

    async def link_group_to_lesson(self, lesson_id: str) -> PersistedGroupId | None:
        """Turn the temporary group into the lesson's real group.

        Runs at most once: after a failed attempt the temporary group stays
        as it is and later calls raise without a request. Without a temporary
        group there is nothing to reconcile and no request is made.
        """
        group = self._group
        if not isinstance(group, TemporaryGroupId):
            if self._linked_lesson_id and self._linked_lesson_id != lesson_id:
                logger.warning("Posture group already linked to lesson %s, not %s", self._linked_lesson_id, lesson_id)
            return group

        if self._attempted_lesson_id is not None:
            raise ReconciliationError(
                f"Photos were already submitted for lesson {self._attempted_lesson_id} and could not be linked"
            )
        self._attempted_lesson_id = lesson_id

        try:
            raw = await self.api.post(
                f"/lessons/{lesson_id}/posture_groups",
                json={"temporaryGroupId": group.token},
            )
            created = parse_response(PostureGroupResponse, raw)
        except (ApiError, MalformedResponse) as e:
            logger.warning("Failed to create posture group for lesson %s: %s", lesson_id, e.message)
            raise ReconciliationError(f"Photos could not be linked to the lesson: {e.message}") from e

        self._group = PersistedGroupId(created.id)
        self._linked_lesson_id = lesson_id
        self.state = CoordinatorState.LINKED
        logger.info("Posture group %s linked to lesson %s (%d images)", created.id, lesson_id, len(created.images))
        return self._group
