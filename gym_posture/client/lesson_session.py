import logging
from dataclasses import dataclass, field
from enum import Enum
from itertools import count

from gym_posture.client.capture import CaptureController, next_unfilled_position, to_position
from gym_posture.client.errors import CaptureError, ReconciliationError, UploadError, ValidationError
from gym_posture.client.http import ApiClient, parse_response
from gym_posture.client.upload import PersistedGroupId, UploadCoordinator
from gym_posture.constants import PosturePosition
from gym_posture.schemas.lesson import LessonCreate, LessonResponse

logger = logging.getLogger(__name__)


class CaptureStatus(str, Enum):
    UPLOADED = "uploaded"
    LOCAL_ONLY = "local_only"
    FAILED = "failed"


@dataclass
class PosturePreview:
    position: PosturePosition
    url: str
    storage_key: str | None = None
    image_id: str | None = None
    sequence: int = 0

    @property
    def uploaded(self) -> bool:
        return self.image_id is not None


@dataclass
class CaptureOutcome:
    status: CaptureStatus
    position: PosturePosition
    preview: PosturePreview | None = None
    error: str | None = None


@dataclass
class LessonSubmission:
    lesson: LessonResponse
    posture_group: PersistedGroupId | None
    warnings: list[str] = field(default_factory=list)


class LessonCaptureSession:
    """Capture-and-upload flow of the lesson creation form.

    Each step is awaited in order and its result is reported as a
    CaptureOutcome; failures past the capture step degrade to the local
    preview instead of blocking the form.
    """

    def __init__(
        self,
        api: ApiClient,
        capture: CaptureController,
        customer_id: str | None = None,
        coordinator: UploadCoordinator | None = None,
    ):
        self.api = api
        self.capture = capture
        self.coordinator = coordinator or UploadCoordinator(api, customer_id)
        self.previews: dict[PosturePosition, PosturePreview] = {}
        self.last_error: str | None = None
        self._override: PosturePosition | None = None
        self._sequence = count(1)
        self._submitted: LessonSubmission | None = None

    async def __aenter__(self) -> "LessonCaptureSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    @property
    def customer_id(self) -> str | None:
        return self.coordinator.customer_id

    @property
    def selected_position(self) -> PosturePosition:
        if self._override is not None:
            return self._override
        return next_unfilled_position(self.previews)

    def select_position(self, position: PosturePosition | str) -> None:
        self._override = to_position(position)

    def remove_preview(self, position: PosturePosition | str) -> None:
        self.previews.pop(to_position(position), None)

    async def start_camera(self) -> None:
        try:
            await self.capture.start_camera()
            self.last_error = None
        except CaptureError as e:
            self.last_error = e.message
            raise

    def close(self) -> None:
        self.capture.stop_camera()

    def _set_preview(self, preview: PosturePreview) -> None:
        # uploads may finish out of order; the most recent capture for a slot wins
        current = self.previews.get(preview.position)
        if current is None or preview.sequence >= current.sequence:
            self.previews[preview.position] = preview

    async def capture_and_upload(self, position: PosturePosition | str | None = None) -> CaptureOutcome:
        target = to_position(position) if position is not None else self.selected_position
        self.last_error = None

        try:
            frame = self.capture.capture_frame(target)
        except CaptureError as e:
            self.last_error = e.message
            return CaptureOutcome(CaptureStatus.FAILED, target, error=e.message)

        self._override = None
        sequence = next(self._sequence)
        local = PosturePreview(position=target, url=frame.preview_url, sequence=sequence)
        self._set_preview(local)

        try:
            group = self.coordinator.ensure_group()
        except ValidationError as e:
            self.last_error = f"{e.message}; showing local preview only"
            return CaptureOutcome(CaptureStatus.LOCAL_ONLY, target, local, self.last_error)

        try:
            result = await self.coordinator.upload_image(frame.data, group, target)
        except UploadError as e:
            self.last_error = e.message
            return CaptureOutcome(CaptureStatus.LOCAL_ONLY, target, local, e.message)

        uploaded = PosturePreview(
            position=target,
            url=result.signed_url or frame.preview_url,
            storage_key=result.storage_key,
            image_id=result.image_id,
            sequence=sequence,
        )
        self._set_preview(uploaded)
        return CaptureOutcome(CaptureStatus.UPLOADED, target, uploaded)

    async def submit_lesson(self, lesson: LessonCreate) -> LessonSubmission:
        """Create the lesson, then reconcile its posture group exactly once."""
        if self._submitted is not None:
            return self._submitted
        if not self.customer_id:
            raise ValidationError("Please select a customer")

        raw = await self.api.post(f"/customers/{self.customer_id}/lessons", json=lesson.to_wire())
        created = parse_response(LessonResponse, raw)
        submission = LessonSubmission(lesson=created, posture_group=None)

        try:
            group = await self.coordinator.link_group_to_lesson(created.id)
            submission.posture_group = group if isinstance(group, PersistedGroupId) else None
        except ReconciliationError as e:
            # the lesson is already saved; report and move on
            logger.warning("Lesson %s saved without posture photos: %s", created.id, e.message)
            submission.warnings.append(e.message)
            self.last_error = e.message

        self._submitted = submission
        return submission
