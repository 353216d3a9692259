import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from gym_posture.client.errors import DeleteError, PostureClientError, ValidationError
from gym_posture.client.grouping import sort_newest_first
from gym_posture.client.http import ApiClient
from gym_posture.client.images import PostureImageView

logger = logging.getLogger(__name__)


class SelectionState(str, Enum):
    BROWSING = "browsing"
    SELECTING = "selecting"
    COMPARING = "comparing"
    CONFIRMING_DELETE = "confirming_delete"


@dataclass
class DeleteReport:
    deleted: list[str] = field(default_factory=list)
    failed: list[DeleteError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class SelectionStateMachine:
    """Selection, comparison and deletion over the images of one gallery.

    Actions whose preconditions do not hold return False and leave the state
    untouched.
    """

    def __init__(self, api: ApiClient, images: list[PostureImageView] | None = None):
        self.api = api
        self.images: list[PostureImageView] = list(images or [])
        self.state = SelectionState.BROWSING
        self.selected_ids: set[str] = set()
        self.compare_images: list[PostureImageView] = []
        self.last_error: str | None = None

    @property
    def selection_mode(self) -> bool:
        return self.state != SelectionState.BROWSING

    @property
    def can_compare(self) -> bool:
        return self.state == SelectionState.SELECTING and len(self.selected_ids) == 2

    @property
    def can_delete(self) -> bool:
        return self.state == SelectionState.SELECTING and len(self.selected_ids) >= 1

    def set_images(self, images: list[PostureImageView]) -> None:
        self.images = list(images)
        known = {image.id for image in self.images}
        self.selected_ids &= known

    def enter_selection_mode(self) -> None:
        if self.state == SelectionState.BROWSING:
            self.selected_ids.clear()
            self.state = SelectionState.SELECTING

    def exit_selection_mode(self) -> None:
        self.state = SelectionState.BROWSING
        self.selected_ids.clear()
        self.compare_images = []

    def toggle_selection(self, image_id: str) -> bool:
        if self.state != SelectionState.SELECTING:
            return False
        if image_id in self.selected_ids:
            self.selected_ids.remove(image_id)
        elif any(image.id == image_id for image in self.images):
            self.selected_ids.add(image_id)
        else:
            return False
        return True

    def compare(self) -> bool:
        if not self.can_compare:
            return False
        picked = [image for image in self.images if image.id in self.selected_ids]
        if len(picked) != 2:
            return False
        # older photo first: before/after
        self.compare_images = list(reversed(sort_newest_first(picked)))
        self.state = SelectionState.COMPARING
        return True

    def close_comparison(self) -> None:
        if self.state == SelectionState.COMPARING:
            self.compare_images = []
            self.state = SelectionState.SELECTING

    def request_delete(self) -> bool:
        if not self.can_delete:
            return False
        self.state = SelectionState.CONFIRMING_DELETE
        return True

    def cancel_delete(self) -> None:
        if self.state == SelectionState.CONFIRMING_DELETE:
            self.state = SelectionState.SELECTING

    async def _delete_one(self, image_id: str) -> DeleteError | None:
        try:
            await self.api.delete(f"/posture-images/{image_id}")
        except PostureClientError as e:
            logger.error("Failed to delete posture image %s: %s", image_id, e.message)
            return DeleteError(f"Could not delete image: {e.message}", image_id)
        return None

    async def confirm_delete(self) -> DeleteReport:
        if self.state != SelectionState.CONFIRMING_DELETE:
            raise ValidationError("Deletion must be requested and confirmed first")

        image_ids = sorted(self.selected_ids)
        logger.info("Deleting %d posture images", len(image_ids))
        results = await asyncio.gather(*(self._delete_one(image_id) for image_id in image_ids))

        report = DeleteReport()
        for image_id, error in zip(image_ids, results):
            if error is None:
                report.deleted.append(image_id)
            else:
                report.failed.append(error)

        deleted = set(report.deleted)
        self.images = [image for image in self.images if image.id not in deleted]
        self.last_error = "; ".join(error.message for error in report.failed) or None
        self.exit_selection_mode()

        logger.info("Deleted %d posture images, %d failed", len(report.deleted), len(report.failed))
        return report
