import logging
from dataclasses import dataclass
from datetime import date, datetime, tzinfo

from gym_posture.client.grouping import date_label, format_date_time_for_compare, parse_timestamp
from gym_posture.constants import PosturePosition, is_posture_position
from gym_posture.schemas.posture import PostureImageResponse

logger = logging.getLogger(__name__)


@dataclass
class PostureImageView:
    """A posture image as the gallery shows it.

    ``url`` and the two labels are derived per request and never persisted.
    """

    id: str
    storage_key: str
    position: PosturePosition
    taken_at: datetime | None
    posture_group_id: str | None = None
    consent_publication: bool = False
    url: str | None = None
    date_label: str = ""
    formatted_date_time: str = ""

    def relabel(self, today: date | None = None, tz: tzinfo | None = None) -> None:
        self.date_label = date_label(self.taken_at, today, tz)
        self.formatted_date_time = format_date_time_for_compare(self.taken_at, tz)


def to_view(image: PostureImageResponse, today: date | None = None, tz: tzinfo | None = None) -> PostureImageView | None:
    """Client view of an API image, or None if it cannot be displayed."""
    if not image.storage_key:
        logger.warning("Missing storageKey for image %s", image.id)
        return None
    if not is_posture_position(image.position):
        logger.warning("Invalid posture position %r for image %s", image.position, image.id)
        return None

    view = PostureImageView(
        id=image.id,
        storage_key=image.storage_key,
        position=PosturePosition(image.position),
        taken_at=parse_timestamp(image.taken_at),
        posture_group_id=image.posture_group_id,
        consent_publication=image.consent_publication,
        url=image.signed_url or None,
    )
    view.relabel(today, tz)
    return view
