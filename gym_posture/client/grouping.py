"""Day buckets and display labels for posture photographs.

Everything here is pure: pass ``today`` and ``tz`` explicitly to get
deterministic output.
"""
from datetime import date, datetime, tzinfo
from typing import Iterable, Protocol, TypeVar

from gym_posture.constants import PosturePosition

TODAY_LABEL = "Today"
YESTERDAY_LABEL = "Yesterday"
DAY_BEFORE_YESTERDAY_LABEL = "Day before yesterday"
UNKNOWN_DATE_LABEL = "Unknown date"


class HasTakenAt(Protocol):
    taken_at: datetime | str | None


class HasPosition(Protocol):
    position: PosturePosition


T = TypeVar("T", bound=HasTakenAt)
P = TypeVar("P", bound=HasPosition)


def parse_timestamp(value: datetime | str | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _local(value: datetime, tz: tzinfo | None) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(tz)


def format_full_date(value: datetime) -> str:
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def date_label(taken_at: datetime | str | None, today: date | None = None, tz: tzinfo | None = None) -> str:
    moment = parse_timestamp(taken_at)
    if moment is None:
        return UNKNOWN_DATE_LABEL

    local = _local(moment, tz)
    today = today or datetime.now(tz).date()
    diff_days = (today - local.date()).days
    if diff_days == 0:
        return TODAY_LABEL
    if diff_days == 1:
        return YESTERDAY_LABEL
    if diff_days == 2:
        return DAY_BEFORE_YESTERDAY_LABEL
    return format_full_date(local)


def format_date_time_for_compare(taken_at: datetime | str | None, tz: tzinfo | None = None) -> str:
    moment = parse_timestamp(taken_at)
    if moment is None:
        return UNKNOWN_DATE_LABEL
    local = _local(moment, tz)
    return f"{format_full_date(local)} {local:%H:%M}"


def group_by_date(images: Iterable[T], today: date | None = None, tz: tzinfo | None = None) -> dict[str, list[T]]:
    """Bucket images by calendar day.

    Buckets appear in order of their first image and keep the input order
    inside each bucket. Images without a usable timestamp land in the
    "Unknown date" bucket, so every input appears exactly once.
    """
    today = today or datetime.now(tz).date()
    grouped: dict[str, list[T]] = {}
    for image in images:
        grouped.setdefault(date_label(image.taken_at, today, tz), []).append(image)
    return grouped


def flatten(grouped: dict[str, list[T]]) -> list[T]:
    return [image for bucket in grouped.values() for image in bucket]


def sort_newest_first(images: Iterable[T]) -> list[T]:
    dated = []
    undated = []
    for image in images:
        moment = parse_timestamp(image.taken_at)
        (undated if moment is None else dated).append((moment, image))
    dated.sort(key=lambda pair: pair[0].timestamp(), reverse=True)
    return [image for _, image in dated] + [image for _, image in undated]


def previews_by_position(images: Iterable[P]) -> dict[PosturePosition, P]:
    """One image per position; a later image for the same position replaces an earlier one."""
    previews: dict[PosturePosition, P] = {}
    for image in images:
        previews[image.position] = image
    return previews
