import logging
from datetime import date, tzinfo

from gym_posture.client.errors import ApiError, MalformedResponse, SigningError, ValidationError
from gym_posture.client.grouping import group_by_date, previews_by_position, sort_newest_first
from gym_posture.client.http import ApiClient, parse_response
from gym_posture.client.images import PostureImageView, to_view
from gym_posture.client.resolver import SignedUrlResolver
from gym_posture.client.selection import DeleteReport, SelectionState, SelectionStateMachine
from gym_posture.constants import ONE_HOUR_IN_SECONDS, SEVEN_DAYS_IN_SECONDS, PosturePosition
from gym_posture.schemas.lesson import LessonDetailResponse
from gym_posture.schemas.posture import PostureCompareResponse, PostureGroupResponse, PostureImageResponse

logger = logging.getLogger(__name__)


def _views(images: list[PostureImageResponse], today: date | None, tz: tzinfo | None) -> list[PostureImageView]:
    views = []
    for image in images:
        view = to_view(image, today, tz)
        if view is not None:
            views.append(view)
    return views


class PostureGallery:
    """Customer posture photos grouped by day, with selection/compare/delete."""

    def __init__(
        self,
        api: ApiClient,
        resolver: SignedUrlResolver | None = None,
        expires_in: int = SEVEN_DAYS_IN_SECONDS,
        today: date | None = None,
        tz: tzinfo | None = None,
    ):
        self.api = api
        self.resolver = resolver or SignedUrlResolver(api)
        self.expires_in = expires_in
        self.today = today
        self.tz = tz
        self.selection = SelectionStateMachine(api)
        self.customer_id: str | None = None
        self.buckets: dict[str, list[PostureImageView]] = {}
        self.loading = False
        self.error: str | None = None
        self.warning: str | None = None

    @property
    def images(self) -> list[PostureImageView]:
        return self.selection.images

    def _regroup(self) -> None:
        self.buckets = group_by_date(self.images, self.today, self.tz)

    async def _attach_urls(self, views: list[PostureImageView], only_missing: bool) -> None:
        targets = [view for view in views if not (only_missing and view.url)]
        if not targets:
            return
        try:
            urls = await self.resolver.resolve_batch([view.id for view in targets], self.expires_in)
        except SigningError as e:
            self.warning = e.message
            return
        for view in targets:
            # no URL -> the image renders as a placeholder
            view.url = urls.get(view.id)

    async def load(self, customer_id: str) -> None:
        self.customer_id = customer_id
        self.loading = True
        self.error = None
        self.warning = None
        self.selection.exit_selection_mode()
        try:
            raw = await self.api.get(f"/customers/{customer_id}/posture_groups")
            groups = parse_response(list[PostureGroupResponse], raw)
        except (ApiError, MalformedResponse) as e:
            logger.error("Failed to load posture groups for customer %s: %s", customer_id, e.message)
            self.error = e.message
            self.selection.set_images([])
            self._regroup()
            return
        finally:
            self.loading = False

        images = [image for group in groups for image in group.images]
        views = sort_newest_first(_views(images, self.today, self.tz))
        logger.debug("Fetched %d posture groups with %d displayable images", len(groups), len(views))

        await self._attach_urls(views, only_missing=True)
        self.selection.set_images(views)
        self._regroup()

    async def refresh_urls(self) -> None:
        """Re-sign every image still in view, e.g. after the URLs expired."""
        self.warning = None
        await self._attach_urls(self.images, only_missing=False)

    async def confirm_delete(self) -> DeleteReport:
        report = await self.selection.confirm_delete()
        self._regroup()
        if not report.ok:
            self.error = self.selection.last_error
        return report

    async def fetch_comparison(self) -> PostureCompareResponse:
        if self.selection.state != SelectionState.COMPARING:
            raise ValidationError("Select exactly two images to compare")
        before, after = self.selection.compare_images
        raw = await self.api.post("/postures/compare", json={"beforeId": before.id, "afterId": after.id})
        return parse_response(PostureCompareResponse, raw)


async def load_lesson_previews(
    api: ApiClient,
    resolver: SignedUrlResolver,
    lesson_id: str,
    expires_in: int = ONE_HOUR_IN_SECONDS,
) -> dict[PosturePosition, PostureImageView]:
    """Per-position photos of one lesson with fresh URLs; positions without a usable photo are absent."""
    raw = await api.get(f"/lessons/{lesson_id}")
    lesson = parse_response(LessonDetailResponse, raw)
    views = _views(lesson.posture_images, None, None)
    if not views:
        return {}

    try:
        urls = await resolver.resolve_batch([view.id for view in views], expires_in)
    except SigningError:
        urls = {}
    for view in views:
        view.url = urls.get(view.id)

    # oldest first so the newest photo per position wins
    ordered = list(reversed(sort_newest_first(view for view in views if view.url)))
    return previews_by_position(ordered)


def resolve_group_urls(
    views: list[PostureImageView],
    resolver: SignedUrlResolver,
    expires_in: int = SEVEN_DAYS_IN_SECONDS,
) -> list[PostureImageView]:
    """Resolve each image straight against object storage; images without any URL are dropped."""
    resolved = []
    for view in views:
        url = resolver.resolve_one(view.storage_key, expires_in)
        if url is None:
            continue
        view.url = url
        resolved.append(view)
    return resolved
