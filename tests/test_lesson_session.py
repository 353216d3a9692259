import asyncio
from datetime import datetime, timezone

import httpx
import pytest
from PIL import Image

from gym_posture.client.camera import CameraDevice
from gym_posture.client.capture import CaptureController
from gym_posture.client.http import ApiClient
from gym_posture.client.lesson_session import CaptureStatus, LessonCaptureSession
from gym_posture.client.upload import PersistedGroupId
from gym_posture.constants import PosturePosition
from gym_posture.schemas.lesson import LessonCreate

LESSON = LessonCreate(
    start_date=datetime(2026, 10, 18, 10, tzinfo=timezone.utc),
    end_date=datetime(2026, 10, 18, 11, tzinfo=timezone.utc),
)


class FakeCamera(CameraDevice):
    def __init__(self):
        self.opened = False

    def open(self) -> None:
        self.opened = True

    def read_frame(self):
        return Image.new("RGB", (64, 48), (200, 100, 50))

    def native_size(self):
        return 64, 48

    def release(self) -> None:
        self.opened = False

    @property
    def is_open(self) -> bool:
        return self.opened


def _ok(data) -> httpx.Response:
    return httpx.Response(200, json={"status": "success", "data": data, "message": None})


def _image(image_id: str, position: str = "front") -> dict:
    return {
        "id": image_id,
        "postureGroupId": "temp-1",
        "storageKey": f"temp-1/{position}-{image_id}.jpg",
        "position": position,
        "takenAt": "2026-10-18T10:01:00+00:00",
        "createdAt": "2026-10-18T10:01:00+00:00",
        "signedUrl": f"http://test/signed/{image_id}",
    }


LESSON_DATA = {
    "id": "lesson-1",
    "customerId": "cust-1",
    "startDate": "2026-10-18T10:00:00+00:00",
    "endDate": "2026-10-18T11:00:00+00:00",
    "createdAt": "2026-10-18T09:59:00+00:00",
}

GROUP_DATA = {
    "id": "grp-1",
    "lessonId": "lesson-1",
    "customerId": "cust-1",
    "capturedAt": "2026-10-18T11:00:00+00:00",
    "images": [],
}


def _router(calls: list, fail_upload=False, fail_link=False):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        calls.append(path)
        if path.endswith("/posture-images/upload"):
            if fail_upload:
                raise httpx.ConnectError("connection refused", request=request)
            return _ok(_image(f"img-{len(calls)}"))
        if path.endswith("/lessons"):
            return _ok(LESSON_DATA)
        if path.endswith("/posture_groups"):
            if fail_link:
                return httpx.Response(500, json={"status": "error", "data": None, "message": "Internal server error"})
            return _ok(GROUP_DATA)
        return httpx.Response(404, json={"detail": "Not Found"})
    return handler


@pytest.mark.asyncio
async def test_capture_uploads_and_advances_position():
    calls = []
    async with ApiClient("http://test", transport=httpx.MockTransport(_router(calls))) as api:
        session = LessonCaptureSession(api, CaptureController(FakeCamera()), customer_id="cust-1")
        await session.start_camera()
        assert session.selected_position == PosturePosition.FRONT

        outcome = await session.capture_and_upload()
        assert outcome.status == CaptureStatus.UPLOADED
        assert outcome.preview.url == "http://test/signed/img-1"
        assert session.selected_position == PosturePosition.RIGHT

        session.select_position("left")
        outcome = await session.capture_and_upload()
        session.close()

    assert outcome.position == PosturePosition.LEFT
    assert set(session.previews) == {PosturePosition.FRONT, PosturePosition.LEFT}
    assert not session.capture.is_active


@pytest.mark.asyncio
async def test_capture_without_camera_fails():
    async with ApiClient("http://test", transport=httpx.MockTransport(_router([]))) as api:
        session = LessonCaptureSession(api, CaptureController(FakeCamera()), customer_id="cust-1")
        outcome = await session.capture_and_upload("front")

    assert outcome.status == CaptureStatus.FAILED
    assert session.previews == {}
    assert session.last_error == "Camera is not started"


@pytest.mark.asyncio
async def test_no_customer_keeps_local_preview_only():
    calls = []
    async with ApiClient("http://test", transport=httpx.MockTransport(_router(calls))) as api:
        async with LessonCaptureSession(api, CaptureController(FakeCamera())) as session:
            await session.start_camera()
            outcome = await session.capture_and_upload("back")

    assert outcome.status == CaptureStatus.LOCAL_ONLY
    assert outcome.preview.url.startswith("data:image/jpeg;base64,")
    assert not outcome.preview.uploaded
    assert "select a customer" in outcome.error
    assert calls == []


@pytest.mark.asyncio
async def test_upload_network_error_degrades_to_local_preview():
    calls = []
    async with ApiClient("http://test", transport=httpx.MockTransport(_router(calls, fail_upload=True))) as api:
        async with LessonCaptureSession(api, CaptureController(FakeCamera()), customer_id="cust-1") as session:
            await session.start_camera()
            outcome = await session.capture_and_upload("front")

    assert outcome.status == CaptureStatus.LOCAL_ONLY
    assert session.previews[PosturePosition.FRONT].url.startswith("data:image/jpeg;base64,")
    assert "Network error" in session.last_error


@pytest.mark.asyncio
async def test_latest_capture_wins_when_uploads_finish_out_of_order():
    first_arrived = asyncio.Event()
    first_may_finish = asyncio.Event()
    uploads = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal uploads
        uploads += 1
        number = uploads
        if number == 1:
            first_arrived.set()
            await first_may_finish.wait()
        return _ok(_image(f"img-{number}"))

    async with ApiClient("http://test", transport=httpx.MockTransport(handler)) as api:
        async with LessonCaptureSession(api, CaptureController(FakeCamera()), customer_id="cust-1") as session:
            await session.start_camera()
            slow = asyncio.create_task(session.capture_and_upload("front"))
            await first_arrived.wait()
            fast = await session.capture_and_upload("front")
            first_may_finish.set()
            await slow

    assert fast.preview.image_id == "img-2"
    assert session.previews[PosturePosition.FRONT].image_id == "img-2"


@pytest.mark.asyncio
async def test_submit_links_group_once():
    calls = []
    async with ApiClient("http://test", transport=httpx.MockTransport(_router(calls))) as api:
        async with LessonCaptureSession(api, CaptureController(FakeCamera()), customer_id="cust-1") as session:
            await session.start_camera()
            await session.capture_and_upload("front")
            submission = await session.submit_lesson(LESSON)
            again = await session.submit_lesson(LESSON)

    assert again is submission
    assert submission.lesson.id == "lesson-1"
    assert submission.posture_group == PersistedGroupId("grp-1")
    assert submission.warnings == []
    assert calls == ["/posture-images/upload", "/customers/cust-1/lessons", "/lessons/lesson-1/posture_groups"]


@pytest.mark.asyncio
async def test_submit_without_photos_skips_linking():
    calls = []
    async with ApiClient("http://test", transport=httpx.MockTransport(_router(calls))) as api:
        session = LessonCaptureSession(api, CaptureController(FakeCamera()), customer_id="cust-1")
        submission = await session.submit_lesson(LESSON)

    assert submission.posture_group is None
    assert calls == ["/customers/cust-1/lessons"]


@pytest.mark.asyncio
async def test_link_failure_still_saves_lesson():
    calls = []
    async with ApiClient("http://test", transport=httpx.MockTransport(_router(calls, fail_link=True))) as api:
        async with LessonCaptureSession(api, CaptureController(FakeCamera()), customer_id="cust-1") as session:
            await session.start_camera()
            await session.capture_and_upload("front")
            submission = await session.submit_lesson(LESSON)

    assert submission.lesson.id == "lesson-1"
    assert submission.posture_group is None
    assert len(submission.warnings) == 1
    assert "could not be linked" in submission.warnings[0]
