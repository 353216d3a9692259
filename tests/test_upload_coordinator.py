import json

import httpx
import pytest

from gym_posture.client.errors import ReconciliationError, UploadError, ValidationError
from gym_posture.client.http import ApiClient
from gym_posture.client.upload import (
    CoordinatorState,
    PersistedGroupId,
    TemporaryGroupId,
    UploadCoordinator,
)
from gym_posture.constants import PosturePosition


def _ok(data) -> httpx.Response:
    return httpx.Response(200, json={"status": "success", "data": data, "message": None})


def _image(image_id="img-1", group="temp-1760000000000", position="front", signed_url="http://test/s/1"):
    return {
        "id": image_id,
        "postureGroupId": group,
        "storageKey": f"{group}/{position}-{image_id}.jpg",
        "position": position,
        "takenAt": "2026-10-18T09:00:00+00:00",
        "createdAt": "2026-10-18T09:00:00+00:00",
        "signedUrl": signed_url,
        "consentPublication": False,
    }


def _group(group_id="grp-1", lesson_id="lesson-1", images=None):
    return {
        "id": group_id,
        "lessonId": lesson_id,
        "customerId": "cust-1",
        "capturedAt": "2026-10-18T09:10:00+00:00",
        "images": images or [],
    }


def test_temporary_group_id_uses_millisecond_clock():
    group = TemporaryGroupId.generate(clock=lambda: 1760000000.123)
    assert group.token == "temp-1760000000123"
    assert group.wire_value == "temp-1760000000123"


@pytest.mark.asyncio
async def test_ensure_group_requires_customer():
    async with ApiClient("http://test", transport=httpx.MockTransport(lambda r: _ok(None))) as api:
        coordinator = UploadCoordinator(api)
        with pytest.raises(ValidationError, match="select a customer"):
            coordinator.ensure_group()
        assert coordinator.state == CoordinatorState.NO_GROUP


@pytest.mark.asyncio
async def test_ensure_group_is_stable():
    async with ApiClient("http://test", transport=httpx.MockTransport(lambda r: _ok(None))) as api:
        coordinator = UploadCoordinator(api, "cust-1", clock=lambda: 1760000000.0)
        first = coordinator.ensure_group()
        second = coordinator.ensure_group()

    assert first is second
    assert isinstance(first, TemporaryGroupId)
    assert coordinator.state == CoordinatorState.TEMP_GROUP


@pytest.mark.asyncio
async def test_customer_is_locked_once_group_exists():
    async with ApiClient("http://test", transport=httpx.MockTransport(lambda r: _ok(None))) as api:
        coordinator = UploadCoordinator(api, "cust-1")
        coordinator.select_customer("cust-2")
        coordinator.ensure_group()
        with pytest.raises(ValidationError):
            coordinator.select_customer("cust-3")
    assert coordinator.customer_id == "cust-2"


@pytest.mark.asyncio
async def test_upload_sends_form_with_customer_for_temporary_group():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = request.content
        return _ok(_image(position="back"))

    async with ApiClient("http://test/api/v1", transport=httpx.MockTransport(handler)) as api:
        coordinator = UploadCoordinator(api, "cust-1", clock=lambda: 1760000000.0)
        group = coordinator.ensure_group()
        result = await coordinator.upload_image(b"jpeg-bytes", group, "back")

    assert seen["path"] == "/api/v1/posture-images/upload"
    assert b'name="postureGroupId"' in seen["body"]
    assert b"temp-1760000000000" in seen["body"]
    assert b'name="customerId"' in seen["body"]
    assert b"jpeg-bytes" in seen["body"]
    assert result.position == PosturePosition.BACK
    assert result.image_id == "img-1"
    assert result.signed_url == "http://test/s/1"
    assert result.group_id == "temp-1760000000000"


@pytest.mark.asyncio
async def test_upload_failure_raises_upload_error():
    def handler(request):
        return httpx.Response(413, json={"status": "error", "data": None, "message": "File exceeds the 10MB limit"})

    async with ApiClient("http://test", transport=httpx.MockTransport(handler)) as api:
        coordinator = UploadCoordinator(api, "cust-1")
        with pytest.raises(UploadError, match="10MB"):
            await coordinator.upload_image(b"x", coordinator.ensure_group(), "front")


@pytest.mark.asyncio
async def test_upload_malformed_response_raises_upload_error():
    async with ApiClient("http://test", transport=httpx.MockTransport(lambda r: _ok({"id": 1}))) as api:
        coordinator = UploadCoordinator(api, "cust-1")
        with pytest.raises(UploadError):
            await coordinator.upload_image(b"x", coordinator.ensure_group(), "front")


@pytest.mark.asyncio
async def test_link_replaces_temporary_group():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append((request.url.path, json.loads(request.content)))
        return _ok(_group(images=[_image(group="grp-1")]))

    async with ApiClient("http://test", transport=httpx.MockTransport(handler)) as api:
        coordinator = UploadCoordinator(api, "cust-1", clock=lambda: 1760000000.0)
        coordinator.ensure_group()
        linked = await coordinator.link_group_to_lesson("lesson-1")
        again = await coordinator.link_group_to_lesson("lesson-1")

    assert linked == PersistedGroupId("grp-1")
    assert again == linked
    assert coordinator.state == CoordinatorState.LINKED
    assert requests == [("/lessons/lesson-1/posture_groups", {"temporaryGroupId": "temp-1760000000000"})]


@pytest.mark.asyncio
async def test_link_without_temporary_group_makes_no_request():
    requests = []

    def handler(request):
        requests.append(request)
        return _ok(None)

    async with ApiClient("http://test", transport=httpx.MockTransport(handler)) as api:
        empty = UploadCoordinator(api, "cust-1")
        persisted = UploadCoordinator(api, "cust-1", group=PersistedGroupId("grp-9"))
        assert await empty.link_group_to_lesson("lesson-1") is None
        assert await persisted.link_group_to_lesson("lesson-1") == PersistedGroupId("grp-9")

    assert requests == []
    assert persisted.state == CoordinatorState.PERSISTED


@pytest.mark.asyncio
async def test_link_failure_keeps_temporary_group():
    requests = []

    def handler(request):
        requests.append(request.url.path)
        return httpx.Response(500, json={"status": "error", "data": None, "message": "Internal server error"})

    async with ApiClient("http://test", transport=httpx.MockTransport(handler)) as api:
        coordinator = UploadCoordinator(api, "cust-1")
        temp = coordinator.ensure_group()
        with pytest.raises(ReconciliationError, match="Internal server error"):
            await coordinator.link_group_to_lesson("lesson-1")

    assert coordinator.group == temp
    assert coordinator.state == CoordinatorState.TEMP_GROUP
    assert requests == ["/lessons/lesson-1/posture_groups"]


@pytest.mark.asyncio
async def test_failed_link_is_not_retried():
    requests = []

    def handler(request):
        requests.append(request.url.path)
        return httpx.Response(503, json={"status": "error", "data": None, "message": "Service unavailable"})

    async with ApiClient("http://test", transport=httpx.MockTransport(handler)) as api:
        coordinator = UploadCoordinator(api, "cust-1")
        temp = coordinator.ensure_group()
        with pytest.raises(ReconciliationError):
            await coordinator.link_group_to_lesson("lesson-1")
        with pytest.raises(ReconciliationError, match="already submitted for lesson lesson-1"):
            await coordinator.link_group_to_lesson("lesson-1")

    assert requests == ["/lessons/lesson-1/posture_groups"]
    assert coordinator.group == temp
