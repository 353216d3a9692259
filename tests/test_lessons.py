import io
import time

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from gym_posture.main import app
from gym_posture.seed import SEED_CUSTOMERS

CUSTOMER_ID = SEED_CUSTOMERS[1]["id"]
LESSON = {
    "startDate": "2026-10-17T10:00:00+00:00",
    "endDate": "2026-10-17T11:00:00+00:00",
    "condition": "good",
    "weight": 71.5,
    "memo": "Shoulder mobility",
}


def _jpeg() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (32, 32), (10, 200, 30)).save(buffer, format="JPEG")
    return buffer.getvalue()


async def _create_lesson(client, customer_id=CUSTOMER_ID):
    response = await client.post(f"/api/v1/customers/{customer_id}/lessons", json=LESSON)
    return response.json()["data"]["id"]


async def _stage(client, token, position, customer_id=CUSTOMER_ID):
    response = await client.post(
        "/api/v1/posture-images/upload",
        files={"file": (f"{position}.jpg", io.BytesIO(_jpeg()), "image/jpeg")},
        data={"postureGroupId": token, "position": position, "customerId": customer_id},
    )
    return response.json()["data"]


@pytest.mark.asyncio
async def test_create_lesson_success():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post(f"/api/v1/customers/{CUSTOMER_ID}/lessons", json=LESSON)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["customerId"] == CUSTOMER_ID
    assert data["weight"] == 71.5
    assert data["startDate"].startswith("2026-10-17T10:00:00")


@pytest.mark.asyncio
async def test_create_lesson_end_before_start():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post(
            f"/api/v1/customers/{CUSTOMER_ID}/lessons",
            json={**LESSON, "endDate": "2026-10-17T09:00:00+00:00"},
        )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_lesson_unknown_customer():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/v1/customers/nonexistent/lessons", json=LESSON)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_link_adopts_staged_images():
    token = f"temp-{time.time_ns()}"
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        front = await _stage(client, token, "front")
        back = await _stage(client, token, "back")
        lesson_id = await _create_lesson(client)

        response = await client.post(
            f"/api/v1/lessons/{lesson_id}/posture_groups",
            json={"temporaryGroupId": token},
        )
        detail = await client.get(f"/api/v1/lessons/{lesson_id}")

    assert response.status_code == 201
    group = response.json()["data"]
    assert group["lessonId"] == lesson_id
    assert group["customerId"] == CUSTOMER_ID
    assert not group["id"].startswith("temp-")
    assert {image["id"] for image in group["images"]} == {front["id"], back["id"]}
    assert all(image["postureGroupId"] == group["id"] for image in group["images"])

    lesson = detail.json()["data"]
    assert lesson["postureGroupId"] == group["id"]
    assert sorted(image["position"] for image in lesson["postureImages"]) == ["back", "front"]
    assert all(image["signedUrl"] for image in lesson["postureImages"])


@pytest.mark.asyncio
async def test_link_is_idempotent_per_lesson():
    token = f"temp-{time.time_ns()}"
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        await _stage(client, token, "left")
        lesson_id = await _create_lesson(client)
        first = await client.post(f"/api/v1/lessons/{lesson_id}/posture_groups", json={"temporaryGroupId": token})
        second = await client.post(f"/api/v1/lessons/{lesson_id}/posture_groups", json={"temporaryGroupId": token})

    assert first.status_code == 201
    assert second.status_code == 200
    assert first.json()["data"]["id"] == second.json()["data"]["id"]
    assert len(second.json()["data"]["images"]) == 1


@pytest.mark.asyncio
async def test_link_skips_images_of_another_customer():
    token = f"temp-{time.time_ns()}"
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        await _stage(client, token, "front", customer_id=SEED_CUSTOMERS[2]["id"])
        lesson_id = await _create_lesson(client)
        response = await client.post(f"/api/v1/lessons/{lesson_id}/posture_groups", json={"temporaryGroupId": token})

    assert response.status_code == 201
    assert response.json()["data"]["images"] == []


@pytest.mark.asyncio
async def test_link_without_body_creates_empty_group():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        lesson_id = await _create_lesson(client)
        response = await client.post(f"/api/v1/lessons/{lesson_id}/posture_groups")

    assert response.status_code == 201
    assert response.json()["data"]["images"] == []


@pytest.mark.asyncio
async def test_link_rejects_non_temporary_token():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        lesson_id = await _create_lesson(client)
        response = await client.post(
            f"/api/v1/lessons/{lesson_id}/posture_groups",
            json={"temporaryGroupId": "not-a-temp-id"},
        )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_link_unknown_lesson():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/v1/lessons/nonexistent/posture_groups", json={"temporaryGroupId": "temp-1"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_lesson_without_group():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        lesson_id = await _create_lesson(client)
        response = await client.get(f"/api/v1/lessons/{lesson_id}")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["postureGroupId"] is None
    assert data["postureImages"] == []
