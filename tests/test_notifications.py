"""
tests/test_notifications.py
Tests for the manual broadcast endpoint.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Admin, NotificationLog, SourceType
from tests.conftest import add_user, auth_headers, fetch_all

PAYLOAD = {
    "title": "Waktu Adzan Maghrib",
    "body": "Sudah masuk waktu Maghrib",
    "prayerName": "maghrib",
    "city": "Surabaya",
    "timezone": "Asia/Jakarta",
}


@pytest.mark.asyncio
async def test_broadcast_requires_admin(client: AsyncClient):
    response = await client.post("/notifications/broadcast", json=PAYLOAD)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_broadcast_sends_and_logs(
    client: AsyncClient, db: AsyncSession, admin: Admin, transport, session_factory
):
    await add_user(db, token="fcm-broadcast-user-1")
    await add_user(db, token="fcm-broadcast-user-2")

    response = await client.post(
        "/notifications/broadcast",
        json={**PAYLOAD, "data": {"campaign": "ramadan"}},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    data = response.json()
    assert (data["targeted"], data["sent"], data["failed"]) == (2, 2, 0)
    assert all(m.apns_sound == "adzan.caf" for m in transport.sent)
    assert transport.sent[0].data["campaign"] == "ramadan"

    logs = await fetch_all(session_factory, NotificationLog)
    assert len(logs) == 2
    assert {log.source_type for log in logs} == {SourceType.MANUAL}
    assert logs[0].payload["trigger_by"] == "admin@example.com"


@pytest.mark.asyncio
async def test_broadcast_without_devices_warns(client: AsyncClient, admin: Admin, transport):
    response = await client.post("/notifications/broadcast", json=PAYLOAD, headers=auth_headers(admin))

    assert response.status_code == 200
    data = response.json()
    assert data["targeted"] == 0
    assert data["warning"]
    assert transport.sent == []


@pytest.mark.asyncio
async def test_broadcast_validates_body(client: AsyncClient, admin: Admin):
    response = await client.post(
        "/notifications/broadcast", json={**PAYLOAD, "title": ""}, headers=auth_headers(admin)
    )
    assert response.status_code == 422
