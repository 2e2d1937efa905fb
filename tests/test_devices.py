"""
tests/test_devices.py
Tests for public device registration.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import User
from tests.conftest import add_user, fetch_all

TOKEN = "fcm-registration-token-0001"


@pytest.mark.asyncio
async def test_new_device_creates_user(client: AsyncClient, session_factory):
    response = await client.post(
        "/devices",
        json={"token": TOKEN, "deviceId": "device-1", "deviceName": "Pixel 8", "version": "2.1.0"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    [user] = await fetch_all(session_factory, User)
    assert str(user.id) == data["user_id"]
    assert user.token_firebase == TOKEN
    assert user.device_name == "Pixel 8"
    assert user.is_reminder is True


@pytest.mark.asyncio
async def test_known_device_id_updates_token(client: AsyncClient, db: AsyncSession, session_factory):
    user = await add_user(db, token="fcm-old-token-000001", device_id="device-1")

    response = await client.post("/devices", json={"token": TOKEN, "deviceId": "device-1"})

    assert response.json()["user_id"] == str(user.id)
    [stored] = await fetch_all(session_factory, User)
    assert stored.token_firebase == TOKEN


@pytest.mark.asyncio
async def test_user_id_takes_precedence(client: AsyncClient, db: AsyncSession, session_factory):
    by_id = await add_user(db, device_id="device-a")
    await add_user(db, device_id="device-b")

    response = await client.post(
        "/devices",
        json={"userId": str(by_id.id), "token": TOKEN, "deviceId": "device-b", "isReminder": False},
    )

    assert response.json()["user_id"] == str(by_id.id)
    users = {u.id: u for u in await fetch_all(session_factory, User)}
    assert users[by_id.id].token_firebase == TOKEN
    assert users[by_id.id].is_reminder is False


@pytest.mark.asyncio
async def test_short_token_rejected(client: AsyncClient):
    response = await client.post("/devices", json={"token": "short"})
    assert response.status_code == 422
