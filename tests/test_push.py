"""
tests/test_push.py
Tests for the typed push message, the FCM transport, the dispatcher and
manual broadcasts.
"""

from unittest import mock

import pytest
from firebase_admin import exceptions as firebase_exceptions
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.clock import TimeWindow
from dispatch.push import (
    FCMTransport,
    PushMessage,
    broadcast,
    dispatch,
    is_adzan_prayer_name,
)
from dispatch.queue import enqueue
from dispatch.recipients import Delivery
from shared.models.models import DeliveryStatus, NotificationLog, SourceType
from tests.conftest import TEST_CONFIG, FakeTransport, RaisingTransport, add_user, fetch_all

WINDOW = TimeWindow(date="2024-05-01", time="12:00", time_zone="Asia/Jakarta")


def _delivery(user, source=SourceType.REMINDER, key=None) -> Delivery:
    return Delivery(
        source=source,
        user_id=user.id,
        token=user.token_firebase,
        category="dzuhur" if source == SourceType.ADZAN else "custom_reminder",
        title="Waktu Adzan Dzuhur",
        body="Sudah masuk waktu Dzuhur",
        dedupe_key=key or f"{source.value}:{user.id}",
        data={"type": source.value},
    )


# ── PushMessage ────────────────────────────────────────────────────────────────

def test_data_values_are_stringified():
    message = PushMessage(token="t", title="x", data={"count": 3, "missing": None})
    assert message.data == {"count": "3", "missing": ""}


def test_empty_token_rejected():
    with pytest.raises(ValueError):
        PushMessage(token="", title="x")


@pytest.mark.asyncio
async def test_adzan_delivery_carries_sound_hints(db: AsyncSession):
    user = await add_user(db)
    message = PushMessage.for_delivery(_delivery(user, SourceType.ADZAN), TEST_CONFIG)
    assert message.android_channel_id == "adzan_channel"
    assert message.android_sound == "adzan"
    assert message.apns_sound == "adzan.caf"


@pytest.mark.asyncio
async def test_reminder_delivery_has_no_sound_hints(db: AsyncSession):
    user = await add_user(db)
    message = PushMessage.for_delivery(_delivery(user), TEST_CONFIG)
    assert message.android_channel_id is None
    assert message.apns_sound is None


@pytest.mark.parametrize("name", ["Subuh", "fajr", "DHUHR", "zuhur", "asr", "maghrib", " isha "])
def test_prayer_name_aliases(name):
    assert is_adzan_prayer_name(name)


def test_non_prayer_name():
    assert not is_adzan_prayer_name("pengumuman")


# ── FCMTransport ───────────────────────────────────────────────────────────────

def test_fcm_message_includes_platform_sound():
    transport = FCMTransport("/tmp/creds.json", "adzan-test")
    msg = transport.build(PushMessage(
        token="tok", title="t", body="b",
        android_channel_id="adzan_channel", android_sound="adzan", apns_sound="adzan.caf",
    ))
    assert msg.token == "tok"
    assert msg.android.notification.channel_id == "adzan_channel"
    assert msg.android.notification.sound == "adzan"
    assert msg.apns.payload.aps.sound == "adzan.caf"


def test_fcm_message_without_hints_has_no_platform_config():
    msg = FCMTransport("/tmp/creds.json").build(PushMessage(token="tok", title="t"))
    assert msg.android is None
    assert msg.apns is None


@pytest.mark.asyncio
async def test_fcm_send_success():
    transport = FCMTransport("/tmp/creds.json", "adzan-test")
    with mock.patch.object(transport, "_get_app", return_value=object()), \
            mock.patch("firebase_admin.messaging.send", return_value="projects/x/messages/1") as send:
        result = await transport.send(PushMessage(token="tok", title="t"))
    assert result.ok
    send.assert_called_once()


@pytest.mark.asyncio
async def test_fcm_send_failure_becomes_result():
    transport = FCMTransport("/tmp/creds.json", "adzan-test")
    error = firebase_exceptions.UnavailableError("Service unavailable")
    with mock.patch.object(transport, "_get_app", return_value=object()), \
            mock.patch("firebase_admin.messaging.send", side_effect=error):
        result = await transport.send(PushMessage(token="tok", title="t"))
    assert not result.ok
    assert result.error == "Service unavailable"


# ── Dispatcher ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_dispatch_marks_sent_and_failed(db: AsyncSession, session_factory):
    good = await add_user(db, token="fcm-good-token-01")
    bad = await add_user(db, token="fcm-bad-token-001")
    deliveries = [_delivery(good), _delivery(bad)]
    queued = await enqueue(db, deliveries, WINDOW)

    transport = FakeTransport(fail_tokens={"fcm-bad-token-001"})
    tally = await dispatch(db, queued, deliveries, transport, TEST_CONFIG)

    assert (tally.sent, tally.failed) == (1, 1)
    assert transport.tokens == ["fcm-good-token-01", "fcm-bad-token-001"]
    rows = {r.user_id: r for r in await fetch_all(session_factory, NotificationLog)}
    assert rows[good.id].status == DeliveryStatus.SENT
    assert rows[good.id].sent_at is not None
    assert rows[bad.id].status == DeliveryStatus.FAILED
    assert rows[bad.id].error_message == "Requested entity was not found."


@pytest.mark.asyncio
async def test_dispatch_only_sends_rows_it_queued(db: AsyncSession):
    first = await add_user(db)
    second = await add_user(db)
    await enqueue(db, [_delivery(first)], WINDOW)

    deliveries = [_delivery(first), _delivery(second)]
    queued = await enqueue(db, deliveries, WINDOW)
    transport = FakeTransport()
    await dispatch(db, queued, deliveries, transport, TEST_CONFIG)

    assert transport.tokens == [second.token_firebase]


# ── Broadcast ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_broadcast_logs_manual_rows(db: AsyncSession, session_factory):
    await add_user(db, token="fcm-broadcast-001")
    await add_user(db, token="fcm-broadcast-002", is_reminder=False)
    await add_user(db, token="")

    transport = FakeTransport(fail_tokens={"fcm-broadcast-002"})
    result = await broadcast(
        db, transport, TEST_CONFIG,
        title="Pengumuman", body="Tes", prayer_name="Dzuhur", city="Bandung",
        time_zone="Asia/Jakarta", triggered_by="admin@example.com",
    )
    await db.commit()

    assert (result.targeted, result.sent, result.failed) == (2, 1, 1)
    assert all(m.android_sound == "adzan" for m in transport.sent)
    rows = await fetch_all(session_factory, NotificationLog)
    assert {r.source_type for r in rows} == {SourceType.MANUAL}
    assert {r.dedupe_key for r in rows} == {None}
    assert sorted(r.status.value for r in rows) == ["failed", "sent"]


@pytest.mark.asyncio
async def test_broadcast_sends_shared_token_once(db: AsyncSession):
    await add_user(db, token="fcm-shared-token-1")
    await add_user(db, token="fcm-shared-token-1")

    transport = FakeTransport()
    result = await broadcast(
        db, transport, TEST_CONFIG,
        title="Info", body="Tes", prayer_name="Info", city="Bandung",
        time_zone="Asia/Jakarta", triggered_by="admin@example.com",
    )

    assert result.targeted == 2
    assert transport.tokens == ["fcm-shared-token-1"]
    assert transport.sent[0].android_sound is None


@pytest.mark.asyncio
async def test_broadcast_logs_every_attempt_when_transport_raises(db: AsyncSession, session_factory):
    await add_user(db, token="fcm-broadcast-ok-01")
    await add_user(db, token="fcm-broadcast-bad-02")

    transport = RaisingTransport(fail_tokens={"fcm-broadcast-bad-02"})
    result = await broadcast(
        db, transport, TEST_CONFIG,
        title="Pengumuman", body="Tes", prayer_name="Info", city="Bandung",
        time_zone="Asia/Jakarta", triggered_by="admin@example.com",
    )
    await db.commit()

    assert (result.targeted, result.sent, result.failed) == (2, 1, 1)
    rows = await fetch_all(session_factory, NotificationLog)
    assert len(rows) == 2
    [failed] = [r for r in rows if r.status == DeliveryStatus.FAILED]
    assert failed.error_message == "invalid_grant"
    assert failed.sent_at is None
