"""
dispatch/push.py
Push delivery: the typed message, the transport seam, and the dispatcher
that sends queued rows one at a time and writes back their final status.

Transport failures are per-recipient data, never exceptions: a failed send
marks its row "failed" and the batch carries on.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import DispatchConfig
from dispatch.queue import QueuedRow
from dispatch.recipients import Delivery
from shared.models.models import DeliveryStatus, NotificationLog, SourceType, User

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown error"

ADZAN_PRAYER_NAMES = {
    "subuh", "fajr",
    "dzuhur", "dhuhr", "zuhur",
    "ashar", "asr",
    "maghrib",
    "isya", "isha",
}


# ── Message ───────────────────────────────────────────────────

class PushMessage(BaseModel):
    """One notification to one device token."""
    model_config = ConfigDict(frozen=True)

    token: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    body: str = ""
    data: Dict[str, str] = Field(default_factory=dict)
    android_channel_id: Optional[str] = None
    android_sound: Optional[str] = None
    apns_sound: Optional[str] = None

    @field_validator("data", mode="before")
    @classmethod
    def stringify_data(cls, value):
        # FCM data payloads only carry string values
        return {str(k): "" if v is None else str(v) for k, v in (value or {}).items()}

    @classmethod
    def for_delivery(cls, delivery: Delivery, config: DispatchConfig) -> "PushMessage":
        hints = {}
        if delivery.source == SourceType.ADZAN:
            hints = adzan_sound_hints(config)
        return cls(
            token=delivery.token,
            title=delivery.title,
            body=delivery.body,
            data=delivery.data,
            **hints,
        )


def adzan_sound_hints(config: DispatchConfig) -> dict:
    return {
        "android_channel_id": config.adzan_channel_id,
        "android_sound": config.adzan_android_sound,
        "apns_sound": config.adzan_apns_sound,
    }


def is_adzan_prayer_name(name: str) -> bool:
    return name.strip().lower() in ADZAN_PRAYER_NAMES


# ── Transport ─────────────────────────────────────────────────

@dataclass(frozen=True)
class SendResult:
    ok: bool
    error: Optional[str] = None


class PushTransport(Protocol):
    async def send(self, message: PushMessage) -> SendResult:
        ...


class FCMTransport:
    """Firebase Cloud Messaging via firebase_admin, initialised lazily from a service-account file."""

    def __init__(self, credentials_path: str, project_id: str = ""):
        self.credentials_path = credentials_path
        self.project_id = project_id
        self._app = None

    def _get_app(self):
        import firebase_admin
        from firebase_admin import credentials

        if self._app is None:
            try:
                self._app = firebase_admin.get_app()
            except ValueError:
                cred = credentials.Certificate(self.credentials_path)
                options = {"projectId": self.project_id} if self.project_id else None
                self._app = firebase_admin.initialize_app(cred, options)
        return self._app

    def build(self, message: PushMessage):
        from firebase_admin import messaging

        android = None
        if message.android_channel_id or message.android_sound:
            android = messaging.AndroidConfig(
                priority="high",
                notification=messaging.AndroidNotification(
                    channel_id=message.android_channel_id,
                    sound=message.android_sound,
                ),
            )
        apns = None
        if message.apns_sound:
            apns = messaging.APNSConfig(
                payload=messaging.APNSPayload(aps=messaging.Aps(sound=message.apns_sound))
            )
        return messaging.Message(
            notification=messaging.Notification(title=message.title, body=message.body),
            data=dict(message.data),
            token=message.token,
            android=android,
            apns=apns,
        )

    async def send(self, message: PushMessage) -> SendResult:
        from firebase_admin import messaging
        from firebase_admin.exceptions import FirebaseError

        try:
            app = self._get_app()
            # messaging.send blocks on HTTP; keep it off the event loop
            await asyncio.to_thread(messaging.send, self.build(message), False, app)
            return SendResult(ok=True)
        except (FirebaseError, ValueError, OSError) as e:
            logger.warning(f"FCM send failed: {e}")
            return SendResult(ok=False, error=str(e) or UNKNOWN_ERROR)


# ── Dispatcher ────────────────────────────────────────────────

@dataclass
class DispatchTally:
    sent: int = 0
    failed: int = 0


async def mark_sent(db: AsyncSession, log_id: uuid.UUID) -> None:
    await db.execute(
        update(NotificationLog)
        .where(NotificationLog.id == log_id)
        .values(
            status=DeliveryStatus.SENT,
            sent_at=datetime.now(timezone.utc),
            error_message=None,
        )
    )
    await db.commit()


async def mark_failed(db: AsyncSession, log_id: uuid.UUID, error: Optional[str]) -> None:
    await db.execute(
        update(NotificationLog)
        .where(NotificationLog.id == log_id)
        .values(status=DeliveryStatus.FAILED, error_message=error or UNKNOWN_ERROR)
    )
    await db.commit()


async def safe_send(transport: PushTransport, message: PushMessage) -> SendResult:
    """Send through `transport`; any error it raises becomes a failed result."""
    try:
        return await transport.send(message)
    except Exception as e:
        logger.warning(f"Push transport raised for {message.token[:12]}...: {e!r}")
        return SendResult(ok=False, error=str(e) or UNKNOWN_ERROR)


async def dispatch(
    db: AsyncSession,
    queued: Sequence[QueuedRow],
    deliveries: Sequence[Delivery],
    transport: PushTransport,
    config: DispatchConfig,
) -> DispatchTally:
    """
    Send each newly queued row, in queue order, one recipient at a time.
    Rows this invocation did not insert are never sent.
    """
    by_key = {d.dedupe_key: d for d in deliveries}
    tally = DispatchTally()

    for row in queued:
        delivery = by_key.get(row.dedupe_key)
        if delivery is None:
            continue

        result = await safe_send(transport, PushMessage.for_delivery(delivery, config))
        if result.ok:
            tally.sent += 1
            await mark_sent(db, row.id)
        else:
            tally.failed += 1
            logger.warning("Push failed for %s: %s", row.dedupe_key, result.error)
            await mark_failed(db, row.id, result.error)

    return tally


# ── Manual broadcast ──────────────────────────────────────────

@dataclass
class BroadcastResult:
    targeted: int
    sent: int
    failed: int


async def broadcast(
    db: AsyncSession,
    transport: PushTransport,
    config: DispatchConfig,
    *,
    title: str,
    body: str,
    prayer_name: str,
    city: str,
    time_zone: str,
    triggered_by: str,
    extra_data: Optional[Dict[str, str]] = None,
) -> BroadcastResult:
    """
    Send one message to every user holding a token and log each attempt as
    a manual row. Tokens shared by several users are sent once.
    """
    result = await db.execute(
        select(User.id, User.token_firebase)
        .where(User.token_firebase.is_not(None), User.token_firebase != "")
        .order_by(User.created_at.asc())
    )
    recipients = [(user_id, token) for user_id, token in result.all() if token.strip()]
    if not recipients:
        return BroadcastResult(targeted=0, sent=0, failed=0)

    token_owner: Dict[str, uuid.UUID] = {}
    for user_id, token in recipients:
        token_owner.setdefault(token, user_id)

    hints = adzan_sound_hints(config) if is_adzan_prayer_name(prayer_name) else {}
    data = {
        "type": SourceType.MANUAL.value,
        "prayer_name": prayer_name,
        "city": city,
        "timezone": time_zone,
        **(extra_data or {}),
    }

    outcome = BroadcastResult(targeted=len(recipients), sent=0, failed=0)
    for token, user_id in token_owner.items():
        sent = await safe_send(
            transport, PushMessage(token=token, title=title, body=body, data=data, **hints)
        )
        if sent.ok:
            outcome.sent += 1
        else:
            outcome.failed += 1
        # each attempt is in the session as soon as it is made
        db.add(NotificationLog(
            user_id=user_id,
            source_type=SourceType.MANUAL,
            category=prayer_name.lower(),
            title=title,
            body=body,
            status=DeliveryStatus.SENT if sent.ok else DeliveryStatus.FAILED,
            error_message=None if sent.ok else (sent.error or UNKNOWN_ERROR),
            scheduled_time=None,
            payload={
                "city": city,
                "timezone": time_zone,
                "trigger_by": triggered_by,
                "custom_data": extra_data or {},
            },
            sent_at=datetime.now(timezone.utc) if sent.ok else None,
        ))

    await db.flush()
    logger.info(
        "Manual broadcast by %s: %d sent, %d failed", triggered_by, outcome.sent, outcome.failed
    )
    return outcome
