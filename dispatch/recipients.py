"""
dispatch/recipients.py
Maps due occasions to recipients that hold a usable push token.

Each `Delivery` is one (recipient, occasion) pair for the current minute,
already carrying its dedupe key and message content.
"""

import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.clock import TimeWindow
from dispatch.matcher import pick_prayer
from shared.models.models import AdzanSchedule, CustomReminder, SourceType, User

DEFAULT_CITY = "kota Anda"


@dataclass(frozen=True)
class Delivery:
    source: SourceType
    user_id: uuid.UUID
    token: str
    category: str
    title: str
    body: str
    dedupe_key: str
    payload: Dict[str, str] = field(default_factory=dict)
    data: Dict[str, str] = field(default_factory=dict)


def adzan_dedupe_key(window: TimeWindow, user_id: uuid.UUID, prayer_key: str) -> str:
    return f"adzan:{window.date}:{window.time}:{user_id}:{prayer_key}"


def reminder_dedupe_key(window: TimeWindow, reminder_id: uuid.UUID, user_id: uuid.UUID) -> str:
    return f"reminder:{window.date}:{window.time}:{reminder_id}:{user_id}"


def _usable(token: Optional[str]) -> bool:
    return bool(token and token.strip())


def unique_by_key(deliveries: Sequence[Delivery]) -> List[Delivery]:
    """Drop later candidates that repeat a dedupe key."""
    seen = set()
    unique = []
    for delivery in deliveries:
        if delivery.dedupe_key in seen:
            continue
        seen.add(delivery.dedupe_key)
        unique.append(delivery)
    return unique


async def resolve_adzan_deliveries(
    db: AsyncSession,
    schedules: Sequence[AdzanSchedule],
    window: TimeWindow,
) -> List[Delivery]:
    user_ids = {row.user_id for row in schedules if row.user_id}
    if not user_ids:
        return []

    result = await db.execute(
        select(User.id, User.token_firebase).where(
            User.id.in_(user_ids),
            User.token_firebase.is_not(None),
            User.token_firebase != "",
        )
    )
    tokens = {user_id: token for user_id, token in result.all() if _usable(token)}

    deliveries = []
    for row in schedules:
        token = tokens.get(row.user_id)
        if not token:
            continue
        prayer = pick_prayer(row, window.time)
        if prayer is None:
            continue

        city = row.city_name or DEFAULT_CITY
        deliveries.append(Delivery(
            source=SourceType.ADZAN,
            user_id=row.user_id,
            token=token,
            category=prayer.value,
            title=f"Waktu Adzan {prayer.label}",
            body=f"Sudah masuk waktu {prayer.label} di {city}. Yuk tunaikan sholat.",
            dedupe_key=adzan_dedupe_key(window, row.user_id, prayer.value),
            payload={
                "prayer_key": prayer.value,
                "city": city,
                "date": window.date,
                "time": window.time,
            },
            data={
                "type": SourceType.ADZAN.value,
                "prayer_key": prayer.value,
                "city": city,
                "scheduled_time": window.time,
            },
        ))
    return unique_by_key(deliveries)


async def select_reminder_recipients(db: AsyncSession) -> List[tuple]:
    """(user_id, token) for every opted-in user with a usable token."""
    result = await db.execute(
        select(User.id, User.token_firebase)
        .where(
            User.is_reminder.is_(True),
            User.token_firebase.is_not(None),
            User.token_firebase != "",
        )
        .order_by(User.created_at.asc(), User.id.asc())
    )
    return [(user_id, token) for user_id, token in result.all() if _usable(token)]


def build_reminder_deliveries(
    reminders: Sequence[CustomReminder],
    recipients: Sequence[tuple],
    window: TimeWindow,
) -> List[Delivery]:
    """Cross-join reminders (in sort order) with recipients."""
    deliveries = [
        Delivery(
            source=SourceType.REMINDER,
            user_id=user_id,
            token=token,
            category="custom_reminder",
            title=reminder.title,
            body=reminder.body,
            dedupe_key=reminder_dedupe_key(window, reminder.id, user_id),
            payload={
                "reminder_id": str(reminder.id),
                "date": window.date,
                "time": window.time,
            },
            data={
                "type": SourceType.REMINDER.value,
                "reminder_id": str(reminder.id),
                "scheduled_time": window.time,
            },
        )
        for reminder in reminders
        for user_id, token in recipients
    ]
    return unique_by_key(deliveries)
