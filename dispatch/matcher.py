"""
dispatch/matcher.py
Decides which occasions are due in the current minute.

Matching is exact string equality on HH:MM. A missing enable flag or a
missing time never matches.
"""

from typing import Optional, Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import AdzanSchedule, CustomReminder, Prayer

# Priority order when a user has two prayers configured for the same minute
PRAYER_ORDER = (Prayer.SUBUH, Prayer.DZUHUR, Prayer.ASHAR, Prayer.MAGHRIB, Prayer.ISYA)


def _flag(schedule: AdzanSchedule, prayer: Prayer) -> Optional[bool]:
    return getattr(schedule, f"is_{prayer.value}")


def _time(schedule: AdzanSchedule, prayer: Prayer) -> Optional[str]:
    return getattr(schedule, f"{prayer.value}_time")


def pick_prayer(schedule: AdzanSchedule, hhmm: str) -> Optional[Prayer]:
    """Return the first enabled prayer whose time equals hhmm, else None."""
    for prayer in PRAYER_ORDER:
        if _flag(schedule, prayer) is True and _time(schedule, prayer) == hhmm:
            return prayer
    return None


async def select_due_schedules(db: AsyncSession, hhmm: str) -> Sequence[AdzanSchedule]:
    """Schedule rows with at least one enabled prayer at hhmm."""
    clauses = [
        and_(
            getattr(AdzanSchedule, f"is_{prayer.value}").is_(True),
            getattr(AdzanSchedule, f"{prayer.value}_time") == hhmm,
        )
        for prayer in PRAYER_ORDER
    ]
    result = await db.execute(
        select(AdzanSchedule).where(or_(*clauses)).order_by(AdzanSchedule.id.asc())
    )
    return result.scalars().all()


async def select_due_reminders(db: AsyncSession, hhmm: str) -> Sequence[CustomReminder]:
    """Active reminders scheduled at hhmm, lowest sort_order first."""
    result = await db.execute(
        select(CustomReminder)
        .where(CustomReminder.is_active.is_(True), CustomReminder.schedule_time == hhmm)
        .order_by(CustomReminder.sort_order.asc(), CustomReminder.created_at.asc())
    )
    return result.scalars().all()
