"""
services/reminder/router.py
Custom reminders: admin-authored messages sent daily at a fixed HH:MM to
every opted-in user.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.middleware.auth import require_admin
from shared.models.models import Admin, CustomReminder
from shared.schemas.schemas import (
    CustomReminderCreate,
    CustomReminderResponse,
    CustomReminderUpdate,
    MessageResponse,
)

router = APIRouter(prefix="/custom-reminders", tags=["Custom Reminders"])


async def _get_reminder(db: AsyncSession, reminder_id: UUID) -> CustomReminder:
    reminder = await db.get(CustomReminder, reminder_id)
    if not reminder:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return reminder


@router.get("", response_model=list[CustomReminderResponse])
async def list_reminders(
    current_admin: Admin = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(CustomReminder).order_by(
            CustomReminder.schedule_time.asc(), CustomReminder.sort_order.asc()
        )
    )
    return [CustomReminderResponse.model_validate(r) for r in result.scalars()]


@router.post("", response_model=CustomReminderResponse, status_code=status.HTTP_201_CREATED)
async def create_reminder(
    data: CustomReminderCreate,
    current_admin: Admin = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    reminder = CustomReminder(**data.model_dump())
    db.add(reminder)
    await db.commit()
    await db.refresh(reminder)
    return CustomReminderResponse.model_validate(reminder)


@router.patch("/{reminder_id}", response_model=CustomReminderResponse)
async def update_reminder(
    reminder_id: UUID,
    data: CustomReminderUpdate,
    current_admin: Admin = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Partial update. Deactivated reminders stay listed but never match."""
    reminder = await _get_reminder(db, reminder_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(reminder, field, value)

    await db.commit()
    await db.refresh(reminder)
    return CustomReminderResponse.model_validate(reminder)


@router.delete("/{reminder_id}", response_model=MessageResponse)
async def delete_reminder(
    reminder_id: UUID,
    current_admin: Admin = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    reminder = await _get_reminder(db, reminder_id)
    await db.delete(reminder)
    await db.commit()
    return MessageResponse(message="Reminder deleted")
