"""
services/device/router.py
Public device registration used by the mobile app to upsert its FCM token.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.models.models import User
from shared.schemas.schemas import DeviceRegisterRequest, DeviceRegisterResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/devices", tags=["Devices"])


@router.post("", response_model=DeviceRegisterResponse)
async def register_device(
    data: DeviceRegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Match by user id first, then by device id; otherwise create a new user.
    Fields absent from the request keep their stored value.
    """
    user = None
    if data.user_id:
        user = await db.get(User, data.user_id)
    if not user and data.device_id:
        result = await db.execute(
            select(User)
            .where(User.device_id == data.device_id)
            .order_by(User.created_at.desc())
            .limit(1)
        )
        user = result.scalar_one_or_none()

    if not user:
        user = User(is_reminder=True if data.is_reminder is None else data.is_reminder)
        db.add(user)
        logger.info(f"Registering new device {data.device_id or '(no device id)'}")

    user.token_firebase = data.token.strip()
    if data.device_id is not None:
        user.device_id = data.device_id
    if data.device_name is not None:
        user.device_name = data.device_name
    if data.version is not None:
        user.version = data.version
    if data.is_reminder is not None:
        user.is_reminder = data.is_reminder

    await db.commit()
    return DeviceRegisterResponse(user_id=user.id)
