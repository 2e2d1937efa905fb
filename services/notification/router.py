"""
services/notification/router.py
Manual broadcast: an admin pushes one message to every registered device.
Each attempt is logged as a "manual" notification log row.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import DispatchConfig, get_dispatch_config
from dispatch.push import FCMTransport, PushTransport, broadcast
from shared.middleware.auth import require_admin
from shared.models.models import Admin
from shared.schemas.schemas import BroadcastRequest, BroadcastResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def dispatch_config() -> DispatchConfig:
    return get_dispatch_config()


def get_push_transport() -> PushTransport:
    config = get_dispatch_config()
    return FCMTransport(config.firebase_credentials_path, config.firebase_project_id)


@router.post("/broadcast", response_model=BroadcastResponse)
async def send_broadcast(
    data: BroadcastRequest,
    current_admin: Admin = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    config: DispatchConfig = Depends(dispatch_config),
    transport: PushTransport = Depends(get_push_transport),
):
    """
    Push to all users holding a token. An adzan prayer name (subuh, dzuhur,
    ashar, maghrib, isya and their common spellings) turns on the adzan sound.
    """
    if config.missing:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Missing settings: {', '.join(config.missing)}",
        )

    result = await broadcast(
        db,
        transport,
        config,
        title=data.title,
        body=data.body,
        prayer_name=data.prayer_name,
        city=data.city,
        time_zone=data.timezone,
        triggered_by=current_admin.email,
        extra_data=data.data,
    )

    if result.targeted == 0:
        return BroadcastResponse(
            targeted=0, sent=0, failed=0, warning="No registered device tokens"
        )
    return BroadcastResponse(
        ok=result.failed == 0 or result.sent > 0,
        targeted=result.targeted,
        sent=result.sent,
        failed=result.failed,
    )
