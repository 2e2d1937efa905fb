"""
services/admin/router.py
Admin-only console endpoints: dashboard metrics, users, per-user adzan
schedules, notification logs and cron job runs.

Edits here touch users and adzan_schedules only. notification_logs and
cron_job_runs are written by the dispatch engine alone.
"""

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.middleware.auth import require_admin
from shared.models.models import (
    Admin,
    AdzanSchedule,
    CronJobRun,
    DeliveryStatus,
    NotificationLog,
    SourceType,
    User,
)
from shared.schemas.schemas import (
    AdzanScheduleResponse,
    AdzanScheduleUpdateRequest,
    CronJobRunResponse,
    DashboardResponse,
    NotificationLogResponse,
    PaginatedResponse,
    UserResponse,
    UserUpdateRequest,
)

router = APIRouter(prefix="/admin", tags=["Admin"])

SIGNUP_CHART_DAYS = 14


def _user_response(user: User) -> UserResponse:
    response = UserResponse.model_validate(user)
    response.has_token = bool(user.token_firebase and user.token_firebase.strip())
    return response


def _page(items, total: int, page: int, page_size: int) -> dict:
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": -(-total // page_size),  # ceiling division
    }


# ── Dashboard ──────────────────────────────────────────────────────────────────

@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    current_admin: Admin = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Headline counts, the latest logs and runs, and daily sign-ups for the chart."""
    user_count = await db.scalar(select(func.count(User.id)))
    reminder_users = await db.scalar(
        select(func.count(User.id)).where(User.is_reminder.is_(True))
    )
    total_logs = await db.scalar(select(func.count(NotificationLog.id)))
    failed_logs = await db.scalar(
        select(func.count(NotificationLog.id)).where(
            NotificationLog.status == DeliveryStatus.FAILED
        )
    )

    latest_logs = await db.execute(
        select(NotificationLog).order_by(NotificationLog.created_at.desc()).limit(8)
    )
    latest_runs = await db.execute(
        select(CronJobRun).order_by(CronJobRun.created_at.desc()).limit(6)
    )

    today = datetime.now(timezone.utc).date()
    since = today - timedelta(days=SIGNUP_CHART_DAYS - 1)
    created = await db.execute(
        select(User.created_at).where(
            User.created_at >= datetime.combine(since, datetime.min.time())
        )
    )
    per_day = Counter(ts.date().isoformat() for ts in created.scalars())
    signups = [
        {"date": day.isoformat(), "count": per_day.get(day.isoformat(), 0)}
        for day in (since + timedelta(days=i) for i in range(SIGNUP_CHART_DAYS))
    ]

    return DashboardResponse(
        user_count=user_count or 0,
        reminder_users=reminder_users or 0,
        total_logs=total_logs or 0,
        failed_logs=failed_logs or 0,
        latest_logs=[NotificationLogResponse.model_validate(r) for r in latest_logs.scalars()],
        latest_runs=[CronJobRunResponse.model_validate(r) for r in latest_runs.scalars()],
        signups_by_day=signups,
    )


# ── Users ──────────────────────────────────────────────────────────────────────

@router.get("/users", response_model=PaginatedResponse)
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=1000),
    current_admin: Admin = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Registered devices, newest first."""
    total = await db.scalar(select(func.count(User.id)))
    result = await db.execute(
        select(User)
        .order_by(User.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    items = [_user_response(u) for u in result.scalars()]
    return _page(items, total or 0, page, page_size)


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    data: UserUpdateRequest,
    current_admin: Admin = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(user, field, value)

    await db.commit()
    await db.refresh(user)
    return _user_response(user)


# ── Adzan schedules ────────────────────────────────────────────────────────────

@router.get("/adzan-schedules", response_model=PaginatedResponse)
async def list_adzan_schedules(
    page: int = Query(1, ge=1),
    page_size: int = Query(200, ge=1, le=2000),
    current_admin: Admin = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    total = await db.scalar(select(func.count(AdzanSchedule.id)))
    result = await db.execute(
        select(AdzanSchedule)
        .order_by(AdzanSchedule.created_at.desc(), AdzanSchedule.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    items = [AdzanScheduleResponse.model_validate(s) for s in result.scalars()]
    return _page(items, total or 0, page, page_size)


@router.patch("/adzan-schedules/{schedule_id}", response_model=AdzanScheduleResponse)
async def update_adzan_schedule(
    schedule_id: int,
    data: AdzanScheduleUpdateRequest,
    current_admin: Admin = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Update city, enable flags or times. Only fields sent are written;
    a time sent as null is cleared and will never match.
    """
    schedule = await db.get(AdzanSchedule, schedule_id)
    if not schedule:
        raise HTTPException(status_code=404, detail="Schedule not found")

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(schedule, field, value)

    await db.commit()
    await db.refresh(schedule)
    return AdzanScheduleResponse.model_validate(schedule)


# ── Notification logs ──────────────────────────────────────────────────────────

@router.get("/notification-logs", response_model=PaginatedResponse)
async def list_notification_logs(
    status: Optional[DeliveryStatus] = Query(None),
    source_type: Optional[SourceType] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(200, ge=1, le=2000),
    current_admin: Admin = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delivery log, newest first. Failed rows carry the transport's error text."""
    query = select(NotificationLog)
    if status:
        query = query.where(NotificationLog.status == status)
    if source_type:
        query = query.where(NotificationLog.source_type == source_type)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(NotificationLog.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    items = [NotificationLogResponse.model_validate(r) for r in result.scalars()]
    return _page(items, total or 0, page, page_size)


# ── Cron runs ──────────────────────────────────────────────────────────────────

@router.get("/cron-runs", response_model=list[CronJobRunResponse])
async def list_cron_runs(
    job_name: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    current_admin: Admin = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(CronJobRun).order_by(CronJobRun.created_at.desc()).limit(limit)
    if job_name:
        query = query.where(CronJobRun.job_name == job_name)
    result = await db.execute(query)
    return [CronJobRunResponse.model_validate(r) for r in result.scalars()]
