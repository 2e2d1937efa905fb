"""
shared/schemas/schemas.py
All Pydantic v2 request/response schemas for the console API.
"""

import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from shared.models.models import DeliveryStatus, RunStatus, SourceType

HHMM_PATTERN = re.compile(r"^\d{2}:\d{2}$")


def validate_hhmm(value: Optional[str]) -> Optional[str]:
    """HH:MM, 00-23 hours and 00-59 minutes. None passes through."""
    if value is None:
        return value
    if not HHMM_PATTERN.match(value):
        raise ValueError("Time must be formatted as HH:MM")
    hours, minutes = (int(part) for part in value.split(":"))
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError("Time must be between 00:00 and 23:59")
    return value


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class PaginatedResponse(BaseSchema):
    items: List[Any]
    total: int
    page: int
    page_size: int
    pages: int


class MessageResponse(BaseSchema):
    message: str
    success: bool = True


# ── Auth ──────────────────────────────────────────────────────

class LoginRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=6)


class AdminResponse(BaseSchema):
    id: uuid.UUID
    email: str
    full_name: Optional[str]
    last_login_at: Optional[datetime]


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    admin: AdminResponse


# ── Users ─────────────────────────────────────────────────────

class UserResponse(BaseSchema):
    id: uuid.UUID
    created_at: datetime
    is_reminder: bool
    has_token: bool = False
    device_id: Optional[str]
    device_name: Optional[str]
    version: Optional[str]


class UserUpdateRequest(BaseSchema):
    is_reminder: Optional[bool] = None
    device_name: Optional[str] = Field(None, max_length=255)


class DeviceRegisterRequest(BaseModel):
    """Payload sent by the mobile app. Field names follow the app's camelCase."""
    user_id: Optional[uuid.UUID] = Field(None, alias="userId")
    token: str = Field(..., min_length=16)
    device_id: Optional[str] = Field(None, alias="deviceId")
    device_name: Optional[str] = Field(None, alias="deviceName")
    is_reminder: Optional[bool] = Field(None, alias="isReminder")
    version: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class DeviceRegisterResponse(BaseSchema):
    ok: bool = True
    user_id: uuid.UUID


# ── Adzan schedules ───────────────────────────────────────────

class AdzanScheduleResponse(BaseSchema):
    id: int
    created_at: datetime
    user_id: uuid.UUID
    city_name: Optional[str]
    is_subuh: Optional[bool]
    is_dzuhur: Optional[bool]
    is_ashar: Optional[bool]
    is_maghrib: Optional[bool]
    is_isya: Optional[bool]
    subuh_time: Optional[str]
    dzuhur_time: Optional[str]
    ashar_time: Optional[str]
    maghrib_time: Optional[str]
    isya_time: Optional[str]


class AdzanScheduleUpdateRequest(BaseSchema):
    """Only fields present in the request are written; an explicit null clears a time."""
    city_name: Optional[str] = Field(None, max_length=120)
    is_subuh: Optional[bool] = None
    is_dzuhur: Optional[bool] = None
    is_ashar: Optional[bool] = None
    is_maghrib: Optional[bool] = None
    is_isya: Optional[bool] = None
    subuh_time: Optional[str] = None
    dzuhur_time: Optional[str] = None
    ashar_time: Optional[str] = None
    maghrib_time: Optional[str] = None
    isya_time: Optional[str] = None

    @field_validator("subuh_time", "dzuhur_time", "ashar_time", "maghrib_time", "isya_time")
    @classmethod
    def check_time(cls, v: Optional[str]) -> Optional[str]:
        return validate_hhmm(v)


# ── Custom reminders ──────────────────────────────────────────

class CustomReminderCreate(BaseSchema):
    title: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1)
    schedule_time: str
    is_active: bool = True
    sort_order: int = 0

    @field_validator("schedule_time")
    @classmethod
    def check_time(cls, v: str) -> str:
        return validate_hhmm(v)


class CustomReminderUpdate(BaseSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    body: Optional[str] = Field(None, min_length=1)
    schedule_time: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None

    @field_validator("schedule_time")
    @classmethod
    def check_time(cls, v: Optional[str]) -> Optional[str]:
        return validate_hhmm(v)


class CustomReminderResponse(BaseSchema):
    id: uuid.UUID
    title: str
    body: str
    schedule_time: str
    is_active: bool
    sort_order: int
    created_at: datetime
    updated_at: datetime


# ── Logs & runs ───────────────────────────────────────────────

class NotificationLogResponse(BaseSchema):
    id: uuid.UUID
    created_at: datetime
    user_id: Optional[uuid.UUID]
    source_type: SourceType
    category: Optional[str]
    title: str
    body: str
    status: DeliveryStatus
    error_message: Optional[str]
    scheduled_time: Optional[str]
    dedupe_key: Optional[str]
    sent_at: Optional[datetime]


class CronJobRunResponse(BaseSchema):
    id: uuid.UUID
    created_at: datetime
    job_name: str
    status: RunStatus
    processed_count: int
    sent_count: int
    failed_count: int
    note: Optional[str]


class DashboardResponse(BaseSchema):
    user_count: int
    reminder_users: int
    total_logs: int
    failed_logs: int
    latest_logs: List[NotificationLogResponse]
    latest_runs: List[CronJobRunResponse]
    signups_by_day: List[Dict[str, Any]]


# ── Manual broadcast ──────────────────────────────────────────

class BroadcastRequest(BaseModel):
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    prayer_name: str = Field(..., min_length=1, alias="prayerName")
    city: str = Field(..., min_length=1)
    timezone: str = Field(..., min_length=1)
    data: Optional[Dict[str, str]] = None

    model_config = ConfigDict(populate_by_name=True)


class BroadcastResponse(BaseSchema):
    ok: bool = True
    targeted: int
    sent: int
    failed: int
    warning: Optional[str] = None
