"""
shared/models/models.py
All SQLAlchemy ORM models for the Adzan Console.
Column types stay portable (PostgreSQL in production, SQLite in tests).
"""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from config.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


# ── Enumerations ──────────────────────────────────────────────

class Prayer(str, PyEnum):
    SUBUH = "subuh"
    DZUHUR = "dzuhur"
    ASHAR = "ashar"
    MAGHRIB = "maghrib"
    ISYA = "isya"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class SourceType(str, PyEnum):
    ADZAN = "adzan"
    REMINDER = "reminder"
    MANUAL = "manual"


class DeliveryStatus(str, PyEnum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"


class RunStatus(str, PyEnum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


def _enum(enum_cls) -> Enum:
    # Persist the lowercase values, not the member names
    return Enum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False)


# ── Mixins ────────────────────────────────────────────────────

class TimestampMixin:
    """Adds created_at and updated_at to any model."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# ── Models ────────────────────────────────────────────────────

class Admin(Base):
    """Console operator. Authenticates with email + password."""
    __tablename__ = "admins"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class User(Base):
    """A mobile-app install. Registered by the app, read-only to the dispatcher."""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    token_firebase: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_reminder: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    device_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    device_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    version: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    adzan_schedule: Mapped[Optional["AdzanSchedule"]] = relationship(
        back_populates="user", uselist=False
    )
    notification_logs: Mapped[List["NotificationLog"]] = relationship(back_populates="user")

    __table_args__ = (
        Index("ix_users_device_id", "device_id"),
        Index("ix_users_is_reminder", "is_reminder"),
    )


class AdzanSchedule(Base):
    """Per-user prayer notification schedule: five enable flags and five HH:MM times."""
    __tablename__ = "adzan_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    city_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    is_subuh: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    is_dzuhur: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    is_ashar: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    is_maghrib: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    is_isya: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    subuh_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    dzuhur_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    ashar_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    maghrib_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    isya_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship(back_populates="adzan_schedule")


class CustomReminder(TimestampMixin, Base):
    """Recurring daily reminder broadcast to every opted-in user at schedule_time."""
    __tablename__ = "custom_reminders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    schedule_time: Mapped[str] = mapped_column(String(5), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index("ix_custom_reminders_active_time", "is_active", "schedule_time"),
    )


class NotificationLog(Base):
    """
    One delivery attempt to one recipient.
    dedupe_key is unique across all time: it is what makes dispatch at-most-once.
    Manual broadcasts carry no dedupe key.
    """
    __tablename__ = "notification_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    source_type: Mapped[SourceType] = mapped_column(_enum(SourceType), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[DeliveryStatus] = mapped_column(
        _enum(DeliveryStatus), default=DeliveryStatus.QUEUED, nullable=False
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    scheduled_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    dedupe_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    payload: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    user: Mapped[Optional["User"]] = relationship(back_populates="notification_logs")

    __table_args__ = (
        Index("ix_notification_logs_status", "status"),
        Index("ix_notification_logs_created_at", "created_at"),
    )


class CronJobRun(Base):
    """Append-only audit row, one per completed job invocation."""
    __tablename__ = "cron_job_runs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_name: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[RunStatus] = mapped_column(_enum(RunStatus), nullable=False)
    processed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sent_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("ix_cron_job_runs_created_at", "created_at"),)
