"""
tests/conftest.py
Shared fixtures: in-memory SQLite database, HTTP client with dependency
overrides, a recording push transport, and data factories.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("FIREBASE_CREDENTIALS_PATH", "/tmp/firebase-test.json")
os.environ.setdefault("FIREBASE_PROJECT_ID", "adzan-test")
os.environ.setdefault("APP_TIMEZONE", "Asia/Jakarta")

import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config.database import Base, get_db
from config.settings import DispatchConfig
from dispatch.jobs import JobOrchestrator
from dispatch.push import PushMessage, SendResult
from shared.models.models import Admin, AdzanSchedule, CustomReminder, User
from shared.utils.security import create_access_token, hash_password

CRON_SECRET = os.environ["CRON_SECRET"]
ADMIN_PASSWORD = "console-pass-123"

# 05:00 UTC is 12:00 in Asia/Jakarta
NOON_JAKARTA = datetime(2024, 5, 1, 5, 0, 30, tzinfo=timezone.utc)

TEST_CONFIG = DispatchConfig(
    time_zone="Asia/Jakarta",
    adzan_channel_id="adzan_channel",
    adzan_android_sound="adzan",
    adzan_apns_sound="adzan.caf",
    firebase_credentials_path="/tmp/firebase-test.json",
    firebase_project_id="adzan-test",
)


# ── Push transport ─────────────────────────────────────────────────────────────

class FakeTransport:
    """Records every message; tokens listed in `fail_tokens` are rejected."""

    def __init__(self, fail_tokens: Iterable[str] = ()):
        self.fail_tokens = set(fail_tokens)
        self.sent: List[PushMessage] = []

    async def send(self, message: PushMessage) -> SendResult:
        self.sent.append(message)
        if message.token in self.fail_tokens:
            return SendResult(ok=False, error="Requested entity was not found.")
        return SendResult(ok=True)

    @property
    def tokens(self) -> List[str]:
        return [m.token for m in self.sent]


class RaisingTransport(FakeTransport):
    """Raises instead of returning a result for tokens in `fail_tokens`."""

    async def send(self, message: PushMessage) -> SendResult:
        self.sent.append(message)
        if message.token in self.fail_tokens:
            raise RuntimeError("invalid_grant")
        return SendResult(ok=True)


# ── Database ───────────────────────────────────────────────────────────────────

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def transport():
    return FakeTransport()


def make_orchestrator(session_factory, transport, now: datetime = NOON_JAKARTA, config=TEST_CONFIG):
    return JobOrchestrator(
        config=config,
        session_factory=session_factory,
        transport=transport,
        clock=lambda: now,
    )


@pytest.fixture
def orchestrator(session_factory, transport):
    return make_orchestrator(session_factory, transport)


# ── HTTP client ────────────────────────────────────────────────────────────────

@pytest.fixture
async def client(session_factory, orchestrator, transport):
    from main import app
    from services.cron.router import get_orchestrator
    from services.notification.router import dispatch_config, get_push_transport

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_push_transport] = lambda: transport
    app.dependency_overrides[dispatch_config] = lambda: TEST_CONFIG

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Factories ──────────────────────────────────────────────────────────────────

@pytest.fixture
async def admin(db: AsyncSession) -> Admin:
    admin = Admin(
        email="admin@example.com",
        password_hash=hash_password(ADMIN_PASSWORD),
        full_name="Console Admin",
    )
    db.add(admin)
    await db.commit()
    return admin


def auth_headers(admin: Admin) -> dict:
    token, _ = create_access_token(str(admin.id), admin.email)
    return {"Authorization": f"Bearer {token}"}


async def add_user(
    db: AsyncSession,
    token: Optional[str] = None,
    is_reminder: bool = True,
    **fields,
) -> User:
    user = User(
        token_firebase=token if token is not None else f"fcm-{uuid.uuid4().hex}",
        is_reminder=is_reminder,
        **fields,
    )
    db.add(user)
    await db.commit()
    return user


async def add_schedule(db: AsyncSession, user: User, **fields) -> AdzanSchedule:
    schedule = AdzanSchedule(user_id=user.id, **fields)
    db.add(schedule)
    await db.commit()
    return schedule


async def add_reminder(
    db: AsyncSession,
    title: str = "Dzikir pagi",
    schedule_time: str = "12:00",
    **fields,
) -> CustomReminder:
    reminder = CustomReminder(
        title=title,
        body=fields.pop("body", f"{title} sudah tiba"),
        schedule_time=schedule_time,
        **fields,
    )
    db.add(reminder)
    await db.commit()
    return reminder


async def fetch_all(session_factory, model) -> list:
    """Read rows through a fresh session so nothing comes from an identity map."""
    async with session_factory() as session:
        result = await session.execute(select(model))
        return list(result.scalars())
