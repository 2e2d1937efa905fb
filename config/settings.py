"""
config/settings.py
Application settings loaded from environment variables.
Uses Pydantic BaseSettings for validation and type safety.

`DispatchConfig` is the immutable slice of settings handed to the dispatch
engine; engine code never reads the environment itself.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    APP_NAME: str = "Adzan Console"
    APP_ENV: str = "development"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # ── Server ───────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # ── Database ─────────────────────────────────────────────
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20
    DATABASE_POOL_TIMEOUT: int = 30

    # ── JWT (admin console) ──────────────────────────────────
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # ── Scheduler trigger ────────────────────────────────────
    CRON_SECRET: str = ""
    CRON_INTERVAL_SECONDS: int = 60

    # ── Prayer time / push hints ─────────────────────────────
    APP_TIMEZONE: str = "Asia/Jakarta"
    ADZAN_ANDROID_CHANNEL_ID: str = "adzan_channel"
    ADZAN_ANDROID_SOUND: str = "adzan"
    ADZAN_APNS_SOUND: str = "adzan.caf"

    # ── Firebase ─────────────────────────────────────────────
    FIREBASE_CREDENTIALS_PATH: str = ""
    FIREBASE_PROJECT_ID: str = ""

    # ── Console bootstrap (seeded on startup when both are set) ─
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD: str = ""

    # ── Frontend ─────────────────────────────────────────────
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # ── Celery ───────────────────────────────────────────────
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    @field_validator("APP_TIMEZONE")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone: {value}")
        return value

    @property
    def allowed_origins_list(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@dataclass(frozen=True)
class DispatchConfig:
    """Everything the dispatch engine needs, built once at process start."""
    time_zone: str
    adzan_channel_id: str
    adzan_android_sound: str
    adzan_apns_sound: str
    firebase_credentials_path: str = ""
    firebase_project_id: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> "DispatchConfig":
        return cls(
            time_zone=settings.APP_TIMEZONE,
            adzan_channel_id=settings.ADZAN_ANDROID_CHANNEL_ID,
            adzan_android_sound=settings.ADZAN_ANDROID_SOUND,
            adzan_apns_sound=settings.ADZAN_APNS_SOUND,
            firebase_credentials_path=settings.FIREBASE_CREDENTIALS_PATH,
            firebase_project_id=settings.FIREBASE_PROJECT_ID,
        )

    @property
    def missing(self) -> List[str]:
        """Names of push settings that must be present before a job may run."""
        required = {
            "FIREBASE_CREDENTIALS_PATH": self.firebase_credentials_path,
            "FIREBASE_PROJECT_ID": self.firebase_project_id,
        }
        return [name for name, value in required.items() if not value]


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance; call this everywhere."""
    return Settings()


def get_dispatch_config(settings: Optional[Settings] = None) -> DispatchConfig:
    return DispatchConfig.from_settings(settings or get_settings())


settings = get_settings()
