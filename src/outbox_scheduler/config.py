"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from ``OUTBOX_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="OUTBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./outbox.db"

    # Scheduler
    timezone: str = "UTC"
    tick_interval_seconds: float = Field(60.0, gt=0)

    # Email queue
    queue_job_name: str = "email-queue"
    queue_interval_minutes: int = Field(5, ge=1)
    queue_batch_size: int = Field(50, ge=1)
    queue_max_attempts: int = Field(5, ge=1)

    # SMTP; delivery is disabled unless host, port and sender are all set
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = Field(None, gt=0, le=65535)
    smtp_secure: bool = False
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from: Optional[str] = None
    smtp_timeout_seconds: float = Field(30.0, gt=0)

    # Links in notification emails
    site_url: Optional[str] = None

    log_level: str = "INFO"

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_port and self.smtp_from)


@lru_cache
def get_settings() -> Settings:
    return Settings()
