"""Application configuration management."""
from pydantic import model_validator, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from sqlalchemy.engine.url import make_url, URL
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

SQLITE_LOCAL_URL = "sqlite+aiosqlite:///./coupon_survey.db"

NOTIFICATION_BACKENDS = ("line", "log")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = SQLITE_LOCAL_URL
    db_pool_size: int = 5
    db_max_overflow: int = 10
    create_schema_on_startup: bool = False  # Local convenience; deployments run Alembic

    # Application
    frontend_url: str = "https://liff.line.me"
    environment: str = "development"
    admin_api_key: str = ""  # Empty disables the coupon lookup endpoint

    # LINE Messaging API
    line_channel_access_token: str = ""
    line_api_base_url: str = "https://api.line.me"
    line_push_timeout_seconds: float = 10.0
    notification_backend: str = "log"  # Options: "line" or "log"

    # Coupon
    coupon_discount_text: str = "10% OFF"
    coupon_redeem_url: str = "https://example.com/redeem"
    coupon_expiry_days: int = 30
    coupon_timezone: str = "UTC"  # Date prefix is taken in this timezone
    coupon_max_attempts: int = 5  # Insert attempts before a coupon collision is fatal

    @field_validator("notification_backend", mode="before")
    @classmethod
    def normalize_notification_backend(cls, value):
        """Accept backend names in any case."""
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def validate_all_config(self):
        """Validate delivery/coupon configuration and normalize Postgres URLs."""
        logger = logging.getLogger(__name__)

        if self.notification_backend not in NOTIFICATION_BACKENDS:
            raise ValueError(
                f"Unsupported notification_backend: {self.notification_backend}. "
                f"Use one of {', '.join(NOTIFICATION_BACKENDS)}."
            )

        if self.environment == "production" and self.notification_backend == "line":
            if not self.line_channel_access_token:
                raise ValueError("line_channel_access_token must be set in production")

        if self.coupon_max_attempts < 1:
            raise ValueError("coupon_max_attempts must be at least 1")

        if self.coupon_expiry_days < 1:
            raise ValueError("coupon_expiry_days must be at least 1 day")

        try:
            ZoneInfo(self.coupon_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown coupon_timezone: {self.coupon_timezone}") from exc

        # Database URL normalization
        url = self.database_url
        if not url:
            logger.warning("Empty DATABASE_URL, using SQLite fallback")
            self.database_url = SQLITE_LOCAL_URL
            return self

        parsed: Optional[URL] = None
        try:
            parsed = make_url(url)
        except Exception as e:  # pragma: no cover - defensive fallback
            logger.error(f"Failed to parse DATABASE_URL: {e}")
            logger.warning(f"Invalid DATABASE_URL; falling back to default sqlite database.")
            self.database_url = SQLITE_LOCAL_URL
            return self

        drivername = parsed.drivername
        if drivername.startswith("postgres") and "+asyncpg" not in drivername:
            old_drivername = drivername
            parsed = parsed.set(drivername="postgresql+asyncpg")
            logger.info(f"Driver normalized: {old_drivername} -> {parsed.drivername}")

        # render_as_string re-encodes special characters in the password
        self.database_url = parsed.render_as_string(hide_password=False)
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
