"""
Application configuration using pydantic-settings.
All config is validated at startup - fail fast if anything is missing.
"""
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings

APP_VERSION = "1.0.0"


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_base_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    # Process-wide zone used to interpret "HH:MM" strings and appointment dates.
    # Sweep timing is only correct if this matches the businesses' locale.
    app_timezone: str = "UTC"

    # Database
    database_url: str
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Redis (worker heartbeats, alert cooldowns)
    redis_url: str = "redis://localhost:6379/0"

    # Notifications (SendGrid)
    sendgrid_api_key: str = ""
    notification_from_email: str = "noreply@slotwise.app"
    notification_from_name: str = "Slotwise"
    notification_queue_size: int = 1000

    # Sentry
    sentry_dsn: str = ""

    # Alerting
    alert_webhook_url: str = ""  # Discord/Slack webhook URL for sweep failures

    # CORS
    allowed_origins: str = ""  # Comma-separated

    # Background sweeps
    sweeps_enabled: bool = True
    scheduler_jitter_seconds: float = 5.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @field_validator("app_timezone")
    @classmethod
    def _valid_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @property
    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        if self.app_env == "development":
            origins.extend(["http://localhost:3000", "http://localhost:5173"])
        return origins


@lru_cache()
def get_settings() -> Settings:
    return Settings()
