"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="C2SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./c2sync.db",
        description="Database connection URL",
    )

    # Source Configuration
    connection_id: str | None = Field(
        default=None,
        description="Default Component2020 connection id used by the scheduler and CLI",
    )
    external_system: str = Field(
        default="Component2020",
        description="External system name recorded on entity links",
    )

    # Scheduler Configuration
    scheduler_poll_seconds: int = Field(
        default=300,
        ge=1,
        description="Seconds between scheduler polls",
    )
    schedule_strategy: Literal["cron", "interval"] = Field(
        default="cron",
        description="How next_run_at is computed: cron expression or fixed interval",
    )
    schedule_interval_minutes: int = Field(
        default=60,
        ge=1,
        description="Interval used by the 'interval' schedule strategy",
    )
    stale_run_timeout_minutes: int = Field(
        default=180,
        ge=0,
        description="Mark runs still Running after this many minutes as Failed (0 disables)",
    )

    # Error Handling Configuration
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Maximum number of retries for the connection test",
    )
    retry_delay: float = Field(
        default=2.0,
        ge=0,
        description="Base delay in seconds between retries (uses exponential backoff)",
    )
    error_details_max_length: int = Field(
        default=4000,
        ge=100,
        description="Maximum stored length of error details",
    )

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (logs to console if not set)",
    )
    log_max_bytes: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        description="Maximum log file size before rotation",
    )
    log_backup_count: int = Field(
        default=5,
        description="Number of backup log files to keep",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
