"""
Application configuration using Pydantic Settings.
Loads process settings from environment variables with sensible defaults.

The durable ``config`` table (see ``JobQueue.set_config``) is separate: it
holds queue policy such as ``max_retries`` and is shared by every process.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///queue.db"
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_busy_timeout_seconds: float = 30.0

    # Worker Configuration
    worker_id: str | None = None
    worker_poll_interval_seconds: float = 1.0
    job_timeout_seconds: float | None = None

    # Queue Defaults
    default_max_retries: int = 3

    # Observability
    metrics_port: int | None = None
    otel_service_name: str = "queuectl"
    otel_exporter_otlp_endpoint: str | None = None
    otel_console_export: bool = False
    log_level: str = "INFO"
    log_format: str = "console"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
