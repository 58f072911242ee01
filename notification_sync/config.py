"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Synchronization settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding=ENV_FILE_ENCODING,
        extra="ignore",
    )

    api_base_url: str = Field(
        default="http://localhost:8000/api",
        description="Base URL of the notifications persistence API",
        min_length=1,
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout applied to every persistence API request",
        gt=0,
    )
    page_size: int = Field(
        default=20,
        description="Number of notifications requested by a bootstrap fetch",
        gt=0,
    )
    event_queue_size: int = Field(
        default=256,
        description="Capacity of the inbound push event queue",
        gt=0,
    )
    reconnect_initial_delay: float = Field(
        default=0.5,
        description="Seconds to wait before the first reconnect attempt",
        ge=0,
    )
    reconnect_backoff_factor: float = Field(
        default=2.0,
        description="Multiplier applied to the reconnect delay after each failure",
        ge=1,
    )
    reconnect_max_delay: float = Field(
        default=30.0,
        description="Upper bound for the reconnect delay in seconds",
        ge=0,
    )
    max_reconnect_attempts: int | None = Field(
        default=None,
        description="Consecutive failed reconnects tolerated before giving up (unbounded when empty)",
        gt=0,
    )
    app_timezone: str | None = Field(
        default=None,
        description="IANA timezone or UTC offset used for locally generated timestamps",
    )
    log_level: str = Field(default="INFO", description="Root logging level")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:4200"],
        description="Origins allowed to call the local API",
    )

    @model_validator(mode="after")
    def _validate_backoff_bounds(self) -> "Settings":
        if self.reconnect_max_delay < self.reconnect_initial_delay:
            raise ValueError(
                "RECONNECT_MAX_DELAY must be greater than or equal to RECONNECT_INITIAL_DELAY"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
