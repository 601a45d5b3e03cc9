"""Runtime configuration via pydantic-settings.

Values are read from ``AUDITLOG_*`` environment variables or a ``.env`` file.

Examples
--------
>>> settings = Settings(occasion_window_seconds=5)
>>> settings.occasion_window.total_seconds()
5.0
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["Settings", "get_settings"]


class Settings(BaseSettings):
    """Engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="AUDITLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    database_url: str = Field(
        default="sqlite:///./auditlog.sqlite",
        description="SQLAlchemy database URL",
    )
    echo_sql: bool = Field(default=False, description="Echo SQL statements")

    log_level: str = Field(default="INFO")

    # Occasions
    occasion_window_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Max age of the previous occurrence for a merge",
    )
    occasion_identity_keys: str = Field(
        default="",
        description=(
            "Comma-separated context keys that alone make up implicit fingerprints; "
            "empty means every producer key except the ignored ones"
        ),
    )
    occasion_ignore_keys: str = Field(
        default="server_http_user_agent",
        description="Comma-separated volatile context keys left out of implicit fingerprints",
    )
    implicit_occasions: bool = Field(
        default=True,
        description="Derive a fingerprint when the producer gives no occasion id",
    )

    # Paging
    default_page_size: int = Field(default=25, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # Retention
    retention_days: int = Field(default=60, ge=1)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is one loguru knows."""
        valid = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            msg = f"Invalid log level: {v}. Must be one of {sorted(valid)}"
            raise ValueError(msg)
        return upper

    @property
    def occasion_window(self) -> timedelta:
        return timedelta(seconds=self.occasion_window_seconds)

    @property
    def identity_keys(self) -> tuple[str, ...]:
        """Parse the comma-separated identity keys."""
        return tuple(k.strip() for k in self.occasion_identity_keys.split(",") if k.strip())

    @property
    def ignore_keys(self) -> tuple[str, ...]:
        return tuple(k.strip() for k in self.occasion_ignore_keys.split(",") if k.strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
