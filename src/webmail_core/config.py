"""Configuration management for webmail-core.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the WEBMAIL_ prefix (e.g., WEBMAIL_DATA_ROOT).
    """

    model_config = SettingsConfigDict(
        env_prefix="WEBMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    data_root: Path = Field(
        default=Path("data"),
        description="Root directory holding mailboxes/ and attachments/",
    )
    trash_retention_days: int = Field(
        default=30,
        description="Days a trashed mail is kept before purge",
    )

    # Sessions
    session_ttl_minutes: int = Field(
        default=60,
        description="Default session lifetime in minutes",
    )
    session_extended_ttl_minutes: int = Field(
        default=24 * 60,
        description="Session lifetime in minutes when the user asks to be remembered",
    )
    session_sweep_interval_seconds: float = Field(
        default=60.0,
        description="Period of the expired-session sweep",
    )

    # Anonymous datagram ingestion
    ingest_host: str = Field(
        default="0.0.0.0",
        description="Address the anonymous ingestion endpoint binds to",
    )
    ingest_port: int = Field(
        default=9999,
        description="Port the anonymous ingestion endpoint binds to",
    )
    ingest_daily_limit: int = Field(
        default=10,
        description="Accepted anonymous messages per source address per calendar day",
    )
    ingest_max_datagram_bytes: int = Field(
        default=65507,
        description="Largest datagram payload accepted by the ingestion endpoint",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    @field_validator(
        "trash_retention_days",
        "session_ttl_minutes",
        "session_extended_ttl_minutes",
        "session_sweep_interval_seconds",
        "ingest_daily_limit",
        "ingest_max_datagram_bytes",
    )
    @classmethod
    def _must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level

    @property
    def mailboxes_root(self) -> Path:
        return self.data_root / "mailboxes"

    @property
    def attachments_root(self) -> Path:
        return self.data_root / "attachments"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
