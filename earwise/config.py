"""
Configuration settings for earwise.

Uses Pydantic Settings for environment variable management with .env file support.
Every variable is prefixed with ``EARWISE_`` (e.g. ``EARWISE_DATA_DIR``).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="EARWISE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    data_dir: Path = Field(
        default=Path.home() / ".earwise",
        description="Directory holding saved decks, preferences and stats",
    )
    storage_backend: Literal["json", "sqlite"] = Field(
        default="json",
        description="Snapshot store: one JSON file per key, or a SQL table",
    )
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL for the sqlite backend (defaults to data_dir/earwise.db)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(
        default="WARNING",
        description="Minimum level written to stderr",
    )
    log_file: Path | None = Field(
        default=None,
        description="Optional rotating log file",
    )

    # ========================================
    # Practice
    # ========================================
    default_session_size: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Session size used until the learner changes it",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def expand_data_dir(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("log_level", mode="after")
    @classmethod
    def upper_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def sqlalchemy_url(self) -> str:
        """Database URL for the sqlite backend."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.data_dir / 'earwise.db'}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
