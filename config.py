"""
Configuration settings for the portal engagement core.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PORTAL_HOME = Path.home() / ".portal"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PORTAL_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default=f"sqlite+aiosqlite:///{PORTAL_HOME / 'portal.db'}",
        description="SQLAlchemy async connection string (sqlite+aiosqlite or postgresql+asyncpg)",
    )

    # ========================================
    # Identity
    # ========================================
    admin_email: str = Field(
        default="",
        description="Identity that is always treated as admin on sign-in",
    )

    # ========================================
    # Engagement guards
    # ========================================
    min_engagement_seconds: int = Field(
        default=10,
        description="Sessions with less active time never create a submission",
    )
    max_engagement_seconds: int = Field(
        default=14400,  # 4 hours, anything beyond is a tab left open
        description="Sessions with more active time are rejected",
    )
    review_min_engagement_seconds: int = Field(
        default=5,
        description="Minimum active time before review-view time is logged",
    )
    engagement_cooldown_seconds: int = Field(
        default=300,
        description="Per (student, resource) window in which a second XP submission is dropped (0 to disable)",
    )

    # ========================================
    # XP Economy
    # ========================================
    default_xp_per_minute: int = Field(
        default=10,
        description="XP per active minute when the class config sets none",
    )
    max_xp_per_minute: int = Field(
        default=100,
        description="Upper bound applied to any class-configured rate",
    )
    max_xp_per_submission: int = Field(
        default=500,
        description="Cap on base XP from a single engagement submission",
    )
    xp_per_level: int = Field(
        default=1000,
        description="XP required per level",
    )
    level_up_currency_bonus: int = Field(
        default=100,
        description="Flux credited when an award crosses a level boundary",
    )
    max_question_xp: int = Field(
        default=50,
        description="Largest XP value a single review question may carry",
    )

    # ========================================
    # Communications
    # ========================================
    watermark_path: Path = Field(
        default=PORTAL_HOME / "channel_last_seen.json",
        description="Per-device channel last-seen watermark file",
    )
    recent_message_limit: int = Field(
        default=50,
        description="Size of the recent-message window used for unread detection",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    def get_economy_config(self) -> dict[str, int]:
        """Get XP economy configuration as a dictionary."""
        return {
            "default_xp_per_minute": self.default_xp_per_minute,
            "max_xp_per_minute": self.max_xp_per_minute,
            "max_xp_per_submission": self.max_xp_per_submission,
            "xp_per_level": self.xp_per_level,
            "level_up_currency_bonus": self.level_up_currency_bonus,
            "max_question_xp": self.max_question_xp,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
