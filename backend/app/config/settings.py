"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

Usage:
    from app.config import settings

    # Access settings
    db_url = settings.POSTGRES_URL
    offset = settings.STUDY_TIMEZONE_OFFSET_MINUTES
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Study Streak Tracker"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "studytracker"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "studytracker"

    # Full SQLAlchemy async URL; overrides the POSTGRES_* parts when set
    DATABASE_URL: str = ""

    @property
    def POSTGRES_URL(self) -> str:
        """Async database connection URL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Calendar-day convention. Every "which day is this" decision uses this
    # fixed offset, never the server or client local zone.
    STUDY_TIMEZONE_NAME: str = "IST"
    STUDY_TIMEZONE_OFFSET_MINUTES: int = 330

    # Streak engine
    STREAK_WINDOW_DAYS: int = 30
    STREAK_MILESTONES: list[int] = [7, 30, 100]

    # Mastery / spaced repetition
    DEFAULT_CONFIDENCE: int = 3
    DEFAULT_EASE_FACTOR: float = 2.5
    MAX_REVIEW_INTERVAL_DAYS: int = 30

    # Daily progress
    DAILY_GOAL_MINUTES: int = 60

    # Revision planner
    REVISION_WINDOW_DAYS: int = 60
    STALE_SUBJECT_DAYS: int = 3
    REVIEW_OVERVIEW_LIMIT: int = 10
    STALE_SUBJECT_LIMIT: int = 5

    # Achievements
    ACHIEVEMENT_STREAK_WEEK: int = 7
    ACHIEVEMENT_STREAK_MONTH: int = 30
    ACHIEVEMENT_CENTURY_DAYS: int = 100
    ACHIEVEMENT_SUBJECT_MASTER_LESSONS: int = 10


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@lru_cache()
def load_yaml_config() -> dict[str, Any]:
    """Load application configuration from config/default.yaml."""
    config_path = Path(__file__).parent.parent.parent.parent / "config" / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


yaml_config: dict[str, Any] = load_yaml_config()
