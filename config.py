"""
Configuration settings for the learnsight analytics engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LEARNSIGHT_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///learnsight.db",
        description="SQLAlchemy connection string (sqlite or postgresql)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/learnsight.log",
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Learner context
    # ========================================
    timezone: str = Field(
        default="UTC",
        description="IANA timezone used for hour-of-day and calendar-day grouping",
    )

    # ========================================
    # Event window & ingestion
    # ========================================
    event_window_size: int = Field(
        default=500,
        ge=1,
        description="Maximum number of most recent events analyzed per user",
    )
    fetch_timeout_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Timeout for each external data fetch before falling back to defaults",
    )

    # ========================================
    # Analysis Cache
    # ========================================
    pattern_cache_ttl_seconds: int = Field(
        default=300,
        ge=0,
        description="TTL for cached pattern snapshots (5 minutes)",
    )
    profile_cache_ttl_seconds: int = Field(
        default=600,
        ge=0,
        description="TTL for cached learning profiles (10 minutes)",
    )
    recommendation_cache_ttl_seconds: int = Field(
        default=300,
        ge=0,
        description="TTL for cached recommendations",
    )

    # ========================================
    # Pattern Analyzer thresholds
    # ========================================
    strength_min_accuracy: float = Field(
        default=0.80,
        description="Category accuracy at or above which it counts as a strength",
    )
    strength_min_events: int = Field(
        default=5,
        description="Minimum graded events before a category can be a strength",
    )
    weakness_max_accuracy: float = Field(
        default=0.60,
        description="Category accuracy below which it counts as a weakness",
    )
    weakness_min_events: int = Field(
        default=3,
        description="Minimum graded events before a category can be a weakness",
    )
    reliable_hour_min_events: int = Field(
        default=3,
        description="Minimum graded events in an hour bucket to rank it",
    )

    # ========================================
    # Spaced Repetition
    # ========================================
    review_pass_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Performance score at or above which a review counts as a success",
    )
    mastery_threshold: float = Field(
        default=0.9,
        description="Mastery level that must be exceeded to mark an item mastered",
    )
    mastery_min_streak: int = Field(
        default=3,
        ge=1,
        description="Consecutive successful reviews required for mastery",
    )
    relapse_retention: float = Field(
        default=0.7,
        description="Predicted retention below which a mastered item is rescheduled",
    )
    max_interval_days: int = Field(
        default=365,
        description="Upper bound for any review interval",
    )

    # ========================================
    # Sessions & Cognitive Load
    # ========================================
    session_gap_minutes: int = Field(
        default=30,
        description="Inactivity gap that splits two learning sessions",
    )
    attention_break_seconds: int = Field(
        default=120,
        description="Gap between answers counted as an attention break",
    )
    fatigue_session_minutes: int = Field(
        default=45,
        description="Elapsed minutes after which live guidance suggests a break",
    )

    def get_analysis_thresholds(self) -> dict[str, float]:
        """Get thresholds used by the pattern analyzer."""
        return {
            "strength_min_accuracy": self.strength_min_accuracy,
            "strength_min_events": self.strength_min_events,
            "weakness_max_accuracy": self.weakness_max_accuracy,
            "weakness_min_events": self.weakness_min_events,
            "reliable_hour_min_events": self.reliable_hour_min_events,
        }

    def get_scheduler_config(self) -> dict[str, float]:
        """Get spaced repetition scheduler configuration."""
        return {
            "pass_threshold": self.review_pass_threshold,
            "mastery_threshold": self.mastery_threshold,
            "mastery_min_streak": self.mastery_min_streak,
            "relapse_retention": self.relapse_retention,
            "max_interval_days": self.max_interval_days,
        }

    def get_cache_ttls(self) -> dict[str, int]:
        """Get cache TTLs in seconds, keyed by analysis kind."""
        return {
            "patterns": self.pattern_cache_ttl_seconds,
            "profile": self.profile_cache_ttl_seconds,
            "recommendations": self.recommendation_cache_ttl_seconds,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
