"""
ORM tables for the analytics engine.

Implements:
- LearningEventRow: Raw quiz answers and course completions (source records)
- ReviewScheduleRow: One spaced repetition entry per (user, content)
- LearnerProfileRow: Serialized UserLearningProfile per user

Datetimes are stored timezone-aware where the backend supports it; sqlite
returns naive values, which the stores re-attach to UTC.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class LearningEventRow(Base):
    """One source record as delivered by the quiz or course collaborator."""

    __tablename__ = "learning_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(String(16), nullable=False)  # quiz | course
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    content_id: Mapped[str] = mapped_column(String(128), nullable=False)
    session_id: Mapped[str | None] = mapped_column(String(128))
    category: Mapped[str] = mapped_column(Text, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(32), nullable=False)
    is_correct: Mapped[bool | None] = mapped_column(Boolean)
    response_time_ms: Mapped[int] = mapped_column(Integer, default=0)
    completion_rate: Mapped[float | None] = mapped_column(Float)
    quiz_score: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class ReviewScheduleRow(Base):
    """Spaced repetition state. Rows are updated in place, never deleted."""

    __tablename__ = "review_schedule"
    __table_args__ = (UniqueConstraint("user_id", "content_id", name="uq_review_schedule_user_content"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    content_id: Mapped[str] = mapped_column(String(128), nullable=False)
    content_type: Mapped[str] = mapped_column(String(32), default="quiz_question")
    category_id: Mapped[str] = mapped_column(String(64), nullable=False)
    initial_difficulty: Mapped[str] = mapped_column(String(32), nullable=False)
    mastery_level: Mapped[float] = mapped_column(Float, default=0.0)
    review_count: Mapped[int] = mapped_column(Integer, default=0)
    consecutive_successes: Mapped[int] = mapped_column(Integer, default=0)
    lapses: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_review_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    next_review_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    priority_score: Mapped[float] = mapped_column(Float, default=0.0)
    retention_strength: Mapped[float] = mapped_column(Float, default=1.0)
    is_mastered: Mapped[bool] = mapped_column(Boolean, default=False)
    state: Mapped[str] = mapped_column(String(16), nullable=False)


class LearnerProfileRow(Base):
    """Latest recomputed learning profile for a user."""

    __tablename__ = "learner_profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now(), onupdate=func.now())
