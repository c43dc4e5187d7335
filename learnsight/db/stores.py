"""
SQLAlchemy-backed collaborator implementations.

- SqlEventSource: EventSource over learning_events
- SqlReviewStore: ReviewScheduleStore over review_schedule
- SqlProfileStore: ProfileStore over learner_profiles
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from learnsight.adaptive.profile import UserLearningProfile
from learnsight.core.events import Difficulty, ensure_utc
from learnsight.db.database import session_scope
from learnsight.db.models import LearnerProfileRow, LearningEventRow, ReviewScheduleRow
from learnsight.ingest.normalizer import (
    CachedEventRecord,
    CourseCompletionRecord,
    QuizAnswerRecord,
    SessionNormalizer,
)
from learnsight.study.review_scheduler import ReviewScheduleEntry, ReviewState


def _utc(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


# ========================================
# Events
# ========================================


class SqlEventSource:
    """Serves stored source records back in the shape the normalizer expects."""

    def __init__(self, session_factory: sessionmaker | None = None):
        self.session_factory = session_factory
        self._parser = SessionNormalizer()

    def add_records(self, records: Iterable[Mapping[str, Any]]) -> int:
        """
        Validate and store raw quiz/course records. Returns the number stored.

        Raises:
            UpstreamRecordError: If a record cannot be validated
        """
        rows: list[LearningEventRow] = []
        for record in records:
            parsed = self._parser.parse_record(record)
            if isinstance(parsed, QuizAnswerRecord):
                rows.append(
                    LearningEventRow(
                        source="quiz",
                        user_id=parsed.user_id,
                        content_id=parsed.question_id,
                        session_id=parsed.session_id,
                        category=parsed.category,
                        difficulty=parsed.difficulty,
                        is_correct=parsed.is_correct,
                        response_time_ms=parsed.response_time,
                        created_at=ensure_utc(parsed.created_at),
                    )
                )
            elif isinstance(parsed, CourseCompletionRecord):
                rows.append(
                    LearningEventRow(
                        source="course",
                        user_id=parsed.user_id,
                        content_id=parsed.course_id,
                        session_id=parsed.session_id,
                        category=parsed.category,
                        difficulty=parsed.difficulty,
                        response_time_ms=parsed.duration_ms,
                        completion_rate=parsed.completion_rate,
                        quiz_score=parsed.quiz_score,
                        created_at=ensure_utc(parsed.created_at),
                    )
                )
            elif isinstance(parsed, CachedEventRecord):
                logger.debug(f"Skipping device-cached record for {parsed.course_id}; sync it as a course record")

        with session_scope(self.session_factory) as session:
            session.add_all(rows)
        return len(rows)

    def fetch_recent_events(self, user_id: str, limit: int) -> list[dict[str, Any]]:
        stmt = (
            select(LearningEventRow)
            .where(LearningEventRow.user_id == user_id)
            .order_by(LearningEventRow.created_at.desc(), LearningEventRow.id.desc())
            .limit(limit)
        )
        with session_scope(self.session_factory) as session:
            return [self._to_record(row) for row in session.scalars(stmt)]

    @staticmethod
    def _to_record(row: LearningEventRow) -> dict[str, Any]:
        created_at = _utc(row.created_at)
        if row.source == "course":
            return {
                "source": "course",
                "user_id": row.user_id,
                "session_id": row.session_id or f"course-{row.id}",
                "course_id": row.content_id,
                "category": row.category,
                "difficulty": row.difficulty,
                "duration_ms": row.response_time_ms,
                "completion_rate": row.completion_rate if row.completion_rate is not None else 100.0,
                "quiz_score": row.quiz_score,
                "created_at": created_at,
            }
        return {
            "source": "quiz",
            "user_id": row.user_id,
            "question_id": row.content_id,
            "session_id": row.session_id,
            "category": row.category,
            "difficulty": row.difficulty,
            "is_correct": bool(row.is_correct),
            "response_time": row.response_time_ms,
            "created_at": created_at,
        }


# ========================================
# Review schedule
# ========================================


def _entry_from_row(row: ReviewScheduleRow) -> ReviewScheduleEntry:
    return ReviewScheduleEntry(
        user_id=row.user_id,
        content_id=row.content_id,
        content_type=row.content_type,
        category_id=row.category_id,
        initial_difficulty=Difficulty.parse(row.initial_difficulty, default=Difficulty.MEDIUM),
        mastery_level=row.mastery_level,
        review_count=row.review_count,
        consecutive_successes=row.consecutive_successes,
        lapses=row.lapses,
        created_at=_utc(row.created_at),
        last_review_date=_utc(row.last_review_date),
        next_review_date=_utc(row.next_review_date),
        priority_score=row.priority_score,
        retention_strength=row.retention_strength,
        is_mastered=row.is_mastered,
        state=ReviewState(row.state),
    )


def _apply_entry(row: ReviewScheduleRow, entry: ReviewScheduleEntry) -> None:
    row.content_type = entry.content_type
    row.category_id = entry.category_id
    row.initial_difficulty = entry.initial_difficulty.value
    row.mastery_level = entry.mastery_level
    row.review_count = entry.review_count
    row.consecutive_successes = entry.consecutive_successes
    row.lapses = entry.lapses
    row.created_at = entry.created_at
    row.last_review_date = entry.last_review_date
    row.next_review_date = entry.next_review_date
    row.priority_score = entry.priority_score
    row.retention_strength = entry.retention_strength
    row.is_mastered = entry.is_mastered
    row.state = entry.state.value


class SqlReviewStore:
    def __init__(self, session_factory: sessionmaker | None = None):
        self.session_factory = session_factory

    @staticmethod
    def _select(user_id: str, content_id: str):
        return select(ReviewScheduleRow).where(
            ReviewScheduleRow.user_id == user_id,
            ReviewScheduleRow.content_id == content_id,
        )

    def create(self, entry: ReviewScheduleEntry) -> None:
        row = ReviewScheduleRow(user_id=entry.user_id, content_id=entry.content_id)
        _apply_entry(row, entry)
        with session_scope(self.session_factory) as session:
            session.add(row)

    def get(self, user_id: str, content_id: str) -> ReviewScheduleEntry | None:
        with session_scope(self.session_factory) as session:
            row = session.scalars(self._select(user_id, content_id)).first()
            return _entry_from_row(row) if row is not None else None

    def list_for_user(self, user_id: str) -> list[ReviewScheduleEntry]:
        stmt = select(ReviewScheduleRow).where(ReviewScheduleRow.user_id == user_id).order_by(ReviewScheduleRow.id)
        with session_scope(self.session_factory) as session:
            return [_entry_from_row(row) for row in session.scalars(stmt)]

    def update(self, entry: ReviewScheduleEntry) -> None:
        with session_scope(self.session_factory) as session:
            row = session.scalars(self._select(entry.user_id, entry.content_id)).first()
            if row is None:
                raise KeyError(f"No review entry to update: {(entry.user_id, entry.content_id)}")
            _apply_entry(row, entry)


# ========================================
# Profiles
# ========================================


class SqlProfileStore:
    def __init__(self, session_factory: sessionmaker | None = None):
        self.session_factory = session_factory

    def load(self, user_id: str) -> UserLearningProfile | None:
        with session_scope(self.session_factory) as session:
            row = session.get(LearnerProfileRow, user_id)
            return UserLearningProfile.from_dict(row.data) if row is not None else None

    def save(self, profile: UserLearningProfile) -> None:
        with session_scope(self.session_factory) as session:
            row = session.get(LearnerProfileRow, profile.user_id)
            if row is None:
                session.add(LearnerProfileRow(user_id=profile.user_id, data=profile.to_dict()))
            else:
                row.data = profile.to_dict()
        logger.debug(f"Saved learning profile for user={profile.user_id}")
