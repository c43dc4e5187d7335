"""
Learning Event - the single normalized record consumed by the engine.

Every source record (quiz answer, course completion, locally cached event)
is mapped to a LearningEvent at the ingestion boundary. Downstream
components only ever see this shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum


class SessionType(str, Enum):
    """Kind of activity that produced an event."""

    QUIZ = "quiz"
    COURSE = "course"


class Difficulty(str, Enum):
    """
    Ordinal difficulty of a content item.

    Two scales are in use by the content collaborator: easy/medium/hard for
    quiz banks and basic..expert for courses. Both fold onto a common band.
    """

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @property
    def band(self) -> Difficulty:
        """Collapse onto the easy/medium/hard scale."""
        return _BANDS[self]

    @property
    def numeric(self) -> int:
        """Challenge on a 1-10 scale."""
        return _NUMERIC[self]

    @classmethod
    def parse(cls, value: str | Difficulty | None, default: Difficulty | None = None) -> Difficulty:
        """
        Parse a raw difficulty label.

        Args:
            value: Raw label (case-insensitive) or an existing Difficulty
            default: Returned when the value is empty or unknown

        Raises:
            ValueError: If the label is unknown and no default is given
        """
        if isinstance(value, Difficulty):
            return value
        if value:
            try:
                return cls(str(value).strip().lower())
            except ValueError:
                if default is None:
                    raise
        if default is None:
            raise ValueError(f"Unknown difficulty: {value!r}")
        return default


_BANDS = {
    Difficulty.EASY: Difficulty.EASY,
    Difficulty.BASIC: Difficulty.EASY,
    Difficulty.MEDIUM: Difficulty.MEDIUM,
    Difficulty.INTERMEDIATE: Difficulty.MEDIUM,
    Difficulty.HARD: Difficulty.HARD,
    Difficulty.ADVANCED: Difficulty.HARD,
    Difficulty.EXPERT: Difficulty.HARD,
}

_NUMERIC = {
    Difficulty.EASY: 3,
    Difficulty.BASIC: 3,
    Difficulty.MEDIUM: 5,
    Difficulty.INTERMEDIATE: 5,
    Difficulty.HARD: 7,
    Difficulty.ADVANCED: 7,
    Difficulty.EXPERT: 9,
}


@dataclass(frozen=True)
class LearningEvent:
    """
    One answered question or one completed study unit.

    Attributes:
        user_id: Owner of the event
        content_id: Question or study-unit identifier
        category_id: Canonical taxonomy id (already resolved)
        difficulty: Ordinal difficulty of the content
        is_correct: Outcome for graded events, None for ungraded completions
        response_time_ms: Time spent answering, never negative
        timestamp: Timezone-aware UTC wall-clock time
        session_type: Quiz or course
        session_id: Source session identifier, when known
    """

    user_id: str
    content_id: str
    category_id: str
    difficulty: Difficulty
    is_correct: bool | None
    response_time_ms: int
    timestamp: datetime
    session_type: SessionType = SessionType.QUIZ
    session_id: str | None = None

    @property
    def is_graded(self) -> bool:
        """True when the event carries a correctness outcome."""
        return self.is_correct is not None


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
