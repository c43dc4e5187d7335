"""
Session Normalizer.

Converts heterogeneous source records into LearningEvent instances:
- QuizAnswerRecord: one answered quiz question (detailed quiz data)
- CourseCompletionRecord: one finished course session
- CachedEventRecord: a completion cached locally on the learner's device

No business logic lives here beyond shape mapping and category resolution.
Malformed records are skipped and logged; contract violations (negative
response times) are rejected before they can reach any aggregate.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from learnsight.core.events import Difficulty, LearningEvent, SessionType, ensure_utc
from learnsight.core.exceptions import ContractViolationError, UpstreamRecordError
from learnsight.ingest.taxonomy import StaticTaxonomyResolver, TaxonomyResolver

DEFAULT_WINDOW_SIZE = 500

# Course quiz scores (0-100) at or above this count as a correct outcome.
COURSE_PASS_SCORE = 70.0


# ========================================
# Source Record Models
# ========================================


class QuizAnswerRecord(BaseModel):
    """One answered quiz question as stored by the quiz collaborator."""

    model_config = ConfigDict(extra="ignore")

    source: Literal["quiz"] = "quiz"
    user_id: str
    question_id: str
    category: str
    difficulty: str = "medium"
    is_correct: bool
    response_time: int = Field(description="Milliseconds spent answering")
    created_at: datetime
    session_id: str | None = None


class CourseCompletionRecord(BaseModel):
    """One completed course session."""

    model_config = ConfigDict(extra="ignore")

    source: Literal["course"] = "course"
    user_id: str
    session_id: str
    course_id: str
    category: str
    difficulty: str = "intermediate"
    duration_ms: int = 0
    completion_rate: float = Field(default=100.0, ge=0, le=100)
    quiz_score: float | None = Field(default=None, ge=0, le=100)
    created_at: datetime


class CachedEventRecord(BaseModel):
    """A course completion cached on the learner's device before sync."""

    model_config = ConfigDict(extra="ignore")

    source: Literal["cache"] = "cache"
    user_id: str
    course_id: str
    category: str | None = None
    completed: bool = False
    completed_at: datetime | None = None
    duration_ms: int = 0


SourceRecord = Union[QuizAnswerRecord, CourseCompletionRecord, CachedEventRecord]

_RECORD_MODELS: dict[str, type[BaseModel]] = {
    "quiz": QuizAnswerRecord,
    "course": CourseCompletionRecord,
    "cache": CachedEventRecord,
}


# ========================================
# Result Types
# ========================================


@dataclass
class DroppedRecord:
    """A source record that did not make it into the event window."""

    reason: str
    record: Any = None


@dataclass
class NormalizationResult:
    """Outcome of normalizing a batch of source records."""

    events: list[LearningEvent] = field(default_factory=list)
    dropped: list[DroppedRecord] = field(default_factory=list)

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)


# ========================================
# Normalizer
# ========================================


class SessionNormalizer:
    """Maps source records onto LearningEvent."""

    def __init__(
        self,
        resolver: TaxonomyResolver | None = None,
        window_size: int = DEFAULT_WINDOW_SIZE,
    ):
        self.resolver = resolver or StaticTaxonomyResolver()
        self.window_size = window_size

    def parse_record(self, record: SourceRecord | Mapping[str, Any]) -> SourceRecord:
        """
        Validate a raw mapping into its source record model.

        The model is picked from an explicit ``source`` key, otherwise from the
        fields present.

        Raises:
            UpstreamRecordError: If the record cannot be validated
        """
        if isinstance(record, (QuizAnswerRecord, CourseCompletionRecord, CachedEventRecord)):
            return record
        if not isinstance(record, Mapping):
            raise UpstreamRecordError(f"Unsupported record type: {type(record).__name__}", record)

        source = record.get("source") or self._infer_source(record)
        model = _RECORD_MODELS.get(source)
        if model is None:
            raise UpstreamRecordError(f"Unknown record source: {source!r}", record)

        try:
            return model.model_validate(record)
        except ValidationError as e:
            raise UpstreamRecordError(f"Malformed {source} record: {e.error_count()} error(s)", record) from e

    @staticmethod
    def _infer_source(record: Mapping[str, Any]) -> str | None:
        if "question_id" in record:
            return "quiz"
        if "completed" in record or "completed_at" in record:
            return "cache"
        if "course_id" in record:
            return "course"
        return None

    def normalize(self, record: SourceRecord | Mapping[str, Any]) -> LearningEvent | None:
        """
        Convert one source record to a LearningEvent.

        Returns:
            The event, or None when the category is unresolved or the record
            describes nothing to analyze (an unfinished cached course)

        Raises:
            UpstreamRecordError: Malformed record
            ContractViolationError: Record violates an engine contract
        """
        parsed = self.parse_record(record)

        if isinstance(parsed, QuizAnswerRecord):
            return self._from_quiz(parsed)
        if isinstance(parsed, CourseCompletionRecord):
            return self._from_course(parsed)
        return self._from_cache(parsed)

    def normalize_many(
        self,
        records: Iterable[SourceRecord | Mapping[str, Any]],
        strict: bool = True,
    ) -> NormalizationResult:
        """
        Normalize a batch into a recency-ordered, capped event window.

        Args:
            records: Source records in any order
            strict: Re-raise contract violations instead of dropping them

        Returns:
            NormalizationResult with events most recent first
        """
        result = NormalizationResult()

        for record in records:
            try:
                event = self.normalize(record)
            except UpstreamRecordError as e:
                logger.warning(f"Skipping malformed record: {e}")
                result.dropped.append(DroppedRecord(reason=str(e), record=record))
                continue
            except ContractViolationError as e:
                if strict:
                    raise
                logger.error(f"Rejected record at ingestion: {e}")
                result.dropped.append(DroppedRecord(reason=str(e), record=record))
                continue

            if event is None:
                result.dropped.append(DroppedRecord(reason="unresolved or empty", record=record))
                continue
            result.events.append(event)

        result.events.sort(key=lambda e: (e.timestamp, e.content_id), reverse=True)
        if len(result.events) > self.window_size:
            result.events = result.events[: self.window_size]

        if result.dropped:
            logger.debug(f"Normalized {len(result.events)} events, dropped {result.dropped_count}")
        return result

    # ----------------------------------------
    # Shape mapping
    # ----------------------------------------

    def _resolve_category(self, raw: str | None, user_id: str, content_id: str) -> str | None:
        category = self.resolver.resolve(raw)
        if category is None:
            logger.warning(f"Unresolved category {raw!r} for user={user_id} content={content_id}, event dropped")
        return category

    @staticmethod
    def _check_response_time(value: int, content_id: str) -> None:
        if value < 0:
            raise ContractViolationError(f"Negative response time ({value} ms) for content {content_id}")

    def _from_quiz(self, record: QuizAnswerRecord) -> LearningEvent | None:
        self._check_response_time(record.response_time, record.question_id)
        category = self._resolve_category(record.category, record.user_id, record.question_id)
        if category is None:
            return None

        return LearningEvent(
            user_id=record.user_id,
            content_id=record.question_id,
            category_id=category,
            difficulty=Difficulty.parse(record.difficulty, default=Difficulty.MEDIUM),
            is_correct=record.is_correct,
            response_time_ms=record.response_time,
            timestamp=ensure_utc(record.created_at),
            session_type=SessionType.QUIZ,
            session_id=record.session_id,
        )

    def _from_course(self, record: CourseCompletionRecord) -> LearningEvent | None:
        self._check_response_time(record.duration_ms, record.course_id)
        category = self._resolve_category(record.category, record.user_id, record.course_id)
        if category is None:
            return None

        is_correct = None
        if record.quiz_score is not None:
            is_correct = record.quiz_score >= COURSE_PASS_SCORE

        return LearningEvent(
            user_id=record.user_id,
            content_id=record.course_id,
            category_id=category,
            difficulty=Difficulty.parse(record.difficulty, default=Difficulty.INTERMEDIATE),
            is_correct=is_correct,
            response_time_ms=record.duration_ms,
            timestamp=ensure_utc(record.created_at),
            session_type=SessionType.COURSE,
            session_id=record.session_id,
        )

    def _from_cache(self, record: CachedEventRecord) -> LearningEvent | None:
        if not record.completed or record.completed_at is None:
            return None
        self._check_response_time(record.duration_ms, record.course_id)
        category = self._resolve_category(record.category or record.course_id, record.user_id, record.course_id)
        if category is None:
            return None

        return LearningEvent(
            user_id=record.user_id,
            content_id=record.course_id,
            category_id=category,
            difficulty=Difficulty.MEDIUM,
            is_correct=None,
            response_time_ms=record.duration_ms,
            timestamp=ensure_utc(record.completed_at),
            session_type=SessionType.COURSE,
        )
