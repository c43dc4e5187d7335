"""
Spaced Repetition Scheduler.

State machine per tracked content item:

    NEW -> SCHEDULED -> REVIEWED -> SCHEDULED | MASTERED
    MASTERED -> SCHEDULED   (predicted retention fell below the relapse level)

Intervals come from the learner's fitted forgetting curve ladder (default
1/3/7/14/30 days when unfitted), indexed by the consecutive-success count
and scaled by how well the review went. Entries are never deleted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

from loguru import logger

from learnsight.core.clock import Clock, SystemClock
from learnsight.core.events import Difficulty
from learnsight.core.exceptions import ContractViolationError, UnknownContentError
from learnsight.study.forgetting_curve import ForgettingCurveModel, ForgettingCurveParameters

# =============================================================================
# Scheduling constants
# =============================================================================

SCHEDULER_CONFIG = {
    "pass_threshold": 0.6,
    "mastery_threshold": 0.9,
    "mastery_min_streak": 3,
    "relapse_retention": 0.7,
    "max_interval_days": 365,
}

MASTERY_GAIN = 0.5  # share of the remaining gap closed by a perfect review
MASTERY_LOSS = 0.5  # share of mastery lost by a zero-score review
MULTIPLIER_BOUNDS = (0.5, 1.5)
OVERDUE_CAP_DAYS = 30


class ReviewState(str, Enum):
    """Lifecycle state of a review schedule entry."""

    NEW = "new"
    SCHEDULED = "scheduled"
    REVIEWED = "reviewed"
    MASTERED = "mastered"


@dataclass
class ReviewScheduleEntry:
    """Review state for one (user, content) pair."""

    user_id: str
    content_id: str
    category_id: str
    initial_difficulty: Difficulty
    created_at: datetime
    next_review_date: datetime
    content_type: str = "quiz_question"
    mastery_level: float = 0.0  # 0-1
    review_count: int = 0
    consecutive_successes: int = 0
    lapses: int = 0
    last_review_date: datetime | None = None
    priority_score: float = 0.0
    retention_strength: float = 1.0
    is_mastered: bool = False
    state: ReviewState = ReviewState.NEW

    def days_overdue(self, now: datetime) -> float:
        return max(0.0, (now - self.next_review_date).total_seconds() / 86400)

    def to_dict(self) -> dict:
        return {
            "content_id": self.content_id,
            "content_type": self.content_type,
            "category_id": self.category_id,
            "mastery_level": round(self.mastery_level, 4),
            "review_count": self.review_count,
            "consecutive_successes": self.consecutive_successes,
            "lapses": self.lapses,
            "last_review_date": self.last_review_date.isoformat() if self.last_review_date else None,
            "next_review_date": self.next_review_date.isoformat(),
            "priority_score": self.priority_score,
            "retention_strength": self.retention_strength,
            "is_mastered": self.is_mastered,
            "state": self.state.value,
        }


# =============================================================================
# Pure scheduling math
# =============================================================================


def performance_multiplier(score: float) -> float:
    low, high = MULTIPLIER_BOUNDS
    return max(low, min(high, 0.5 + score))


def ladder_interval(params: ForgettingCurveParameters, successes: int) -> float:
    """
    Base interval in days for the given consecutive-success count.

    Zero successes maps to the first rung. Past the top of the ladder each
    further success stretches the interval by the consolidation factor.
    """
    ladder = params.optimal_intervals or [1]
    step = max(0, successes - 1)
    if step < len(ladder):
        return float(ladder[step])
    return ladder[-1] * params.consolidation_factor ** (step - len(ladder) + 1)


def update_mastery(mastery: float, score: float, success: bool) -> float:
    if success:
        return min(1.0, mastery + (1 - mastery) * MASTERY_GAIN * score)
    return max(0.0, mastery * (1 - MASTERY_LOSS * (1 - score)))


def priority_score(days_overdue: float, mastery: float) -> float:
    """Overdue pressure (0-5) plus mastery gap (0-5)."""
    overdue = min(max(days_overdue, 0.0), OVERDUE_CAP_DAYS) / OVERDUE_CAP_DAYS
    return round(5 * overdue + 5 * (1 - mastery), 4)


# =============================================================================
# Scheduler
# =============================================================================


class ReviewScheduler:
    """
    Manages review schedule entries through a ReviewScheduleStore.

    Unfitted learners fall back to the default ladder; the scheduler never
    blocks on the forgetting curve model.
    """

    def __init__(
        self,
        store=None,
        forgetting_curve: ForgettingCurveModel | None = None,
        clock: Clock | None = None,
        config: dict | None = None,
    ):
        if store is None:
            from learnsight.storage.memory import InMemoryReviewStore

            store = InMemoryReviewStore()
        self.store = store
        self.forgetting_curve = forgetting_curve or ForgettingCurveModel()
        self.clock = clock or SystemClock()
        self.config = {**SCHEDULER_CONFIG, **(config or {})}

    def _max_interval(self) -> timedelta:
        return timedelta(days=self.config["max_interval_days"])

    def add_item(
        self,
        user_id: str,
        content_id: str,
        category_id: str,
        initial_difficulty: Difficulty | str = Difficulty.MEDIUM,
        content_type: str = "quiz_question",
    ) -> ReviewScheduleEntry:
        """
        Start tracking a content item. Returns the existing entry if already tracked.
        """
        existing = self.store.get(user_id, content_id)
        if existing is not None:
            return existing

        now = self.clock.now()
        params = self.forgetting_curve.parameters_for(user_id)
        entry = ReviewScheduleEntry(
            user_id=user_id,
            content_id=content_id,
            category_id=category_id,
            initial_difficulty=Difficulty.parse(initial_difficulty, default=Difficulty.MEDIUM),
            content_type=content_type,
            created_at=now,
            next_review_date=now,
            state=ReviewState.NEW,
        )
        first = min(timedelta(days=ladder_interval(params, 0)), self._max_interval())
        entry = replace(
            entry,
            next_review_date=now + first,
            priority_score=priority_score(0, 0.0),
            state=ReviewState.SCHEDULED,
        )
        self.store.create(entry)
        logger.info(f"Tracking {content_id} for user={user_id}, first review {entry.next_review_date:%Y-%m-%d %H:%M}")
        return entry

    def record_outcome(
        self,
        user_id: str,
        content_id: str,
        performance_score: float,
        response_time_ms: int = 0,
    ) -> ReviewScheduleEntry:
        """
        Apply a review outcome and schedule the next review.

        Raises:
            ContractViolationError: Score outside [0, 1] or negative response time
            UnknownContentError: Content is not tracked for this user
        """
        if performance_score is None or math.isnan(performance_score) or not 0.0 <= performance_score <= 1.0:
            raise ContractViolationError(f"performance_score must be within [0, 1], got {performance_score}")
        if response_time_ms is None or response_time_ms < 0:
            raise ContractViolationError(f"response_time_ms must be >= 0, got {response_time_ms}")

        entry = self.store.get(user_id, content_id)
        if entry is None:
            raise UnknownContentError(user_id, content_id)

        now = self.clock.now()
        params = self.forgetting_curve.parameters_for(user_id)
        success = performance_score >= self.config["pass_threshold"]

        reviewed = replace(
            entry,
            review_count=entry.review_count + 1,
            last_review_date=now,
            mastery_level=update_mastery(entry.mastery_level, performance_score, success),
            consecutive_successes=entry.consecutive_successes + 1 if success else 0,
            lapses=entry.lapses if success else entry.lapses + 1,
            state=ReviewState.REVIEWED,
        )

        base = ladder_interval(params, reviewed.consecutive_successes)
        interval = min(timedelta(days=base * performance_multiplier(performance_score)), self._max_interval())
        interval_days = interval.total_seconds() / 86400

        mastered = (
            success
            and reviewed.mastery_level > self.config["mastery_threshold"]
            and reviewed.consecutive_successes >= self.config["mastery_min_streak"]
        )

        updated = replace(
            reviewed,
            next_review_date=now + interval,
            retention_strength=round(params.retention(interval_days, reviewed.consecutive_successes), 4),
            priority_score=priority_score(0, reviewed.mastery_level),
            is_mastered=mastered,
            state=ReviewState.MASTERED if mastered else ReviewState.SCHEDULED,
        )
        self.store.update(updated)

        if mastered and not entry.is_mastered:
            logger.info(f"Content {content_id} mastered by user={user_id} after {updated.review_count} reviews")
        logger.debug(
            f"Review {content_id} user={user_id} score={performance_score:.2f} "
            f"mastery={updated.mastery_level:.3f} next_in={interval_days:.1f}d"
        )
        return updated

    def get_due_reviews(self, user_id: str, limit: int = 20) -> list[ReviewScheduleEntry]:
        """
        Entries due now, highest priority first.

        Mastered entries are skipped unless their predicted retention has
        dropped below the relapse level, in which case they are rescheduled.
        """
        if limit is None or limit < 0:
            raise ContractViolationError(f"limit must be >= 0, got {limit}")

        now = self.clock.now()
        params = self.forgetting_curve.parameters_for(user_id)
        due: list[ReviewScheduleEntry] = []

        for entry in self.store.list_for_user(user_id):
            if entry.is_mastered:
                since = entry.last_review_date or entry.created_at
                days = max(0.0, (now - since).total_seconds() / 86400)
                predicted = params.retention(days, entry.consecutive_successes)
                if predicted >= self.config["relapse_retention"]:
                    continue
                logger.info(f"Mastered content {entry.content_id} re-entering review (retention {predicted:.2f})")
                entry = replace(
                    entry,
                    is_mastered=False,
                    state=ReviewState.SCHEDULED,
                    retention_strength=round(predicted, 4),
                    next_review_date=min(entry.next_review_date, now),
                )
            elif entry.next_review_date > now:
                continue

            entry = replace(entry, priority_score=priority_score(entry.days_overdue(now), entry.mastery_level))
            self.store.update(entry)
            due.append(entry)

        due.sort(key=lambda e: (-e.priority_score, e.next_review_date, e.content_id))
        return due[:limit]

    def get_entry(self, user_id: str, content_id: str) -> ReviewScheduleEntry | None:
        return self.store.get(user_id, content_id)

    def list_entries(self, user_id: str, include_mastered: bool = True) -> list[ReviewScheduleEntry]:
        entries = self.store.list_for_user(user_id)
        if not include_mastered:
            entries = [e for e in entries if not e.is_mastered]
        return sorted(entries, key=lambda e: (e.next_review_date, e.content_id))
