"""
Forgetting Curve Model - per-user retention estimates.

Model:
    R(t) = exp(-decay_rate * t / consolidation_factor ** n)

where t is days since the last exposure and n the number of prior successful
exposures of the same content. Each successful exposure stretches the curve
by the consolidation factor.

Parameters are fit from repeated exposures in the learner's own history:
- decay_rate from first repeats (one earlier exposure)
- consolidation_factor from later repeats, with decay_rate held fixed

Both fits are deterministic grid searches over squared error, shrunk toward
population priors in proportion to the number of observations. Fewer than
three observations yields the population defaults.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import timedelta

from loguru import logger

from learnsight.core.events import LearningEvent
from learnsight.core.exceptions import ContractViolationError

# Population priors
DEFAULT_DECAY_RATE = 0.5
DEFAULT_CONSOLIDATION = 1.5
BASE_INTERVALS = (1, 3, 7, 14, 30)

MIN_OBSERVATIONS = 3
PRIOR_WEIGHT = 10  # pseudo-observations backing each prior
MIN_GAP = timedelta(hours=1)

DECAY_GRID = tuple(round(0.02 * i, 2) for i in range(1, 101))  # 0.02 .. 2.0
CONSOLIDATION_GRID = tuple(round(1.0 + 0.1 * i, 1) for i in range(21))  # 1.0 .. 3.0

INTERVAL_SCALE_BOUNDS = (0.5, 2.0)


@dataclass(frozen=True)
class ForgettingCurveParameters:
    """
    Fitted forgetting curve for one learner.

    Attributes:
        decay_rate: Forgetting speed per day for unconsolidated content
        consolidation_factor: Curve stretch per successful exposure (>= 1)
        retention_at_24h: R(1) for unconsolidated content
        retention_at_7d: R(7) for unconsolidated content
        optimal_intervals: Strictly increasing review ladder in days
        observation_count: Repeat observations the fit was based on
        is_default: True when population priors were used
    """

    decay_rate: float = DEFAULT_DECAY_RATE
    consolidation_factor: float = DEFAULT_CONSOLIDATION
    retention_at_24h: float = round(math.exp(-DEFAULT_DECAY_RATE), 4)
    retention_at_7d: float = round(math.exp(-DEFAULT_DECAY_RATE * 7), 4)
    optimal_intervals: list[int] = field(default_factory=lambda: list(BASE_INTERVALS))
    observation_count: int = 0
    is_default: bool = True

    def retention(self, days: float, successful_exposures: int = 0) -> float:
        return retention(days, self.decay_rate, self.consolidation_factor, successful_exposures)

    def to_dict(self) -> dict:
        return {
            "decay_rate": self.decay_rate,
            "consolidation_factor": self.consolidation_factor,
            "retention_at_24h": self.retention_at_24h,
            "retention_at_7d": self.retention_at_7d,
            "optimal_intervals": list(self.optimal_intervals),
            "observation_count": self.observation_count,
            "is_default": self.is_default,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ForgettingCurveParameters:
        return cls(
            decay_rate=float(data.get("decay_rate", DEFAULT_DECAY_RATE)),
            consolidation_factor=float(data.get("consolidation_factor", DEFAULT_CONSOLIDATION)),
            retention_at_24h=float(data.get("retention_at_24h", math.exp(-DEFAULT_DECAY_RATE))),
            retention_at_7d=float(data.get("retention_at_7d", math.exp(-DEFAULT_DECAY_RATE * 7))),
            optimal_intervals=[int(i) for i in data.get("optimal_intervals", BASE_INTERVALS)],
            observation_count=int(data.get("observation_count", 0)),
            is_default=bool(data.get("is_default", True)),
        )


@dataclass(frozen=True)
class RepeatObservation:
    """One re-exposure of a content item after a measurable gap."""

    content_id: str
    days: float
    prior_successes: int
    repeat_index: int  # 1 for the first repeat
    recalled: bool


# ============================================================================
# Pure model functions
# ============================================================================


def retention(days: float, decay_rate: float, consolidation_factor: float, successful_exposures: int = 0) -> float:
    """Retention probability after ``days``, clamped to [0, 1]."""
    if days <= 0:
        return 1.0
    stretch = consolidation_factor ** max(0, successful_exposures)
    return max(0.0, min(1.0, math.exp(-decay_rate * days / stretch)))


def scale_intervals(decay_rate: float, consolidation_factor: float) -> list[int]:
    """
    Scale the base ladder for a learner.

    Slow forgetters (low decay, high consolidation) get longer gaps. The
    result is strictly increasing.
    """
    low, high = INTERVAL_SCALE_BOUNDS
    factor = (consolidation_factor / DEFAULT_CONSOLIDATION) * (DEFAULT_DECAY_RATE / decay_rate)
    factor = max(low, min(high, factor))

    intervals: list[int] = []
    for base in BASE_INTERVALS:
        value = max(1, int(math.floor(base * factor + 0.5)))
        if intervals and value <= intervals[-1]:
            value = intervals[-1] + 1
        intervals.append(value)
    return intervals


def extract_observations(events: Iterable[LearningEvent]) -> list[RepeatObservation]:
    """Derive repeat observations from graded events, grouped by content."""
    by_content: dict[str, list[LearningEvent]] = defaultdict(list)
    for event in events:
        if event.is_correct is not None:
            by_content[event.content_id].append(event)

    observations: list[RepeatObservation] = []
    for content_id in sorted(by_content):
        exposures = sorted(by_content[content_id], key=lambda e: e.timestamp)
        successes = 1 if exposures[0].is_correct else 0
        last_seen = exposures[0].timestamp
        repeat_index = 0

        for event in exposures[1:]:
            gap = event.timestamp - last_seen
            if gap < MIN_GAP:
                # Same sitting; not a retention measurement
                continue
            repeat_index += 1
            observations.append(
                RepeatObservation(
                    content_id=content_id,
                    days=gap.total_seconds() / 86400,
                    prior_successes=successes,
                    repeat_index=repeat_index,
                    recalled=bool(event.is_correct),
                )
            )
            if event.is_correct:
                successes += 1
            last_seen = event.timestamp

    return observations


def _squared_error(observations: Sequence[RepeatObservation], decay_rate: float, consolidation: float) -> float:
    return sum(
        ((1.0 if o.recalled else 0.0) - retention(o.days, decay_rate, consolidation, o.prior_successes)) ** 2
        for o in observations
    )


def _shrink(fitted: float, prior: float, n: int) -> float:
    return (n * fitted + PRIOR_WEIGHT * prior) / (n + PRIOR_WEIGHT)


def fit_parameters(observations: Sequence[RepeatObservation]) -> ForgettingCurveParameters:
    """Fit decay and consolidation from observations (defaults when too few)."""
    if len(observations) < MIN_OBSERVATIONS:
        return ForgettingCurveParameters(observation_count=len(observations))

    first = [o for o in observations if o.repeat_index == 1]
    later = [o for o in observations if o.repeat_index > 1]

    decay = DEFAULT_DECAY_RATE
    if first:
        best = min(DECAY_GRID, key=lambda k: (_squared_error(first, k, DEFAULT_CONSOLIDATION), k))
        decay = _shrink(best, DEFAULT_DECAY_RATE, len(first))

    consolidation = DEFAULT_CONSOLIDATION
    if later:
        best = min(CONSOLIDATION_GRID, key=lambda c: (_squared_error(later, decay, c), c))
        consolidation = _shrink(best, DEFAULT_CONSOLIDATION, len(later))

    decay = round(decay, 4)
    consolidation = round(consolidation, 4)
    return ForgettingCurveParameters(
        decay_rate=decay,
        consolidation_factor=consolidation,
        retention_at_24h=round(retention(1, decay, consolidation), 4),
        retention_at_7d=round(retention(7, decay, consolidation), 4),
        optimal_intervals=scale_intervals(decay, consolidation),
        observation_count=len(observations),
        is_default=False,
    )


# ============================================================================
# Model
# ============================================================================


class ForgettingCurveModel:
    """
    Per-user forgetting curve fits with retention prediction.

    Fitted parameters and per-content success counts are kept in memory so
    predict_retention can be answered without refetching history.
    """

    def __init__(self, event_source=None, normalizer=None, window_size: int = 500):
        self.event_source = event_source
        self.normalizer = normalizer
        self.window_size = window_size
        self._parameters: dict[str, ForgettingCurveParameters] = {}
        self._success_counts: dict[tuple[str, str], int] = {}

    def fit_user_parameters(
        self,
        user_id: str,
        events: Iterable[LearningEvent] | None = None,
    ) -> ForgettingCurveParameters:
        """
        Fit and remember a learner's curve.

        When events are omitted they are pulled from the event source; a
        source failure yields population defaults rather than an error.
        """
        if events is None:
            events = self._load_events(user_id)

        own = [e for e in events if isinstance(e, LearningEvent) and e.user_id == user_id]
        observations = extract_observations(own)
        params = fit_parameters(observations)

        self._parameters[user_id] = params
        for key in [k for k in self._success_counts if k[0] == user_id]:
            del self._success_counts[key]
        for event in own:
            if event.is_correct:
                key = (user_id, event.content_id)
                self._success_counts[key] = self._success_counts.get(key, 0) + 1

        logger.debug(
            f"Forgetting curve for user={user_id}: decay={params.decay_rate} "
            f"consolidation={params.consolidation_factor} obs={params.observation_count} default={params.is_default}"
        )
        return params

    def _load_events(self, user_id: str) -> list[LearningEvent]:
        if self.event_source is None or self.normalizer is None:
            return []
        try:
            records = self.event_source.fetch_recent_events(user_id, self.window_size)
            return self.normalizer.normalize_many(records, strict=False).events
        except Exception as e:
            logger.warning(f"Event source unavailable for user={user_id}, using default curve: {e}")
            return []

    def parameters_for(self, user_id: str | None) -> ForgettingCurveParameters:
        """Fitted parameters, or population defaults for unfitted users."""
        if user_id is None:
            return ForgettingCurveParameters()
        return self._parameters.get(user_id) or ForgettingCurveParameters()

    def has_parameters(self, user_id: str) -> bool:
        return user_id in self._parameters

    def set_parameters(self, user_id: str, params: ForgettingCurveParameters) -> None:
        """Install previously persisted parameters without refitting."""
        self._parameters[user_id] = params

    def successful_exposures(self, user_id: str, content_id: str) -> int:
        return self._success_counts.get((user_id, content_id), 0)

    def has_exposure_count(self, user_id: str, content_id: str) -> bool:
        """True when a fit in this process counted successes for the content."""
        return (user_id, content_id) in self._success_counts

    def predict_retention(
        self,
        content_id: str,
        days_since_learning: float,
        user_id: str | None = None,
        successful_exposures: int | None = None,
    ) -> float:
        """
        Predicted recall probability for a content item.

        Raises:
            ContractViolationError: If days_since_learning is negative
        """
        if days_since_learning is None or days_since_learning < 0 or math.isnan(days_since_learning):
            raise ContractViolationError(f"days_since_learning must be >= 0, got {days_since_learning}")
        params = self.parameters_for(user_id)
        if successful_exposures is not None:
            n = successful_exposures
        else:
            n = self.successful_exposures(user_id, content_id) if user_id is not None else 0
        return round(params.retention(days_since_learning, n), 4)

