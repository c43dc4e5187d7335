"""
Cognitive Load & Flow Estimator.

Heuristic scores for how taxing a session is (load, 0-10) and how close the
learner is to a flow state (0-1), plus a live guidance classifier usable
mid-session. Session helpers split an event history into sessions and score
each one after the fact.

All scoring functions are pure.
"""

from __future__ import annotations

import math
import statistics
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from loguru import logger

from learnsight.core.events import Difficulty, LearningEvent
from learnsight.core.exceptions import ContractViolationError

# =============================================================================
# Weights and thresholds
# =============================================================================

SLOW_RESPONSE_MS = 30_000  # responses at this pace carry the full time load

FLOW_WEIGHTS = {
    "challenge": 0.35,
    "accuracy": 0.20,
    "consistency": 0.20,
    "duration": 0.10,
    "engagement": 0.15,
}
FLOW_TARGET_ACCURACY = 0.8
CHALLENGE_SIGMA = 2.0
WARMUP_MINUTES = 15
FATIGUE_ONSET_MINUTES = 60
FATIGUE_FLOOR = 0.6  # duration term reached at twice the onset
INTERRUPTION_PENALTY = 0.5
NEUTRAL_ENGAGEMENT = 0.5

HIGH_FLOW_INDEX = 0.6
DEFAULT_SKILL_LEVEL = 5.0
SESSION_GAP_MINUTES = 30
ATTENTION_BREAK_SECONDS = 120
FATIGUE_SESSION_MINUTES = 45


def _numeric_difficulty(value: Difficulty | str | float | int) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    return float(Difficulty.parse(value, default=Difficulty.MEDIUM).numeric)


def _require_rate(name: str, value: float) -> None:
    if value is None or math.isnan(value) or not 0.0 <= value <= 1.0:
        raise ContractViolationError(f"{name} must be within [0, 1], got {value}")


def _require_non_negative(name: str, value: float) -> None:
    if value is None or value < 0:
        raise ContractViolationError(f"{name} must be >= 0, got {value}")


# =============================================================================
# Scoring
# =============================================================================


def response_time_cv(response_times: Sequence[float]) -> float:
    """Coefficient of variation of response times (0 for fewer than two)."""
    if len(response_times) < 2:
        return 0.0
    mean = statistics.fmean(response_times)
    if mean <= 0:
        return 0.0
    return statistics.pstdev(response_times) / mean


def response_time_consistency(response_times: Sequence[float]) -> float:
    """1 - CV, clamped to [0, 1]. Steady pacing scores near 1."""
    return max(0.0, min(1.0, 1 - response_time_cv(response_times)))


def score_cognitive_load(
    accuracy_rate: float,
    avg_response_time_ms: float,
    difficulty: Difficulty | str | float,
    question_count: int,
    interruption_count: int = 0,
    response_time_cv: float = 0.0,
) -> float:
    """
    Estimate cognitive load on a 0-10 scale.

    Difficulty, slow responses, erratic pacing, interruptions and volume add
    load. Accurate answers at speed relieve it.
    """
    _require_rate("accuracy_rate", accuracy_rate)
    _require_non_negative("avg_response_time_ms", avg_response_time_ms)
    _require_non_negative("question_count", question_count)
    _require_non_negative("interruption_count", interruption_count)

    pace = avg_response_time_ms / SLOW_RESPONSE_MS
    load = (
        _numeric_difficulty(difficulty) * 0.4
        + min(pace, 2.0)
        + min(max(response_time_cv, 0.0), 1.5)
        + min(0.5 * interruption_count, 2.0)
        + min(question_count / 20, 1.5)
        + (1 - accuracy_rate) * 1.5
    )
    relief = accuracy_rate * max(0.0, min(1.0, 1 - pace)) * 2
    return round(max(0.0, min(10.0, load - relief)), 2)


def _duration_term(minutes: float) -> float:
    if minutes <= 0:
        return 0.0
    ramp = min(1.0, minutes / WARMUP_MINUTES)
    if minutes <= FATIGUE_ONSET_MINUTES:
        return ramp
    decline = min(1.0, (minutes - FATIGUE_ONSET_MINUTES) / FATIGUE_ONSET_MINUTES)
    return ramp * (1 - (1 - FATIGUE_FLOOR) * decline)


def score_flow_state(
    accuracy_rate: float,
    content_difficulty: Difficulty | str | float,
    response_time_consistency: float,
    session_duration_minutes: float,
    user_skill_level: float = DEFAULT_SKILL_LEVEL,
    interruption_count: int = 0,
    engagement_indicators: Iterable[float] | None = None,
) -> float:
    """
    Estimate a flow index in [0, 1].

    The challenge term is a Gaussian of (difficulty - skill): content far
    above or far below the learner's level is penalized alike.
    """
    _require_rate("accuracy_rate", accuracy_rate)
    _require_non_negative("session_duration_minutes", session_duration_minutes)
    _require_non_negative("interruption_count", interruption_count)

    gap = _numeric_difficulty(content_difficulty) - float(user_skill_level)
    challenge = math.exp(-(gap**2) / (2 * CHALLENGE_SIGMA**2))
    accuracy = max(0.0, 1 - abs(accuracy_rate - FLOW_TARGET_ACCURACY) / FLOW_TARGET_ACCURACY)
    consistency = max(0.0, min(1.0, response_time_consistency))

    indicators = [max(0.0, min(1.0, float(v))) for v in (engagement_indicators or [])]
    engagement = statistics.fmean(indicators) if indicators else NEUTRAL_ENGAGEMENT

    flow = (
        FLOW_WEIGHTS["challenge"] * challenge
        + FLOW_WEIGHTS["accuracy"] * accuracy
        + FLOW_WEIGHTS["consistency"] * consistency
        + FLOW_WEIGHTS["duration"] * _duration_term(session_duration_minutes)
        + FLOW_WEIGHTS["engagement"] * engagement
    )
    flow /= 1 + INTERRUPTION_PENALTY * interruption_count
    return round(max(0.0, min(1.0, flow)), 3)


# =============================================================================
# Live guidance
# =============================================================================


class FlowStatus(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    MODERATE = "MODERATE"
    LOW = "LOW"
    POOR = "POOR"


# (lower bound on percent accuracy, status, action, adjustment), highest first
GUIDANCE_BANDS = (
    (90, FlowStatus.EXCELLENT, "Consider increasing difficulty", "Try harder questions for optimal challenge"),
    (75, FlowStatus.GOOD, "Continue with current pace", "Maintain current difficulty level"),
    (60, FlowStatus.MODERATE, "Continue with current pace", "Maintain current difficulty level"),
    (40, FlowStatus.LOW, "Consider easier content", "Focus on foundational concepts"),
    (0, FlowStatus.POOR, "Take a break or switch to easier content", "Review basic concepts before continuing"),
)

BREAK_SUGGESTION = "Take a short break soon to stay sharp"


@dataclass(frozen=True)
class FlowGuidance:
    session_id: str
    current_flow: float
    status: FlowStatus
    recommended_action: str
    adjustment_suggestion: str
    continue_recommendation: bool
    break_suggested: bool = False

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "current_flow": self.current_flow,
            "status": self.status.value,
            "recommended_action": self.recommended_action,
            "adjustment_suggestion": self.adjustment_suggestion,
            "continue_recommendation": self.continue_recommendation,
            "break_suggested": self.break_suggested,
        }


def provide_live_guidance(
    session_id: str,
    current_accuracy: float,
    elapsed_minutes: float = 0.0,
    recent_response_times: Sequence[float] | None = None,
    fatigue_minutes: float = FATIGUE_SESSION_MINUTES,
) -> FlowGuidance:
    """
    Classify an in-progress session.

    Args:
        session_id: Session being guided
        current_accuracy: Accuracy so far as a percentage (0-100)
        elapsed_minutes: Minutes since the session started
        recent_response_times: Latest response times in ms, if any
        fatigue_minutes: Elapsed time after which a break is suggested

    Raises:
        ContractViolationError: Accuracy outside 0-100 or negative times
    """
    if current_accuracy is None or math.isnan(current_accuracy) or not 0 <= current_accuracy <= 100:
        raise ContractViolationError(f"current_accuracy must be within [0, 100], got {current_accuracy}")
    _require_non_negative("elapsed_minutes", elapsed_minutes)
    times = list(recent_response_times or [])
    if any(t is None or t < 0 for t in times):
        raise ContractViolationError("recent_response_times must be non-negative")

    rate = current_accuracy / 100
    current_flow = rate
    if times:
        current_flow = 0.7 * rate + 0.3 * response_time_consistency(times)

    for floor, status, action, adjustment in GUIDANCE_BANDS:
        if current_accuracy >= floor:
            break

    tired = elapsed_minutes > fatigue_minutes
    if tired:
        action = f"{action}. {BREAK_SUGGESTION}"

    return FlowGuidance(
        session_id=session_id,
        current_flow=round(current_flow, 3),
        status=status,
        recommended_action=action,
        adjustment_suggestion=adjustment,
        continue_recommendation=status != FlowStatus.POOR,
        break_suggested=tired,
    )


# =============================================================================
# Historical sessions
# =============================================================================


@dataclass(frozen=True)
class LearningSession:
    """A contiguous run of one learner's events, oldest first."""

    session_id: str
    user_id: str
    events: tuple[LearningEvent, ...]

    @property
    def started_at(self) -> datetime:
        return self.events[0].timestamp

    @property
    def ended_at(self) -> datetime:
        last = self.events[-1]
        return last.timestamp + timedelta(milliseconds=last.response_time_ms)

    @property
    def duration_minutes(self) -> float:
        return (self.ended_at - self.started_at).total_seconds() / 60

    @property
    def graded(self) -> list[LearningEvent]:
        return [e for e in self.events if e.is_correct is not None]

    @property
    def accuracy_rate(self) -> float:
        graded = self.graded
        if not graded:
            return 0.0
        return sum(1 for e in graded if e.is_correct) / len(graded)

    @property
    def response_times(self) -> list[int]:
        return [e.response_time_ms for e in self.events]

    @property
    def dominant_difficulty(self) -> Difficulty:
        """Most frequent difficulty, ties to the harder one."""
        counts = Counter(e.difficulty for e in self.events)
        return max(counts, key=lambda d: (counts[d], d.numeric, d.value))

    def attention_breaks(self, threshold_seconds: float = ATTENTION_BREAK_SECONDS) -> int:
        gaps = (
            (b.timestamp - a.timestamp).total_seconds() - a.response_time_ms / 1000
            for a, b in zip(self.events, self.events[1:])
        )
        return sum(1 for gap in gaps if gap > threshold_seconds)


@dataclass(frozen=True)
class SessionCognitiveScore:
    session_id: str
    load_score: float  # 0-10
    flow_index: float  # 0-1
    attention_breaks: int
    flow_state_duration_minutes: float
    question_count: int
    accuracy_rate: float  # 0-1
    duration_minutes: float
    difficulty: Difficulty = Difficulty.MEDIUM
    started_at: datetime | None = None


def split_sessions(
    events: Iterable[LearningEvent],
    gap_minutes: float = SESSION_GAP_MINUTES,
) -> list[LearningSession]:
    """Split events into per-user sessions separated by inactivity gaps."""
    by_user: dict[str, list[LearningEvent]] = {}
    for event in events:
        by_user.setdefault(event.user_id, []).append(event)

    gap = timedelta(minutes=gap_minutes)
    sessions: list[LearningSession] = []
    for user_id in sorted(by_user):
        ordered = sorted(by_user[user_id], key=lambda e: (e.timestamp, e.content_id))
        run: list[LearningEvent] = [ordered[0]]
        for event in ordered[1:]:
            if event.timestamp - run[-1].timestamp > gap:
                sessions.append(_make_session(user_id, run))
                run = []
            run.append(event)
        sessions.append(_make_session(user_id, run))

    return sorted(sessions, key=lambda s: (s.started_at, s.user_id))


def _make_session(user_id: str, events: list[LearningEvent]) -> LearningSession:
    source_ids = {e.session_id for e in events}
    if len(source_ids) == 1 and None not in source_ids:
        session_id = source_ids.pop()
    else:
        session_id = f"{user_id}-{events[0].timestamp:%Y%m%dT%H%M%S}"
    return LearningSession(session_id=session_id, user_id=user_id, events=tuple(events))


def score_session(
    session: LearningSession | Sequence[LearningEvent],
    user_skill_level: float = DEFAULT_SKILL_LEVEL,
    attention_break_seconds: float = ATTENTION_BREAK_SECONDS,
) -> SessionCognitiveScore:
    """Score one finished session."""
    if not isinstance(session, LearningSession):
        events = sorted(session, key=lambda e: (e.timestamp, e.content_id))
        if not events:
            raise ContractViolationError("Cannot score an empty session")
        session = _make_session(events[0].user_id, events)

    breaks = session.attention_breaks(attention_break_seconds)
    times = session.response_times
    graded = session.graded
    # Ungraded-only sessions are scored at neutral accuracy
    accuracy = session.accuracy_rate if graded else 0.5
    difficulty = session.dominant_difficulty
    duration = session.duration_minutes

    load = score_cognitive_load(
        accuracy_rate=accuracy,
        avg_response_time_ms=statistics.fmean(times) if times else 0.0,
        difficulty=difficulty,
        question_count=len(graded),
        interruption_count=breaks,
        response_time_cv=response_time_cv(times),
    )
    flow = score_flow_state(
        accuracy_rate=accuracy,
        content_difficulty=difficulty,
        response_time_consistency=response_time_consistency(times),
        session_duration_minutes=duration,
        user_skill_level=user_skill_level,
        interruption_count=breaks,
    )

    return SessionCognitiveScore(
        session_id=session.session_id,
        load_score=load,
        flow_index=flow,
        attention_breaks=breaks,
        flow_state_duration_minutes=round(duration * flow, 1) if flow >= HIGH_FLOW_INDEX else 0.0,
        question_count=len(graded),
        accuracy_rate=round(session.accuracy_rate, 4),
        duration_minutes=round(duration, 1),
        difficulty=difficulty,
        started_at=session.started_at,
    )


def score_sessions(
    events: Iterable[LearningEvent],
    user_skill_level: float = DEFAULT_SKILL_LEVEL,
    gap_minutes: float = SESSION_GAP_MINUTES,
    attention_break_seconds: float = ATTENTION_BREAK_SECONDS,
) -> list[SessionCognitiveScore]:
    """Split a history into sessions and score each, oldest first."""
    sessions = split_sessions(events, gap_minutes)
    scores = [score_session(s, user_skill_level, attention_break_seconds) for s in sessions]
    logger.debug(f"Scored {len(scores)} sessions")
    return scores


# =============================================================================
# Load guidance across sessions
# =============================================================================

LOAD_TREND_SESSIONS = 6
LOAD_TREND_DELTA = 0.5
LOW_FLOW_INDEX = 0.4
DEFAULT_CURRENT_LOAD = 5.0
DEFAULT_TIME_UNTIL_FATIGUE = 30
COMFORT_HEADROOM = 1.5  # load margin below tolerance that allows a full session


class LoadAction(str, Enum):
    CONTINUE = "continue"
    TAKE_BREAK = "take_break"
    SWITCH_CONTENT = "switch_content"


@dataclass(frozen=True)
class CognitiveLoadGuidance:
    current_load: float = DEFAULT_CURRENT_LOAD  # 0-10
    trend: str = "stable"
    recommended_action: LoadAction = LoadAction.CONTINUE
    time_until_fatigue_minutes: int = DEFAULT_TIME_UNTIL_FATIGUE
    sessions_considered: int = 0
    is_degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "current_load": self.current_load,
            "trend": self.trend,
            "recommended_action": self.recommended_action.value,
            "time_until_fatigue_minutes": self.time_until_fatigue_minutes,
            "sessions_considered": self.sessions_considered,
            "is_degraded": self.is_degraded,
        }


def load_trend(loads: Sequence[float]) -> str:
    """Compare the mean load of the newer half of sessions with the older half."""
    if len(loads) < 2:
        return "stable"
    half = len(loads) // 2
    delta = statistics.fmean(loads[-half:]) - statistics.fmean(loads[:half])
    if delta > LOAD_TREND_DELTA:
        return "increasing"
    if delta < -LOAD_TREND_DELTA:
        return "decreasing"
    return "stable"


def cognitive_load_guidance(
    sessions: Sequence[SessionCognitiveScore],
    load_tolerance: float,
    fatigue_threshold_minutes: int,
) -> CognitiveLoadGuidance:
    """
    Summarize recent session load into a next-session recommendation.

    Sessions are expected oldest first. The latest session sets the current
    load; time until fatigue shrinks from the fatigue threshold as that load
    approaches the learner's tolerance.
    """
    if not sessions:
        return CognitiveLoadGuidance(time_until_fatigue_minutes=fatigue_threshold_minutes)

    recent = list(sessions)[-LOAD_TREND_SESSIONS:]
    latest = recent[-1]
    current = latest.load_score
    trend = load_trend([s.load_score for s in recent])

    if current >= load_tolerance:
        action = LoadAction.TAKE_BREAK
    elif latest.flow_index < LOW_FLOW_INDEX:
        action = LoadAction.SWITCH_CONTENT
    else:
        action = LoadAction.CONTINUE

    headroom = max(0.0, load_tolerance - current)
    minutes = round(fatigue_threshold_minutes * min(1.0, headroom / COMFORT_HEADROOM))

    return CognitiveLoadGuidance(
        current_load=round(current, 2),
        trend=trend,
        recommended_action=action,
        time_until_fatigue_minutes=minutes,
        sessions_considered=len(recent),
    )
