"""
User learning profile.

A slow-moving summary of how a learner studies best: peak hours,
chronotype, attention span, load tolerance, flow preference and the fitted
forgetting curve. Profiles start from population defaults and are only
rebuilt by an explicit recompute.
"""

from __future__ import annotations

import statistics
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from learnsight.adaptive.cognitive_load import HIGH_FLOW_INDEX, SessionCognitiveScore
from learnsight.analytics.snapshot import PatternSnapshot
from learnsight.study.forgetting_curve import ForgettingCurveParameters

DEFAULT_PEAK_HOURS = [9, 10, 14, 15]
DEFAULT_SESSION_MINUTES = 25
DEFAULT_LOAD_LEVEL = 5.0
DEFAULT_LOAD_TOLERANCE = 6.0
DEFAULT_FATIGUE_MINUTES = 60
DEFAULT_FLOW_INDEX = 0.6
DEFAULT_DIFFICULTY_RANGE = (4, 6)
LOAD_HEADROOM = 1.5
RECENT_SESSIONS = 10

# Difficulty-progression level -> skill on the 1-10 difficulty scale
SKILL_BY_LEVEL = {
    "novice": 2.0,
    "beginner": 3.0,
    "intermediate": 5.0,
    "advanced": 7.0,
}


@dataclass(frozen=True)
class FlowPreference:
    optimal_difficulty_range: tuple[int, int] = DEFAULT_DIFFICULTY_RANGE
    average_flow_index: float = DEFAULT_FLOW_INDEX


@dataclass(frozen=True)
class UserLearningProfile:
    """
    Per-learner study profile.

    Attributes:
        attention_span_minutes: Typical length of high-flow sessions
        optimal_session_length: Recommended minutes per session
        peak_performance_hours: Local hours with the best results
        chronotype: morning, intermediate or evening
        cognitive_load_tolerance: Load level (0-10) the learner handles well
        current_load_level: Mean load of recent sessions
        fatigue_threshold_minutes: Longest observed session still in flow
        forgetting_curve: Fitted retention parameters
        flow_state_preference: Difficulty range with the best flow
        session_count: Sessions the profile was built from
        last_analysis_update: When the profile was last recomputed
        is_degraded: True when the stored profile could not be loaded; never persisted
    """

    user_id: str
    attention_span_minutes: int = DEFAULT_SESSION_MINUTES
    optimal_session_length: int = DEFAULT_SESSION_MINUTES
    peak_performance_hours: list[int] = field(default_factory=lambda: list(DEFAULT_PEAK_HOURS))
    chronotype: str = "intermediate"
    cognitive_load_tolerance: float = DEFAULT_LOAD_TOLERANCE
    current_load_level: float = DEFAULT_LOAD_LEVEL
    fatigue_threshold_minutes: int = DEFAULT_FATIGUE_MINUTES
    forgetting_curve: ForgettingCurveParameters = field(default_factory=ForgettingCurveParameters)
    flow_state_preference: FlowPreference = field(default_factory=FlowPreference)
    session_count: int = 0
    last_analysis_update: datetime | None = None
    is_default: bool = True
    is_degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "attention_span_minutes": self.attention_span_minutes,
            "optimal_session_length": self.optimal_session_length,
            "peak_performance_hours": list(self.peak_performance_hours),
            "chronotype": self.chronotype,
            "cognitive_load_tolerance": self.cognitive_load_tolerance,
            "current_load_level": self.current_load_level,
            "fatigue_threshold_minutes": self.fatigue_threshold_minutes,
            "forgetting_curve": self.forgetting_curve.to_dict(),
            "flow_state_preference": {
                "optimal_difficulty_range": list(self.flow_state_preference.optimal_difficulty_range),
                "average_flow_index": self.flow_state_preference.average_flow_index,
            },
            "session_count": self.session_count,
            "last_analysis_update": self.last_analysis_update.isoformat() if self.last_analysis_update else None,
            "is_default": self.is_default,
        }

    @classmethod
    def from_dict(cls, data: dict) -> UserLearningProfile:
        flow = data.get("flow_state_preference") or {}
        low, high = flow.get("optimal_difficulty_range", DEFAULT_DIFFICULTY_RANGE)
        updated = data.get("last_analysis_update")
        return cls(
            user_id=data["user_id"],
            attention_span_minutes=int(data.get("attention_span_minutes", DEFAULT_SESSION_MINUTES)),
            optimal_session_length=int(data.get("optimal_session_length", DEFAULT_SESSION_MINUTES)),
            peak_performance_hours=[int(h) for h in data.get("peak_performance_hours", DEFAULT_PEAK_HOURS)],
            chronotype=data.get("chronotype", "intermediate"),
            cognitive_load_tolerance=float(data.get("cognitive_load_tolerance", DEFAULT_LOAD_TOLERANCE)),
            current_load_level=float(data.get("current_load_level", DEFAULT_LOAD_LEVEL)),
            fatigue_threshold_minutes=int(data.get("fatigue_threshold_minutes", DEFAULT_FATIGUE_MINUTES)),
            forgetting_curve=ForgettingCurveParameters.from_dict(data.get("forgetting_curve") or {}),
            flow_state_preference=FlowPreference(
                optimal_difficulty_range=(int(low), int(high)),
                average_flow_index=float(flow.get("average_flow_index", DEFAULT_FLOW_INDEX)),
            ),
            session_count=int(data.get("session_count", 0)),
            last_analysis_update=datetime.fromisoformat(updated) if updated else None,
            is_default=bool(data.get("is_default", False)),
        )


def default_profile(user_id: str) -> UserLearningProfile:
    """Population-default profile used before the first recompute."""
    return UserLearningProfile(user_id=user_id)


def skill_level_for(snapshot: PatternSnapshot) -> float:
    return SKILL_BY_LEVEL.get(snapshot.difficulty_progression.current_level, SKILL_BY_LEVEL["intermediate"])


# =============================================================================
# Derivations
# =============================================================================


def peak_hours(snapshot: PatternSnapshot) -> list[int]:
    patterns = snapshot.time_of_day_patterns
    hours = [h.hour for h in patterns.best_performance_hours]
    if not hours:
        hours = [int(item.key) for item in patterns.most_active_hours]
    return sorted(hours) if hours else list(DEFAULT_PEAK_HOURS)


def chronotype_for(hours: Sequence[int]) -> str:
    mean_hour = statistics.fmean(hours)
    if mean_hour < 12:
        return "morning"
    if mean_hour >= 18:
        return "evening"
    return "intermediate"


def flow_preference(sessions: Sequence[SessionCognitiveScore]) -> FlowPreference:
    """Difficulty band with the best mean flow, widened by one step each side."""
    if not sessions:
        return FlowPreference()

    by_difficulty: dict[int, list[float]] = defaultdict(list)
    for score in sessions:
        by_difficulty[score.difficulty.numeric].append(score.flow_index)

    best = min(by_difficulty, key=lambda d: (-statistics.fmean(by_difficulty[d]), d))
    return FlowPreference(
        optimal_difficulty_range=(max(1, best - 1), min(10, best + 1)),
        average_flow_index=round(statistics.fmean(s.flow_index for s in sessions), 3),
    )


def build_learning_profile(
    user_id: str,
    snapshot: PatternSnapshot,
    sessions: Sequence[SessionCognitiveScore],
    forgetting_curve: ForgettingCurveParameters | None = None,
    now: datetime | None = None,
) -> UserLearningProfile:
    """
    Derive a profile from a snapshot, scored sessions and a fitted curve.

    Sessions are expected oldest first; load and length use the most recent
    ones.
    """
    hours = peak_hours(snapshot)
    curve = forgetting_curve or ForgettingCurveParameters()

    if not sessions:
        return UserLearningProfile(
            user_id=user_id,
            peak_performance_hours=hours,
            chronotype=chronotype_for(hours),
            forgetting_curve=curve,
            last_analysis_update=now,
            is_default=curve.is_default and not snapshot.has_data,
        )

    recent = list(sessions)[-RECENT_SESSIONS:]
    in_flow = [s for s in sessions if s.flow_index >= HIGH_FLOW_INDEX]

    span_source = in_flow or list(sessions)
    attention_span = max(1, round(statistics.median(s.duration_minutes for s in span_source)))
    session_length = min(60, max(10, round(statistics.fmean(s.duration_minutes for s in recent))))
    load = statistics.fmean(s.load_score for s in recent)
    fatigue = DEFAULT_FATIGUE_MINUTES
    if in_flow:
        fatigue = min(120, max(15, round(max(s.duration_minutes for s in in_flow))))

    return UserLearningProfile(
        user_id=user_id,
        attention_span_minutes=attention_span,
        optimal_session_length=session_length,
        peak_performance_hours=hours,
        chronotype=chronotype_for(hours),
        cognitive_load_tolerance=round(min(10.0, load + LOAD_HEADROOM), 2),
        current_load_level=round(load, 2),
        fatigue_threshold_minutes=fatigue,
        forgetting_curve=curve,
        flow_state_preference=flow_preference(sessions),
        session_count=len(sessions),
        last_analysis_update=now,
        is_default=False,
    )


# =============================================================================
# Learning stage
# =============================================================================

# (stage, data quality, min active days, min sessions), most mature first
STAGE_LADDER = (
    ("ai_coach_active", "excellent", 60, 50),
    ("patterns_emerging", "basic", 7, 10),
)


@dataclass(frozen=True)
class LearningStage:
    """How much history backs the learner's analytics."""

    stage: str = "analyzing"
    data_quality: str = "insufficient"
    days_active: int = 0
    session_count: int = 0
    is_degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "data_quality": self.data_quality,
            "days_active": self.days_active,
            "session_count": self.session_count,
            "is_degraded": self.is_degraded,
        }


def learning_stage_for(days_active: int, session_count: int) -> LearningStage:
    """Both thresholds of a stage must be met to reach it."""
    for stage, quality, min_days, min_sessions in STAGE_LADDER:
        if days_active >= min_days and session_count >= min_sessions:
            return LearningStage(stage, quality, days_active, session_count)
    return LearningStage(days_active=days_active, session_count=session_count)
