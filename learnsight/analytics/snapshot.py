"""
Pattern snapshot models.

A PatternSnapshot is the Pattern Analyzer's output for one user at one point
in time. Every field has a defined default so an empty window still yields a
complete object.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class RankedCount:
    """A key with an occurrence count, used for top-N listings."""

    key: Any
    value: int


@dataclass(frozen=True)
class HourAccuracy:
    hour: int
    accuracy: int  # percent


@dataclass(frozen=True)
class PeakFocusTime:
    hour: int
    time_slot: str


@dataclass(frozen=True)
class CategoryPerformance:
    category: str
    accuracy: int  # percent
    total_questions: int
    average_time: int  # seconds


@dataclass(frozen=True)
class DifficultyAccuracy:
    difficulty: str
    accuracy: int  # percent
    attempts: int


@dataclass(frozen=True)
class LearningFrequency:
    average_daily_questions: float = 0.0
    active_days: int = 0
    preferred_days_of_week: list[RankedCount] = field(default_factory=list)
    consistency: float = 0.0


@dataclass(frozen=True)
class TimeOfDayPatterns:
    most_active_hours: list[RankedCount] = field(default_factory=list)
    best_performance_hours: list[HourAccuracy] = field(default_factory=list)
    peak_focus_time: PeakFocusTime | None = None


@dataclass(frozen=True)
class SubjectStrengths:
    strengths: list[CategoryPerformance] = field(default_factory=list)
    weaknesses: list[CategoryPerformance] = field(default_factory=list)
    overall_accuracy: int = 0  # percent

    def strength_categories(self) -> list[str]:
        return [s.category for s in self.strengths]

    def weakness_categories(self) -> list[str]:
        return [w.category for w in self.weaknesses]


@dataclass(frozen=True)
class DifficultyProgression:
    current_level: str = "novice"
    progression: list[DifficultyAccuracy] = field(default_factory=list)
    ready_for_next: bool = False


@dataclass(frozen=True)
class StreakPatterns:
    current_streak: int = 0
    longest_streak: int = 0
    average_streak: float = 0.0


@dataclass(frozen=True)
class ErrorPatterns:
    most_common_errors: list[RankedCount] = field(default_factory=list)
    total_errors: int = 0
    error_rate: float = 0.0


@dataclass(frozen=True)
class LearningVelocity:
    trend: list[int] = field(default_factory=list)  # percent per chunk
    velocity_score: float = 0.0  # 0-1
    is_improving: bool = False


@dataclass(frozen=True)
class RetentionRate:
    weekly_retention: float = 0.0  # 0-1
    trend: str = "stable"


@dataclass(frozen=True)
class PatternSnapshot:
    """
    Behavioral pattern summary for one learner.

    Attributes:
        user_id: Learner the snapshot describes
        generated_at: Clock time of the analysis (None for a bare default)
        event_count: Number of events in the analyzed window
        is_degraded: True when upstream data could not be fetched
    """

    user_id: str
    generated_at: datetime | None = None
    event_count: int = 0
    is_degraded: bool = False
    learning_frequency: LearningFrequency = field(default_factory=LearningFrequency)
    time_of_day_patterns: TimeOfDayPatterns = field(default_factory=TimeOfDayPatterns)
    subject_strengths: SubjectStrengths = field(default_factory=SubjectStrengths)
    difficulty_progression: DifficultyProgression = field(default_factory=DifficultyProgression)
    streak_patterns: StreakPatterns = field(default_factory=StreakPatterns)
    error_patterns: ErrorPatterns = field(default_factory=ErrorPatterns)
    learning_velocity: LearningVelocity = field(default_factory=LearningVelocity)
    retention_rate: RetentionRate = field(default_factory=RetentionRate)

    @property
    def has_data(self) -> bool:
        return self.event_count > 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["generated_at"] = self.generated_at.isoformat() if self.generated_at else None
        return data
