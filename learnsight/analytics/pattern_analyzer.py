"""
Pattern Analyzer - behavioral summaries from a window of learning events.

Computes eight independent sub-analyses over the same immutable window:
1. Learning frequency and consistency
2. Time-of-day activity and performance
3. Subject strengths and weaknesses
4. Difficulty progression (last 50 graded events)
5. Consecutive-day streaks
6. Error patterns by (category, difficulty)
7. Learning velocity across chronological chunks
8. Short-horizon (7 day) retention

Accuracy-based analyses only consider graded events; volume-based analyses
count every event. All functions are pure: identical input and clock yield
identical output.
"""

from __future__ import annotations

import math
import statistics
from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

from loguru import logger

from learnsight.analytics.snapshot import (
    CategoryPerformance,
    DifficultyAccuracy,
    DifficultyProgression,
    ErrorPatterns,
    HourAccuracy,
    LearningFrequency,
    LearningVelocity,
    PatternSnapshot,
    PeakFocusTime,
    RankedCount,
    RetentionRate,
    StreakPatterns,
    SubjectStrengths,
    TimeOfDayPatterns,
)
from learnsight.core.clock import Clock, SystemClock
from learnsight.core.events import Difficulty, LearningEvent

# Thresholds (overridable through Settings.get_analysis_thresholds)
THRESHOLDS = {
    "strength_min_accuracy": 0.80,
    "strength_min_events": 5,
    "weakness_max_accuracy": 0.60,
    "weakness_min_events": 3,
    "reliable_hour_min_events": 3,
}

PROGRESSION_WINDOW = 50
LEVEL_ACCURACY = 70  # percent, cascading level assignment
NEXT_LEVEL_ACCURACY = 75  # percent on the next tier
RETENTION_WINDOW = timedelta(days=7)
RETENTION_TREND_DELTA = 0.05
WINDOW_CAP = 500

# Level -> band whose accuracy earned it
_LEVEL_TIER = {
    "beginner": Difficulty.EASY,
    "intermediate": Difficulty.MEDIUM,
}


# ============================================================================
# Helpers
# ============================================================================


def percent(correct: int, total: int) -> int:
    """Integer percentage rounded half up; 0 for an empty total."""
    if total <= 0:
        return 0
    return int(math.floor(correct * 100 / total + 0.5))


def time_slot_name(hour: int) -> str:
    """Coarse label for an hour of day."""
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 22:
        return "evening"
    return "late_night"


def top_items(counts: dict, n: int) -> list[RankedCount]:
    """Top-N keys by count, ties broken by key ascending."""
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [RankedCount(key=k, value=v) for k, v in ranked[:n]]


def _graded(events: Iterable[LearningEvent]) -> list[LearningEvent]:
    return [e for e in events if e.is_correct is not None]


def _local(event: LearningEvent, tz: tzinfo) -> datetime:
    return event.timestamp.astimezone(tz)


# ============================================================================
# Sub-analyses
# ============================================================================


def analyze_frequency(events: Sequence[LearningEvent], tz: tzinfo) -> LearningFrequency:
    """Daily volume, preferred weekdays, and consistency of daily counts."""
    if not events:
        return LearningFrequency()

    daily: Counter[date] = Counter()
    weekly: Counter[int] = Counter()
    for event in events:
        local = _local(event, tz)
        daily[local.date()] += 1
        weekly[local.weekday()] += 1

    counts = list(daily.values())
    mean = sum(counts) / len(counts)
    consistency = 0.0
    if mean > 0:
        consistency = max(0.0, 1 - statistics.pstdev(counts) / mean)

    return LearningFrequency(
        average_daily_questions=round(len(events) / len(daily), 2),
        active_days=len(daily),
        preferred_days_of_week=top_items(dict(weekly), 3),
        consistency=round(consistency, 4),
    )


def analyze_time_of_day(
    events: Sequence[LearningEvent],
    tz: tzinfo,
    min_events: int = THRESHOLDS["reliable_hour_min_events"],
) -> TimeOfDayPatterns:
    """Activity by hour, best-accuracy hours, and the peak focus hour."""
    if not events:
        return TimeOfDayPatterns()

    activity: Counter[int] = Counter()
    graded_total: Counter[int] = Counter()
    graded_correct: Counter[int] = Counter()

    for event in events:
        hour = _local(event, tz).hour
        activity[hour] += 1
        if event.is_correct is not None:
            graded_total[hour] += 1
            if event.is_correct:
                graded_correct[hour] += 1

    reliable = {h: n for h, n in graded_total.items() if n >= min_events}

    best = sorted(
        (HourAccuracy(hour=h, accuracy=percent(graded_correct[h], n)) for h, n in reliable.items()),
        key=lambda item: (-item.accuracy, item.hour),
    )[:3]

    peak = None
    if reliable:
        # volume x accuracy, ties to the earlier hour
        peak_hour = min(
            reliable,
            key=lambda h: (-(activity[h] * graded_correct[h] / reliable[h]), h),
        )
        peak = PeakFocusTime(hour=peak_hour, time_slot=time_slot_name(peak_hour))

    return TimeOfDayPatterns(
        most_active_hours=top_items(dict(activity), 3),
        best_performance_hours=best,
        peak_focus_time=peak,
    )


def analyze_subject_strengths(
    events: Sequence[LearningEvent],
    thresholds: dict | None = None,
) -> SubjectStrengths:
    """
    Classify categories as strengths or weaknesses.

    Categories that satisfy neither rule are left out rather than forced
    into a bucket.
    """
    limits = {**THRESHOLDS, **(thresholds or {})}
    graded = _graded(events)
    if not graded:
        return SubjectStrengths()

    totals: Counter[str] = Counter()
    correct: Counter[str] = Counter()
    time_sum: Counter[str] = Counter()
    for event in graded:
        totals[event.category_id] += 1
        time_sum[event.category_id] += event.response_time_ms
        if event.is_correct:
            correct[event.category_id] += 1

    strengths: list[CategoryPerformance] = []
    weaknesses: list[CategoryPerformance] = []
    for category in sorted(totals):
        n = totals[category]
        accuracy = correct[category] / n
        item = CategoryPerformance(
            category=category,
            accuracy=percent(correct[category], n),
            total_questions=n,
            average_time=int(math.floor(time_sum[category] / n / 1000 + 0.5)),
        )
        if accuracy >= limits["strength_min_accuracy"] and n >= limits["strength_min_events"]:
            strengths.append(item)
        elif accuracy < limits["weakness_max_accuracy"] and n >= limits["weakness_min_events"]:
            weaknesses.append(item)

    return SubjectStrengths(
        strengths=sorted(strengths, key=lambda s: (-s.accuracy, s.category)),
        weaknesses=sorted(weaknesses, key=lambda w: (w.accuracy, w.category)),
        overall_accuracy=percent(sum(correct.values()), len(graded)),
    )


def assess_current_level(progression: Sequence[DifficultyAccuracy]) -> str:
    """Cascade from the hardest band down; the first band at 70%+ sets the level."""
    accuracy = {p.difficulty: p.accuracy for p in progression}
    if accuracy.get(Difficulty.HARD.value, 0) >= LEVEL_ACCURACY:
        return "advanced"
    if accuracy.get(Difficulty.MEDIUM.value, 0) >= LEVEL_ACCURACY:
        return "intermediate"
    if accuracy.get(Difficulty.EASY.value, 0) >= LEVEL_ACCURACY:
        return "beginner"
    return "novice"


def is_ready_for_next_level(progression: Sequence[DifficultyAccuracy], level: str) -> bool:
    """
    Ready once the band that earned the current level is at 75%+.

    The cascade already promotes anyone at 70%+ on the next band, so the
    check is made on the current one. Novice has no earned band and advanced
    has no next level.
    """
    tier = _LEVEL_TIER.get(level)
    if tier is None:
        return False
    for p in progression:
        if p.difficulty == tier.value:
            return p.accuracy >= NEXT_LEVEL_ACCURACY
    return False


def analyze_difficulty_progression(events: Sequence[LearningEvent]) -> DifficultyProgression:
    """Per-band accuracy over the most recent graded events."""
    graded = sorted(_graded(events), key=lambda e: e.timestamp, reverse=True)[:PROGRESSION_WINDOW]
    if not graded:
        return DifficultyProgression()

    totals: Counter[Difficulty] = Counter()
    correct: Counter[Difficulty] = Counter()
    for event in graded:
        band = event.difficulty.band
        totals[band] += 1
        if event.is_correct:
            correct[band] += 1

    progression = [
        DifficultyAccuracy(difficulty=band.value, accuracy=percent(correct[band], totals[band]), attempts=totals[band])
        for band in (Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD)
        if totals[band]
    ]
    level = assess_current_level(progression)

    return DifficultyProgression(
        current_level=level,
        progression=progression,
        ready_for_next=is_ready_for_next_level(progression, level),
    )


def calculate_streaks(active_days: Iterable[date], today: date) -> StreakPatterns:
    """
    Consecutive-day streaks from distinct active days.

    The current streak counts backward from today; a missing today means no
    current streak.
    """
    days = sorted(set(active_days))
    if not days:
        return StreakPatterns()

    runs: list[int] = []
    run = 1
    for previous, current in zip(days, days[1:]):
        if current - previous == timedelta(days=1):
            run += 1
        else:
            runs.append(run)
            run = 1
    runs.append(run)

    day_set = set(days)
    current_streak = 0
    cursor = today
    while cursor in day_set:
        current_streak += 1
        cursor -= timedelta(days=1)

    return StreakPatterns(
        current_streak=current_streak,
        longest_streak=max(runs),
        average_streak=round(sum(runs) / len(runs), 1),
    )


def analyze_streaks(events: Sequence[LearningEvent], tz: tzinfo, now: datetime) -> StreakPatterns:
    return calculate_streaks((_local(e, tz).date() for e in events), now.astimezone(tz).date())


def analyze_errors(events: Sequence[LearningEvent]) -> ErrorPatterns:
    """Most frequent (category, difficulty) combinations among incorrect answers."""
    graded = _graded(events)
    if not graded:
        return ErrorPatterns()

    errors = [e for e in graded if not e.is_correct]
    combos: Counter[str] = Counter(f"{e.category_id}_{e.difficulty.value}" for e in errors)

    return ErrorPatterns(
        most_common_errors=top_items(dict(combos), 3),
        total_errors=len(errors),
        error_rate=round(len(errors) / len(graded), 4),
    )


def calculate_velocity_score(accuracy_trend: Sequence[float]) -> float:
    """0.5 plus twice the mean consecutive change, clamped to 0-1."""
    if len(accuracy_trend) < 2:
        return 0.5
    deltas = [b - a for a, b in zip(accuracy_trend, accuracy_trend[1:])]
    return max(0.0, min(1.0, 0.5 + 2 * (sum(deltas) / len(deltas))))


def analyze_velocity(events: Sequence[LearningEvent]) -> LearningVelocity:
    """Accuracy trend across about five chronological chunks."""
    graded = sorted(_graded(events), key=lambda e: e.timestamp)
    if not graded:
        return LearningVelocity()

    chunk_size = max(10, len(graded) // 5)
    trend: list[float] = []
    for start in range(0, len(graded), chunk_size):
        chunk = graded[start : start + chunk_size]
        trend.append(sum(1 for e in chunk if e.is_correct) / len(chunk))

    return LearningVelocity(
        trend=[int(math.floor(acc * 100 + 0.5)) for acc in trend],
        velocity_score=round(calculate_velocity_score(trend), 4),
        is_improving=len(trend) > 1 and trend[-1] > trend[0],
    )


def analyze_retention(events: Sequence[LearningEvent], now: datetime) -> RetentionRate:
    """Accuracy over the last seven days, compared with the seven before."""
    recent: list[LearningEvent] = []
    previous: list[LearningEvent] = []
    for event in _graded(events):
        age = now - event.timestamp
        if age < RETENTION_WINDOW:
            recent.append(event)
        elif age < 2 * RETENTION_WINDOW:
            previous.append(event)

    if not recent:
        return RetentionRate()

    weekly = sum(1 for e in recent if e.is_correct) / len(recent)
    trend = "stable"
    if previous:
        before = sum(1 for e in previous if e.is_correct) / len(previous)
        if weekly - before > RETENTION_TREND_DELTA:
            trend = "improving"
        elif before - weekly > RETENTION_TREND_DELTA:
            trend = "declining"

    return RetentionRate(weekly_retention=round(weekly, 4), trend=trend)


# ============================================================================
# Analyzer
# ============================================================================


class PatternAnalyzer:
    """
    Builds PatternSnapshot objects from event windows.

    The analyzer holds no per-user state; caching is the caller's concern.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        timezone: str | tzinfo = "UTC",
        thresholds: dict | None = None,
    ):
        self.clock = clock or SystemClock()
        self.tz = ZoneInfo(timezone) if isinstance(timezone, str) else timezone
        self.thresholds = {**THRESHOLDS, **(thresholds or {})}

    def default_snapshot(self, user_id: str, is_degraded: bool = False) -> PatternSnapshot:
        """All-zero snapshot used for empty or unusable windows."""
        return PatternSnapshot(user_id=user_id, generated_at=self.clock.now(), is_degraded=is_degraded)

    def analyze(self, user_id: str, window: Iterable[LearningEvent]) -> PatternSnapshot:
        """
        Analyze a window of events for one user.

        Never raises; foreign or malformed items are ignored and an unusable
        window produces the default snapshot.
        """
        now = self.clock.now()
        try:
            events = tuple(
                sorted(
                    (e for e in window if isinstance(e, LearningEvent) and e.user_id == user_id),
                    key=lambda e: (e.timestamp, e.content_id),
                    reverse=True,
                )[:WINDOW_CAP]
            )
        except (TypeError, AttributeError) as e:
            logger.warning(f"Unusable event window for user={user_id}: {e}")
            return self.default_snapshot(user_id)

        if not events:
            return self.default_snapshot(user_id)

        try:
            return PatternSnapshot(
                user_id=user_id,
                generated_at=now,
                event_count=len(events),
                learning_frequency=analyze_frequency(events, self.tz),
                time_of_day_patterns=analyze_time_of_day(
                    events, self.tz, self.thresholds["reliable_hour_min_events"]
                ),
                subject_strengths=analyze_subject_strengths(events, self.thresholds),
                difficulty_progression=analyze_difficulty_progression(events),
                streak_patterns=analyze_streaks(events, self.tz, now),
                error_patterns=analyze_errors(events),
                learning_velocity=analyze_velocity(events),
                retention_rate=analyze_retention(events, now),
            )
        except Exception as e:  # Intentionally broad - analysis must always return a snapshot
            logger.error(f"Pattern analysis failed for user={user_id}: {e}")
            return self.default_snapshot(user_id)
