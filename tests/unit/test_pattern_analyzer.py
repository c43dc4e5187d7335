"""
Unit tests for the PatternAnalyzer and its sub-analyses.

All analyses run on a fixed clock so results are reproducible.
"""

from datetime import UTC, date, datetime, timedelta

from conftest import FixedClock, make_event

from learnsight.analytics.pattern_analyzer import (
    PatternAnalyzer,
    analyze_difficulty_progression,
    analyze_retention,
    analyze_subject_strengths,
    analyze_velocity,
    calculate_streaks,
    calculate_velocity_score,
    percent,
    time_slot_name,
)
from learnsight.analytics.snapshot import DifficultyAccuracy, RankedCount
from learnsight.core.events import Difficulty

NOW = datetime(2024, 3, 4, 12, 0, tzinfo=UTC)


class TestHelpers:
    def test_percent_rounds_half_up(self):
        assert percent(1, 8) == 13  # 12.5
        assert percent(2, 3) == 67
        assert percent(0, 0) == 0

    def test_time_slots(self):
        assert time_slot_name(6) == "morning"
        assert time_slot_name(12) == "afternoon"
        assert time_slot_name(21) == "evening"
        assert time_slot_name(23) == "late_night"
        assert time_slot_name(3) == "late_night"


class TestSnapshotScenarios:
    def test_finance_mornings_are_a_strength(self, finance_morning_events):
        snapshot = PatternAnalyzer(clock=FixedClock()).analyze("u1", finance_morning_events)

        strengths = snapshot.subject_strengths.strengths
        assert [s.category for s in strengths] == ["finance"]
        assert strengths[0].accuracy == 80
        assert strengths[0].total_questions == 10
        assert strengths[0].average_time == 20

        best_hours = [h.hour for h in snapshot.time_of_day_patterns.best_performance_hours]
        assert best_hours == [9, 10]
        assert snapshot.time_of_day_patterns.peak_focus_time.hour == 9
        assert snapshot.time_of_day_patterns.peak_focus_time.time_slot == "morning"

    def test_finance_mornings_other_sections(self, finance_morning_events):
        snapshot = PatternAnalyzer(clock=FixedClock()).analyze("u1", finance_morning_events)

        assert snapshot.event_count == 10
        assert snapshot.learning_frequency.active_days == 1
        assert snapshot.learning_frequency.average_daily_questions == 10.0
        assert snapshot.learning_frequency.preferred_days_of_week == [RankedCount(key=0, value=10)]
        assert snapshot.error_patterns.most_common_errors == [RankedCount(key="finance_medium", value=2)]
        assert snapshot.error_patterns.error_rate == 0.2
        assert snapshot.difficulty_progression.current_level == "intermediate"
        assert snapshot.streak_patterns.current_streak == 1
        assert snapshot.retention_rate.weekly_retention == 0.8

    def test_empty_window_yields_defaults(self):
        snapshot = PatternAnalyzer(clock=FixedClock()).analyze("u1", [])

        assert snapshot.learning_frequency.active_days == 0
        assert snapshot.subject_strengths.strengths == []
        assert snapshot.difficulty_progression.current_level == "novice"
        assert snapshot.time_of_day_patterns.peak_focus_time is None
        assert snapshot.has_data is False
        assert snapshot.generated_at == NOW

    def test_other_users_and_junk_are_ignored(self, finance_morning_events):
        window = list(finance_morning_events) + [make_event(NOW, user_id="u2"), "junk", None]
        snapshot = PatternAnalyzer(clock=FixedClock()).analyze("u1", window)
        assert snapshot.event_count == 10

    def test_analysis_is_deterministic(self, finance_morning_events):
        analyzer = PatternAnalyzer(clock=FixedClock())
        first = analyzer.analyze("u1", finance_morning_events)
        second = analyzer.analyze("u1", list(reversed(finance_morning_events)))
        assert first == second

    def test_timezone_shifts_hour_buckets(self, finance_morning_events):
        snapshot = PatternAnalyzer(clock=FixedClock(), timezone="Asia/Tokyo").analyze("u1", finance_morning_events)
        assert snapshot.time_of_day_patterns.peak_focus_time.hour == 18
        assert snapshot.time_of_day_patterns.peak_focus_time.time_slot == "evening"

    def test_to_dict_is_serializable_shape(self, finance_morning_events):
        data = PatternAnalyzer(clock=FixedClock()).analyze("u1", finance_morning_events).to_dict()
        assert data["generated_at"] == NOW.isoformat()
        assert data["subject_strengths"]["strengths"][0]["category"] == "finance"


class TestSubjectStrengths:
    def test_weakness_requires_three_events(self):
        events = [
            make_event(NOW, is_correct=i == 0, category="logical_thinking_problem_solving", content_id=f"l{i}")
            for i in range(3)
        ]
        result = analyze_subject_strengths(events)
        assert result.weakness_categories() == ["logical_thinking_problem_solving"]
        assert result.weaknesses[0].accuracy == 33

    def test_strength_boundary_is_inclusive(self):
        events = [make_event(NOW, is_correct=i < 4, content_id=f"q{i}") for i in range(5)]
        result = analyze_subject_strengths(events)
        assert result.strength_categories() == ["finance"]
        assert result.strengths[0].accuracy == 80

    def test_four_events_are_too_few_for_a_strength(self):
        events = [make_event(NOW, is_correct=True, content_id=f"q{i}") for i in range(4)]
        result = analyze_subject_strengths(events)
        assert result.strengths == []
        assert result.weaknesses == []

    def test_middle_accuracy_is_neither(self):
        events = [make_event(NOW, is_correct=i < 7, content_id=f"q{i}") for i in range(10)]
        result = analyze_subject_strengths(events)
        assert result.strengths == []
        assert result.weaknesses == []
        assert result.overall_accuracy == 70

    def test_ungraded_events_do_not_count(self):
        events = [make_event(NOW, is_correct=None, content_id=f"c{i}") for i in range(6)]
        result = analyze_subject_strengths(events)
        assert result.strengths == []
        assert result.overall_accuracy == 0

    def test_thresholds_can_be_overridden(self):
        events = [make_event(NOW, is_correct=True, content_id=f"q{i}") for i in range(3)]
        assert analyze_subject_strengths(events).strengths == []
        relaxed = analyze_subject_strengths(events, {"strength_min_events": 3})
        assert relaxed.strength_categories() == ["finance"]


class TestDifficultyProgression:
    def _events(self, difficulty, correct, total):
        return [
            make_event(NOW - timedelta(minutes=i), is_correct=i < correct, difficulty=difficulty, content_id=f"{difficulty.value}{i}")
            for i in range(total)
        ]

    def test_cascade_picks_hardest_band_at_seventy(self):
        events = self._events(Difficulty.HARD, 3, 4) + self._events(Difficulty.EASY, 1, 4)
        assert analyze_difficulty_progression(events).current_level == "advanced"

    def test_course_scale_folds_onto_bands(self):
        events = self._events(Difficulty.BASIC, 4, 5)
        result = analyze_difficulty_progression(events)
        assert result.progression == [DifficultyAccuracy(difficulty="easy", accuracy=80, attempts=5)]
        assert result.current_level == "beginner"
        assert result.ready_for_next is True

    def test_borderline_level_is_not_ready(self):
        events = self._events(Difficulty.EASY, 7, 10)
        result = analyze_difficulty_progression(events)
        assert result.current_level == "beginner"
        assert result.ready_for_next is False

    def test_novice_and_advanced_are_never_ready(self):
        novice = analyze_difficulty_progression(self._events(Difficulty.EASY, 1, 5))
        advanced = analyze_difficulty_progression(self._events(Difficulty.HARD, 5, 5))
        assert (novice.current_level, novice.ready_for_next) == ("novice", False)
        assert (advanced.current_level, advanced.ready_for_next) == ("advanced", False)

    def test_only_most_recent_fifty_are_used(self):
        recent = self._events(Difficulty.EASY, 50, 50)
        old = [
            make_event(NOW - timedelta(days=30, minutes=i), is_correct=True, difficulty=Difficulty.HARD, content_id=f"old{i}")
            for i in range(20)
        ]
        result = analyze_difficulty_progression(recent + old)
        assert [p.difficulty for p in result.progression] == ["easy"]


class TestStreaks:
    def test_runs_and_current_streak(self):
        days = [date(2024, 3, d) for d in (1, 2, 3, 4)] + [date(2024, 2, d) for d in (20, 21)]
        result = calculate_streaks(days, today=date(2024, 3, 4))
        assert result.current_streak == 4
        assert result.longest_streak == 4
        assert result.average_streak == 3.0

    def test_inactive_today_means_no_current_streak(self):
        days = [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)]
        result = calculate_streaks(days, today=date(2024, 3, 4))
        assert result.current_streak == 0
        assert result.longest_streak == 3

    def test_duplicates_collapse(self):
        days = [date(2024, 3, 4)] * 5
        assert calculate_streaks(days, today=date(2024, 3, 4)).longest_streak == 1

    def test_no_days(self):
        assert calculate_streaks([], today=date(2024, 3, 4)).current_streak == 0


class TestVelocityAndRetention:
    def test_velocity_score_clamps(self):
        assert calculate_velocity_score([0.5]) == 0.5
        assert calculate_velocity_score([0.0, 1.0]) == 1.0
        assert calculate_velocity_score([1.0, 0.0]) == 0.0

    def test_improving_history(self):
        events = [
            make_event(NOW - timedelta(hours=40 - i), is_correct=(i >= 20) or (i % 2 == 0), content_id=f"q{i}")
            for i in range(40)
        ]
        result = analyze_velocity(events)
        assert result.trend == [50, 50, 100, 100]
        assert result.is_improving is True
        assert result.velocity_score > 0.5

    def test_retention_trend_compares_weeks(self):
        recent = [make_event(NOW - timedelta(days=1), is_correct=True, content_id=f"r{i}") for i in range(4)]
        older = [make_event(NOW - timedelta(days=9), is_correct=i < 2, content_id=f"o{i}") for i in range(4)]
        result = analyze_retention(recent + older, NOW)
        assert result.weekly_retention == 1.0
        assert result.trend == "improving"

    def test_no_recent_events(self):
        older = [make_event(NOW - timedelta(days=9), content_id="o1")]
        assert analyze_retention(older, NOW).weekly_retention == 0.0
