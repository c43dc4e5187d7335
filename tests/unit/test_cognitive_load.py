"""
Unit tests for cognitive load, flow scoring and live guidance.
"""

from datetime import UTC, datetime, timedelta

import pytest
from conftest import make_event

from learnsight.adaptive.cognitive_load import (
    FlowStatus,
    LoadAction,
    SessionCognitiveScore,
    cognitive_load_guidance,
    load_trend,
    provide_live_guidance,
    response_time_consistency,
    score_cognitive_load,
    score_flow_state,
    score_session,
    split_sessions,
)
from learnsight.core.events import Difficulty
from learnsight.core.exceptions import ContractViolationError

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=UTC)


class TestFlowState:
    def test_challenge_far_above_skill_lowers_flow(self):
        common = dict(accuracy_rate=0.8, response_time_consistency=0.8, session_duration_minutes=20, user_skill_level=3)
        matched = score_flow_state(content_difficulty=3, **common)
        too_hard = score_flow_state(content_difficulty=9, **common)
        assert too_hard < matched

    def test_penalty_is_symmetric(self):
        common = dict(accuracy_rate=0.8, response_time_consistency=0.8, session_duration_minutes=20, user_skill_level=5)
        above = score_flow_state(content_difficulty=8, **common)
        below = score_flow_state(content_difficulty=2, **common)
        assert above == below

    def test_interruptions_reduce_flow(self):
        args = dict(accuracy_rate=0.8, content_difficulty=5, response_time_consistency=0.9, session_duration_minutes=30)
        assert score_flow_state(**args, interruption_count=2) < score_flow_state(**args)

    def test_flow_is_bounded(self):
        value = score_flow_state(1.0, Difficulty.MEDIUM, 1.0, 30, engagement_indicators=[5.0, 9.0])
        assert 0.0 <= value <= 1.0

    def test_accepts_difficulty_labels(self):
        assert score_flow_state(0.8, "intermediate", 0.8, 20) == score_flow_state(0.8, 5, 0.8, 20)

    def test_invalid_accuracy_raises(self):
        with pytest.raises(ContractViolationError):
            score_flow_state(1.5, 5, 0.8, 20)


class TestCognitiveLoad:
    def test_hard_slow_inaccurate_is_heavier(self):
        light = score_cognitive_load(0.9, 5_000, Difficulty.EASY, 10)
        heavy = score_cognitive_load(0.3, 45_000, Difficulty.EXPERT, 10, interruption_count=3)
        assert heavy > light

    def test_load_is_bounded(self):
        assert score_cognitive_load(0.0, 1_000_000, 10, 1000, interruption_count=50, response_time_cv=9) == 10.0
        assert score_cognitive_load(1.0, 0, 0, 0) == 0.0

    def test_negative_inputs_raise(self):
        with pytest.raises(ContractViolationError):
            score_cognitive_load(0.5, -1, 5, 10)
        with pytest.raises(ContractViolationError):
            score_cognitive_load(0.5, 1000, 5, -1)

    def test_consistency_from_response_times(self):
        assert response_time_consistency([3000, 3000, 3000]) == 1.0
        assert response_time_consistency([1000]) == 1.0
        assert response_time_consistency([500, 5000, 500, 5000]) < 0.5


class TestLiveGuidance:
    @pytest.mark.parametrize(
        "accuracy,status",
        [
            (95, FlowStatus.EXCELLENT),
            (90, FlowStatus.EXCELLENT),
            (80, FlowStatus.GOOD),
            (65, FlowStatus.MODERATE),
            (45, FlowStatus.LOW),
            (20, FlowStatus.POOR),
        ],
    )
    def test_status_bands(self, accuracy, status):
        assert provide_live_guidance("s1", accuracy).status is status

    def test_poor_session_should_stop(self):
        guidance = provide_live_guidance("s1", 20)
        assert guidance.continue_recommendation is False
        assert "break" in guidance.recommended_action.lower()

    def test_identical_inputs_identical_output(self):
        first = provide_live_guidance("s1", 82, 30, [4200, 3900, 5100])
        second = provide_live_guidance("s1", 82, 30, [4200, 3900, 5100])
        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_response_times_blend_into_flow(self):
        steady = provide_live_guidance("s1", 80, 10, [3000, 3000, 3000])
        assert steady.current_flow == pytest.approx(0.86)
        assert provide_live_guidance("s1", 80).current_flow == 0.8

    def test_long_session_suggests_break(self):
        guidance = provide_live_guidance("s1", 85, elapsed_minutes=50)
        assert guidance.break_suggested is True
        assert guidance.continue_recommendation is True
        assert guidance.recommended_action.endswith("Take a short break soon to stay sharp")

    @pytest.mark.parametrize("accuracy", [-1, 101, float("nan")])
    def test_invalid_accuracy_raises(self, accuracy):
        with pytest.raises(ContractViolationError):
            provide_live_guidance("s1", accuracy)

    def test_negative_response_time_raises(self):
        with pytest.raises(ContractViolationError):
            provide_live_guidance("s1", 80, 10, [1000, -5])


class TestSessions:
    def _history(self):
        first = [make_event(T0 + timedelta(minutes=2 * i), content_id=f"a{i}", response_time_ms=30_000) for i in range(5)]
        second = [
            make_event(T0 + timedelta(hours=3, minutes=2 * i), is_correct=i % 2 == 0, content_id=f"b{i}")
            for i in range(4)
        ]
        return first + second

    def test_split_on_inactivity_gap(self):
        sessions = split_sessions(self._history())
        assert [len(s.events) for s in sessions] == [5, 4]
        assert sessions[0].started_at == T0

    def test_source_session_id_is_kept(self):
        events = [make_event(T0 + timedelta(minutes=i), content_id=f"q{i}", session_id="quiz-7") for i in range(3)]
        assert split_sessions(events)[0].session_id == "quiz-7"

    def test_score_session_fields(self):
        session = split_sessions(self._history())[0]
        score = score_session(session)

        assert score.question_count == 5
        assert score.accuracy_rate == 1.0
        assert score.duration_minutes == 8.5
        assert score.attention_breaks == 0
        assert 0.0 <= score.load_score <= 10.0
        assert 0.0 <= score.flow_index <= 1.0

    def test_attention_breaks_count_idle_gaps(self):
        events = [
            make_event(T0, content_id="q0", response_time_ms=10_000),
            make_event(T0 + timedelta(minutes=5), content_id="q1", response_time_ms=10_000),
            make_event(T0 + timedelta(minutes=6), content_id="q2", response_time_ms=10_000),
        ]
        assert score_session(events).attention_breaks == 1

    def test_empty_session_raises(self):
        with pytest.raises(ContractViolationError):
            score_session([])


def scored(load, flow=0.7, index=0):
    return SessionCognitiveScore(
        session_id=f"s{index}",
        load_score=load,
        flow_index=flow,
        attention_breaks=0,
        flow_state_duration_minutes=0.0,
        question_count=10,
        accuracy_rate=0.8,
        duration_minutes=20.0,
    )


class TestLoadGuidance:
    def test_no_sessions_uses_defaults(self):
        guidance = cognitive_load_guidance([], load_tolerance=6.0, fatigue_threshold_minutes=45)
        assert guidance.current_load == 5.0
        assert guidance.trend == "stable"
        assert guidance.recommended_action is LoadAction.CONTINUE
        assert guidance.time_until_fatigue_minutes == 45
        assert guidance.sessions_considered == 0

    def test_rising_load_within_tolerance(self):
        sessions = [scored(load, index=i) for i, load in enumerate([4.0, 4.0, 6.0, 6.0])]
        guidance = cognitive_load_guidance(sessions, load_tolerance=7.5, fatigue_threshold_minutes=40)

        assert guidance.current_load == 6.0
        assert guidance.trend == "increasing"
        assert guidance.recommended_action is LoadAction.CONTINUE
        assert guidance.time_until_fatigue_minutes == 40

    def test_overload_means_break_now(self):
        guidance = cognitive_load_guidance([scored(8.0)], load_tolerance=7.5, fatigue_threshold_minutes=40)
        assert guidance.recommended_action is LoadAction.TAKE_BREAK
        assert guidance.time_until_fatigue_minutes == 0

    def test_low_flow_suggests_switching_content(self):
        guidance = cognitive_load_guidance([scored(7.0, flow=0.3)], load_tolerance=7.5, fatigue_threshold_minutes=60)
        assert guidance.recommended_action is LoadAction.SWITCH_CONTENT
        assert guidance.time_until_fatigue_minutes == 20

    def test_only_recent_sessions_count(self):
        sessions = [scored(5.0, index=i) for i in range(8)]
        assert cognitive_load_guidance(sessions, 6.5, 60).sessions_considered == 6

    def test_trend(self):
        assert load_trend([6.0, 6.0, 4.0, 4.0]) == "decreasing"
        assert load_trend([5.0, 5.4]) == "stable"
        assert load_trend([5.0]) == "stable"
