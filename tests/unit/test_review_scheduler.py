"""
Unit tests for the spaced repetition ReviewScheduler.

Runs against the in-memory store on a fixed clock.
"""

from datetime import timedelta

import pytest
from conftest import FixedClock

from learnsight.core.events import Difficulty
from learnsight.core.exceptions import ContractViolationError, UnknownContentError
from learnsight.study.forgetting_curve import ForgettingCurveParameters
from learnsight.study.review_scheduler import (
    ReviewScheduler,
    ReviewState,
    ladder_interval,
    performance_multiplier,
    priority_score,
    update_mastery,
)


@pytest.fixture
def sched_clock():
    return FixedClock()


@pytest.fixture
def scheduler(sched_clock):
    return ReviewScheduler(clock=sched_clock)


class TestSchedulingMath:
    def test_ladder_uses_success_count(self):
        params = ForgettingCurveParameters()
        assert ladder_interval(params, 0) == 1
        assert ladder_interval(params, 1) == 1
        assert ladder_interval(params, 2) == 3
        assert ladder_interval(params, 5) == 30

    def test_ladder_grows_past_the_top(self):
        params = ForgettingCurveParameters()
        assert ladder_interval(params, 6) == pytest.approx(45.0)

    def test_multiplier_bounds(self):
        assert performance_multiplier(0.0) == 0.5
        assert performance_multiplier(1.0) == 1.5

    def test_mastery_moves_toward_outcome(self):
        assert update_mastery(0.5, 1.0, success=True) == pytest.approx(0.75)
        assert update_mastery(0.5, 0.0, success=False) == pytest.approx(0.25)

    def test_priority_combines_overdue_and_mastery_gap(self):
        assert priority_score(0, 1.0) == 0.0
        assert priority_score(30, 0.0) == 10.0
        assert priority_score(90, 0.0) == 10.0


class TestAddItem:
    def test_new_item_is_scheduled_one_day_out(self, scheduler, sched_clock):
        entry = scheduler.add_item("u1", "q1", "finance", "hard")

        assert entry.state is ReviewState.SCHEDULED
        assert entry.initial_difficulty is Difficulty.HARD
        assert entry.next_review_date == sched_clock.now() + timedelta(days=1)
        assert entry.priority_score == 5.0

    def test_add_is_idempotent(self, scheduler, sched_clock):
        first = scheduler.add_item("u1", "q1", "finance")
        sched_clock.advance(days=3)
        again = scheduler.add_item("u1", "q1", "marketing_sales")
        assert again == first


class TestRecordOutcome:
    def test_consistent_high_scores_reach_mastery(self, scheduler, sched_clock):
        scheduler.add_item("u1", "q1", "finance")
        states = []
        for _ in range(5):
            entry = scheduler.record_outcome("u1", "q1", 0.95, 4000)
            states.append(entry.is_mastered)
            sched_clock.advance(days=1)

        assert states == [False, False, False, True, True]
        assert entry.state is ReviewState.MASTERED
        assert entry.review_count == 5
        assert entry.consecutive_successes == 5
        assert scheduler.get_due_reviews("u1") == []

    def test_failure_resets_streak_and_counts_lapse(self, scheduler, sched_clock):
        scheduler.add_item("u1", "q1", "finance")
        scheduler.record_outcome("u1", "q1", 0.9)
        entry = scheduler.record_outcome("u1", "q1", 0.3)

        assert entry.consecutive_successes == 0
        assert entry.lapses == 1
        assert entry.next_review_date == sched_clock.now() + timedelta(days=0.8)

    def test_better_score_never_shortens_interval(self, scheduler, sched_clock):
        scheduler.add_item("u1", "low", "finance")
        scheduler.add_item("u1", "high", "finance")
        low = scheduler.record_outcome("u1", "low", 0.7)
        high = scheduler.record_outcome("u1", "high", 1.0)
        assert high.next_review_date >= low.next_review_date
        assert high.mastery_level > low.mastery_level

    def test_mastery_stays_in_bounds(self, scheduler):
        scheduler.add_item("u1", "q1", "finance")
        for score in (1.0, 1.0, 1.0, 0.0, 0.0, 1.0):
            entry = scheduler.record_outcome("u1", "q1", score)
            assert 0.0 <= entry.mastery_level <= 1.0

    @pytest.mark.parametrize("score", [-0.1, 1.1, float("nan")])
    def test_invalid_score_raises(self, scheduler, score):
        scheduler.add_item("u1", "q1", "finance")
        with pytest.raises(ContractViolationError):
            scheduler.record_outcome("u1", "q1", score)

    def test_negative_response_time_raises(self, scheduler):
        scheduler.add_item("u1", "q1", "finance")
        with pytest.raises(ContractViolationError):
            scheduler.record_outcome("u1", "q1", 0.8, -1)

    def test_untracked_content_raises(self, scheduler):
        with pytest.raises(UnknownContentError):
            scheduler.record_outcome("u1", "missing", 0.8)


class TestDueReviews:
    def test_only_due_entries_in_priority_order(self, scheduler, sched_clock):
        scheduler.add_item("u1", "a", "finance")
        scheduler.add_item("u1", "b", "finance")
        scheduler.record_outcome("u1", "b", 1.0)  # pushed out, higher mastery
        sched_clock.advance(days=1)
        scheduler.add_item("u1", "c", "finance")  # not due yet

        due = scheduler.get_due_reviews("u1")
        assert [e.content_id for e in due] == ["a"]

        sched_clock.advance(days=2)
        due = scheduler.get_due_reviews("u1")
        assert [e.content_id for e in due] == ["a", "c", "b"]
        assert due[0].priority_score >= due[1].priority_score >= due[2].priority_score

    def test_equal_priority_falls_back_to_earliest_due_date(self, scheduler, sched_clock):
        scheduler.add_item("u1", "z", "finance")
        sched_clock.advance(days=1)
        scheduler.add_item("u1", "a", "finance")
        sched_clock.advance(days=60)  # both past the overdue cap

        due = scheduler.get_due_reviews("u1")
        assert due[0].priority_score == due[1].priority_score
        assert [e.content_id for e in due] == ["z", "a"]

    def test_limit(self, scheduler, sched_clock):
        for i in range(5):
            scheduler.add_item("u1", f"q{i}", "finance")
        sched_clock.advance(days=2)
        assert len(scheduler.get_due_reviews("u1", limit=2)) == 2
        assert scheduler.get_due_reviews("u1", limit=0) == []

    def test_negative_limit_raises(self, scheduler):
        with pytest.raises(ContractViolationError):
            scheduler.get_due_reviews("u1", limit=-1)

    def test_mastered_item_relapses_when_retention_drops(self, scheduler, sched_clock):
        scheduler.add_item("u1", "q1", "finance")
        for _ in range(4):
            scheduler.record_outcome("u1", "q1", 1.0)
        assert scheduler.get_entry("u1", "q1").is_mastered is True

        sched_clock.advance(days=1)
        assert scheduler.get_due_reviews("u1") == []

        sched_clock.advance(days=30)
        due = scheduler.get_due_reviews("u1")
        assert [e.content_id for e in due] == ["q1"]
        assert due[0].is_mastered is False
        assert due[0].retention_strength < 0.7
        assert scheduler.get_entry("u1", "q1").state is ReviewState.SCHEDULED

    def test_entries_are_never_deleted(self, scheduler):
        scheduler.add_item("u1", "q1", "finance")
        for _ in range(5):
            scheduler.record_outcome("u1", "q1", 1.0)
        assert len(scheduler.list_entries("u1")) == 1
        assert scheduler.list_entries("u1", include_mastered=False) == []
