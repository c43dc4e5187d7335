"""
Unit tests for the forgetting curve model.
"""

import math
from datetime import UTC, datetime, timedelta

import pytest
from conftest import make_event

from learnsight.core.exceptions import ContractViolationError
from learnsight.ingest.normalizer import SessionNormalizer
from learnsight.storage.memory import InMemoryEventSource
from learnsight.study.forgetting_curve import (
    BASE_INTERVALS,
    DEFAULT_DECAY_RATE,
    ForgettingCurveModel,
    ForgettingCurveParameters,
    extract_observations,
    fit_parameters,
    retention,
    scale_intervals,
)

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


def repeated_answers(contents: int, recalled: bool, gap_days: float = 1.0):
    """Each content answered correctly once, then again after gap_days."""
    events = []
    for i in range(contents):
        events.append(make_event(T0, is_correct=True, content_id=f"q{i}"))
        events.append(make_event(T0 + timedelta(days=gap_days), is_correct=recalled, content_id=f"q{i}"))
    return events


class TestRetentionFunction:
    def test_zero_days_is_full_retention(self):
        assert retention(0, 0.5, 1.5) == 1.0

    def test_exponential_decay(self):
        assert retention(1, 0.5, 1.5) == pytest.approx(math.exp(-0.5))

    def test_successes_slow_forgetting(self):
        assert retention(3, 0.5, 1.5, 2) > retention(3, 0.5, 1.5, 0)

    def test_decreases_with_time(self):
        values = [retention(d, 0.5, 1.5) for d in (1, 2, 5, 10)]
        assert values == sorted(values, reverse=True)


class TestIntervals:
    def test_defaults_keep_base_ladder(self):
        assert scale_intervals(0.5, 1.5) == list(BASE_INTERVALS)

    def test_slow_forgetter_gets_longer_intervals(self):
        intervals = scale_intervals(0.25, 1.5)
        assert intervals == [2, 6, 14, 28, 60]

    def test_always_strictly_increasing(self):
        intervals = scale_intervals(2.0, 1.0)
        assert all(b > a for a, b in zip(intervals, intervals[1:]))


class TestFitting:
    def test_same_sitting_repeats_are_not_observations(self):
        events = [
            make_event(T0, content_id="q1"),
            make_event(T0 + timedelta(minutes=5), content_id="q1"),
        ]
        assert extract_observations(events) == []

    def test_too_few_observations_yield_defaults(self):
        params = fit_parameters(extract_observations(repeated_answers(2, recalled=True)))
        assert params.is_default is True
        assert params.decay_rate == DEFAULT_DECAY_RATE
        assert params.observation_count == 2

    def test_good_recall_lowers_decay(self):
        params = fit_parameters(extract_observations(repeated_answers(5, recalled=True)))
        assert params.is_default is False
        assert params.decay_rate < DEFAULT_DECAY_RATE
        assert params.retention_at_24h > math.exp(-DEFAULT_DECAY_RATE)

    def test_poor_recall_raises_decay(self):
        params = fit_parameters(extract_observations(repeated_answers(5, recalled=False)))
        assert params.decay_rate > DEFAULT_DECAY_RATE
        assert params.retention_at_7d < params.retention_at_24h

    def test_parameters_round_trip_through_dict(self):
        params = fit_parameters(extract_observations(repeated_answers(5, recalled=True)))
        assert ForgettingCurveParameters.from_dict(params.to_dict()) == params


class TestForgettingCurveModel:
    def test_fit_from_event_source(self):
        records = []
        for event in repeated_answers(4, recalled=True):
            records.append(
                {
                    "user_id": "u1",
                    "question_id": event.content_id,
                    "category": "finance",
                    "is_correct": event.is_correct,
                    "response_time": 1000,
                    "created_at": event.timestamp,
                }
            )
        model = ForgettingCurveModel(event_source=InMemoryEventSource(records), normalizer=SessionNormalizer())

        params = model.fit_user_parameters("u1")
        assert params.is_default is False
        assert model.has_parameters("u1")
        assert model.successful_exposures("u1", "q0") == 2

    def test_failing_source_yields_defaults(self):
        class BrokenSource:
            def fetch_recent_events(self, user_id, limit):
                raise ConnectionError("down")

        model = ForgettingCurveModel(event_source=BrokenSource(), normalizer=SessionNormalizer())
        assert model.fit_user_parameters("u1").is_default is True

    def test_predict_uses_user_fit_and_exposures(self):
        model = ForgettingCurveModel()
        model.fit_user_parameters("u1", repeated_answers(5, recalled=True))

        fitted = model.predict_retention("q0", 7, user_id="u1")
        default = model.predict_retention("q0", 7)
        assert fitted > default
        assert default == round(math.exp(-DEFAULT_DECAY_RATE * 7), 4)

    def test_predict_is_bounded(self):
        model = ForgettingCurveModel()
        assert model.predict_retention("q", 0) == 1.0
        assert 0.0 <= model.predict_retention("q", 10_000) <= 1.0

    @pytest.mark.parametrize("days", [-1, float("nan")])
    def test_invalid_days_raise(self, days):
        with pytest.raises(ContractViolationError):
            ForgettingCurveModel().predict_retention("q", days)

    def test_explicit_exposure_count_overrides_fit_counts(self):
        model = ForgettingCurveModel()
        params = ForgettingCurveParameters(is_default=False)
        model.set_parameters("u1", params)

        assert model.has_exposure_count("u1", "q1") is False
        assert model.predict_retention("q1", 1, user_id="u1") == round(params.retention(1, 0), 4)
        assert model.predict_retention("q1", 1, user_id="u1", successful_exposures=2) == round(params.retention(1, 2), 4)

    def test_fit_records_exposure_counts(self):
        model = ForgettingCurveModel()
        model.fit_user_parameters("u1", repeated_answers(3, recalled=True))
        assert model.has_exposure_count("u1", "q0") is True
