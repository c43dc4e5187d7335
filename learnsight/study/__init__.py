"""
Study Module - retention modelling and review scheduling.

Components:
- ForgettingCurveModel: Per-user decay/consolidation fits
- ReviewScheduler: Spaced repetition state machine
"""

from learnsight.study.forgetting_curve import (
    BASE_INTERVALS,
    ForgettingCurveModel,
    ForgettingCurveParameters,
    retention,
)
from learnsight.study.review_scheduler import (
    ReviewScheduleEntry,
    ReviewScheduler,
    ReviewState,
    priority_score,
)

__all__ = [
    "ForgettingCurveModel",
    "ForgettingCurveParameters",
    "BASE_INTERVALS",
    "retention",
    "ReviewScheduler",
    "ReviewScheduleEntry",
    "ReviewState",
    "priority_score",
]
