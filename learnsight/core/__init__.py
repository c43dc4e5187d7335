"""
Core Module - Shared domain types and interfaces.

Components:
- events: LearningEvent, Difficulty, SessionType
- clock: Clock protocol and SystemClock
- exceptions: Engine error taxonomy
- logging_config: Loguru sink setup
"""

from learnsight.core.clock import Clock, SystemClock
from learnsight.core.events import Difficulty, LearningEvent, SessionType, ensure_utc
from learnsight.core.exceptions import (
    ContractViolationError,
    DependencyUnavailableError,
    LearnsightError,
    UnknownContentError,
    UpstreamRecordError,
)

__all__ = [
    "Clock",
    "SystemClock",
    "Difficulty",
    "LearningEvent",
    "SessionType",
    "ensure_utc",
    "LearnsightError",
    "UpstreamRecordError",
    "ContractViolationError",
    "DependencyUnavailableError",
    "UnknownContentError",
]
