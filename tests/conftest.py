"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from learnsight.core.events import Difficulty, LearningEvent, SessionType  # noqa: E402

# Monday 2024-03-04 12:00 UTC
REFERENCE_NOW = datetime(2024, 3, 4, 12, 0, tzinfo=UTC)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (sqlite, service wiring)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FixedClock:
    """Deterministic clock; advance() moves wall and monotonic time together."""

    def __init__(self, now: datetime = REFERENCE_NOW):
        self._now = now
        self._monotonic = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, **kwargs) -> None:
        delta = timedelta(**kwargs)
        self._now += delta
        self._monotonic += delta.total_seconds()


def make_event(
    timestamp: datetime,
    is_correct: bool | None = True,
    category: str = "finance",
    difficulty: Difficulty = Difficulty.MEDIUM,
    content_id: str = "q1",
    user_id: str = "u1",
    response_time_ms: int = 20_000,
    session_id: str | None = None,
) -> LearningEvent:
    return LearningEvent(
        user_id=user_id,
        content_id=content_id,
        category_id=category,
        difficulty=difficulty,
        is_correct=is_correct,
        response_time_ms=response_time_ms,
        timestamp=timestamp,
        session_type=SessionType.QUIZ if is_correct is not None else SessionType.COURSE,
        session_id=session_id,
    )


def quiz_record(
    created_at: datetime,
    is_correct: bool = True,
    category: str = "finance",
    difficulty: str = "medium",
    question_id: str = "q1",
    user_id: str = "u1",
    response_time: int = 20_000,
    session_id: str | None = None,
) -> dict:
    return {
        "source": "quiz",
        "user_id": user_id,
        "question_id": question_id,
        "category": category,
        "difficulty": difficulty,
        "is_correct": is_correct,
        "response_time": response_time,
        "created_at": created_at,
        "session_id": session_id,
    }


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def settings():
    """Settings isolated from the environment and without a log file."""
    return Settings(_env_file=None, log_file=None, database_url="sqlite://", fetch_timeout_seconds=0.5)


@pytest.fixture
def finance_morning_events():
    """10 finance answers on one weekday morning, 8 correct, split across 9h and 10h."""
    day = datetime(2024, 3, 4, 9, 0, tzinfo=UTC)
    events = []
    for i in range(10):
        hour_offset = 0 if i < 5 else 1
        events.append(
            make_event(
                day + timedelta(hours=hour_offset, minutes=i),
                is_correct=i not in (0, 5),
                content_id=f"q{i}",
            )
        )
    return events
