"""
Exception taxonomy for the analytics engine.

Only contract violations are allowed to surface to callers. Upstream data
problems are skipped at ingestion and dependency failures are converted into
degraded results by the service layer.
"""

from __future__ import annotations


class LearnsightError(Exception):
    """Base class for all engine errors."""


class UpstreamRecordError(LearnsightError):
    """A source record is missing fields or cannot be parsed."""

    def __init__(self, message: str, record: object = None):
        super().__init__(message)
        self.record = record


class ContractViolationError(LearnsightError):
    """An input breaks an engine contract (e.g. negative response time)."""


class DependencyUnavailableError(LearnsightError):
    """A storage or source collaborator failed or timed out."""


class UnknownContentError(LearnsightError):
    """No review schedule entry exists for the requested content."""

    def __init__(self, user_id: str, content_id: str):
        super().__init__(f"No review schedule entry for user={user_id} content={content_id}")
        self.user_id = user_id
        self.content_id = content_id
