"""
Collaborator interfaces.

The engine owns none of the data it reads. Source records, review schedule
persistence and profile persistence are reached through these protocols so
that in-memory and SQL implementations are interchangeable.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from learnsight.adaptive.profile import UserLearningProfile
    from learnsight.study.review_scheduler import ReviewScheduleEntry


@runtime_checkable
class EventSource(Protocol):
    """Supplies raw source records for a learner, most recent first."""

    def fetch_recent_events(self, user_id: str, limit: int) -> list[Mapping[str, Any]]:
        ...


@runtime_checkable
class ReviewScheduleStore(Protocol):
    """Persistence for review schedule entries. Entries are never deleted."""

    def create(self, entry: ReviewScheduleEntry) -> None:
        ...

    def get(self, user_id: str, content_id: str) -> ReviewScheduleEntry | None:
        ...

    def list_for_user(self, user_id: str) -> list[ReviewScheduleEntry]:
        ...

    def update(self, entry: ReviewScheduleEntry) -> None:
        ...


@runtime_checkable
class ProfileStore(Protocol):
    """Persistence for learning profiles."""

    def load(self, user_id: str) -> UserLearningProfile | None:
        ...

    def save(self, profile: UserLearningProfile) -> None:
        ...
