"""In-memory collaborator implementations for tests, the CLI and embedding."""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from learnsight.core.events import ensure_utc

if TYPE_CHECKING:
    from learnsight.adaptive.profile import UserLearningProfile
    from learnsight.study.review_scheduler import ReviewScheduleEntry

_TIME_KEYS = ("created_at", "completed_at")


def _record_time(record: Mapping[str, Any]) -> datetime:
    for key in _TIME_KEYS:
        value = record.get(key)
        if isinstance(value, datetime):
            return ensure_utc(value)
        if isinstance(value, str):
            try:
                return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
            except ValueError:
                continue
    return datetime.min.replace(tzinfo=UTC)


class InMemoryEventSource:
    """Raw source records held per user."""

    def __init__(self, records: Iterable[Mapping[str, Any]] | None = None):
        self._records: dict[str, list[Mapping[str, Any]]] = defaultdict(list)
        for record in records or ():
            self.add(record)

    def add(self, record: Mapping[str, Any]) -> None:
        self._records[str(record.get("user_id"))].append(record)

    def extend(self, records: Iterable[Mapping[str, Any]]) -> None:
        for record in records:
            self.add(record)

    def fetch_recent_events(self, user_id: str, limit: int) -> list[Mapping[str, Any]]:
        records = sorted(self._records.get(user_id, []), key=_record_time, reverse=True)
        return records[:limit]


class InMemoryReviewStore:
    """Review entries keyed by (user_id, content_id)."""

    def __init__(self):
        self._entries: dict[tuple[str, str], ReviewScheduleEntry] = {}
        self._lock = threading.Lock()

    def create(self, entry: ReviewScheduleEntry) -> None:
        key = (entry.user_id, entry.content_id)
        with self._lock:
            if key in self._entries:
                raise ValueError(f"Review entry already exists: {key}")
            self._entries[key] = replace(entry)

    def get(self, user_id: str, content_id: str) -> ReviewScheduleEntry | None:
        with self._lock:
            entry = self._entries.get((user_id, content_id))
        return replace(entry) if entry is not None else None

    def list_for_user(self, user_id: str) -> list[ReviewScheduleEntry]:
        with self._lock:
            return [replace(e) for (uid, _), e in self._entries.items() if uid == user_id]

    def update(self, entry: ReviewScheduleEntry) -> None:
        key = (entry.user_id, entry.content_id)
        with self._lock:
            if key not in self._entries:
                raise KeyError(f"No review entry to update: {key}")
            self._entries[key] = replace(entry)


class InMemoryProfileStore:
    """Learning profiles keyed by user_id."""

    def __init__(self):
        self._profiles: dict[str, UserLearningProfile] = {}

    def load(self, user_id: str) -> UserLearningProfile | None:
        return self._profiles.get(user_id)

    def save(self, profile: UserLearningProfile) -> None:
        self._profiles[profile.user_id] = profile
