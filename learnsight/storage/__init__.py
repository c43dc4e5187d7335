"""
Storage Module - collaborator protocols and in-memory implementations.

SQL-backed implementations live in learnsight.db.
"""

from learnsight.storage.memory import InMemoryEventSource, InMemoryProfileStore, InMemoryReviewStore
from learnsight.storage.protocols import EventSource, ProfileStore, ReviewScheduleStore

__all__ = [
    "EventSource",
    "ReviewScheduleStore",
    "ProfileStore",
    "InMemoryEventSource",
    "InMemoryReviewStore",
    "InMemoryProfileStore",
]
