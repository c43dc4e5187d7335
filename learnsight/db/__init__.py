"""
Database Module - SQLAlchemy persistence.

Components:
- database: Engine/session helpers and table creation
- models: learning_events, review_schedule, learner_profiles
- stores: SQL-backed EventSource, ReviewScheduleStore, ProfileStore
"""

from learnsight.db.database import (
    create_db_engine,
    get_engine,
    get_session_factory,
    init_db,
    make_session_factory,
    session_scope,
)
from learnsight.db.models import Base, LearnerProfileRow, LearningEventRow, ReviewScheduleRow
from learnsight.db.stores import SqlEventSource, SqlProfileStore, SqlReviewStore

__all__ = [
    "Base",
    "LearningEventRow",
    "ReviewScheduleRow",
    "LearnerProfileRow",
    "create_db_engine",
    "get_engine",
    "get_session_factory",
    "make_session_factory",
    "init_db",
    "session_scope",
    "SqlEventSource",
    "SqlReviewStore",
    "SqlProfileStore",
]
