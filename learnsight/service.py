"""
Learning Analytics Service - caller-facing facade.

Wires the normalizer, pattern analyzer, cache, forgetting curve model,
review scheduler and recommendation functions around injected collaborators.

Core responsibilities:
- Fetch the event window and stored profile concurrently under one deadline
- Fall back to defaults (flagged is_degraded) when a collaborator fails
- Cache snapshots, profiles and timing recommendations per user
- Auto-enroll untracked content when a review outcome arrives
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from typing import Any

from loguru import logger

from config import Settings, get_settings
from learnsight.adaptive.cognitive_load import (
    CognitiveLoadGuidance,
    FlowGuidance,
    SessionCognitiveScore,
    cognitive_load_guidance,
    provide_live_guidance,
    score_sessions,
)
from learnsight.adaptive.profile import (
    LearningStage,
    UserLearningProfile,
    build_learning_profile,
    default_profile,
    learning_stage_for,
    skill_level_for,
)
from learnsight.adaptive.recommendations import (
    OptimalLearningTime,
    PersonalizedHints,
    RetentionRecommendations,
    generate_personalized_hints,
    recommend_optimal_learning_time,
    recommend_retention_plan,
)
from learnsight.analytics.cache import AnalysisCache, CacheBackend
from learnsight.analytics.pattern_analyzer import PatternAnalyzer
from learnsight.analytics.snapshot import PatternSnapshot
from learnsight.core.clock import Clock, SystemClock
from learnsight.core.events import Difficulty, LearningEvent
from learnsight.core.exceptions import (
    ContractViolationError,
    DependencyUnavailableError,
    LearnsightError,
    UnknownContentError,
)
from learnsight.ingest.normalizer import SessionNormalizer
from learnsight.ingest.taxonomy import TaxonomyResolver
from learnsight.storage.memory import InMemoryEventSource, InMemoryProfileStore, InMemoryReviewStore
from learnsight.storage.protocols import EventSource, ProfileStore, ReviewScheduleStore
from learnsight.study.forgetting_curve import ForgettingCurveModel, ForgettingCurveParameters
from learnsight.study.review_scheduler import ReviewScheduleEntry, ReviewScheduler

UNCATEGORIZED = "uncategorized"


@dataclass
class FetchResult:
    """Inputs gathered for one analysis request."""

    events: list[LearningEvent] = field(default_factory=list)
    profile: UserLearningProfile | None = None
    events_ok: bool = True
    profile_ok: bool = True

    @property
    def is_degraded(self) -> bool:
        return not (self.events_ok and self.profile_ok)


class LearningAnalyticsService:
    """
    Per-learner analytics over pluggable collaborators.

    Read paths never raise for collaborator failures; they return defaults
    with is_degraded set. Argument contract violations always raise.
    """

    def __init__(
        self,
        event_source: EventSource | None = None,
        review_store: ReviewScheduleStore | None = None,
        profile_store: ProfileStore | None = None,
        cache: CacheBackend | None = None,
        clock: Clock | None = None,
        settings: Settings | None = None,
        resolver: TaxonomyResolver | None = None,
    ):
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self.event_source = event_source if event_source is not None else InMemoryEventSource()
        self.profile_store = profile_store if profile_store is not None else InMemoryProfileStore()

        self.normalizer = SessionNormalizer(resolver=resolver, window_size=self.settings.event_window_size)
        self.analyzer = PatternAnalyzer(
            clock=self.clock,
            timezone=self.settings.timezone,
            thresholds=self.settings.get_analysis_thresholds(),
        )
        self.forgetting_curve = ForgettingCurveModel(
            event_source=self.event_source,
            normalizer=self.normalizer,
            window_size=self.settings.event_window_size,
        )
        self.scheduler = ReviewScheduler(
            store=review_store if review_store is not None else InMemoryReviewStore(),
            forgetting_curve=self.forgetting_curve,
            clock=self.clock,
            config=self.settings.get_scheduler_config(),
        )
        if cache is None:
            cache = AnalysisCache(clock=self.clock, ttl_by_kind=self.settings.get_cache_ttls()).init()
        self.cache = cache

    # ========================================
    # Lifecycle
    # ========================================

    def shutdown(self) -> None:
        """Stop the cache."""
        if isinstance(self.cache, AnalysisCache):
            self.cache.shutdown()
        else:
            self.cache.clear()
        logger.debug("Learning analytics service shut down")

    def __enter__(self) -> LearningAnalyticsService:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    def invalidate(self, user_id: str) -> None:
        """Drop cached results for a user (e.g. after new events arrive)."""
        if isinstance(self.cache, AnalysisCache):
            self.cache.invalidate(user_id)
        else:
            self.cache.clear()

    # ========================================
    # Collaborator access
    # ========================================

    def _fetch_events(self, user_id: str) -> list[LearningEvent]:
        records = self.event_source.fetch_recent_events(user_id, self.settings.event_window_size)
        return self.normalizer.normalize_many(records, strict=False).events

    def _load_profile(self, user_id: str) -> UserLearningProfile | None:
        return self.profile_store.load(user_id)

    def _run_fetches(self, user_id: str, tasks: dict[str, Callable[[str], Any]]) -> dict[str, tuple[Any, bool]]:
        """
        Run fetches concurrently under one shared deadline.

        Each call gets its own pool so a fetch that never returns only holds
        its own thread; later requests still reach a recovered collaborator.

        Returns:
            name -> (value, ok); value is None when the fetch failed or timed out
        """
        timeout = self.settings.fetch_timeout_seconds
        executor = ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="learnsight-fetch")
        try:
            futures = {name: executor.submit(fn, user_id) for name, fn in tasks.items()}
            done, _ = wait(futures.values(), timeout=timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        outcomes: dict[str, tuple[Any, bool]] = {}
        for name, future in futures.items():
            if future not in done:
                logger.warning(f"Fetching {name} for user={user_id} timed out after {timeout}s, using defaults")
                outcomes[name] = (None, False)
                continue
            try:
                outcomes[name] = (future.result(), True)
            except Exception as e:
                logger.error(f"Fetching {name} for user={user_id} failed, using defaults: {e}")
                outcomes[name] = (None, False)
        return outcomes

    def _fetch_inputs(self, user_id: str, include_profile: bool = True) -> FetchResult:
        """Fetch events and profile concurrently; failures become defaults."""
        tasks: dict[str, Callable[[str], Any]] = {"events": self._fetch_events}
        if include_profile:
            tasks["profile"] = self._load_profile
        outcomes = self._run_fetches(user_id, tasks)

        events, events_ok = outcomes["events"]
        result = FetchResult(events=events or [], events_ok=events_ok)
        if include_profile:
            result.profile, result.profile_ok = outcomes["profile"]
        return result

    def _profile_from(self, user_id: str, fetched: FetchResult) -> UserLearningProfile:
        """Stored profile from a fetch, or defaults flagged is_degraded when the store failed."""
        if not fetched.profile_ok:
            return replace(default_profile(user_id), is_degraded=True)
        profile = fetched.profile or default_profile(user_id)
        self.cache.set(user_id, "profile", profile)
        return profile

    def _score_sessions(self, events: list[LearningEvent], snapshot: PatternSnapshot) -> list[SessionCognitiveScore]:
        return score_sessions(
            events,
            user_skill_level=skill_level_for(snapshot),
            gap_minutes=self.settings.session_gap_minutes,
            attention_break_seconds=self.settings.attention_break_seconds,
        )

    # ========================================
    # Patterns & recommendations
    # ========================================

    def get_pattern_snapshot(self, user_id: str) -> PatternSnapshot:
        cached = self.cache.get(user_id, "patterns")
        if cached is not None:
            return cached

        fetched = self._fetch_inputs(user_id)
        snapshot = self.analyzer.analyze(user_id, fetched.events)

        if fetched.profile_ok and fetched.profile is not None:
            self.cache.set(user_id, "profile", fetched.profile)
        if fetched.is_degraded:
            return replace(snapshot, is_degraded=True)

        self.cache.set(user_id, "patterns", snapshot)
        return snapshot

    def get_optimal_learning_time(self, user_id: str) -> OptimalLearningTime:
        cached = self.cache.get(user_id, "recommendations")
        if cached is not None:
            return cached

        snapshot = self.get_pattern_snapshot(user_id)
        timing = recommend_optimal_learning_time(snapshot)
        if not timing.is_degraded:
            self.cache.set(user_id, "recommendations", timing)
        return timing

    def get_personalized_hints(self, user_id: str, content_id: str | None = None) -> PersonalizedHints:
        snapshot = self.get_pattern_snapshot(user_id)
        category = None
        if content_id is not None:
            category = self._content_category(user_id, content_id) or UNCATEGORIZED
        return generate_personalized_hints(snapshot, category)

    def _content_category(self, user_id: str, content_id: str) -> str | None:
        try:
            entry = self.scheduler.get_entry(user_id, content_id)
        except Exception as e:
            logger.warning(f"Review store unavailable while resolving {content_id}: {e}")
            return None
        return entry.category_id if entry is not None else None

    # ========================================
    # Reviews
    # ========================================

    def track_content(
        self,
        user_id: str,
        content_id: str,
        category_id: str,
        initial_difficulty: Difficulty | str = Difficulty.MEDIUM,
        content_type: str = "quiz_question",
    ) -> ReviewScheduleEntry:
        """
        Start tracking content for review.

        Raises:
            DependencyUnavailableError: If the review store cannot be written
        """
        try:
            return self.scheduler.add_item(user_id, content_id, category_id, initial_difficulty, content_type)
        except LearnsightError:
            raise
        except Exception as e:
            raise DependencyUnavailableError(f"Review store unavailable: {e}") from e

    def get_due_reviews(self, user_id: str, limit: int = 20) -> list[ReviewScheduleEntry]:
        self._ensure_curve_installed(user_id)
        try:
            return self.scheduler.get_due_reviews(user_id, limit)
        except ContractViolationError:
            raise
        except Exception as e:
            logger.error(f"Review store unavailable for user={user_id}, no reviews returned: {e}")
            return []

    def record_review_outcome(
        self,
        user_id: str,
        content_id: str,
        performance_score: float,
        response_time_ms: int = 0,
    ) -> ReviewScheduleEntry:
        """
        Record a review result, enrolling the content first if untracked.

        Raises:
            ContractViolationError: Score outside [0, 1] or negative response time
            DependencyUnavailableError: If the review store cannot be written
        """
        self._ensure_curve_installed(user_id)
        try:
            return self._record(user_id, content_id, performance_score, response_time_ms)
        except UnknownContentError:
            pass

        category, difficulty = self._describe_content(user_id, content_id)
        logger.info(f"Enrolling untracked content {content_id} for user={user_id}")
        self.track_content(user_id, content_id, category, difficulty)
        return self._record(user_id, content_id, performance_score, response_time_ms)

    def _record(self, user_id: str, content_id: str, score: float, response_time_ms: int) -> ReviewScheduleEntry:
        try:
            return self.scheduler.record_outcome(user_id, content_id, score, response_time_ms)
        except LearnsightError:
            raise
        except Exception as e:
            raise DependencyUnavailableError(f"Review store unavailable: {e}") from e

    def _describe_content(self, user_id: str, content_id: str) -> tuple[str, Difficulty]:
        """Category and difficulty from the latest event on this content."""
        events = self._fetch_inputs(user_id, include_profile=False).events
        for event in events:
            if event.content_id == content_id:
                return event.category_id, event.difficulty
        return UNCATEGORIZED, Difficulty.MEDIUM

    # ========================================
    # Live flow guidance
    # ========================================

    def get_live_flow_guidance(
        self,
        session_id: str,
        current_accuracy: float,
        elapsed_minutes: float = 0.0,
        recent_response_times: list[float] | None = None,
    ) -> FlowGuidance:
        return provide_live_guidance(
            session_id,
            current_accuracy,
            elapsed_minutes,
            recent_response_times,
            fatigue_minutes=self.settings.fatigue_session_minutes,
        )

    # ========================================
    # Retention model
    # ========================================

    def fit_forgetting_curve(self, user_id: str) -> ForgettingCurveParameters:
        fetched = self._fetch_inputs(user_id, include_profile=False)
        if not fetched.events_ok:
            return self.forgetting_curve.parameters_for(user_id)
        return self.forgetting_curve.fit_user_parameters(user_id, fetched.events)

    def predict_retention(self, user_id: str, content_id: str, days_since_learning: float) -> float:
        self._ensure_curve_installed(user_id)
        exposures = None
        if not self.forgetting_curve.has_exposure_count(user_id, content_id):
            exposures = self._tracked_successes(user_id, content_id)
        return self.forgetting_curve.predict_retention(
            content_id, days_since_learning, user_id, successful_exposures=exposures
        )

    def _tracked_successes(self, user_id: str, content_id: str) -> int | None:
        """Success streak from the review schedule, for curves installed without a refit."""
        try:
            entry = self.scheduler.get_entry(user_id, content_id)
        except Exception as e:
            logger.warning(f"Review store unavailable while predicting retention for {content_id}: {e}")
            return None
        return entry.consecutive_successes if entry is not None else None

    def get_forgetting_curve_recommendations(self, user_id: str) -> RetentionRecommendations:
        snapshot = self.get_pattern_snapshot(user_id)
        self._ensure_curve_installed(user_id)
        curve = self.forgetting_curve.parameters_for(user_id)

        degraded = snapshot.is_degraded
        try:
            due_count = len(self.scheduler.get_due_reviews(user_id, limit=sys.maxsize))
        except Exception as e:
            logger.error(f"Review store unavailable for user={user_id}, counting no reviews: {e}")
            due_count, degraded = 0, True

        plan = recommend_retention_plan(snapshot, curve, due_count)
        return replace(plan, is_degraded=degraded)

    def _ensure_curve_installed(self, user_id: str) -> None:
        """Reuse a persisted fit so scheduling does not fall back to defaults."""
        if self.forgetting_curve.has_parameters(user_id):
            return
        profile = self.get_learning_profile(user_id)
        if not profile.forgetting_curve.is_default:
            self.forgetting_curve.set_parameters(user_id, profile.forgetting_curve)

    # ========================================
    # Profiles & sessions
    # ========================================

    def get_learning_profile(self, user_id: str) -> UserLearningProfile:
        cached = self.cache.get(user_id, "profile")
        if cached is not None:
            return cached

        profile, ok = self._run_fetches(user_id, {"profile": self._load_profile})["profile"]
        return self._profile_from(user_id, FetchResult(profile=profile, profile_ok=ok))

    def get_session_scores(self, user_id: str) -> list[SessionCognitiveScore]:
        events = self._fetch_inputs(user_id, include_profile=False).events
        return self._score_sessions(events, self.analyzer.analyze(user_id, events))

    def get_cognitive_load_guidance(self, user_id: str) -> CognitiveLoadGuidance:
        """Load, trend and next action from recent sessions, bounded by the learner's profile."""
        fetched = self._fetch_inputs(user_id)
        profile = self._profile_from(user_id, fetched)
        sessions = self._score_sessions(fetched.events, self.analyzer.analyze(user_id, fetched.events))

        guidance = cognitive_load_guidance(
            sessions,
            load_tolerance=profile.cognitive_load_tolerance,
            fatigue_threshold_minutes=profile.fatigue_threshold_minutes,
        )
        if fetched.is_degraded:
            return replace(guidance, is_degraded=True)
        return guidance

    def get_learning_stage(self, user_id: str) -> LearningStage:
        fetched = self._fetch_inputs(user_id, include_profile=False)
        snapshot = self.analyzer.analyze(user_id, fetched.events)
        sessions = self._score_sessions(fetched.events, snapshot)

        stage = learning_stage_for(snapshot.learning_frequency.active_days, len(sessions))
        if not fetched.events_ok:
            return replace(stage, is_degraded=True)
        return stage

    def recompute_learning_profile(self, user_id: str) -> UserLearningProfile:
        """
        Rebuild and persist the learner's profile from their current history.

        The profile is returned even when persisting it fails.
        """
        fetched = self._fetch_inputs(user_id, include_profile=False)
        if not fetched.events_ok:
            logger.warning(f"Event source unavailable, keeping existing profile for user={user_id}")
            return replace(self.get_learning_profile(user_id), is_degraded=True)

        events = fetched.events
        snapshot = self.analyzer.analyze(user_id, events)
        curve = self.forgetting_curve.fit_user_parameters(user_id, events)
        sessions = self._score_sessions(events, snapshot)
        profile = build_learning_profile(user_id, snapshot, sessions, curve, now=self.clock.now())

        try:
            self.profile_store.save(profile)
        except Exception as e:
            logger.error(f"Failed to persist learning profile for user={user_id}: {e}")

        self.cache.set(user_id, "profile", profile)
        logger.info(
            f"Recomputed profile for user={user_id}: {profile.session_count} sessions, "
            f"chronotype={profile.chronotype}, span={profile.attention_span_minutes}m"
        )
        return profile
