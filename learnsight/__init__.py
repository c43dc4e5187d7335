"""
learnsight - Personal learning analytics and adaptive scheduling.

Turns quiz answers and course completions into behavioral patterns,
forgetting-curve fits, spaced repetition schedules, cognitive load and flow
estimates, and study recommendations.

Components:
- core: LearningEvent, clock, exceptions, logging
- ingest: Session normalizer and taxonomy resolution
- analytics: Pattern analyzer and analysis cache
- study: Forgetting curve model and review scheduler
- adaptive: Cognitive load/flow, recommendations, learner profiles
- storage / db: Collaborator protocols, in-memory and SQL stores
- service: LearningAnalyticsService facade
"""

__version__ = "0.1.0"
