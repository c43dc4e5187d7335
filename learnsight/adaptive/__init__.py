"""
Adaptive Module - session scoring, recommendations and learner profiles.

Components:
- cognitive_load: Load/flow scores, live flow guidance, session splitting
- recommendations: Optimal study time and personalized hints
- profile: UserLearningProfile and its builder
"""

from learnsight.adaptive.cognitive_load import (
    FlowGuidance,
    FlowStatus,
    LearningSession,
    SessionCognitiveScore,
    provide_live_guidance,
    response_time_consistency,
    score_cognitive_load,
    score_flow_state,
    score_session,
    score_sessions,
    split_sessions,
)
from learnsight.adaptive.profile import (
    FlowPreference,
    UserLearningProfile,
    build_learning_profile,
    default_profile,
    skill_level_for,
)
from learnsight.adaptive.recommendations import (
    OptimalLearningTime,
    PersonalizedHints,
    generate_personalized_hints,
    recommend_optimal_learning_time,
)

__all__ = [
    # Cognitive load & flow
    "score_cognitive_load",
    "score_flow_state",
    "response_time_consistency",
    "provide_live_guidance",
    "FlowGuidance",
    "FlowStatus",
    "LearningSession",
    "SessionCognitiveScore",
    "split_sessions",
    "score_session",
    "score_sessions",
    # Recommendations
    "recommend_optimal_learning_time",
    "generate_personalized_hints",
    "OptimalLearningTime",
    "PersonalizedHints",
    # Profile
    "UserLearningProfile",
    "FlowPreference",
    "build_learning_profile",
    "default_profile",
    "skill_level_for",
]
