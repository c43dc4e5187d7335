"""
Recommendation Generator.

Derives study-time advice and personalized hints from a PatternSnapshot.
Everything here is a pure function of the snapshot: templates are drawn
from category-tagged pools by deterministic rules, never at random.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass, field

from learnsight.analytics.pattern_analyzer import time_slot_name
from learnsight.analytics.snapshot import PatternSnapshot
from learnsight.study.forgetting_curve import ForgettingCurveParameters

DEFAULT_BEST_HOUR = 10
DEFAULT_CONFIDENCE = 75
DEFAULT_SESSION_MINUTES = 20
LONG_SESSION_MINUTES = 30
SHORT_SESSION_MINUTES = 15
DEFAULT_DAILY_TARGET = 5
INCONSISTENT_DAILY_CAP = 10

HIGH_VELOCITY = 0.8
LOW_VELOCITY = 0.5
HIGH_CONSISTENCY = 0.7
LOW_CONSISTENCY = 0.3
STEADY_CONSISTENCY = 0.5


# =============================================================================
# Template pools
# =============================================================================

GENERAL_TIPS = {
    "best_hour": "Your focus peaks in the {slot} (around {hour}:00); schedule harder material then",
    "consistency": "Short daily practice beats occasional long sessions; aim for a little every day",
    "improving": "Your learning efficiency is improving. Keep the current rhythm",
    "streak": "You are on a {days}-day streak. Protect it with even a short session today",
    "start": "Answer a few questions every day to unlock personalized insights",
}

# Strength/weakness tips per canonical category, with a generic fallback
SUBJECT_TIPS: dict[str, dict[str, str]] = {
    "default": {
        "strength": "{category} is a strength. Use it as a bridge into related topics",
        "weakness": "{category} needs work. Revisit the fundamentals before moving on",
    },
    "finance": {
        "strength": "Finance is a strength. Try case questions that combine it with strategy",
        "weakness": "Finance needs work. Rebuild the basics of the three core statements first",
    },
    "logical_thinking_problem_solving": {
        "strength": "Structured thinking is a strength. Apply it to unfamiliar case questions",
        "weakness": "Logical thinking needs work. Practice breaking problems into MECE parts",
    },
    "communication_presentation": {
        "strength": "Communication is a strength. Practice summarizing answers in one sentence",
        "weakness": "Communication needs work. Lead with the conclusion, then the reasons",
    },
    "marketing_sales": {
        "strength": "Marketing and sales is a strength. Connect it to pricing and finance questions",
        "weakness": "Marketing and sales needs work. Review segmentation and positioning basics",
    },
    "strategy_management": {
        "strength": "Strategy is a strength. Stretch yourself with industry-specific cases",
        "weakness": "Strategy needs work. Revisit the classic frameworks one at a time",
    },
}

PERFORMANCE_TIPS = {
    "ready": "You are ready for harder questions. Try the next difficulty level",
    "low_velocity": "Add more review sessions to lock in what you have learned",
    "error_hotspot": "Most mistakes come from {key}. Slow down on those questions",
    "declining_retention": "Recent accuracy dipped. Mix in reviews of older material",
}

MOTIVATIONAL_MESSAGES = (
    "Consistency is power. Small daily steps add up to real results",
    "Great learning pace. Keep it going",
    "Enjoy learning something new and keep moving forward one step at a time",
)
IMPROVING_MESSAGE = "Your learning efficiency is improving. Impressive growth"

QUESTION_TIPS: dict[str, list[str]] = {
    "default": [
        "Look for the key words in the question before reading the options",
        "Take time to compare the options against each other",
    ],
    "finance": [
        "Write down the formula before plugging in numbers",
        "Check units and time periods in every figure",
    ],
    "logical_thinking_problem_solving": [
        "Identify the question's hidden assumption first",
        "Eliminate options that do not address the actual question",
    ],
}

SESSION_REASONING = {
    LONG_SESSION_MINUTES: "High learning efficiency and consistency; longer sessions pay off",
    SHORT_SESSION_MINUTES: "Start with short sessions and build up gradually",
    DEFAULT_SESSION_MINUTES: "This length suits your current learning pattern",
}


# =============================================================================
# Result types
# =============================================================================


@dataclass(frozen=True)
class BestTime:
    hour: int
    time_slot: str
    confidence: int  # percent


@dataclass(frozen=True)
class SessionLength:
    recommended: int  # minutes
    min_minutes: int
    max_minutes: int
    reasoning: str


@dataclass(frozen=True)
class StudyFrequency:
    questions_per_day: int
    sessions_per_week: int
    reasoning: str


@dataclass(frozen=True)
class OptimalLearningTime:
    best_time: BestTime
    session_length: SessionLength
    frequency: StudyFrequency
    advice: list[str] = field(default_factory=list)
    is_degraded: bool = False

    @property
    def best_hour(self) -> int:
        return self.best_time.hour

    @property
    def session_length_minutes(self) -> int:
        return self.session_length.recommended

    @property
    def daily_question_target(self) -> int:
        return self.frequency.questions_per_day


@dataclass(frozen=True)
class PersonalizedHints:
    general_tips: list[str]
    subject_specific_tips: list[str]
    performance_tips: list[str]
    motivational_message: str
    question_specific: list[str] | None = None
    is_degraded: bool = False


# =============================================================================
# Optimal learning time
# =============================================================================


def best_learning_time(snapshot: PatternSnapshot) -> BestTime:
    best = snapshot.time_of_day_patterns.best_performance_hours
    if best:
        return BestTime(hour=best[0].hour, time_slot=time_slot_name(best[0].hour), confidence=best[0].accuracy)
    return BestTime(hour=DEFAULT_BEST_HOUR, time_slot=time_slot_name(DEFAULT_BEST_HOUR), confidence=DEFAULT_CONFIDENCE)


def optimal_session_length(snapshot: PatternSnapshot) -> SessionLength:
    velocity = snapshot.learning_velocity.velocity_score
    consistency = snapshot.learning_frequency.consistency

    minutes = DEFAULT_SESSION_MINUTES
    if velocity > HIGH_VELOCITY and consistency > HIGH_CONSISTENCY:
        minutes = LONG_SESSION_MINUTES
    elif velocity < LOW_VELOCITY or consistency < LOW_CONSISTENCY:
        minutes = SHORT_SESSION_MINUTES

    return SessionLength(
        recommended=minutes,
        min_minutes=max(10, minutes - 5),
        max_minutes=minutes + 10,
        reasoning=SESSION_REASONING[minutes],
    )


def optimal_frequency(snapshot: PatternSnapshot) -> StudyFrequency:
    frequency = snapshot.learning_frequency
    current = frequency.average_daily_questions

    target = math.ceil(round(current * 1.2, 6)) if current > 0 else DEFAULT_DAILY_TARGET
    if frequency.consistency < LOW_CONSISTENCY:
        target = min(target, INCONSISTENT_DAILY_CAP)

    return StudyFrequency(
        questions_per_day=target,
        sessions_per_week=min(7, max(3, math.ceil(target / 3))),
        reasoning=f"Based on your current pace of about {round(current)} questions per day",
    )


def time_advice(snapshot: PatternSnapshot) -> list[str]:
    advice: list[str] = []
    best = snapshot.time_of_day_patterns.best_performance_hours
    if best:
        advice.append(f"Studying in the {time_slot_name(best[0].hour)} is most effective for you")
    if snapshot.learning_frequency.consistency < STEADY_CONSISTENCY:
        advice.append("Studying on a regular schedule will improve your results")
    return advice or ["Keep up regular study sessions"]


def recommend_optimal_learning_time(snapshot: PatternSnapshot) -> OptimalLearningTime:
    return OptimalLearningTime(
        best_time=best_learning_time(snapshot),
        session_length=optimal_session_length(snapshot),
        frequency=optimal_frequency(snapshot),
        advice=time_advice(snapshot),
        is_degraded=snapshot.is_degraded,
    )


# =============================================================================
# Personalized hints
# =============================================================================


def _subject_tip(category: str, kind: str) -> str:
    pool = SUBJECT_TIPS.get(category, SUBJECT_TIPS["default"])
    return pool[kind].format(category=category.replace("_", " ").capitalize())


def general_tips(snapshot: PatternSnapshot) -> list[str]:
    tips: list[str] = []
    if not snapshot.has_data:
        return [GENERAL_TIPS["start"]]

    best = snapshot.time_of_day_patterns.best_performance_hours
    if best:
        hour = best[0].hour
        tips.append(GENERAL_TIPS["best_hour"].format(slot=time_slot_name(hour).replace("_", " "), hour=hour))
    if snapshot.learning_frequency.consistency < STEADY_CONSISTENCY:
        tips.append(GENERAL_TIPS["consistency"])
    if snapshot.learning_velocity.is_improving:
        tips.append(GENERAL_TIPS["improving"])
    if snapshot.streak_patterns.current_streak >= 3:
        tips.append(GENERAL_TIPS["streak"].format(days=snapshot.streak_patterns.current_streak))
    return tips


def subject_tips(snapshot: PatternSnapshot) -> list[str]:
    tips: list[str] = []
    subjects = snapshot.subject_strengths
    if subjects.strengths:
        tips.append(_subject_tip(subjects.strengths[0].category, "strength"))
    if subjects.weaknesses:
        tips.append(_subject_tip(subjects.weaknesses[0].category, "weakness"))
    return tips


def performance_tips(snapshot: PatternSnapshot) -> list[str]:
    tips: list[str] = []
    if snapshot.difficulty_progression.ready_for_next:
        tips.append(PERFORMANCE_TIPS["ready"])
    if snapshot.has_data and snapshot.learning_velocity.velocity_score < LOW_VELOCITY:
        tips.append(PERFORMANCE_TIPS["low_velocity"])
    errors = snapshot.error_patterns.most_common_errors
    if errors and errors[0].value >= 3:
        tips.append(PERFORMANCE_TIPS["error_hotspot"].format(key=str(errors[0].key).replace("_", " ")))
    if snapshot.retention_rate.trend == "declining":
        tips.append(PERFORMANCE_TIPS["declining_retention"])
    return tips


def motivational_message(snapshot: PatternSnapshot) -> str:
    if snapshot.learning_velocity.is_improving:
        return IMPROVING_MESSAGE
    index = (snapshot.learning_frequency.active_days + snapshot.event_count) % len(MOTIVATIONAL_MESSAGES)
    return MOTIVATIONAL_MESSAGES[index]


def question_tips(content_category: str) -> list[str]:
    return list(QUESTION_TIPS.get(content_category, QUESTION_TIPS["default"]))


def generate_personalized_hints(snapshot: PatternSnapshot, content_category: str | None = None) -> PersonalizedHints:
    return PersonalizedHints(
        general_tips=general_tips(snapshot),
        subject_specific_tips=subject_tips(snapshot),
        performance_tips=performance_tips(snapshot),
        motivational_message=motivational_message(snapshot),
        question_specific=question_tips(content_category) if content_category else None,
        is_degraded=snapshot.is_degraded,
    )


# =============================================================================
# Retention recommendations
# =============================================================================


@dataclass(frozen=True)
class RetentionRecommendations:
    """
    Forgetting-curve summary shown next to the due-review list.

    Attributes:
        personal_retention_rate: Percent recalled one day after a first successful review
        average_forgetting_rate: Fitted decay rate per day
        strong_categories: Categories the learner reliably gets right
        weak_categories: Categories that need reinforcement
        total_items_to_review: Entries due now
        optimal_review_frequency_days: Typical spacing on the learner's interval ladder
    """

    personal_retention_rate: int
    average_forgetting_rate: float
    strong_categories: list[str] = field(default_factory=list)
    weak_categories: list[str] = field(default_factory=list)
    total_items_to_review: int = 0
    optimal_review_frequency_days: int = 7
    is_default_curve: bool = True
    is_degraded: bool = False


def recommend_retention_plan(
    snapshot: PatternSnapshot,
    curve: ForgettingCurveParameters,
    due_count: int,
) -> RetentionRecommendations:
    ladder = curve.optimal_intervals or [1]
    return RetentionRecommendations(
        personal_retention_rate=round(curve.retention(1, successful_exposures=1) * 100),
        average_forgetting_rate=curve.decay_rate,
        strong_categories=snapshot.subject_strengths.strength_categories(),
        weak_categories=snapshot.subject_strengths.weakness_categories(),
        total_items_to_review=due_count,
        optimal_review_frequency_days=int(statistics.median_low(ladder)),
        is_default_curve=curve.is_default,
        is_degraded=snapshot.is_degraded,
    )
