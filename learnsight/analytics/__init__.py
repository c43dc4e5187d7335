"""
Analytics Module - behavioral pattern analysis.

Components:
- PatternAnalyzer: Eight sub-analyses over an event window
- PatternSnapshot: Analyzer output with all-zero defaults
- AnalysisCache: Per-user TTL cache for analysis results
"""

from learnsight.analytics.cache import AnalysisCache, CacheBackend
from learnsight.analytics.pattern_analyzer import PatternAnalyzer, time_slot_name
from learnsight.analytics.snapshot import (
    CategoryPerformance,
    DifficultyAccuracy,
    DifficultyProgression,
    ErrorPatterns,
    HourAccuracy,
    LearningFrequency,
    LearningVelocity,
    PatternSnapshot,
    PeakFocusTime,
    RankedCount,
    RetentionRate,
    StreakPatterns,
    SubjectStrengths,
    TimeOfDayPatterns,
)

__all__ = [
    "PatternAnalyzer",
    "PatternSnapshot",
    "AnalysisCache",
    "CacheBackend",
    "time_slot_name",
    # Sub-results
    "LearningFrequency",
    "TimeOfDayPatterns",
    "SubjectStrengths",
    "DifficultyProgression",
    "StreakPatterns",
    "ErrorPatterns",
    "LearningVelocity",
    "RetentionRate",
    "RankedCount",
    "HourAccuracy",
    "PeakFocusTime",
    "CategoryPerformance",
    "DifficultyAccuracy",
]
