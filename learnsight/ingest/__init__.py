"""
Ingestion boundary.

Turns collaborator records into LearningEvent instances and resolves raw
category strings through an explicit taxonomy table.
"""

from learnsight.ingest.normalizer import (
    CachedEventRecord,
    CourseCompletionRecord,
    DroppedRecord,
    NormalizationResult,
    QuizAnswerRecord,
    SessionNormalizer,
)
from learnsight.ingest.taxonomy import StaticTaxonomyResolver, TaxonomyResolver

__all__ = [
    "SessionNormalizer",
    "NormalizationResult",
    "DroppedRecord",
    "QuizAnswerRecord",
    "CourseCompletionRecord",
    "CachedEventRecord",
    "StaticTaxonomyResolver",
    "TaxonomyResolver",
]
