"""
Deduplication module: near-duplicate detection and merging of clustered events.
"""

from .engine import DeduplicationService
from .merge import merge_group
from .schema import (
    DeduplicationResult,
    DeduplicationScore,
    DeduplicationStats,
    DuplicateGroup,
    DuplicateMatch,
    SimilarityMethod,
)

__all__ = [
    "DeduplicationService",
    "merge_group",
    "DeduplicationResult",
    "DeduplicationScore",
    "DeduplicationStats",
    "DuplicateGroup",
    "DuplicateMatch",
    "SimilarityMethod",
]
