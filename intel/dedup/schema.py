"""
Schema definitions for cross-cluster deduplication.

Scores are explainable: each records its four sub-scores and the
similarity method behind them, alongside the weighted overall score.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List

from pydantic import BaseModel, Field

from intel.data.schema import ClusteredEvent


class SimilarityMethod(str, Enum):
    """Similarity method used for a sub-score."""

    LEVENSHTEIN = "levenshtein"
    JACCARD = "jaccard"


class ScoreMethods(BaseModel):
    title_method: SimilarityMethod = SimilarityMethod.LEVENSHTEIN
    source_method: SimilarityMethod = SimilarityMethod.JACCARD


class DeduplicationScore(BaseModel):
    """
    Similarity between two clustered events.

    Fields:
    - title_similarity: Levenshtein similarity of the primary titles
    - source_similarity: Jaccard similarity of the source-name sets
    - location_similarity: distance-based similarity (0 without coordinates)
    - time_similarity: 1 - first-seen gap / time window
    - overall_score: weighted sum of the four sub-scores
    - metrics: methods used for the title and source sub-scores
    """

    title_similarity: float = Field(0.0, ge=0.0, le=1.0)
    source_similarity: float = Field(0.0, ge=0.0, le=1.0)
    location_similarity: float = Field(0.0, ge=0.0, le=1.0)
    time_similarity: float = Field(0.0, ge=0.0, le=1.0)
    overall_score: float = Field(0.0, ge=0.0, le=1.0)
    metrics: ScoreMethods = Field(default_factory=ScoreMethods)


class DuplicateMatch(BaseModel):
    event: ClusteredEvent
    score: DeduplicationScore


class DuplicateGroup(BaseModel):
    """
    A primary event and the later events judged to duplicate it.

    Groups are built fresh on every pass and discarded after merging.
    """

    id: str
    primary_event: ClusteredEvent
    duplicates: List[DuplicateMatch] = Field(default_factory=list)
    merged_at: datetime
    is_merged: bool = False

    @property
    def size(self) -> int:
        """Number of input events represented by this group."""
        return 1 + len(self.duplicates)


class DeduplicationStats(BaseModel):
    """
    Cumulative statistics across deduplication runs.

    Fields:
    - total_events_processed: input events seen across all runs
    - duplicates_found: input events folded into another event
    - events_after_dedup: output size of the latest run
    - merged_groups: groups that absorbed at least one duplicate
    - last_run: time of the latest run
    """

    total_events_processed: int = Field(0, ge=0)
    duplicates_found: int = Field(0, ge=0)
    events_after_dedup: int = Field(0, ge=0)
    merged_groups: int = Field(0, ge=0)
    last_run: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DeduplicationResult(BaseModel):
    """
    Output of a deduplication pass: merged events and their groups, in the
    same order.
    """

    events: List[ClusteredEvent]
    groups: List[DuplicateGroup]
