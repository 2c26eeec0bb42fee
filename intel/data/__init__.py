"""
Data module: clustered-event schema and similarity metrics.

    Upstream clustering
        ↓
    ClusteredEvent (intel/data/schema.py)
        ↓
    Similarity metrics (intel/data/similarity.py)
        ↓
    Deduplication, alert rules, anomaly detection
"""

from intel.data.schema import (
    ClusteredEvent,
    NewsItem,
    SourceRef,
    ThreatAssessment,
    ThreatLevel,
    VelocityInfo,
    VelocityLevel,
)
from intel.data.similarity import (
    haversine_km,
    jaccard_similarity,
    levenshtein_distance,
    location_similarity,
    source_similarity,
    title_similarity,
)

__all__ = [
    # Schema
    "ClusteredEvent",
    "NewsItem",
    "SourceRef",
    "ThreatAssessment",
    "ThreatLevel",
    "VelocityInfo",
    "VelocityLevel",

    # Similarity
    "levenshtein_distance",
    "title_similarity",
    "jaccard_similarity",
    "source_similarity",
    "haversine_km",
    "location_similarity",
]
