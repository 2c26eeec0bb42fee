"""
Similarity metrics for clustered events.

Pure, stateless functions:
- Levenshtein edit distance and the derived title similarity
- Jaccard similarity over source-name sets
- Haversine great-circle distance and the derived location similarity

All similarities are in [0.0, 1.0] and symmetric in their arguments.
"""

from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt
from typing import AbstractSet, Iterable

from .schema import ClusteredEvent, SourceRef

EARTH_RADIUS_KM = 6371.0
DEFAULT_MAX_DISTANCE_KM = 50.0


def levenshtein_distance(s1: str, s2: str) -> int:
    """
    Classic edit distance (insertions, deletions, substitutions).

    Comparison is case-sensitive; lower-case both strings first when a
    case-insensitive distance is wanted.
    """

    if s1 == s2:
        return 0
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    # Two-row dynamic program over s2
    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i] + [0] * len(s2)
        for j, c2 in enumerate(s2, start=1):
            cost = 0 if c1 == c2 else 1
            current[j] = min(
                previous[j] + 1,  # deletion
                current[j - 1] + 1,  # insertion
                previous[j - 1] + cost,  # substitution
            )
        previous = current
    return previous[-1]


def title_similarity(title1: str, title2: str) -> float:
    """
    Case-insensitive Levenshtein similarity: 1 - distance / max length.
    """

    s1 = title1.lower()
    s2 = title2.lower()
    if s1 == s2:
        return 1.0
    max_len = max(len(s1), len(s2))
    return 1.0 - levenshtein_distance(s1, s2) / max_len


def jaccard_similarity(set1: AbstractSet[str], set2: AbstractSet[str]) -> float:
    """
    |intersection| / |union|, or 0.0 when either set is empty.
    """

    if not set1 or not set2:
        return 0.0
    union = set1 | set2
    return len(set1 & set2) / len(union)


def source_names(sources: Iterable[SourceRef]) -> set:
    return {s.name.lower() for s in sources}


def source_similarity(sources1: Iterable[SourceRef], sources2: Iterable[SourceRef]) -> float:
    """Jaccard similarity of lower-cased source names."""
    return jaccard_similarity(source_names(sources1), source_names(sources2))


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance in kilometres.
    """

    d_lat = radians(lat2 - lat1)
    d_lon = radians(lon2 - lon1)
    a = (
        sin(d_lat / 2) ** 2
        + cos(radians(lat1)) * cos(radians(lat2)) * sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * atan2(sqrt(a), sqrt(1 - a))


def event_distance_km(event1: ClusteredEvent, event2: ClusteredEvent) -> float:
    if not (event1.has_location and event2.has_location):
        raise ValueError("Both events need coordinates to compute a distance")
    return haversine_km(event1.lat, event1.lon, event2.lat, event2.lon)


def location_similarity(
    event1: ClusteredEvent,
    event2: ClusteredEvent,
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
) -> float:
    """
    1 - distance / max_distance_km, floored at 0.

    Events without coordinates score 0.0 rather than "unknown", so missing
    locations never push a pair towards merging.
    """

    if not (event1.has_location and event2.has_location):
        return 0.0
    distance = event_distance_km(event1, event2)
    return max(0.0, 1.0 - distance / max_distance_km)
