"""
Canonical clustered-event schema consumed by the intelligence pipeline.

Events arrive already clustered by an upstream collaborator (many raw
articles folded into one story). This module defines that representation;
the pipeline reads these records and never owns their lifecycle.

Design rationale:
- Only the fields the pipeline reads are modelled
- All timestamps are timezone-aware UTC
- Coordinates are optional; absence is a definite "no location"
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, Field


class ThreatLevel(str, Enum):
    """Threat levels assigned by the upstream classifier."""

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class VelocityLevel(str, Enum):
    """Reporting velocity classification."""

    NORMAL = "normal"
    ELEVATED = "elevated"
    SPIKE = "spike"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class SourceRef(BaseModel):
    """
    A news source contributing to a clustered event.

    Attributes:
        name: Source display name (compared case-insensitively)
        tier: Source tier, 1 being the most authoritative
        url: Link to the source's article
    """

    name: str = Field(..., min_length=1, description="Source name")
    tier: int = Field(4, ge=0, description="Source tier (lower is better)")
    url: str = Field("", description="Article URL")


class NewsItem(BaseModel):
    """
    A raw article folded into a clustered event.
    """

    title: str = Field(..., description="Article headline")
    source: Optional[str] = Field(default=None, description="Publishing source")
    link: Optional[str] = Field(default=None, description="Article URL")
    pub_date: Optional[UtcDatetime] = Field(default=None, description="Publish time (UTC)")


class ThreatAssessment(BaseModel):
    """
    Upstream threat classification of an event.

    Attributes:
        level: Threat level (info..critical)
        category: Free-form category label (e.g. "conflict", "economic")
        confidence: Classifier confidence in [0, 1]
    """

    level: ThreatLevel = Field(..., description="Threat level")
    category: Optional[str] = Field(default=None, description="Threat category")
    confidence: Optional[float] = Field(
        default=None, ge=0.0, le=1.0, description="Classifier confidence"
    )


class VelocityInfo(BaseModel):
    """Reporting velocity for an event."""

    level: VelocityLevel = Field(VelocityLevel.NORMAL, description="Velocity classification")
    sources_per_hour: Optional[float] = Field(default=None, ge=0.0)


class ClusteredEvent(BaseModel):
    """
    A news story already clustered from multiple raw articles.

    Attributes:
        id: Stable cluster identifier
        primary_title: Headline representing the cluster
        primary_source: Source of the primary headline
        top_sources: Contributing sources (display subset)
        source_count: Total number of contributing sources
        lat / lon: Optional geographic point
        first_seen: When the cluster first appeared
        last_updated: When the cluster last received an article
        threat: Optional threat assessment
        velocity: Optional velocity classification
        all_items: Raw articles, newest first by convention

    Notes:
        - Deduplication merges clusters into new ClusteredEvent instances
          and never mutates its inputs
    """

    id: str = Field(..., min_length=1, description="Cluster identifier")
    primary_title: str = Field(..., description="Primary headline")
    primary_source: str = Field("", description="Primary headline source")
    top_sources: List[SourceRef] = Field(default_factory=list)
    source_count: int = Field(1, ge=0, description="Total contributing sources")
    lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    lon: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    first_seen: UtcDatetime = Field(..., description="First appearance (UTC)")
    last_updated: UtcDatetime = Field(..., description="Last update (UTC)")
    threat: Optional[ThreatAssessment] = None
    velocity: Optional[VelocityInfo] = None
    all_items: List[NewsItem] = Field(default_factory=list)

    @property
    def has_location(self) -> bool:
        """True only when both coordinates are present."""
        return self.lat is not None and self.lon is not None

    @property
    def threat_level(self) -> Optional[str]:
        return self.threat.level.value if self.threat else None

    @property
    def velocity_level(self) -> Optional[str]:
        return self.velocity.level.value if self.velocity else None
