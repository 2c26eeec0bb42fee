"""
Schema for enriched events produced by the augmentation coordinator.

An enriched event is the deduplicated clustered event plus everything the
intelligence layers attached to it.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from intel.anomaly.schema import AnomalyType, EventAnomalies
from intel.dedup.schema import DeduplicationStats
from intel.data.schema import ClusteredEvent


class TriggeredAlert(BaseModel):
    """
    Summary of an alert rule that matched the event.
    """

    rule_id: str
    rule_name: str
    highlight_color: Optional[str] = None


class EscalationSummary(BaseModel):
    probability: float = Field(0.0, ge=0.0, le=1.0)
    indicators: List[AnomalyType] = Field(default_factory=list)


class DeduplicationInfo(BaseModel):
    """
    How the event came out of deduplication.

    Fields:
    - is_duplicate: True when other input events were merged into this one
    - merged_from: number of other input events merged into this one
    """

    is_duplicate: bool = False
    merged_from: int = Field(0, ge=0)


class Augmentation(BaseModel):
    """
    Intelligence attached to a single event.
    """

    triggered_alerts: List[TriggeredAlert] = Field(default_factory=list)
    anomalies: EventAnomalies
    escalation_prediction: Optional[EscalationSummary] = None
    satellite_context: Optional[Dict[str, Any]] = None
    deduplication_info: Optional[DeduplicationInfo] = None


class EnrichedEvent(BaseModel):
    """
    A deduplicated event with its augmentation record.
    """

    event: ClusteredEvent
    augmentation: Augmentation


class AugmentationStats(BaseModel):
    """
    Coordinator counters.

    Fields:
    - deduplication: cumulative deduplication statistics
    - initialized: engines have loaded their persisted state
    - batches_processed: augment calls that completed normally
    - events_enriched: enriched events returned by those calls
    - fallback_batches: augment calls that fell back to pass-through output
    """

    deduplication: DeduplicationStats
    initialized: bool
    batches_processed: int = 0
    events_enriched: int = 0
    fallback_batches: int = 0
