"""
Detectors for anomalous event patterns.

Each detector inspects one event together with the recent-events context and
returns an AnomalyScore when it fires, or None. Missing data (no
coordinates, no threat assessment, too little history) means "not fired".

Implemented dimensions:
- Velocity spike
- Geographic convergence
- Threat escalation
- Source concentration
- Temporal anomaly
- Sentiment shift
- Cluster explosion
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import ClassVar, Dict, List, Optional, Sequence

from intel.core.config import AnomalyConfig
from intel.data.schema import ClusteredEvent
from intel.data.similarity import event_distance_km, levenshtein_distance

from .baselines import BaselineRegistry
from .schema import AnomalyScore, AnomalyType

VELOCITY_BASELINE = "velocity_hourly"
VELOCITY_BASELINE_SEED = 5.0
CONVERGENCE_BASELINE = "geo_convergence"
CONVERGENCE_BASELINE_SEED = 1.0

THREAT_PRIORITY: Dict[str, int] = {
    "critical": 5,
    "high": 4,
    "medium": 3,
    "low": 2,
    "info": 1,
}

VELOCITY_SEVERITY: Dict[str, float] = {
    "spike": 0.95,
    "elevated": 0.6,
}


@dataclass
class DetectionContext:
    """Shared inputs for a single event analysis."""

    now: datetime
    config: AnomalyConfig
    baselines: BaselineRegistry


def _seen_since(events: Sequence[ClusteredEvent], cutoff: datetime) -> List[ClusteredEvent]:
    return [e for e in events if e.first_seen > cutoff]


class Detector(ABC):
    """Base class: subclasses set anomaly_type and implement detect."""

    anomaly_type: ClassVar[AnomalyType]

    @abstractmethod
    def detect(
        self,
        event: ClusteredEvent,
        recent_events: Sequence[ClusteredEvent],
        ctx: DetectionContext,
    ) -> Optional[AnomalyScore]:
        """Return an AnomalyScore when the anomaly fires, otherwise None."""


@dataclass
class VelocitySpikeDetector(Detector):
    """
    Reporting-velocity spike on a near-identical topic.

    Only events labelled spike or elevated proceed; the label's severity is
    scaled by how many near-identical titles appeared in the last hour
    relative to the hourly baseline.
    """

    max_title_distance: int = 10
    anomaly_type: ClassVar[AnomalyType] = AnomalyType.VELOCITY_SPIKE

    def similar_count(self, event: ClusteredEvent, recent_events: Sequence[ClusteredEvent], now: datetime) -> int:
        last_hour = _seen_since(recent_events, now - timedelta(hours=1))
        return sum(
            1
            for e in last_hour
            if levenshtein_distance(e.primary_title, event.primary_title) < self.max_title_distance
        )

    def detect(self, event, recent_events, ctx):
        velocity = event.velocity_level or "normal"
        severity = VELOCITY_SEVERITY.get(velocity, 0.1)
        if severity <= 0.5:
            return None

        similar = self.similar_count(event, recent_events, ctx.now)
        baseline = ctx.baselines.get_or_create(VELOCITY_BASELINE, VELOCITY_BASELINE_SEED, ctx.now)

        return AnomalyScore(
            type=self.anomaly_type,
            score=min(1.0, severity * (similar / max(baseline.mean, 1.0))),
            likelihood=severity,
            baseline=baseline.mean,
            current=similar,
            deviation=(similar - baseline.mean) / max(baseline.std_dev, 1.0),
            metadata={
                "similar_events": similar,
                "velocity": velocity,
                "event_source_count": event.source_count,
            },
        )


@dataclass
class GeographicConvergenceDetector(Detector):
    """Several recent events within a radius of this one."""

    anomaly_type: ClassVar[AnomalyType] = AnomalyType.GEOGRAPHIC_CONVERGENCE

    def converging_count(self, event: ClusteredEvent, recent_events: Sequence[ClusteredEvent], radius_km: float) -> int:
        nearby = [
            e
            for e in recent_events
            if e.has_location and event_distance_km(event, e) < radius_km
        ]
        return len(nearby) + 1  # include the event itself

    def detect(self, event, recent_events, ctx):
        if not event.has_location:
            return None

        radius = ctx.config.convergence_radius_km
        count = self.converging_count(event, recent_events, radius)
        if count < ctx.config.min_events_for_convergence:
            return None

        baseline = ctx.baselines.get_or_create(CONVERGENCE_BASELINE, CONVERGENCE_BASELINE_SEED, ctx.now)

        return AnomalyScore(
            type=self.anomaly_type,
            score=min(1.0, count / max(baseline.mean * 5, 5.0)),
            likelihood=min(1.0, count / 10),
            baseline=baseline.mean,
            current=count,
            deviation=(count - baseline.mean) / max(baseline.std_dev, 1.0),
            metadata={
                "converging_events": count,
                "radius_km": radius,
                "center_lat": event.lat,
                "center_lon": event.lon,
            },
        )


@dataclass
class ThreatEscalationDetector(Detector):
    """
    Current threat priority well above that of similar recent events.

    Similar events without a threat assessment count as "info".
    """

    max_title_distance: int = 15
    min_history: int = 2
    anomaly_type: ClassVar[AnomalyType] = AnomalyType.THREAT_ESCALATION

    def detect(self, event, recent_events, ctx):
        if event.threat is None:
            return None

        current = THREAT_PRIORITY.get(event.threat.level.value, 0)
        window = _seen_since(recent_events, ctx.now - timedelta(hours=24))
        similar = [
            e
            for e in window
            if levenshtein_distance(e.primary_title, event.primary_title) < self.max_title_distance
        ]
        if len(similar) < self.min_history:
            return None

        avg_past = sum(THREAT_PRIORITY.get(e.threat_level or "info", 0) for e in similar) / len(similar)
        escalation = current / max(avg_past, 0.5)
        if escalation <= ctx.config.threat_escalation_threshold:
            return None

        return AnomalyScore(
            type=self.anomaly_type,
            score=min(1.0, (escalation - 1) / 2),
            likelihood=0.8,
            baseline=avg_past,
            current=current,
            deviation=escalation - 1,
            metadata={
                "escalation_ratio": round(escalation, 2),
                "previous_avg_threat": round(avg_past, 2),
                "current_threat": event.threat.level.value,
            },
        )


@dataclass
class SourceConcentrationDetector(Detector):
    """
    Reporting dominated by a single source.

    Per-source article counts are not tracked, so the dominant source is
    approximated as contributing one report whenever the event lists any top
    source.
    """

    threshold: float = 0.5
    anomaly_type: ClassVar[AnomalyType] = AnomalyType.SOURCE_CONCENTRATION

    def concentration(self, event: ClusteredEvent) -> float:
        top_source_count = 1 if event.top_sources else 0
        return top_source_count / max(event.source_count, 1)

    def detect(self, event, recent_events, ctx):
        concentration = self.concentration(event)
        if concentration <= self.threshold:
            return None

        expected = 1 / max(event.source_count, 1)
        return AnomalyScore(
            type=self.anomaly_type,
            score=concentration - self.threshold,
            likelihood=0.7,
            baseline=expected,
            current=concentration,
            deviation=concentration - expected,
            metadata={
                "top_source_count": 1,
                "total_sources": event.source_count,
                "concentration": round(concentration, 2),
            },
        )


@dataclass
class TemporalAnomalyDetector(Detector):
    """Updates arriving more than four times faster than expected."""

    expected_interval_seconds: float = 3600.0
    anomaly_type: ClassVar[AnomalyType] = AnomalyType.TEMPORAL_ANOMALY

    def detect(self, event, recent_events, ctx):
        reference = event.last_updated or event.first_seen
        elapsed = (ctx.now - reference).total_seconds()
        expected = self.expected_interval_seconds
        if elapsed >= expected / 4:
            return None

        # Updates stamped at (or after) "now" count as one millisecond old
        elapsed = max(elapsed, 0.001)
        return AnomalyScore(
            type=self.anomaly_type,
            score=min(1.0, expected / (elapsed * 4)),
            likelihood=0.6,
            baseline=expected,
            current=elapsed,
            deviation=1 - elapsed / expected,
            metadata={
                "seconds_since_update": elapsed,
                "update_frequency_min": round(elapsed / 60, 2),
            },
        )


@dataclass
class SentimentShiftDetector(Detector):
    """
    Threat confidence far from that of similarly-titled recent events.

    Title similarity here is 1 - distance / 100, so the 0.7 cut-off admits
    titles within 30 edits of each other regardless of their length.
    """

    min_similarity: float = 0.7
    min_history: int = 2
    shift_threshold: float = 0.3
    default_confidence: float = 0.5
    anomaly_type: ClassVar[AnomalyType] = AnomalyType.SENTIMENT_SHIFT

    def _confidence(self, event: ClusteredEvent) -> float:
        if event.threat is None or event.threat.confidence is None:
            return self.default_confidence
        return event.threat.confidence

    def detect(self, event, recent_events, ctx):
        past = [
            e
            for e in recent_events
            if e.threat is not None
            and 1 - levenshtein_distance(e.primary_title, event.primary_title) / 100 > self.min_similarity
        ]
        if len(past) < self.min_history:
            return None

        avg = sum(self._confidence(e) for e in past) / len(past)
        current = self._confidence(event)
        shift = abs(current - avg)
        if shift <= self.shift_threshold:
            return None

        return AnomalyScore(
            type=self.anomaly_type,
            score=min(1.0, shift),
            likelihood=0.7,
            baseline=avg,
            current=current,
            deviation=shift,
            metadata={
                "sentiment_shift": round(shift, 2),
                "previous_avg": round(avg, 2),
                "samples_used": len(past),
            },
        )


@dataclass
class ClusterExplosionDetector(Detector):
    """Last-hour event count far above the six-hour hourly average."""

    ratio_threshold: float = 2.0
    anomaly_type: ClassVar[AnomalyType] = AnomalyType.CLUSTER_EXPLOSION

    def detect(self, event, recent_events, ctx):
        last_hour = len(_seen_since(recent_events, ctx.now - timedelta(hours=1)))
        last_six = len(_seen_since(recent_events, ctx.now - timedelta(hours=6)))
        hourly_avg = last_six / 6
        ratio = last_hour / max(hourly_avg, 1.0)
        if ratio <= self.ratio_threshold:
            return None

        return AnomalyScore(
            type=self.anomaly_type,
            score=min(1.0, (ratio - 1) / 3),
            likelihood=0.75,
            baseline=hourly_avg,
            current=last_hour,
            deviation=ratio - 1,
            metadata={
                "events_last_hour": last_hour,
                "explosion_ratio": round(ratio, 2),
                "average_event_rate": round(hourly_avg, 1),
            },
        )


def default_detectors() -> List[Detector]:
    return [
        VelocitySpikeDetector(),
        GeographicConvergenceDetector(),
        ThreatEscalationDetector(),
        SourceConcentrationDetector(),
        TemporalAnomalyDetector(),
        SentimentShiftDetector(),
        ClusterExplosionDetector(),
    ]
