"""
Schema definitions for event anomaly detection.

All anomaly outputs are deterministic and explainable. Each anomaly score
references its observed value, the baseline it was compared with, and the
computed deviation.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field


class AnomalyType(str, Enum):
    """The seven anomaly dimensions scored for every event."""

    VELOCITY_SPIKE = "velocity_spike"
    GEOGRAPHIC_CONVERGENCE = "geographic_convergence"
    THREAT_ESCALATION = "threat_escalation"
    SOURCE_CONCENTRATION = "source_concentration"
    TEMPORAL_ANOMALY = "temporal_anomaly"
    SENTIMENT_SHIFT = "sentiment_shift"
    CLUSTER_EXPLOSION = "cluster_explosion"


class RiskLevel(str, Enum):
    """Risk classification derived from the overall anomaly score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AnomalyBaseline(BaseModel):
    """
    Reference statistics for a single metric.

    Fields:
    - metric: metric name (e.g. "velocity_hourly")
    - mean / std_dev: exposed reference values (seeded until warm-up ends)
    - min / max: observed (or seeded) range
    - samples: number of events counted against this baseline
    - last_updated: time of the last change
    - window_size_hours: nominal window the baseline describes
    - observations: values folded into the running statistics
    - running_mean / m2: Welford accumulators (unused by the static strategy)
    """

    metric: str
    mean: float
    std_dev: float = Field(ge=0.0)
    min: float = 0.0
    max: float = 0.0
    samples: int = Field(0, ge=0)
    last_updated: datetime
    window_size_hours: int = Field(168, ge=1)
    observations: int = Field(0, ge=0)
    running_mean: float = 0.0
    m2: float = Field(0.0, ge=0.0)


class AnomalyScore(BaseModel):
    """
    Result of a single detector.

    Fields:
    - type: anomaly dimension
    - score: anomaly strength in [0.0, 1.0]
    - likelihood: confidence that the anomaly reflects a real development
    - baseline: expected value
    - current: observed value
    - deviation: distance from baseline (std devs or a ratio, per detector)
    - metadata: detector-specific explanation values
    """

    type: AnomalyType
    score: float = Field(ge=0.0, le=1.0)
    likelihood: float = Field(ge=0.0, le=1.0)
    baseline: float
    current: float
    deviation: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class EventAnomalies(BaseModel):
    """
    Aggregated anomaly analysis of one event.

    Fields:
    - event_id: analysed event
    - timestamp: analysis time
    - anomalies: fired detector results
    - overall_score: mean of fired scores (0.0 when none fired)
    - is_anomalous: unrounded mean score reached the anomaly threshold
    - risk_level: classification of the unrounded mean score
    - interpretation: human-readable summary of the strongest anomalies
    """

    event_id: str
    timestamp: datetime
    anomalies: List[AnomalyScore] = Field(default_factory=list)
    overall_score: float = Field(0.0, ge=0.0, le=1.0)
    is_anomalous: bool = False
    risk_level: RiskLevel = RiskLevel.LOW
    interpretation: str = "No anomalies detected."

    @property
    def fired_types(self) -> List[AnomalyType]:
        return [a.type for a in self.anomalies]


class EscalationPrediction(BaseModel):
    """
    Forecast of whether an event's severity will increase.

    Fields:
    - probability: escalation probability in [0.0, 1.0]
    - expected_threat_level: "escalating", the current threat level, or a
      neutral label when nothing is known
    - indicators: escalation-related anomaly types that fired
    """

    probability: float = Field(0.0, ge=0.0, le=1.0)
    expected_threat_level: str
    indicators: List[AnomalyType] = Field(default_factory=list)
