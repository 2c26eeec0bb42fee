"""
Anomaly module: statistical anomaly detection over clustered events.

Implements lazily-seeded baselines, seven detectors, scoring and escalation
forecasting.
"""

from .baselines import BaselineRegistry
from .detectors import (
	ClusterExplosionDetector,
	DetectionContext,
	Detector,
	GeographicConvergenceDetector,
	SentimentShiftDetector,
	SourceConcentrationDetector,
	TemporalAnomalyDetector,
	ThreatEscalationDetector,
	VelocitySpikeDetector,
	default_detectors,
)
from .engine import AnomalyDetectionEngine
from .schema import AnomalyBaseline, AnomalyScore, AnomalyType, EscalationPrediction, EventAnomalies, RiskLevel
from .scoring import classify_risk, escalation_probability, interpret, mean_score, overall_score

__all__ = [
	"AnomalyDetectionEngine",
	"AnomalyBaseline",
	"AnomalyScore",
	"AnomalyType",
	"EventAnomalies",
	"EscalationPrediction",
	"RiskLevel",
	"BaselineRegistry",
	"DetectionContext",
	"Detector",
	"VelocitySpikeDetector",
	"GeographicConvergenceDetector",
	"ThreatEscalationDetector",
	"SourceConcentrationDetector",
	"TemporalAnomalyDetector",
	"SentimentShiftDetector",
	"ClusterExplosionDetector",
	"default_detectors",
	"classify_risk",
	"escalation_probability",
	"interpret",
	"mean_score",
	"overall_score",
]
