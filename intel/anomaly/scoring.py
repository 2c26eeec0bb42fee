"""
Scoring, risk classification and interpretation for event anomalies.

Maps the mean of fired detector scores to a risk level with configurable
breakpoints, and renders the strongest anomalies as readable text.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from .schema import AnomalyScore, AnomalyType, RiskLevel

DEFAULT_BREAKPOINTS: Dict[str, float] = {
    "critical": 0.9,
    "high": 0.75,
    "medium": 0.5,
}

ESCALATION_INDICATORS = (
    AnomalyType.THREAT_ESCALATION,
    AnomalyType.VELOCITY_SPIKE,
    AnomalyType.GEOGRAPHIC_CONVERGENCE,
)


def mean_score(anomalies: Sequence[AnomalyScore]) -> float:
    """
    Arithmetic mean of the fired scores; 0.0 if none fired.

    Thresholds and risk bands compare against this unrounded value.
    """

    if not anomalies:
        return 0.0
    mean = sum(a.score for a in anomalies) / len(anomalies)
    return min(max(mean, 0.0), 1.0)


def overall_score(anomalies: Sequence[AnomalyScore]) -> float:
    """Mean score rounded to 3 decimals, as reported on EventAnomalies."""
    return round(mean_score(anomalies), 3)


def classify_risk(score: float, breakpoints: Optional[Dict[str, float]] = None) -> RiskLevel:
    """
    Map a score to a risk level (>= critical, >= high, >= medium, else low).
    """

    bp = breakpoints or DEFAULT_BREAKPOINTS
    if score >= bp["critical"]:
        return RiskLevel.CRITICAL
    if score >= bp["high"]:
        return RiskLevel.HIGH
    if score >= bp["medium"]:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def describe_anomaly(anomaly: AnomalyScore) -> str:
    if anomaly.type == AnomalyType.VELOCITY_SPIKE:
        return f"rapid reporting increase ({anomaly.current:.0f} events)"
    if anomaly.type == AnomalyType.GEOGRAPHIC_CONVERGENCE:
        return f"geographic clustering of {anomaly.current:.0f} events"
    if anomaly.type == AnomalyType.THREAT_ESCALATION:
        return f"threat severity escalating ({anomaly.deviation:.1f}x baseline)"
    if anomaly.type == AnomalyType.SOURCE_CONCENTRATION:
        return f"concentrated source reporting ({anomaly.current * 100:.0f}%)"
    if anomaly.type == AnomalyType.TEMPORAL_ANOMALY:
        return "unusual timing pattern"
    if anomaly.type == AnomalyType.SENTIMENT_SHIFT:
        return "significant sentiment shift detected"
    if anomaly.type == AnomalyType.CLUSTER_EXPLOSION:
        return f"cluster explosion ({anomaly.deviation:.1f}x normal rate)"
    return "unknown anomaly"


def interpret(anomalies: Sequence[AnomalyScore], risk_level: RiskLevel, top_n: int = 3) -> str:
    """
    Summarize the top_n strongest anomalies, prefixed with the risk level.
    """

    if not anomalies:
        return "No anomalies detected."
    strongest: List[AnomalyScore] = sorted(anomalies, key=lambda a: a.score, reverse=True)[:top_n]
    descriptions = ", ".join(describe_anomaly(a) for a in strongest)
    return f"{risk_level.value.upper()} RISK: {descriptions}."


def escalation_probability(indicator_count: int, score: float) -> float:
    """
    min(1, indicators / 3 * overall score), rounded to 2 decimals.
    """

    if indicator_count <= 0:
        return 0.0
    return round(min(1.0, (indicator_count / len(ESCALATION_INDICATORS)) * score), 2)
