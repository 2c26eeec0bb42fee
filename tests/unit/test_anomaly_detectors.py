"""
Unit tests for anomaly detectors.
"""

import pytest
from datetime import timedelta

from intel.anomaly.baselines import BaselineRegistry
from intel.anomaly.detectors import (
    ClusterExplosionDetector,
    DetectionContext,
    Detector,
    GeographicConvergenceDetector,
    SentimentShiftDetector,
    SourceConcentrationDetector,
    TemporalAnomalyDetector,
    ThreatEscalationDetector,
    VelocitySpikeDetector,
)
from intel.anomaly.schema import AnomalyType
from intel.core.config import AnomalyConfig, BaselineConfig


@pytest.fixture
def ctx(clock):
    return DetectionContext(
        now=clock.now(),
        config=AnomalyConfig(),
        baselines=BaselineRegistry(BaselineConfig()),
    )


def _recent(make_event, clock, count, minutes_ago=10, **kwargs):
    first_seen = clock.now() - timedelta(minutes=minutes_ago)
    return [make_event(f"r{i}", first_seen=first_seen, **kwargs) for i in range(count)]


class TestVelocitySpike:
    def test_spike_scaled_by_similar_events(self, ctx, clock, make_event):
        event = make_event("e", velocity="spike")
        result = VelocitySpikeDetector().detect(event, _recent(make_event, clock, 3), ctx)

        assert result.type == AnomalyType.VELOCITY_SPIKE
        assert result.score == pytest.approx(0.95 * 3 / 5)
        assert result.likelihood == 0.95
        assert result.current == 3
        assert result.metadata["velocity"] == "spike"

    def test_normal_velocity_does_not_fire(self, ctx, clock, make_event):
        assert VelocitySpikeDetector().detect(make_event("e"), _recent(make_event, clock, 3), ctx) is None

    def test_old_events_not_counted(self, ctx, clock, make_event):
        event = make_event("e", velocity="elevated")
        result = VelocitySpikeDetector().detect(event, _recent(make_event, clock, 3, minutes_ago=90), ctx)
        assert result.score == 0.0


class TestGeographicConvergence:
    def test_fires_with_enough_nearby_events(self, ctx, clock, make_event):
        event = make_event("e", lat=33.5, lon=36.3)
        recent = _recent(make_event, clock, 2, lat=33.6, lon=36.2)

        result = GeographicConvergenceDetector().detect(event, recent, ctx)
        assert result.current == 3
        assert result.score == pytest.approx(0.6)

    def test_too_few_events(self, ctx, clock, make_event):
        event = make_event("e", lat=33.5, lon=36.3)
        recent = _recent(make_event, clock, 1, lat=33.6, lon=36.2)
        assert GeographicConvergenceDetector().detect(event, recent, ctx) is None

    def test_requires_location(self, ctx, clock, make_event):
        recent = _recent(make_event, clock, 5, lat=33.6, lon=36.2)
        assert GeographicConvergenceDetector().detect(make_event("e"), recent, ctx) is None


class TestThreatEscalation:
    def test_escalation_over_similar_events(self, ctx, clock, make_event):
        event = make_event("e", threat_level="critical")
        recent = _recent(make_event, clock, 2, threat_level="low")

        result = ThreatEscalationDetector().detect(event, recent, ctx)
        assert result.score == pytest.approx(0.75)
        assert result.metadata["escalation_ratio"] == 2.5

    def test_unassessed_history_counts_as_info(self, ctx, clock, make_event):
        event = make_event("e", threat_level="critical")
        result = ThreatEscalationDetector().detect(event, _recent(make_event, clock, 2), ctx)
        assert result.score == 1.0

    def test_insufficient_history(self, ctx, clock, make_event):
        event = make_event("e", threat_level="critical")
        assert ThreatEscalationDetector().detect(event, _recent(make_event, clock, 1, threat_level="low"), ctx) is None

    def test_no_threat(self, ctx, clock, make_event):
        assert ThreatEscalationDetector().detect(make_event("e"), _recent(make_event, clock, 3), ctx) is None


class TestSourceConcentration:
    def test_many_sources_does_not_fire(self, ctx, make_event):
        event = make_event("e", sources=["Reuters"], source_count=10)
        detector = SourceConcentrationDetector()

        assert detector.concentration(event) == pytest.approx(0.1)
        assert detector.detect(event, [], ctx) is None

    def test_single_source_fires(self, ctx, make_event):
        result = SourceConcentrationDetector().detect(make_event("e", source_count=1), [], ctx)
        assert result.score == pytest.approx(0.5)

    def test_no_top_sources(self, ctx, make_event):
        assert SourceConcentrationDetector().detect(make_event("e", sources=[], source_count=1), [], ctx) is None


class TestTemporalAnomaly:
    def test_recent_update_fires(self, ctx, clock, make_event):
        event = make_event("e", last_updated=clock.now() - timedelta(minutes=5))
        result = TemporalAnomalyDetector().detect(event, [], ctx)
        assert result.score == 1.0

    def test_update_at_now_counts_as_fresh(self, ctx, clock, make_event):
        event = make_event("e", last_updated=clock.now())
        result = TemporalAnomalyDetector().detect(event, [], ctx)
        assert result.score == 1.0
        assert result.current == pytest.approx(0.001)

    def test_stale_update(self, ctx, clock, make_event):
        event = make_event("e", last_updated=clock.now() - timedelta(minutes=20))
        assert TemporalAnomalyDetector().detect(event, [], ctx) is None


class TestSentimentShift:
    def test_confidence_shift(self, ctx, clock, make_event):
        event = make_event("e", threat_level="medium", confidence=0.9)
        recent = _recent(make_event, clock, 2, threat_level="medium", confidence=0.2)

        result = SentimentShiftDetector().detect(event, recent, ctx)
        assert result.score == pytest.approx(0.7)
        assert result.metadata["samples_used"] == 2

    def test_missing_confidence_defaults(self, ctx, clock, make_event):
        event = make_event("e", threat_level="medium", confidence=0.6)
        recent = _recent(make_event, clock, 2, threat_level="medium")
        assert SentimentShiftDetector().detect(event, recent, ctx) is None

    def test_requires_assessed_history(self, ctx, clock, make_event):
        event = make_event("e", threat_level="medium", confidence=0.9)
        assert SentimentShiftDetector().detect(event, _recent(make_event, clock, 3), ctx) is None


class TestClusterExplosion:
    def test_burst_in_last_hour(self, ctx, clock, make_event):
        result = ClusterExplosionDetector().detect(make_event("e"), _recent(make_event, clock, 5), ctx)
        assert result.score == 1.0
        assert result.metadata["events_last_hour"] == 5

    def test_ratio_of_two_does_not_fire(self, ctx, clock, make_event):
        assert ClusterExplosionDetector().detect(make_event("e"), _recent(make_event, clock, 2), ctx) is None


class TestDetectorBase:
    """Test the abstract detector base."""

    def test_base_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            Detector()

    def test_subclass_must_implement_detect(self):
        class Incomplete(Detector):
            anomaly_type = AnomalyType.VELOCITY_SPIKE

        with pytest.raises(TypeError):
            Incomplete()
