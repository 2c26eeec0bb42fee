"""
Unit tests for the augmentation coordinator.
"""

import pytest
from datetime import timedelta

from backend.augmentation.config import AugmentationConfig
from backend.augmentation.coordinator import AugmentationCoordinator
from backend.augmentation.satellite import SatelliteContextProvider
from intel.alerts.engine import AlertRuleEngine
from intel.alerts.schema import TextCondition
from intel.anomaly.detectors import Detector
from intel.anomaly.engine import AnomalyDetectionEngine
from intel.anomaly.schema import AnomalyType
from intel.core.config import AlertConfig, AnomalyConfig, DeduplicationConfig, StorageConfig
from intel.dedup.engine import DeduplicationService


class RecordingDetector(Detector):
    """Never fires; remembers the recent-events context it was given."""

    anomaly_type = AnomalyType.CLUSTER_EXPLOSION

    def __init__(self):
        self.seen = {}

    def detect(self, event, recent_events, ctx):
        self.seen[event.id] = sorted(e.id for e in recent_events)
        return None


class BrokenAnomalyEngine(AnomalyDetectionEngine):
    def analyze(self, event, recent_events=()):
        raise RuntimeError("detector pool exhausted")


class BrokenDeduplicator(DeduplicationService):
    def run(self, events):
        raise RuntimeError("dedup crashed")


class StaticSatellite(SatelliteContextProvider):
    def __init__(self, failing_ids=()):
        self.failing_ids = set(failing_ids)
        self.calls = []

    def get_context(self, event, radius_km):
        self.calls.append((event.id, radius_km))
        if event.id in self.failing_ids:
            raise ConnectionError("satellite API unavailable")
        return {"fires_detected": 2, "radius_km": radius_km}


def _coordinator(
    store,
    clock,
    satellite=None,
    detectors=None,
    anomaly_cls=AnomalyDetectionEngine,
    dedup_cls=DeduplicationService,
    **config_overrides,
):
    storage = StorageConfig(backend="memory")
    return AugmentationCoordinator(
        deduplicator=dedup_cls(store, clock, DeduplicationConfig(), storage),
        alerts=AlertRuleEngine(store, clock, AlertConfig(), storage),
        anomalies=anomaly_cls(store, clock, AnomalyConfig(), storage, detectors=detectors),
        satellite=satellite,
        clock=clock,
        augmentation_config=AugmentationConfig(**config_overrides),
    )


def _batch(make_event, clock):
    t0 = clock.now() - timedelta(minutes=30)
    return [
        make_event("a", title="Missile strike on power plant", first_seen=t0),
        make_event("a-dup", title="Missile strike on power plant", first_seen=t0),
        make_event("b", title="Parliament passes budget", sources=["AP"], first_seen=t0),
    ]


def test_empty_batch(store, clock):
    coordinator = _coordinator(store, clock)
    assert coordinator.augment([]) == []
    assert coordinator.initialized is True


def test_output_follows_deduplicated_batch(store, clock, make_event):
    coordinator = _coordinator(store, clock)
    enriched = coordinator.augment(_batch(make_event, clock))

    assert [e.event.id for e in enriched] == ["a", "b"]
    assert enriched[0].augmentation.deduplication_info.is_duplicate is True
    assert enriched[0].augmentation.deduplication_info.merged_from == 1
    assert enriched[1].augmentation.deduplication_info.is_duplicate is False
    assert enriched[1].augmentation.deduplication_info.merged_from == 0


def test_alerts_triggered_and_recorded(store, clock, make_event):
    coordinator = _coordinator(store, clock)
    coordinator.initialize()
    rule = coordinator.alerts.create(
        name="Missiles",
        conditions=[TextCondition(type="keyword", value="missile")],
        highlight_color="#ff0000",
    )

    enriched = coordinator.augment(_batch(make_event, clock))

    alerts = enriched[0].augmentation.triggered_alerts
    assert [(a.rule_id, a.rule_name, a.highlight_color) for a in alerts] == [(rule.id, "Missiles", "#ff0000")]
    assert enriched[1].augmentation.triggered_alerts == []
    assert coordinator.alerts.get(rule.id).trigger_count == 1


def test_recent_context_excludes_self_and_old_events(store, clock, make_event):
    recorder = RecordingDetector()
    coordinator = _coordinator(store, clock, detectors=[recorder])
    now = clock.now()
    events = [
        make_event("a", title="Flood warning issued", first_seen=now - timedelta(minutes=10)),
        make_event("b", title="Stock market rallies", sources=["AP"], first_seen=now - timedelta(minutes=50)),
        make_event("c", title="Volcano erupts overnight", sources=["BBC"], first_seen=now - timedelta(hours=3)),
    ]

    coordinator.augment(events)

    assert recorder.seen == {"a": ["b"], "b": ["a"], "c": ["a", "b"]}


def test_anomalies_and_escalation_attached(store, clock, make_event):
    coordinator = _coordinator(store, clock)
    event = make_event("a", source_count=10, last_updated=clock.now())

    augmentation = coordinator.augment([event])[0].augmentation

    assert augmentation.anomalies.event_id == "a"
    assert augmentation.anomalies.fired_types == [AnomalyType.TEMPORAL_ANOMALY]
    assert augmentation.escalation_prediction.probability == 0.0
    assert augmentation.escalation_prediction.indicators == []
    assert augmentation.satellite_context is None


def test_anomaly_failure_degrades_to_skipped(store, clock, make_event):
    coordinator = _coordinator(store, clock, anomaly_cls=BrokenAnomalyEngine)
    enriched = coordinator.augment(_batch(make_event, clock))

    anomalies = enriched[0].augmentation.anomalies
    assert anomalies.interpretation == "Anomaly detection skipped"
    assert anomalies.overall_score == 0.0
    assert anomalies.timestamp == enriched[0].event.first_seen
    assert enriched[0].augmentation.escalation_prediction is None
    assert enriched[0].augmentation.deduplication_info.is_duplicate is True


def test_pipeline_failure_falls_back_per_input_event(store, clock, make_event):
    coordinator = _coordinator(store, clock, dedup_cls=BrokenDeduplicator)
    batch = _batch(make_event, clock)

    enriched = coordinator.augment(batch)

    assert [e.event.id for e in enriched] == ["a", "a-dup", "b"]
    for item in enriched:
        assert item.augmentation.triggered_alerts == []
        assert item.augmentation.anomalies.interpretation == "Augmentation failed"
        assert item.augmentation.anomalies.overall_score == 0.0
        assert item.augmentation.deduplication_info.is_duplicate is False
        assert item.augmentation.deduplication_info.merged_from == 0

    stats = coordinator.get_augmentation_stats()
    assert stats.fallback_batches == 1
    assert stats.batches_processed == 0


def test_satellite_context_per_event(store, clock, make_event):
    satellite = StaticSatellite(failing_ids={"b"})
    coordinator = _coordinator(store, clock, satellite=satellite, satellite_radius_km=25.0)

    enriched = coordinator.augment(_batch(make_event, clock))

    assert enriched[0].augmentation.satellite_context == {"fires_detected": 2, "radius_km": 25.0}
    assert enriched[1].augmentation.satellite_context is None
    assert sorted(satellite.calls) == [("a", 25.0), ("b", 25.0)]


def test_satellite_disabled(store, clock, make_event):
    satellite = StaticSatellite()
    coordinator = _coordinator(store, clock, satellite=satellite, satellite_enabled=False)

    enriched = coordinator.augment(_batch(make_event, clock))

    assert all(e.augmentation.satellite_context is None for e in enriched)
    assert satellite.calls == []


def test_stats_and_reset(store, clock, make_event):
    coordinator = _coordinator(store, clock)
    coordinator.augment(_batch(make_event, clock))

    stats = coordinator.get_augmentation_stats()
    assert stats.initialized is True
    assert stats.batches_processed == 1
    assert stats.events_enriched == 2
    assert stats.deduplication.total_events_processed == 3
    assert stats.deduplication.duplicates_found == 1

    coordinator.reset_caches()

    stats = coordinator.get_augmentation_stats()
    assert stats.deduplication.total_events_processed == 0
    assert stats.batches_processed == 0
    assert coordinator.anomalies.history_size == 0
    assert coordinator.anomalies.get_stored_anomalies("a") is None


def test_initialize_is_idempotent(store, clock):
    coordinator = _coordinator(store, clock)
    coordinator.initialize()
    rule = coordinator.alerts.create(name="kept", conditions=[])

    coordinator.initialize()
    assert coordinator.alerts.get(rule.id) is not None
