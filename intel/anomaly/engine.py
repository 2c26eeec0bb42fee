"""
Event anomaly detection engine.

Consumes clustered events with their recent-events context, runs every
detector, aggregates fired scores into a risk classification and keeps the
results for escalation forecasting.
"""

from __future__ import annotations

import logging
from collections import OrderedDict, deque
from typing import Deque, List, Optional, Sequence

from intel.core.clock import Clock, SystemClock
from intel.core.config import AnomalyConfig, StorageConfig, config
from intel.core.exceptions import StorageError
from intel.core.storage import KeyValueStore, MemoryStore
from intel.data.schema import ClusteredEvent

from .baselines import BaselineRegistry
from .detectors import (
    CONVERGENCE_BASELINE,
    CONVERGENCE_BASELINE_SEED,
    VELOCITY_BASELINE,
    VELOCITY_BASELINE_SEED,
    DetectionContext,
    Detector,
    GeographicConvergenceDetector,
    VelocitySpikeDetector,
    default_detectors,
)
from .schema import AnomalyBaseline, AnomalyScore, EscalationPrediction, EventAnomalies
from .scoring import ESCALATION_INDICATORS, classify_risk, escalation_probability, interpret, mean_score

logger = logging.getLogger(__name__)


class AnomalyDetectionEngine:
    """
    Deterministic multi-detector anomaly engine.

    Notes:
    - Detectors are independent; one that raises is logged and counted as
      not fired.
    - Baselines are created lazily and flushed to storage periodically.
    - Event history and stored analyses are bounded by history_limit.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Optional[Clock] = None,
        anomaly_config: Optional[AnomalyConfig] = None,
        storage_config: Optional[StorageConfig] = None,
        detectors: Optional[Sequence[Detector]] = None,
    ) -> None:
        self.store = store if store is not None else MemoryStore()
        self.clock = clock or SystemClock()
        self.config = anomaly_config or config.anomaly
        self.baselines_key = (storage_config or config.storage).baselines_key
        self.detectors: List[Detector] = list(detectors) if detectors is not None else default_detectors()
        self.baselines = BaselineRegistry(self.config.baselines)
        self._history: Deque[ClusteredEvent] = deque(maxlen=self.config.history_limit)
        self._results: "OrderedDict[str, EventAnomalies]" = OrderedDict()

    def initialize(self) -> None:
        """Load persisted baselines; on failure keep lazily-seeded defaults."""
        try:
            stored = self.store.get(self.baselines_key)
        except StorageError as exc:
            logger.warning("Failed to load anomaly baselines: %s", exc)
            return
        if stored is None or not isinstance(stored.data, dict):
            return
        loaded = self.baselines.load(stored.data)
        logger.info("Loaded %d anomaly baselines", loaded)

    def analyze(self, event: ClusteredEvent, recent_events: Sequence[ClusteredEvent] = ()) -> EventAnomalies:
        """
        Score an event across every anomaly dimension.

        Args:
            event: Event to analyse.
            recent_events: Other recently seen events (the comparison context).

        Returns:
            EventAnomalies, also stored for predict_escalation.
        """

        now = self.clock.now()
        self._history.append(event)
        ctx = DetectionContext(now=now, config=self.config, baselines=self.baselines)

        anomalies: List[AnomalyScore] = []
        for detector in self.detectors:
            result = self._run_detector(detector, event, recent_events, ctx)
            if result is not None:
                anomalies.append(result)

        mean = mean_score(anomalies)
        risk_level = classify_risk(mean, self.config.risk_breakpoints)

        result = EventAnomalies(
            event_id=event.id,
            timestamp=now,
            anomalies=anomalies,
            overall_score=round(mean, 3),
            is_anomalous=mean >= self.config.anomaly_threshold,
            risk_level=risk_level,
            interpretation=interpret(anomalies, risk_level),
        )

        self._store_result(result)
        self._update_baselines(event, recent_events, ctx)
        return result

    def predict_escalation(self, event: ClusteredEvent) -> EscalationPrediction:
        """
        Forecast escalation from the event's stored analysis.

        Without a stored analysis the probability is 0 and the expected level
        is the event's threat level (or "low").
        """

        stored = self._results.get(event.id)
        if stored is None:
            return EscalationPrediction(
                probability=0.0,
                expected_threat_level=event.threat_level or "low",
                indicators=[],
            )

        indicators = [a.type for a in stored.anomalies if a.type in ESCALATION_INDICATORS]
        probability = escalation_probability(len(indicators), stored.overall_score)
        expected = "escalating" if probability > 0.6 else (event.threat_level or "stable")
        return EscalationPrediction(
            probability=probability,
            expected_threat_level=expected,
            indicators=indicators,
        )

    def get_stored_anomalies(self, event_id: str) -> Optional[EventAnomalies]:
        return self._results.get(event_id)

    def get_baseline(self, metric: str) -> Optional[AnomalyBaseline]:
        return self.baselines.get(metric)

    @property
    def history_size(self) -> int:
        return len(self._history)

    def reset_history(self) -> None:
        """Forget event history and stored analyses; baselines are kept."""
        self._history.clear()
        self._results.clear()

    def save_baselines(self) -> None:
        try:
            self.store.set(self.baselines_key, self.baselines.to_dict())
        except StorageError as exc:
            logger.warning("Failed to save anomaly baselines: %s", exc)

    def _run_detector(
        self,
        detector: Detector,
        event: ClusteredEvent,
        recent_events: Sequence[ClusteredEvent],
        ctx: DetectionContext,
    ) -> Optional[AnomalyScore]:
        try:
            return detector.detect(event, recent_events, ctx)
        except Exception as exc:
            logger.warning(
                "Detector %s failed on event %s: %s", type(detector).__name__, event.id, exc
            )
            return None

    def _store_result(self, result: EventAnomalies) -> None:
        self._results.pop(result.event_id, None)
        self._results[result.event_id] = result
        while len(self._results) > self.config.history_limit:
            self._results.popitem(last=False)

    def _update_baselines(
        self,
        event: ClusteredEvent,
        recent_events: Sequence[ClusteredEvent],
        ctx: DetectionContext,
    ) -> None:
        velocity = self.baselines.count_sample(VELOCITY_BASELINE, VELOCITY_BASELINE_SEED, ctx.now)

        if self.config.baselines.strategy == "welford":
            for detector in self.detectors:
                if isinstance(detector, VelocitySpikeDetector):
                    similar = detector.similar_count(event, recent_events, ctx.now)
                    self.baselines.observe(VELOCITY_BASELINE, similar, VELOCITY_BASELINE_SEED, ctx.now)
                elif isinstance(detector, GeographicConvergenceDetector) and event.has_location:
                    count = detector.converging_count(event, recent_events, self.config.convergence_radius_km)
                    self.baselines.observe(CONVERGENCE_BASELINE, count, CONVERGENCE_BASELINE_SEED, ctx.now)

        if self.baselines.should_flush(VELOCITY_BASELINE):
            logger.debug("Flushing anomaly baselines at %d samples", velocity.samples)
            self.save_baselines()
