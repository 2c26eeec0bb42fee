"""
Augmentation coordinator.

Runs deduplication, alert rules, anomaly detection and the optional
satellite collaborator over a batch of clustered events and returns one
enriched event per deduplicated event. A failure in any single layer
degrades that layer only; a failure of the whole pipeline degrades to a
pass-through batch.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from intel.alerts.engine import AlertRuleEngine
from intel.alerts.schema import AlertRule
from intel.anomaly.engine import AnomalyDetectionEngine
from intel.anomaly.schema import EventAnomalies
from intel.core.clock import Clock, SystemClock
from intel.core.config import Config, config
from intel.core.storage import KeyValueStore, create_store
from intel.data.schema import ClusteredEvent
from intel.dedup.engine import DeduplicationService
from intel.dedup.schema import DuplicateGroup

from .config import AugmentationConfig
from .satellite import SatelliteContextProvider
from .schema import (
    Augmentation,
    AugmentationStats,
    DeduplicationInfo,
    EnrichedEvent,
    EscalationSummary,
    TriggeredAlert,
)

logger = logging.getLogger(__name__)

SatelliteFutures = Dict[Future, int]


class AugmentationCoordinator:
    """
    Orchestrates the intelligence layers over a batch.

    Sequence per batch:
    1. Deduplicate.
    2. Start satellite lookups for every deduplicated event (thread pool).
    3. Per event: recent-events context, alert evaluation and trigger
       recording, anomaly analysis, escalation prediction.
    4. Attach whichever satellite contexts arrived.

    Assumptions:
    - A single augment call runs at a time; engines are not locked.
    """

    def __init__(
        self,
        deduplicator: DeduplicationService,
        alerts: AlertRuleEngine,
        anomalies: AnomalyDetectionEngine,
        satellite: Optional[SatelliteContextProvider] = None,
        clock: Optional[Clock] = None,
        augmentation_config: Optional[AugmentationConfig] = None,
    ) -> None:
        self.deduplicator = deduplicator
        self.alerts = alerts
        self.anomalies = anomalies
        self.satellite = satellite
        self.clock = clock or SystemClock()
        self.config = augmentation_config or AugmentationConfig()
        self._initialized = False
        self._batches_processed = 0
        self._events_enriched = 0
        self._fallback_batches = 0

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Load persisted state into every engine (idempotent)."""
        if self._initialized:
            return
        self.alerts.initialize()
        self.deduplicator.initialize()
        self.anomalies.initialize()
        self._initialized = True
        logger.info("Intelligence augmentation initialized")

    def augment(self, events: Iterable[ClusteredEvent]) -> List[EnrichedEvent]:
        """
        Enrich a batch of events.

        Returns one EnrichedEvent per deduplicated event, in order. If the
        pipeline itself fails, returns one minimal record per input event.
        """

        batch = list(events)
        try:
            self.initialize()
            enriched = self._augment(batch)
        except Exception as exc:
            logger.error("Failed to augment %d events: %s", len(batch), exc, exc_info=True)
            self._fallback_batches += 1
            return [self._fallback(event) for event in batch]

        self._batches_processed += 1
        self._events_enriched += len(enriched)
        return enriched

    def get_augmentation_stats(self) -> AugmentationStats:
        return AugmentationStats(
            deduplication=self.deduplicator.get_stats(),
            initialized=self._initialized,
            batches_processed=self._batches_processed,
            events_enriched=self._events_enriched,
            fallback_batches=self._fallback_batches,
        )

    def reset_caches(self) -> None:
        """Reset deduplication statistics and anomaly history."""
        self.deduplicator.reset_stats()
        self.anomalies.reset_history()
        self._batches_processed = 0
        self._events_enriched = 0
        self._fallback_batches = 0

    def _augment(self, batch: List[ClusteredEvent]) -> List[EnrichedEvent]:
        result = self.deduplicator.run(batch)
        deduped = result.events
        now = self.clock.now()

        pool, futures = self._start_satellite(deduped)
        try:
            enriched = [
                self._augment_single(event, group, deduped, now)
                for event, group in zip(deduped, result.groups)
            ]
            if futures:
                contexts = self._collect_satellite(futures, deduped)
                for index, context in contexts.items():
                    enriched[index].augmentation.satellite_context = context
        finally:
            if pool is not None:
                pool.shutdown(wait=False, cancel_futures=True)

        return enriched

    def _augment_single(
        self,
        event: ClusteredEvent,
        group: DuplicateGroup,
        all_events: Sequence[ClusteredEvent],
        now: datetime,
    ) -> EnrichedEvent:
        recent = self._recent_events(event, all_events, now)
        triggered = self._evaluate_alerts(event)
        anomalies, escalation = self._analyze(event, recent)

        augmentation = Augmentation(
            triggered_alerts=[
                TriggeredAlert(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    highlight_color=rule.actions.highlight_color,
                )
                for rule in triggered
            ],
            anomalies=anomalies,
            escalation_prediction=escalation,
            deduplication_info=DeduplicationInfo(
                is_duplicate=group.is_merged,
                merged_from=len(group.duplicates),
            ),
        )
        return EnrichedEvent(event=event, augmentation=augmentation)

    def _recent_events(
        self,
        event: ClusteredEvent,
        all_events: Sequence[ClusteredEvent],
        now: datetime,
    ) -> List[ClusteredEvent]:
        cutoff = now - timedelta(minutes=self.config.recent_window_minutes)
        return [e for e in all_events if e.id != event.id and e.first_seen > cutoff]

    def _evaluate_alerts(self, event: ClusteredEvent) -> List[AlertRule]:
        try:
            triggered = self.alerts.evaluate(event)
        except Exception as exc:
            logger.warning("Alert evaluation failed for event %s: %s", event.id, exc)
            return []
        for rule in triggered:
            self.alerts.record_trigger(rule.id)
        return triggered

    def _analyze(
        self,
        event: ClusteredEvent,
        recent: Sequence[ClusteredEvent],
    ) -> Tuple[EventAnomalies, Optional[EscalationSummary]]:
        try:
            anomalies = self.anomalies.analyze(event, recent)
            prediction = self.anomalies.predict_escalation(event)
        except Exception as exc:
            logger.warning("Anomaly analysis failed for event %s: %s", event.id, exc)
            return _empty_anomalies(event, "Anomaly detection skipped"), None
        return anomalies, EscalationSummary(
            probability=prediction.probability,
            indicators=prediction.indicators,
        )

    def _start_satellite(
        self, events: Sequence[ClusteredEvent]
    ) -> Tuple[Optional[ThreadPoolExecutor], SatelliteFutures]:
        if self.satellite is None or not self.config.satellite_enabled or not events:
            return None, {}
        pool = ThreadPoolExecutor(
            max_workers=self.config.satellite_max_workers,
            thread_name_prefix="satellite",
        )
        futures = {
            pool.submit(self.satellite.get_context, event, self.config.satellite_radius_km): index
            for index, event in enumerate(events)
        }
        return pool, futures

    def _collect_satellite(
        self,
        futures: SatelliteFutures,
        events: Sequence[ClusteredEvent],
    ) -> Dict[int, Dict[str, Any]]:
        done, pending = wait(futures, timeout=self.config.satellite_timeout_seconds)
        contexts: Dict[int, Dict[str, Any]] = {}

        for future in done:
            index = futures[future]
            try:
                contexts[index] = future.result()
            except Exception as exc:
                logger.warning("Failed to get satellite context for event %s: %s", events[index].id, exc)

        for future in pending:
            future.cancel()
            logger.warning("Satellite context timed out for event %s", events[futures[future]].id)

        return contexts

    def _fallback(self, event: ClusteredEvent) -> EnrichedEvent:
        return EnrichedEvent(
            event=event,
            augmentation=Augmentation(
                triggered_alerts=[],
                anomalies=_empty_anomalies(event, "Augmentation failed"),
                deduplication_info=DeduplicationInfo(is_duplicate=False, merged_from=0),
            ),
        )


def _empty_anomalies(event: ClusteredEvent, interpretation: str) -> EventAnomalies:
    return EventAnomalies(
        event_id=event.id,
        timestamp=event.first_seen,
        anomalies=[],
        overall_score=0.0,
        is_anomalous=False,
        interpretation=interpretation,
    )


def create_coordinator(
    settings: Optional[Config] = None,
    store: Optional[KeyValueStore] = None,
    clock: Optional[Clock] = None,
    satellite: Optional[SatelliteContextProvider] = None,
    augmentation_config: Optional[AugmentationConfig] = None,
) -> AugmentationCoordinator:
    """
    Factory wiring every engine to one store and clock.
    """

    settings = settings or config
    store = store if store is not None else create_store(settings.storage)
    clock = clock or SystemClock()

    deduplicator = DeduplicationService(store, clock, settings.deduplication, settings.storage)
    alerts = AlertRuleEngine(store, clock, settings.alerts, settings.storage)
    anomalies = AnomalyDetectionEngine(store, clock, settings.anomaly, settings.storage)

    return AugmentationCoordinator(
        deduplicator=deduplicator,
        alerts=alerts,
        anomalies=anomalies,
        satellite=satellite,
        clock=clock,
        augmentation_config=augmentation_config,
    )
