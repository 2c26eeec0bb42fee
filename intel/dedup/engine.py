"""
Cross-cluster deduplication service.

Consumes clustered events, groups near-duplicates with a single
left-to-right pass, merges each group and keeps cumulative statistics in
durable storage.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable, List, Optional, Sequence

from pydantic import ValidationError

from intel.core.clock import Clock, SystemClock
from intel.core.config import DeduplicationConfig, StorageConfig, config
from intel.core.exceptions import StorageError
from intel.core.storage import KeyValueStore, MemoryStore
from intel.data.schema import ClusteredEvent
from intel.data.similarity import location_similarity, source_similarity, title_similarity

from .merge import merge_group
from .schema import DeduplicationResult, DeduplicationScore, DeduplicationStats, DuplicateGroup, DuplicateMatch

logger = logging.getLogger(__name__)


class DeduplicationService:
    """
    Deterministic deduplication of clustered events.

    Grouping rules:
    - Events are visited in input order; the first unprocessed event of a
      group is its primary.
    - Later unprocessed events join the group when their weighted similarity
      to the primary reaches the threshold.
    - Events first seen more than the time window apart never match.

    Output preserves the order in which primaries were first encountered and
    represents every input event exactly once.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Optional[Clock] = None,
        dedup_config: Optional[DeduplicationConfig] = None,
        storage_config: Optional[StorageConfig] = None,
    ) -> None:
        self.store = store if store is not None else MemoryStore()
        self.clock = clock or SystemClock()
        self.config = dedup_config or config.deduplication
        self.stats_key = (storage_config or config.storage).dedup_stats_key
        self._stats = DeduplicationStats(last_run=self.clock.now())

    @property
    def time_window(self) -> timedelta:
        return timedelta(hours=self.config.time_window_hours)

    def initialize(self) -> None:
        """Load cumulative statistics from storage, keeping defaults on failure."""
        try:
            stored = self.store.get(self.stats_key)
        except StorageError as exc:
            logger.warning("Failed to load deduplication stats: %s", exc)
            return
        if stored is None or not stored.data:
            return
        try:
            self._stats = DeduplicationStats.model_validate(stored.data)
        except ValidationError as exc:
            logger.warning("Ignoring malformed deduplication stats: %s", exc)

    def score_pair(self, event1: ClusteredEvent, event2: ClusteredEvent) -> DeduplicationScore:
        """
        Weighted similarity of two events.

        Pairs first seen further apart than the time window score 0 on every
        component without computing the others.
        """

        gap = abs((event1.first_seen - event2.first_seen).total_seconds())
        window = self.time_window.total_seconds()
        if gap > window:
            return DeduplicationScore()

        weights = self.config.weights
        title_sim = title_similarity(event1.primary_title, event2.primary_title)
        source_sim = source_similarity(event1.top_sources, event2.top_sources)
        location_sim = location_similarity(
            event1, event2, max_distance_km=self.config.max_location_distance_km
        )
        time_sim = 1.0 - min(gap / window, 1.0)

        overall = (
            weights.title * title_sim
            + weights.source * source_sim
            + weights.location * location_sim
            + weights.time * time_sim
        )

        return DeduplicationScore(
            title_similarity=title_sim,
            source_similarity=source_sim,
            location_similarity=location_sim,
            time_similarity=time_sim,
            overall_score=min(max(overall, 0.0), 1.0),
        )

    def find_duplicate_groups(self, events: Sequence[ClusteredEvent]) -> List[DuplicateGroup]:
        """
        Group events without merging them or touching statistics.

        Processed state is tracked by position, so repeated ids in the input
        are still each represented exactly once.
        """

        groups: List[DuplicateGroup] = []
        processed = set()
        now = self.clock.now()

        for i, primary in enumerate(events):
            if i in processed:
                continue
            processed.add(i)

            group = DuplicateGroup(id=f"group-{primary.id}", primary_event=primary, merged_at=now)
            for j in range(i + 1, len(events)):
                if j in processed:
                    continue
                score = self.score_pair(primary, events[j])
                if score.overall_score >= self.config.similarity_threshold:
                    group.duplicates.append(DuplicateMatch(event=events[j], score=score))
                    group.is_merged = True
                    processed.add(j)

            groups.append(group)

        return groups

    def run(self, events: Iterable[ClusteredEvent]) -> DeduplicationResult:
        """
        Deduplicate a batch and return merged events with their groups.
        """

        batch = list(events)
        if len(batch) < 2:
            self._stats.total_events_processed += len(batch)
            self._save_stats()
            groups = [
                DuplicateGroup(id=f"group-{e.id}", primary_event=e, merged_at=self.clock.now())
                for e in batch
            ]
            return DeduplicationResult(events=batch, groups=groups)

        groups = self.find_duplicate_groups(batch)
        merged = [merge_group(g, max_sources=self.config.max_merged_sources) for g in groups]

        self._stats.total_events_processed += len(batch)
        self._stats.duplicates_found += len(batch) - len(merged)
        self._stats.events_after_dedup = len(merged)
        self._stats.merged_groups += sum(1 for g in groups if g.is_merged)
        self._stats.last_run = self.clock.now()
        self._save_stats()

        if len(merged) < len(batch):
            logger.info("Deduplicated %d events into %d", len(batch), len(merged))

        return DeduplicationResult(events=merged, groups=groups)

    def deduplicate(self, events: Iterable[ClusteredEvent]) -> List[ClusteredEvent]:
        """Deduplicate a batch, returning only the merged events."""
        return self.run(events).events

    def get_stats(self) -> DeduplicationStats:
        return self._stats.model_copy()

    def reset_stats(self) -> None:
        self._stats = DeduplicationStats(last_run=self.clock.now())
        self._save_stats()

    def _save_stats(self) -> None:
        try:
            self.store.set(self.stats_key, self._stats.model_dump(mode="json"))
        except StorageError as exc:
            logger.warning("Failed to save deduplication stats: %s", exc)
