"""
Baseline registry for anomaly detection.

Baselines are created lazily the first time a metric is referenced, seeded
with a default mean and a standard deviation proportional to it. Two
strategies are supported:

- static: the seeded mean/std stay fixed; only sample counts advance.
- welford: observations feed Welford's online mean/variance, and the
  exposed mean/std switch to the running values once warm-up completes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from math import sqrt
from typing import Any, Dict, Optional

from pydantic import ValidationError

from intel.core.config import BaselineConfig

from .schema import AnomalyBaseline

logger = logging.getLogger(__name__)

STRATEGIES = ("static", "welford")


@dataclass
class BaselineRegistry:
    """
    Holds one AnomalyBaseline per metric name.

    Warm-up: under the welford strategy, seeded values are exposed until
    min_samples observations have been folded in.
    """

    config: BaselineConfig
    _baselines: Dict[str, AnomalyBaseline] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.config.strategy not in STRATEGIES:
            raise ValueError(f"Unknown baseline strategy: {self.config.strategy}")

    def get(self, metric: str) -> Optional[AnomalyBaseline]:
        return self._baselines.get(metric)

    def get_or_create(self, metric: str, default_mean: float, now: datetime) -> AnomalyBaseline:
        baseline = self._baselines.get(metric)
        if baseline is None:
            baseline = AnomalyBaseline(
                metric=metric,
                mean=default_mean,
                std_dev=default_mean * self.config.seed_std_ratio,
                min=0.0,
                max=default_mean * 3,
                samples=0,
                last_updated=now,
                window_size_hours=self.config.window_size_hours,
            )
            self._baselines[metric] = baseline
        return baseline

    def count_sample(self, metric: str, default_mean: float, now: datetime) -> AnomalyBaseline:
        """Record that one more event was processed against this baseline."""
        baseline = self.get_or_create(metric, default_mean, now)
        baseline.samples += 1
        baseline.last_updated = now
        return baseline

    def observe(self, metric: str, value: float, default_mean: float, now: datetime) -> AnomalyBaseline:
        """
        Fold an observed value into the baseline.

        A no-op under the static strategy.
        """

        baseline = self.get_or_create(metric, default_mean, now)
        if self.config.strategy != "welford":
            return baseline

        value = float(value)
        if baseline.observations == 0:
            baseline.min = value
            baseline.max = value
        else:
            baseline.min = min(baseline.min, value)
            baseline.max = max(baseline.max, value)

        baseline.observations += 1
        delta = value - baseline.running_mean
        baseline.running_mean += delta / baseline.observations
        baseline.m2 += delta * (value - baseline.running_mean)

        if baseline.observations >= self.config.min_samples:
            baseline.mean = baseline.running_mean
            variance = baseline.m2 / (baseline.observations - 1) if baseline.observations > 1 else 0.0
            baseline.std_dev = sqrt(max(variance, 0.0))

        baseline.last_updated = now
        return baseline

    def should_flush(self, metric: str) -> bool:
        baseline = self._baselines.get(metric)
        if baseline is None or baseline.samples < self.config.min_samples:
            return False
        return baseline.samples % self.config.flush_every == 0

    def to_dict(self) -> Dict[str, Any]:
        return {name: b.model_dump(mode="json") for name, b in self._baselines.items()}

    def load(self, data: Dict[str, Any]) -> int:
        """
        Replace baselines from a persisted mapping, skipping malformed entries.
        """

        loaded = 0
        for name, raw in data.items():
            try:
                self._baselines[name] = AnomalyBaseline.model_validate(raw)
            except ValidationError as exc:
                logger.warning("Skipping malformed baseline %r: %s", name, exc)
                continue
            loaded += 1
        return loaded

    def __len__(self) -> int:
        return len(self._baselines)
