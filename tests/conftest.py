"""
Pytest configuration and shared fixtures.

Provides a fixed clock, an in-memory store, isolated config sections and a
factory for clustered events.
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from intel.core.clock import FixedClock
from intel.core.config import AlertConfig, AnomalyConfig, DeduplicationConfig, StorageConfig
from intel.core.storage import MemoryStore
from intel.data.schema import (
    ClusteredEvent,
    NewsItem,
    SourceRef,
    ThreatAssessment,
    VelocityInfo,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def build_event(
    event_id: str,
    title: str = "Explosion reported near central station",
    sources: Optional[List[str]] = None,
    first_seen: Optional[datetime] = None,
    last_updated: Optional[datetime] = None,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    threat_level: Optional[str] = None,
    confidence: Optional[float] = None,
    category: Optional[str] = None,
    velocity: Optional[str] = None,
    source_count: Optional[int] = None,
    items: Optional[List[Dict[str, Any]]] = None,
) -> ClusteredEvent:
    """
    Build a ClusteredEvent with sensible defaults.

    first_seen defaults to two hours before NOW and last_updated to
    first_seen, so the temporal detector stays quiet unless a test opts in.
    """
    names = sources if sources is not None else ["Reuters"]
    first_seen = first_seen or NOW - timedelta(hours=2)
    top_sources = [SourceRef(name=name, tier=i + 1) for i, name in enumerate(names)]
    threat = None
    if threat_level is not None:
        threat = ThreatAssessment(level=threat_level, confidence=confidence, category=category)

    return ClusteredEvent(
        id=event_id,
        primary_title=title,
        primary_source=names[0] if names else "",
        top_sources=top_sources,
        source_count=source_count if source_count is not None else max(len(names), 1),
        lat=lat,
        lon=lon,
        first_seen=first_seen,
        last_updated=last_updated or first_seen,
        threat=threat,
        velocity=VelocityInfo(level=velocity) if velocity else None,
        all_items=[NewsItem(**item) for item in (items or [])],
    )


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen at NOW."""
    return FixedClock(NOW)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def storage_config() -> StorageConfig:
    return StorageConfig(backend="memory")


@pytest.fixture
def dedup_config() -> DeduplicationConfig:
    return DeduplicationConfig()


@pytest.fixture
def alert_config() -> AlertConfig:
    return AlertConfig()


@pytest.fixture
def anomaly_config() -> AnomalyConfig:
    return AnomalyConfig()


@pytest.fixture
def make_event() -> Callable[..., ClusteredEvent]:
    """
    Factory fixture for clustered events.

    Returns:
        Callable accepting the keyword arguments of build_event
    """
    return build_event


def pytest_configure(config):
    """
    Configure pytest with custom markers.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (deferred CI)"
    )
