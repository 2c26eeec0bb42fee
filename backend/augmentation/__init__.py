"""
Intelligence augmentation exports.
"""

from .config import AugmentationConfig
from .coordinator import AugmentationCoordinator, create_coordinator
from .satellite import SatelliteContextProvider
from .schema import (
    Augmentation,
    AugmentationStats,
    DeduplicationInfo,
    EnrichedEvent,
    EscalationSummary,
    TriggeredAlert,
)

__all__ = [
    "AugmentationCoordinator",
    "AugmentationConfig",
    "create_coordinator",
    "SatelliteContextProvider",
    "Augmentation",
    "AugmentationStats",
    "DeduplicationInfo",
    "EnrichedEvent",
    "EscalationSummary",
    "TriggeredAlert",
]
