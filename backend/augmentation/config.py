"""
Configuration for the augmentation coordinator.

All settings are bounded so a slow satellite collaborator or an oversized
batch cannot stall the pipeline indefinitely.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class AugmentationConfig(BaseModel):
    """
    Coordinator configuration.

    Notes:
    - recent_window_minutes: other events first seen within this window form
      an event's recent-events context.
    - satellite_enabled: fetch satellite context when a provider is set.
    - satellite_radius_km: radius passed to the satellite provider.
    - satellite_max_workers: thread pool size for concurrent satellite fetches.
    - satellite_timeout_seconds: per-batch wait for satellite results.
    """

    recent_window_minutes: int = Field(60, ge=1)
    satellite_enabled: bool = True
    satellite_radius_km: float = Field(50.0, gt=0.0)
    satellite_max_workers: int = Field(4, ge=1)
    satellite_timeout_seconds: float = Field(30.0, gt=0.0)
