"""
Satellite context collaborator interface.

The coordinator treats satellite context as opaque: a provider returns a
JSON-compatible mapping for an event, or raises. Concrete providers (NASA
FIRMS, NOAA, Copernicus, Sentinel Hub) live outside this package.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict

from intel.data.schema import ClusteredEvent


class SatelliteContextProvider(ABC):
    """
    Abstract source of satellite/environmental context for an event.
    """

    @abstractmethod
    def get_context(self, event: ClusteredEvent, radius_km: float) -> Dict[str, Any]:
        """
        Return satellite context around the event.

        Args:
            event: Event to look up
            radius_km: Search radius around the event's coordinates

        Returns:
            JSON-compatible mapping attached verbatim to the enriched event
        """
