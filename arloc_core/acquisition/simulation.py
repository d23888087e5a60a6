"""
Simulated positioning source for editor/dev runs without live sensors.
"""

import logging
import time
from typing import Callable, Dict, Optional

from arloc_core.localization.projector import to_geodetic
from arloc_core.proto.geo_fix import GeoFix, LocalOffset
from .capabilities import PositioningCapability, PositioningStatus

logger = logging.getLogger(__name__)

# Editor default location (San Francisco)
DEFAULT_SIM_LAT = 37.7749
DEFAULT_SIM_LON = -122.4194


class SimulationSource(PositioningCapability):
    """
    Fixed-position stand-in for the geolocation service.

    The configured fix serves as the session origin and as the perpetual
    current sample. move_to() shifts the current sample in the local frame
    of the origin; the origin itself never moves.
    """

    def __init__(self, fix: GeoFix, clock: Callable[[], float] = time.time):
        self.origin_fix = fix
        self._current = fix
        self._clock = clock
        self._status = PositioningStatus.STOPPED

    @classmethod
    def from_config(cls, config: Dict, clock: Callable[[], float] = time.time) -> 'SimulationSource':
        """
        Build a source from a SIMULATION_CONFIG style dictionary.

        Args:
            config: Dict with "lat", "lon" and optional "alt", "accuracy"
        """
        fix = GeoFix(
            latitude=config.get("lat", DEFAULT_SIM_LAT),
            longitude=config.get("lon", DEFAULT_SIM_LON),
            altitude=config.get("alt"),
            accuracy=config.get("accuracy", 0.0),
            timestamp=clock(),
        )
        return cls(fix, clock=clock)

    def move_to(self, offset: LocalOffset) -> GeoFix:
        """Place the simulated device at offset from the origin."""
        self._current = to_geodetic(self.origin_fix, offset, timestamp=self._clock())
        logger.debug(f"Simulated device moved to ({offset.x:.2f}, {offset.y:.2f}, {offset.z:.2f}) m")
        return self._current

    def is_enabled_by_user(self) -> bool:
        return True

    def start(self, desired_accuracy_m: float = 1.0, update_distance_m: float = 1.0):
        self._status = PositioningStatus.RUNNING

    def status(self) -> PositioningStatus:
        return self._status

    def last_fix(self) -> Optional[GeoFix]:
        return self._current

    def stop(self):
        self._status = PositioningStatus.STOPPED
