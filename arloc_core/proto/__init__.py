"""
Proto Module: Record types shared by every layer.

- GeoFix: validated geodetic sample
- LocalOffset: Cartesian offset from the session origin
- Waypoint: labeled fix with its local offset
"""

from .geo_fix import (
    GeoFix,
    LocalOffset,
    ZERO_OFFSET,
)
from .waypoint import (
    Waypoint,
    WaypointLabel,
)

__all__ = [
    'GeoFix',
    'LocalOffset',
    'ZERO_OFFSET',
    'Waypoint',
    'WaypointLabel',
]
