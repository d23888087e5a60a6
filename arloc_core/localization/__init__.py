"""
Localization Module: Coordinate projection and waypoints.

Key pieces:
- projector: GeoFix <-> local scene frame, haversine distance
- WaypointStore: labeled waypoints with offsets against the session origin
"""

from .projector import (
    EARTH_RADIUS_M,
    M_PER_DEG_LAT,
    distance,
    distance_array,
    haversine_m,
    meters_per_degree_lon,
    to_geodetic,
    to_local,
    to_local_array,
)
from .waypoint_store import WaypointStore

__all__ = [
    'EARTH_RADIUS_M',
    'M_PER_DEG_LAT',
    'distance',
    'distance_array',
    'haversine_m',
    'meters_per_degree_lon',
    'to_geodetic',
    'to_local',
    'to_local_array',
    'WaypointStore',
]
