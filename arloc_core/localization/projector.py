"""
Coordinate projection: geodetic fixes <-> local scene frame.

Local frame (origin = session origin fix, Y-up scene convention):
    x = east  = Δlon · cos(lat0) · M_PER_DEG
    y = up    = alt - alt0  (0 if either altitude is unknown)
    z = north = Δlat · M_PER_DEG

The equirectangular approximation is accurate to well under a meter within a
few hundred meters of the origin, which is the placement range of AR content.
Great-circle distances use the haversine formula on a spherical Earth.

All trig is done in radians; degree inputs are converted at function entry.
"""

import math
import logging
from typing import Optional, Sequence, Union

import numpy as np

from arloc_core.errors import InvalidCoordinate
from arloc_core.proto.geo_fix import GeoFix, LocalOffset

logger = logging.getLogger(__name__)


M_PER_DEG_LAT = 111320.0     # Meters per degree of latitude
EARTH_RADIUS_M = 6371000.0   # Mean Earth radius for haversine
COS_EPSILON = 1e-12          # cos(lat0) below this is treated as the pole

ArrayLike = Union[Sequence[float], np.ndarray]


def _wrap_degrees(delta_deg: float) -> float:
    """Wrap a longitude difference into [-180, 180)."""
    return (delta_deg + 180.0) % 360.0 - 180.0


def _cos_lat(lat_deg: float) -> float:
    """cos(latitude) clamped to exactly 0 at the poles."""
    cos_lat = math.cos(math.radians(lat_deg))
    return 0.0 if abs(cos_lat) < COS_EPSILON else cos_lat


def meters_per_degree_lon(lat_deg: float) -> float:
    """
    Length of one degree of longitude at the given latitude.

    Args:
        lat_deg: Latitude in degrees

    Returns:
        Meters per degree of longitude (0 at the poles)
    """
    return M_PER_DEG_LAT * _cos_lat(lat_deg)


def to_local(origin: GeoFix, target: GeoFix) -> LocalOffset:
    """
    Project a fix into the local frame of origin.

    Args:
        origin: Fix at the local (0, 0, 0)
        target: Fix to project

    Returns:
        LocalOffset in meters (x east, y up, z north)
    """
    dlat = target.latitude - origin.latitude
    dlon = _wrap_degrees(target.longitude - origin.longitude)

    x = dlon * meters_per_degree_lon(origin.latitude)
    z = dlat * M_PER_DEG_LAT

    if origin.has_altitude and target.has_altitude:
        y = target.altitude - origin.altitude
    else:
        y = 0.0

    return LocalOffset(x=x, y=y, z=z)


def to_geodetic(
    origin: GeoFix,
    offset: LocalOffset,
    accuracy: Optional[float] = None,
    timestamp: Optional[float] = None,
) -> GeoFix:
    """
    Inverse of to_local: local offset back to a geodetic fix.

    At the poles every x maps to the origin's longitude.

    Args:
        origin: Fix at the local (0, 0, 0)
        offset: Local offset to convert
        accuracy: Accuracy of the resulting fix (default: origin's)
        timestamp: Timestamp of the resulting fix (default: origin's)

    Returns:
        GeoFix at the offset position

    Raises:
        InvalidCoordinate: If the offset walks past a pole
    """
    lat = origin.latitude + offset.z / M_PER_DEG_LAT

    m_per_deg_lon = meters_per_degree_lon(origin.latitude)
    if m_per_deg_lon == 0.0:
        lon = origin.longitude
    else:
        lon = origin.longitude + offset.x / m_per_deg_lon
    lon = _wrap_degrees(lon)

    alt = origin.altitude + offset.y if origin.has_altitude else None

    return GeoFix(
        latitude=lat,
        longitude=lon,
        altitude=alt,
        accuracy=origin.accuracy if accuracy is None else accuracy,
        timestamp=origin.timestamp if timestamp is None else timestamp,
    )


def distance(a: GeoFix, b: GeoFix) -> float:
    """
    Great-circle (haversine) distance between two fixes.

    Altitude is ignored. Symmetric in a and b.

    Args:
        a: First fix
        b: Second fix

    Returns:
        Distance in meters
    """
    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def haversine_m(lat1_deg: float, lon1_deg: float, lat2_deg: float, lon2_deg: float) -> float:
    """Haversine distance in meters between two lat/lon pairs in degrees."""
    lat1 = math.radians(lat1_deg)
    lat2 = math.radians(lat2_deg)
    dlat = lat2 - lat1
    dlon = math.radians(lon2_deg - lon1_deg)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push h a hair outside [0, 1] for antipodal points
    h = min(max(h, 0.0), 1.0)
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def _validated_arrays(lats: ArrayLike, lons: ArrayLike):
    lats = np.asarray(lats, dtype=float)
    lons = np.asarray(lons, dtype=float)

    if lats.shape != lons.shape:
        raise ValueError(f"lats/lons shape mismatch: {lats.shape} vs {lons.shape}")

    if not (np.all(np.isfinite(lats)) and np.all(np.isfinite(lons))):
        raise InvalidCoordinate("Coordinate arrays contain non-finite values")

    if np.any(np.abs(lats) > 90.0) or np.any(np.abs(lons) > 180.0):
        raise InvalidCoordinate("Coordinate arrays contain out-of-range values")

    return lats, lons


def to_local_array(
    origin: GeoFix,
    lats: ArrayLike,
    lons: ArrayLike,
    alts: Optional[ArrayLike] = None,
) -> np.ndarray:
    """
    Vectorized to_local for bulk placement.

    Args:
        origin: Fix at the local (0, 0, 0)
        lats: Latitudes in degrees, shape (N,)
        lons: Longitudes in degrees, shape (N,)
        alts: Altitudes in meters, shape (N,), or None for y = 0

    Returns:
        Array of shape (N, 3) with columns (x, y, z)

    Raises:
        InvalidCoordinate: If any coordinate is out of range
    """
    lats, lons = _validated_arrays(lats, lons)

    dlat = lats - origin.latitude
    dlon = (lons - origin.longitude + 180.0) % 360.0 - 180.0

    x = dlon * meters_per_degree_lon(origin.latitude)
    z = dlat * M_PER_DEG_LAT

    if alts is not None:
        alts = np.asarray(alts, dtype=float)
        if alts.shape != lats.shape:
            raise ValueError(f"alts shape mismatch: {alts.shape} vs {lats.shape}")
        if not np.all(np.isfinite(alts)):
            raise InvalidCoordinate("Altitude array contains non-finite values")

    if alts is not None and origin.has_altitude:
        y = alts - origin.altitude
    else:
        y = np.zeros_like(x)

    return np.column_stack((x, y, z))


def distance_array(origin: GeoFix, lats: ArrayLike, lons: ArrayLike) -> np.ndarray:
    """
    Vectorized haversine distance from origin to N points.

    Returns:
        Array of shape (N,) in meters
    """
    lats, lons = _validated_arrays(lats, lons)

    lat1 = np.radians(origin.latitude)
    lat2 = np.radians(lats)
    dlat = lat2 - lat1
    dlon = np.radians(lons - origin.longitude)

    h = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2
    h = np.clip(h, 0.0, 1.0)
    return 2 * EARTH_RADIUS_M * np.arctan2(np.sqrt(h), np.sqrt(1 - h))
