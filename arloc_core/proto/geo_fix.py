"""
Geodetic fix and local offset records.

GeoFix is the single position sample handed over by the positioning
capability. LocalOffset is the Cartesian position of a fix relative to the
session origin, in a Y-up scene frame:
    x: east (m)
    y: up (m)
    z: north (m)
"""

import math
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from arloc_core.errors import InvalidCoordinate


LAT_LIMIT_DEG = 90.0
LON_LIMIT_DEG = 180.0


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class GeoFix:
    """
    Immutable geodetic position sample.

    Attributes:
        latitude: Latitude in degrees, [-90, 90]
        longitude: Longitude in degrees, [-180, 180]
        altitude: Altitude in meters, None if unknown
        accuracy: Horizontal accuracy radius in meters (>= 0)
        timestamp: Capture time (seconds, host clock)

    Raises:
        InvalidCoordinate: On construction if any field fails validation.
            Invalid samples never exist as GeoFix instances.
    """

    latitude: float
    longitude: float
    altitude: Optional[float] = None
    accuracy: float = 0.0
    timestamp: float = 0.0

    def __post_init__(self):
        """Validate geodetic ranges."""
        for name in ('latitude', 'longitude', 'accuracy', 'timestamp'):
            value = getattr(self, name)
            if not _is_number(value) or not math.isfinite(value):
                raise InvalidCoordinate(
                    f"{name} must be a finite number: {value!r}",
                    details={'field': name, 'value': repr(value)},
                )

        if self.altitude is not None:
            if not _is_number(self.altitude) or not math.isfinite(self.altitude):
                raise InvalidCoordinate(
                    f"altitude must be a finite number or None: {self.altitude!r}",
                    details={'field': 'altitude', 'value': repr(self.altitude)},
                )

        if not -LAT_LIMIT_DEG <= self.latitude <= LAT_LIMIT_DEG:
            raise InvalidCoordinate(
                f"Latitude out of range [-90, 90]: {self.latitude}",
                details={'field': 'latitude', 'value': self.latitude},
            )

        if not -LON_LIMIT_DEG <= self.longitude <= LON_LIMIT_DEG:
            raise InvalidCoordinate(
                f"Longitude out of range [-180, 180]: {self.longitude}",
                details={'field': 'longitude', 'value': self.longitude},
            )

        if self.accuracy < 0:
            raise InvalidCoordinate(
                f"Accuracy cannot be negative: {self.accuracy}",
                details={'field': 'accuracy', 'value': self.accuracy},
            )

    @property
    def has_altitude(self) -> bool:
        return self.altitude is not None

    @property
    def lat_lon(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'altitude': self.altitude,
            'accuracy': self.accuracy,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'GeoFix':
        """
        Build a fix from a dictionary.

        Accepts both long ('latitude') and short ('lat', 'lon', 'alt') keys.
        Missing latitude/longitude is rejected rather than defaulted.

        Args:
            data: Fix dictionary

        Returns:
            GeoFix instance

        Raises:
            InvalidCoordinate: If latitude/longitude are missing or invalid
        """
        lat = data.get('latitude', data.get('lat'))
        lon = data.get('longitude', data.get('lon'))
        if lat is None or lon is None:
            raise InvalidCoordinate(
                "Fix dictionary is missing latitude/longitude",
                details={'keys': sorted(data.keys())},
            )

        return cls(
            latitude=lat,
            longitude=lon,
            altitude=data.get('altitude', data.get('alt')),
            accuracy=data.get('accuracy', 0.0),
            timestamp=data.get('timestamp', time.time()),
        )


@dataclass(frozen=True)
class LocalOffset:
    """Cartesian offset from the origin in meters (x east, y up, z north)."""

    x: float
    y: float
    z: float

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def horizontal_norm(self) -> float:
        """Ground-plane distance from the origin (ignores height)."""
        return math.hypot(self.x, self.z)

    def __sub__(self, other: 'LocalOffset') -> 'LocalOffset':
        return LocalOffset(self.x - other.x, self.y - other.y, self.z - other.z)

    def to_dict(self) -> dict:
        return {'x': self.x, 'y': self.y, 'z': self.z}


ZERO_OFFSET = LocalOffset(0.0, 0.0, 0.0)
