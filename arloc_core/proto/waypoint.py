"""
Waypoint record.

A labeled GeoFix together with its offset in the local frame. Waypoints are
produced by WaypointStore; the offset is always the one computed against the
origin that is current when the waypoint is read.
"""

from dataclasses import dataclass
from typing import Optional

from .geo_fix import GeoFix, LocalOffset


class WaypointLabel:
    """Standard waypoint labels."""

    CURRENT = "current"
    DESTINATION = "destination"
    STORED = "stored"


@dataclass(frozen=True)
class Waypoint:
    """
    Labeled position in the session.

    Attributes:
        label: Waypoint label (e.g. "current", "destination")
        fix: Source geodetic fix
        offset: Offset from the origin, None if the origin was cleared
        set_at: Time the waypoint was (re)set (seconds, store clock)
    """

    label: str
    fix: GeoFix
    offset: Optional[LocalOffset]
    set_at: float

    @property
    def has_offset(self) -> bool:
        return self.offset is not None

    def to_dict(self) -> dict:
        return {
            'label': self.label,
            'fix': self.fix.to_dict(),
            'offset': self.offset.to_dict() if self.offset else None,
            'set_at': self.set_at,
        }
