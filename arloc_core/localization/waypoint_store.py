"""
Waypoint store.

Keeps labeled fixes ("current", "destination", "stored", ...) and their
offsets in the local frame. The origin belongs to the acquisition state
machine; the store only reads it through an origin provider.

Offsets are cached per waypoint together with the origin they were computed
against. Every read compares that origin with the current one and recomputes
when it changed, so an offset against a replaced or cleared origin is never
returned.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from arloc_core.errors import InvalidCoordinate, MissingWaypointError, NoOriginError
from arloc_core.metrics import get_metrics
from arloc_core.proto.geo_fix import GeoFix, LocalOffset
from arloc_core.proto.waypoint import Waypoint, WaypointLabel
from .projector import distance, to_local

logger = logging.getLogger(__name__)

OriginProvider = Callable[[], Optional[GeoFix]]


@dataclass
class _Entry:
    """Stored waypoint plus the origin its offset was computed against."""

    fix: GeoFix
    set_at: float
    offset: Optional[LocalOffset]
    offset_origin: Optional[GeoFix]


class WaypointStore:
    """
    Labeled waypoint mapping with lazy offset recomputation.

    Usage:
        store = WaypointStore(origin_provider=state_machine.origin)
        state_machine.add_consumer(store.update_current)

        store.store_current_as(WaypointLabel.DESTINATION)
        d = store.distance_between("current", "destination")
    """

    def __init__(
        self,
        origin_provider: OriginProvider,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize waypoint store.

        Args:
            origin_provider: Callable returning the current origin (or None)
            clock: Time source for set_at stamps
        """
        self._origin_provider = origin_provider
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry] = {}
        self._distance_cache: Dict[Tuple[str, str], float] = {}
        self.metrics = get_metrics()

    def set(self, label: str, fix: GeoFix) -> Waypoint:
        """
        Store or overwrite the waypoint for label.

        Setting the same fix again is a no-op and returns the stored waypoint
        unchanged (set_at included).

        Args:
            label: Waypoint label
            fix: Source fix

        Returns:
            Stored Waypoint

        Raises:
            InvalidCoordinate: If fix is not a GeoFix
            NoOriginError: If the origin is not established
        """
        if not isinstance(fix, GeoFix):
            raise InvalidCoordinate(
                f"Waypoint '{label}' requires a GeoFix, got {type(fix).__name__}",
                details={'label': label},
            )

        origin = self._require_origin(label)
        offset = to_local(origin, fix)

        with self._lock:
            existing = self._entries.get(label)
            if existing is not None and existing.fix == fix:
                self._refresh(existing, origin)
                return self._to_waypoint(label, existing)

            entry = _Entry(
                fix=fix,
                set_at=self._clock(),
                offset=offset,
                offset_origin=origin,
            )
            self._entries[label] = entry
            self._invalidate_distances(label)

        self.metrics.increment('waypoints_set')
        logger.debug(f"Waypoint '{label}' set: lat={fix.latitude:.6f}, lon={fix.longitude:.6f}, "
                     f"offset=({offset.x:.2f}, {offset.y:.2f}, {offset.z:.2f}) m")
        return self._to_waypoint(label, entry)

    def get(self, label: str) -> Optional[Waypoint]:
        """
        Get the waypoint for label.

        Returns:
            Waypoint (offset recomputed against the current origin, None if
            the origin is cleared), or None if label is not stored
        """
        origin = self._origin_provider()
        with self._lock:
            entry = self._entries.get(label)
            if entry is None:
                return None
            self._refresh(entry, origin)
            return self._to_waypoint(label, entry)

    def require(self, label: str) -> Waypoint:
        """Like get(), but raises MissingWaypointError when absent."""
        waypoint = self.get(label)
        if waypoint is None:
            raise MissingWaypointError(
                f"No waypoint stored for label '{label}'",
                details={'label': label},
            )
        return waypoint

    def distance_between(self, label_a: str, label_b: str) -> float:
        """
        Great-circle distance between two stored waypoints.

        Results are cached per label pair until either label is set again.

        Returns:
            Distance in meters

        Raises:
            MissingWaypointError: If either label is absent
        """
        with self._lock:
            fix_a = self._fix_or_raise(label_a)
            fix_b = self._fix_or_raise(label_b)

            key = self._pair_key(label_a, label_b)
            cached = self._distance_cache.get(key)
            if cached is not None:
                return cached

            result = distance(fix_a, fix_b)
            self._distance_cache[key] = result
            return result

    def offset_between(self, label_a: str, label_b: str) -> LocalOffset:
        """
        Vector from waypoint a to waypoint b in the local frame.

        Raises:
            MissingWaypointError: If either label is absent
            NoOriginError: If the origin is not established
        """
        a = self.require(label_a)
        b = self.require(label_b)
        if not (a.has_offset and b.has_offset):
            raise NoOriginError(
                "Origin is not established; local offsets are unavailable",
                details={'labels': [label_a, label_b]},
            )
        return b.offset - a.offset

    def update_current(self, fix: GeoFix) -> Waypoint:
        """Fix consumer hook: track the latest accepted fix as 'current'."""
        return self.set(WaypointLabel.CURRENT, fix)

    def store_current_as(self, label: str = WaypointLabel.DESTINATION) -> Waypoint:
        """
        Copy the current waypoint under another label.

        Raises:
            MissingWaypointError: If no current fix has been recorded
        """
        current = self.require(WaypointLabel.CURRENT)
        waypoint = self.set(label, current.fix)
        logger.info(f"Stored current position as '{label}': "
                    f"lat={current.fix.latitude:.6f}, lon={current.fix.longitude:.6f}")
        return waypoint

    def remove(self, label: str) -> bool:
        """Remove a waypoint. Returns False if it was not stored."""
        with self._lock:
            if self._entries.pop(label, None) is None:
                return False
            self._invalidate_distances(label)
            return True

    def clear(self):
        """Remove all waypoints."""
        with self._lock:
            self._entries.clear()
            self._distance_cache.clear()

    def labels(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, label: str) -> bool:
        with self._lock:
            return label in self._entries

    def _require_origin(self, label: str) -> GeoFix:
        origin = self._origin_provider()
        if origin is None:
            raise NoOriginError(
                f"Cannot set waypoint '{label}' before the origin is established",
                details={'label': label},
            )
        return origin

    def _refresh(self, entry: _Entry, origin: Optional[GeoFix]):
        """Recompute entry's offset if the origin changed (caller holds lock)."""
        if entry.offset_origin == origin:
            return
        entry.offset_origin = origin
        entry.offset = to_local(origin, entry.fix) if origin is not None else None

    def _fix_or_raise(self, label: str) -> GeoFix:
        entry = self._entries.get(label)
        if entry is None:
            raise MissingWaypointError(
                f"No waypoint stored for label '{label}'",
                details={'label': label},
            )
        return entry.fix

    def _invalidate_distances(self, label: str):
        for key in [k for k in self._distance_cache if label in k]:
            del self._distance_cache[key]

    @staticmethod
    def _pair_key(label_a: str, label_b: str) -> Tuple[str, str]:
        return (label_a, label_b) if label_a <= label_b else (label_b, label_a)

    @staticmethod
    def _to_waypoint(label: str, entry: _Entry) -> Waypoint:
        return Waypoint(label=label, fix=entry.fix, offset=entry.offset, set_at=entry.set_at)
