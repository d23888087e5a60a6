"""
Pytest configuration and shared fixtures for the AR location core tests.

Provides reference fixes plus scripted stand-ins for the host capabilities
(tracking session, geolocation service, permission system) so the
acquisition state machine can be driven tick by tick.
"""

import sys
from pathlib import Path
from typing import Iterable, List, Optional, Set

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from arloc_core.metrics import reset_metrics
from arloc_core.proto import GeoFix
from arloc_core.acquisition import (
    PermissionCapability,
    PositioningCapability,
    PositioningStatus,
    TrackingCapability,
    TrackingState,
)


# =============================================================================
# Scripted Capabilities
# =============================================================================


class _Script:
    """Pops scripted values; the last value repeats forever."""

    def __init__(self, values: Iterable):
        self._values = list(values)
        if not self._values:
            raise ValueError("Script needs at least one value")

    def next(self):
        if len(self._values) > 1:
            return self._values.pop(0)
        return self._values[0]


class ScriptedTracking(TrackingCapability):
    """Tracking session replaying a fixed sequence of states."""

    def __init__(self, states: Iterable[TrackingState]):
        self._script = _Script(states)
        self.polls = 0

    def state(self) -> TrackingState:
        self.polls += 1
        return self._script.next()


class ScriptedPositioning(PositioningCapability):
    """Geolocation service replaying a fixed sequence of statuses."""

    def __init__(
        self,
        statuses: Iterable[PositioningStatus],
        fix: Optional[GeoFix] = None,
        enabled: bool = True,
    ):
        self._script = _Script(statuses)
        self.fix = fix
        self.enabled = enabled
        self.raw_sample = None
        self.start_calls: List[tuple] = []
        self.stop_calls = 0
        self.status_polls = 0

    def rescript(self, statuses: Iterable[PositioningStatus]):
        """Replace the remaining status script."""
        self._script = _Script(statuses)

    def is_enabled_by_user(self) -> bool:
        return self.enabled

    def start(self, desired_accuracy_m: float, update_distance_m: float):
        self.start_calls.append((desired_accuracy_m, update_distance_m))

    def status(self) -> PositioningStatus:
        self.status_polls += 1
        return self._script.next()

    def last_fix(self) -> Optional[GeoFix]:
        if self.raw_sample is not None:
            # Host builds the fix from a raw (lat, lon) sample
            lat, lon = self.raw_sample
            return GeoFix(latitude=lat, longitude=lon)
        return self.fix

    def stop(self):
        self.stop_calls += 1


class FakePermissions(PermissionCapability):
    """Permission system; optionally grants on request."""

    def __init__(self, granted: Optional[Set[str]] = None, grant_on_request: bool = False):
        self.granted = set(granted or ())
        self.grant_on_request = grant_on_request
        self.requests: List[str] = []

    def has(self, name: str) -> bool:
        return name in self.granted

    def request(self, name: str):
        self.requests.append(name)
        if self.grant_on_request:
            self.granted.add(name)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_metrics():
    """Every test starts with a clean global metrics collector."""
    reset_metrics()
    yield


@pytest.fixture
def origin_fix() -> GeoFix:
    """
    Reference origin (San Francisco, editor default location).

    Returns:
        GeoFix with altitude and accuracy set.
    """
    return GeoFix(
        latitude=37.7749,
        longitude=-122.4194,
        altitude=16.0,
        accuracy=5.0,
        timestamp=1000.0,
    )


@pytest.fixture
def nearby_fix(origin_fix: GeoFix) -> GeoFix:
    """Fix roughly 50 m north-east of the origin, 2 m higher."""
    return GeoFix(
        latitude=origin_fix.latitude + 0.0003,
        longitude=origin_fix.longitude + 0.0004,
        altitude=18.0,
        accuracy=4.0,
        timestamp=1001.0,
    )


@pytest.fixture
def no_sleep():
    """Sleep replacement for the blocking driver."""
    return lambda seconds: None
