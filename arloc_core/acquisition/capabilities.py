"""
Host capability interfaces.

The core never drives sensors itself. The host runtime (AR session, OS
location service, permission system) is wrapped in these three interfaces
and polled by AcquisitionStateMachine once per tick.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from arloc_core.proto.geo_fix import GeoFix


class TrackingState(Enum):
    """AR tracking session state as reported by the host."""

    NOT_STARTED = "not_started"
    INITIALIZING = "initializing"
    READY = "ready"
    UNSUPPORTED = "unsupported"
    ERROR = "error"


class PositioningStatus(Enum):
    """Geolocation service status as reported by the host."""

    STOPPED = "stopped"
    INITIALIZING = "initializing"
    RUNNING = "running"
    FAILED = "failed"


class Permission:
    """Standard runtime permission names."""

    CAMERA = "camera"
    FINE_LOCATION = "fine_location"


class TrackingCapability(ABC):
    """AR tracking subsystem readiness."""

    @abstractmethod
    def state(self) -> TrackingState:
        ...


class PositioningCapability(ABC):
    """Device geolocation service."""

    @abstractmethod
    def is_enabled_by_user(self) -> bool:
        """True if location services are switched on in device settings."""

    @abstractmethod
    def start(self, desired_accuracy_m: float, update_distance_m: float):
        """
        Start the service.

        Args:
            desired_accuracy_m: Requested accuracy in meters
            update_distance_m: Minimum movement between updates in meters
        """

    @abstractmethod
    def status(self) -> PositioningStatus:
        ...

    @abstractmethod
    def last_fix(self) -> Optional[GeoFix]:
        """
        Latest fix from the service.

        May raise InvalidCoordinate if the host builds a GeoFix from a
        corrupt sample; may return None if no sample is available yet.
        """

    @abstractmethod
    def stop(self):
        ...


class PermissionCapability(ABC):
    """Runtime permission grants."""

    @abstractmethod
    def has(self, name: str) -> bool:
        ...

    @abstractmethod
    def request(self, name: str):
        """Fire-and-forget request; the result is observed via has()."""
