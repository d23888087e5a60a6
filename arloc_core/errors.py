"""
Domain errors for the AR location core.

Coordinate and waypoint errors are raised synchronously to the caller.
Acquisition errors are normally observed as AcquisitionState values; the
matching exception types are only raised by
AcquisitionStateMachine.raise_for_status().
"""

from typing import Any, Dict, Optional


class ArlocError(Exception):
    """Base class for all core errors."""

    code = "ARLOC_ERROR"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to a dictionary for logging or a host UI."""
        payload: Dict[str, Any] = {
            "error_code": self.code,
            "error": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidCoordinate(ArlocError, ValueError):
    """Latitude/longitude out of range or not a finite number."""

    code = "INVALID_COORDINATE"


class NoOriginError(ArlocError):
    """Local offset requested before the origin was established."""

    code = "NO_ORIGIN"


class MissingWaypointError(ArlocError, LookupError):
    code = "MISSING_WAYPOINT"


class AcquisitionError(ArlocError):
    """Base class for errors surfaced from a finished acquisition attempt."""

    code = "ACQUISITION_ERROR"


class PermissionDenied(AcquisitionError):
    code = "PERMISSION_DENIED"


class TrackingUnsupported(AcquisitionError):
    code = "TRACKING_UNSUPPORTED"


class TrackingFailed(AcquisitionError):
    code = "TRACKING_FAILED"


class ServiceDisabled(AcquisitionError):
    code = "SERVICE_DISABLED"


class AcquisitionTimedOut(AcquisitionError):
    code = "TIMED_OUT"


class ServiceFailed(AcquisitionError):
    code = "SERVICE_FAILED"


class ServiceLost(AcquisitionError):
    """Positioning stopped reporting after READY. Recoverable in place."""

    code = "SERVICE_LOST"


class AcquisitionCancelled(AcquisitionError):
    code = "CANCELLED"
