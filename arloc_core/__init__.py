"""
AR Location Core Package.

Brings up an AR tracking session and the device geolocation service, then
projects geodetic fixes into a local Cartesian frame for scene placement.

Package structure:
- proto: Fix, offset and waypoint records
- localization: Coordinate projection, waypoint store
- acquisition: Capability interfaces, acquisition state machine, simulation
- metrics: Diagnostics, counters, histograms
"""

__version__ = "0.1.0"
__author__ = "AR Geolocation Team"

from .errors import (
    ArlocError,
    InvalidCoordinate,
    NoOriginError,
    MissingWaypointError,
)
from .proto import GeoFix, LocalOffset, Waypoint
from .localization import WaypointStore, distance, to_local, to_geodetic
from .acquisition import (
    AcquisitionConfig,
    AcquisitionState,
    AcquisitionStateMachine,
    SimulationSource,
)

__all__ = [
    'ArlocError',
    'InvalidCoordinate',
    'NoOriginError',
    'MissingWaypointError',
    'GeoFix',
    'LocalOffset',
    'Waypoint',
    'WaypointStore',
    'distance',
    'to_local',
    'to_geodetic',
    'AcquisitionConfig',
    'AcquisitionState',
    'AcquisitionStateMachine',
    'SimulationSource',
]
