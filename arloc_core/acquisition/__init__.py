"""
Acquisition Module: Host capabilities and the bring-up state machine.

Key classes:
- TrackingCapability / PositioningCapability / PermissionCapability: host interfaces
- AcquisitionStateMachine: permission -> tracking -> positioning bring-up
- SimulationSource: fixed-position positioning for editor/dev runs
"""

from .capabilities import (
    Permission,
    PermissionCapability,
    PositioningCapability,
    PositioningStatus,
    TrackingCapability,
    TrackingState,
)
from .simulation import SimulationSource
from .state_machine import (
    AcquisitionConfig,
    AcquisitionState,
    AcquisitionStateMachine,
    AcquisitionStatus,
    FailureReason,
)

__all__ = [
    'Permission',
    'PermissionCapability',
    'PositioningCapability',
    'PositioningStatus',
    'TrackingCapability',
    'TrackingState',
    'SimulationSource',
    'AcquisitionConfig',
    'AcquisitionState',
    'AcquisitionStateMachine',
    'AcquisitionStatus',
    'FailureReason',
]
