"""
Acquisition state machine.

Brings up, in order, runtime permissions, the AR tracking session and the
geolocation service, then captures fixes once per tick while READY.

The machine is poll-driven: every step() is one tick (nominally one second)
and is the only point where host capabilities are polled. Timeouts are
counted in ticks, never preemptively. A driver advances the machine, either
the blocking run_until_settled() loop, the asyncio run() task, or a host
frame loop calling step() directly.

    IDLE -> AWAITING_PERMISSIONS -> AWAITING_TRACKING -> AWAITING_POSITIONING -> READY
                  |                        |                    |                 ^  |
                  v                        v                    v                 |  v
          FAILED(permission)      UNSUPPORTED / FAILED   TIMED_OUT / FAILED   FAILED(service-lost)

Terminal states are never left by the machine itself; restarting is the
caller's decision (reset() then start()). FAILED(service-lost) is the one
recoverable failure: the next tick with the service RUNNING returns to READY.

Simulation mode skips permissions, tracking and the service wait: IDLE goes
straight to READY after settle_ticks, with the simulated fix as origin.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, fields
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from arloc_core.errors import (
    AcquisitionCancelled,
    AcquisitionTimedOut,
    InvalidCoordinate,
    PermissionDenied,
    ServiceDisabled,
    ServiceFailed,
    ServiceLost,
    TrackingFailed,
    TrackingUnsupported,
)
from arloc_core.metrics import get_metrics
from arloc_core.proto.geo_fix import GeoFix
from .capabilities import (
    Permission,
    PermissionCapability,
    PositioningCapability,
    PositioningStatus,
    TrackingCapability,
    TrackingState,
)
from .simulation import SimulationSource

logger = logging.getLogger(__name__)


class AcquisitionState(Enum):
    """Acquisition sequence state."""

    IDLE = "idle"
    AWAITING_PERMISSIONS = "awaiting_permissions"
    AWAITING_TRACKING = "awaiting_tracking"
    AWAITING_POSITIONING = "awaiting_positioning"
    READY = "ready"
    UNSUPPORTED = "unsupported"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class FailureReason:
    """Reason codes carried by AcquisitionState.FAILED."""

    PERMISSION_DENIED = "permission-denied"
    TRACKING_FAILED = "tracking-failed"
    SERVICE_DISABLED = "service-disabled"
    SERVICE_FAILED = "service-failed"
    SERVICE_LOST = "service-lost"


_ALWAYS_TERMINAL = frozenset({
    AcquisitionState.UNSUPPORTED,
    AcquisitionState.TIMED_OUT,
    AcquisitionState.CANCELLED,
})

_FAILURE_ERRORS = {
    FailureReason.PERMISSION_DENIED: PermissionDenied,
    FailureReason.TRACKING_FAILED: TrackingFailed,
    FailureReason.SERVICE_DISABLED: ServiceDisabled,
    FailureReason.SERVICE_FAILED: ServiceFailed,
    FailureReason.SERVICE_LOST: ServiceLost,
}

FixConsumer = Callable[[GeoFix], None]
TransitionListener = Callable[[AcquisitionState, AcquisitionState], None]


@dataclass
class AcquisitionConfig:
    """
    Configuration for the acquisition state machine.

    Attributes:
        requires_permissions: Gate bring-up on runtime permission grants
        permissions: Permission names that must all be granted
        permission_wait_ticks: Polls before missing permissions count as denied
        positioning_wait_ticks: Tick budget for the service to leave INITIALIZING
        desired_accuracy_m: Accuracy requested from the service
        update_distance_m: Update distance requested from the service
        settle_ticks: Ticks before a simulated source reports READY
        stale_fix_ticks: Ticks without a new fix timestamp before the service
            counts as lost (None disables the check)
        tick_interval_s: Wall-clock length of one tick for the run drivers
    """

    requires_permissions: bool = False
    permissions: Tuple[str, ...] = (Permission.CAMERA, Permission.FINE_LOCATION)
    permission_wait_ticks: int = 10
    positioning_wait_ticks: int = 30
    desired_accuracy_m: float = 1.0
    update_distance_m: float = 1.0
    settle_ticks: int = 1
    stale_fix_ticks: Optional[int] = None
    tick_interval_s: float = 1.0

    def __post_init__(self):
        if self.positioning_wait_ticks < 1:
            raise ValueError(f"positioning_wait_ticks must be >= 1: {self.positioning_wait_ticks}")
        if self.permission_wait_ticks < 1:
            raise ValueError(f"permission_wait_ticks must be >= 1: {self.permission_wait_ticks}")
        if self.stale_fix_ticks is not None and self.stale_fix_ticks < 1:
            raise ValueError(f"stale_fix_ticks must be >= 1 or None: {self.stale_fix_ticks}")
        self.permissions = tuple(self.permissions)

    @classmethod
    def from_dict(cls, data: Dict) -> 'AcquisitionConfig':
        """Build from an ACQUISITION_CONFIG style dictionary; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown acquisition config keys: {unknown}")
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class AcquisitionStatus:
    """Point-in-time view of the state machine for UI/diagnostics."""

    state: AcquisitionState
    failure_reason: Optional[str]
    tick: int
    wait_ticks_remaining: Optional[int]
    origin: Optional[GeoFix]
    current_fix: Optional[GeoFix]

    @property
    def has_origin(self) -> bool:
        return self.origin is not None

    def describe(self) -> str:
        """One-line status text."""
        text = self.state.name
        if self.failure_reason:
            text += f" ({self.failure_reason})"
        if self.wait_ticks_remaining is not None and self.state == AcquisitionState.AWAITING_POSITIONING:
            text += f", {self.wait_ticks_remaining} ticks remaining"
        if self.current_fix is not None:
            text += f", fix {self.current_fix.latitude:.6f}, {self.current_fix.longitude:.6f}"
        if self.state == AcquisitionState.READY and not self.has_origin:
            text += ", no origin"
        return text

    def to_dict(self) -> dict:
        return {
            'state': self.state.name,
            'failure_reason': self.failure_reason,
            'tick': self.tick,
            'wait_ticks_remaining': self.wait_ticks_remaining,
            'origin': self.origin.to_dict() if self.origin else None,
            'current_fix': self.current_fix.to_dict() if self.current_fix else None,
        }


class AcquisitionStateMachine:
    """
    Ordered bring-up of tracking and positioning with timeout policy.

    Owns the session origin and the acquisition state. Accepted fixes are
    published to registered consumers (e.g. WaypointStore.update_current)
    after the tick's state update, outside the internal lock.

    Usage:
        machine = AcquisitionStateMachine(positioning, tracking, permissions,
                                          AcquisitionConfig(requires_permissions=True))
        machine.start()
        while not machine.is_settled:
            machine.step()
            time.sleep(1.0)

        if machine.current_state() is AcquisitionState.READY:
            fix = machine.current_fix()
    """

    def __init__(
        self,
        positioning: PositioningCapability,
        tracking: Optional[TrackingCapability] = None,
        permissions: Optional[PermissionCapability] = None,
        config: Optional[AcquisitionConfig] = None,
        simulate: bool = False,
    ):
        """
        Initialize acquisition state machine.

        Args:
            positioning: Geolocation service (live or SimulationSource)
            tracking: AR tracking session (None skips the tracking stage)
            permissions: Permission system (required if config requires permissions)
            config: Machine configuration (uses defaults if None)
            simulate: Bypass permission/tracking/service stages

        Raises:
            ValueError: If permissions are required but no capability is given
        """
        self.config = config or AcquisitionConfig()
        if self.config.requires_permissions and permissions is None and not simulate:
            raise ValueError("requires_permissions is set but no PermissionCapability was given")

        self.positioning = positioning
        self.tracking = tracking
        self.permissions = permissions
        self.simulate = simulate
        self.metrics = get_metrics()

        self._lock = threading.RLock()
        self._consumers: List[FixConsumer] = []
        self._listeners: List[TransitionListener] = []
        self._pending_transitions: List[Tuple[AcquisitionState, AcquisitionState]] = []
        self._pending_fixes: List[GeoFix] = []

        self._state = AcquisitionState.IDLE
        self._failure_reason: Optional[str] = None
        self._origin: Optional[GeoFix] = None
        self._current_fix: Optional[GeoFix] = None
        self._reset_attempt()

        logger.info(f"AcquisitionStateMachine initialized (simulate={simulate}, "
                    f"tracking={'yes' if tracking else 'no'}, "
                    f"permissions={'required' if self.config.requires_permissions else 'not required'})")

    @classmethod
    def simulated(
        cls,
        source: SimulationSource,
        config: Optional[AcquisitionConfig] = None,
    ) -> 'AcquisitionStateMachine':
        """Machine driven by a SimulationSource (editor/dev mode)."""
        return cls(positioning=source, config=config, simulate=True)

    def _reset_attempt(self):
        """Clear per-attempt bookkeeping (caller holds lock or is __init__)."""
        self._started = False
        self._tick = 0
        self._permission_ticks_remaining = self.config.permission_wait_ticks
        self._positioning_ticks_remaining = self.config.positioning_wait_ticks
        self._settle_ticks_remaining = self.config.settle_ticks
        self._positioning_started = False
        self._stale_ticks = 0
        self._lost_to_stale = False

    # ------------------------------------------------------------------
    # Query surface
    # ------------------------------------------------------------------

    def current_state(self) -> AcquisitionState:
        with self._lock:
            return self._state

    @property
    def failure_reason(self) -> Optional[str]:
        """Reason code while FAILED, otherwise None."""
        with self._lock:
            return self._failure_reason

    def current_fix(self) -> Optional[GeoFix]:
        """Latest accepted fix (None until the first READY tick)."""
        with self._lock:
            return self._current_fix

    def origin(self) -> Optional[GeoFix]:
        with self._lock:
            return self._origin

    @property
    def is_terminal(self) -> bool:
        """True if step() will no longer change the state."""
        with self._lock:
            return self._is_terminal_locked()

    @property
    def is_settled(self) -> bool:
        """True once READY or terminal."""
        with self._lock:
            return self._state == AcquisitionState.READY or self._is_terminal_locked()

    def _is_terminal_locked(self) -> bool:
        if self._state in _ALWAYS_TERMINAL:
            return True
        return (self._state == AcquisitionState.FAILED
                and self._failure_reason != FailureReason.SERVICE_LOST)

    def status(self) -> AcquisitionStatus:
        with self._lock:
            remaining = None
            if self._state == AcquisitionState.AWAITING_POSITIONING:
                remaining = self._positioning_ticks_remaining
            elif self._state == AcquisitionState.AWAITING_PERMISSIONS:
                remaining = self._permission_ticks_remaining
            return AcquisitionStatus(
                state=self._state,
                failure_reason=self._failure_reason,
                tick=self._tick,
                wait_ticks_remaining=remaining,
                origin=self._origin,
                current_fix=self._current_fix,
            )

    def raise_for_status(self):
        """
        Raise the error matching a failed or terminal state.

        Does nothing while the sequence is progressing or READY.

        Raises:
            TrackingUnsupported, AcquisitionTimedOut, AcquisitionCancelled,
            or the FAILED reason's error (PermissionDenied, ServiceFailed, ...)
        """
        status = self.status()
        details = {'state': status.state.name, 'tick': status.tick}

        if status.state == AcquisitionState.UNSUPPORTED:
            raise TrackingUnsupported("AR tracking is not supported on this device", details=details)
        if status.state == AcquisitionState.TIMED_OUT:
            raise AcquisitionTimedOut(
                f"Positioning did not start within {self.config.positioning_wait_ticks} ticks",
                details=details,
            )
        if status.state == AcquisitionState.CANCELLED:
            raise AcquisitionCancelled("Acquisition was cancelled", details=details)
        if status.state == AcquisitionState.FAILED:
            error_cls = _FAILURE_ERRORS[status.failure_reason]
            details['reason'] = status.failure_reason
            raise error_cls(f"Acquisition failed: {status.failure_reason}", details=details)

    # ------------------------------------------------------------------
    # Origin
    # ------------------------------------------------------------------

    def set_origin(self, fix: GeoFix) -> bool:
        """
        Establish the origin if none is set (first wins).

        Returns:
            True if fix became the origin, False if an origin already exists
        """
        if not isinstance(fix, GeoFix):
            raise InvalidCoordinate(f"Origin must be a GeoFix, got {type(fix).__name__}")
        with self._lock:
            return self._set_origin_locked(fix)

    def _set_origin_locked(self, fix: GeoFix) -> bool:
        if self._origin is not None:
            logger.debug("Origin already set, ignoring new origin")
            return False
        self._origin = fix
        self.metrics.increment('origins_set')
        logger.info(f"Origin set: lat={fix.latitude:.6f}, lon={fix.longitude:.6f}, alt={fix.altitude}")
        return True

    def clear_origin(self):
        """Forget the origin; the next accepted fix becomes the new origin."""
        with self._lock:
            if self._origin is not None:
                logger.info("Origin cleared")
            self._origin = None

    # ------------------------------------------------------------------
    # Consumers and listeners
    # ------------------------------------------------------------------

    def add_consumer(self, consumer: FixConsumer):
        """Register a callback receiving every accepted fix."""
        self._consumers.append(consumer)

    def remove_consumer(self, consumer: FixConsumer):
        if consumer in self._consumers:
            self._consumers.remove(consumer)

    def add_listener(self, listener: TransitionListener):
        """Register a callback receiving (from_state, to_state) on transitions."""
        self._listeners.append(listener)

    def remove_listener(self, listener: TransitionListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Begin the acquisition sequence.

        Returns:
            False if the machine was already started (call reset() first)
        """
        with self._lock:
            if self._started or self._state != AcquisitionState.IDLE:
                logger.warning(f"start() ignored in state {self._state.name}")
                return False
            self._started = True

            if self.simulate:
                logger.info(f"Simulated acquisition: settling for {self.config.settle_ticks} ticks")
            elif self.config.requires_permissions:
                self._request_missing_permissions()
                self._transition(AcquisitionState.AWAITING_PERMISSIONS)
            elif self.tracking is not None:
                self._transition(AcquisitionState.AWAITING_TRACKING)
            else:
                self._enter_positioning()

        self._flush()
        return True

    def step(self) -> AcquisitionState:
        """
        Advance one tick.

        Returns:
            State after the tick
        """
        with self._lock:
            if self._started and not self._is_terminal_locked():
                self._tick += 1
                handler = self._handlers[self._state]
                handler(self)
            state = self._state

        self._flush()
        return state

    def cancel(self) -> bool:
        """
        Cancel the sequence from any non-terminal state.

        Returns:
            True if the machine moved to CANCELLED
        """
        with self._lock:
            if self._is_terminal_locked():
                return False
            self._stop_positioning()
            self._transition(AcquisitionState.CANCELLED)
        self._flush()
        return True

    def reset(self):
        """
        Return to IDLE for a fresh attempt. The origin is kept.

        Raises:
            RuntimeError: If the current attempt is still in progress
        """
        with self._lock:
            if self._started and not self._is_terminal_locked():
                raise RuntimeError(f"Cannot reset while {self._state.name}; cancel() first")
            self._stop_positioning()
            previous = self._state
            self._state = AcquisitionState.IDLE
            self._failure_reason = None
            self._current_fix = None
            self._reset_attempt()
            logger.info(f"Acquisition reset from {previous.name}")

    def shutdown(self):
        """Cancel any attempt in progress and stop the positioning service."""
        self.cancel()
        with self._lock:
            self._stop_positioning()

    # ------------------------------------------------------------------
    # Drivers
    # ------------------------------------------------------------------

    def run_until_settled(
        self,
        max_ticks: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
        tick_interval_s: Optional[float] = None,
    ) -> AcquisitionState:
        """
        Blocking driver: tick until READY or terminal.

        Args:
            max_ticks: Cancel the attempt after this many ticks (None = no limit)
            sleep: Sleep function between ticks
            tick_interval_s: Seconds per tick (default: config.tick_interval_s)

        Returns:
            Settled state
        """
        interval = self.config.tick_interval_s if tick_interval_s is None else tick_interval_s
        if not self._started:
            self.start()

        ticks = 0
        while not self.is_settled:
            if max_ticks is not None and ticks >= max_ticks:
                logger.warning(f"Acquisition did not settle within {max_ticks} ticks, cancelling")
                self.cancel()
                break
            self.step()
            ticks += 1
            if not self.is_settled:
                sleep(interval)

        return self.current_state()

    async def run(
        self,
        tick_interval_s: Optional[float] = None,
        until_settled: bool = False,
    ) -> AcquisitionState:
        """
        Asyncio driver: tick every tick_interval_s until terminal.

        Cancelling the task moves the machine to CANCELLED.

        Args:
            tick_interval_s: Seconds per tick (default: config.tick_interval_s)
            until_settled: Return as soon as READY is reached

        Returns:
            State when the loop ended
        """
        interval = self.config.tick_interval_s if tick_interval_s is None else tick_interval_s
        if not self._started:
            self.start()

        try:
            while not self.is_terminal:
                self.step()
                if self.is_terminal or (until_settled and self.is_settled):
                    break
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("Acquisition task cancelled")
            self.cancel()
            raise

        return self.current_state()

    async def wait_until_settled(self, tick_interval_s: Optional[float] = None) -> AcquisitionState:
        return await self.run(tick_interval_s, until_settled=True)

    # ------------------------------------------------------------------
    # Tick handlers (caller holds lock)
    # ------------------------------------------------------------------

    def _step_idle(self):
        # Only reached in simulation mode; live starts leave IDLE in start()
        self._settle_ticks_remaining -= 1
        if self._settle_ticks_remaining > 0:
            return

        self.positioning.start(self.config.desired_accuracy_m, self.config.update_distance_m)
        self._positioning_started = True
        origin_fix = getattr(self.positioning, 'origin_fix', None)
        if origin_fix is not None:
            self._set_origin_locked(origin_fix)
        self._transition(AcquisitionState.READY)
        self._capture_fix()

    def _step_permissions(self):
        self.metrics.increment('permission_polls')
        missing = [name for name in self.config.permissions if not self.permissions.has(name)]

        if not missing:
            logger.info("All permissions granted")
            if self.tracking is not None:
                self._transition(AcquisitionState.AWAITING_TRACKING)
            else:
                self._enter_positioning()
            return

        self._permission_ticks_remaining -= 1
        logger.debug(f"Waiting for permissions {missing}... "
                     f"{self._permission_ticks_remaining} ticks remaining")
        if self._permission_ticks_remaining <= 0:
            logger.error(f"Permissions not granted: {missing}")
            self._fail(FailureReason.PERMISSION_DENIED)

    def _step_tracking(self):
        self.metrics.increment('tracking_polls')
        state = self.tracking.state()

        if state == TrackingState.READY:
            logger.info("AR tracking ready")
            self._enter_positioning()
        elif state == TrackingState.UNSUPPORTED:
            logger.error("AR tracking is not supported on this device")
            self._transition(AcquisitionState.UNSUPPORTED)
        elif state == TrackingState.ERROR:
            logger.error("AR tracking failed to initialize")
            self._fail(FailureReason.TRACKING_FAILED)
        else:
            logger.debug(f"Waiting for AR tracking. State: {state.name}")

    def _enter_positioning(self):
        if not self.positioning.is_enabled_by_user():
            logger.error("Location services are disabled in device settings")
            self._fail(FailureReason.SERVICE_DISABLED)
            return

        self.positioning.start(self.config.desired_accuracy_m, self.config.update_distance_m)
        self._positioning_started = True
        self._positioning_ticks_remaining = self.config.positioning_wait_ticks
        self._transition(AcquisitionState.AWAITING_POSITIONING)

    def _step_positioning(self):
        self.metrics.increment('positioning_polls')
        status = self.positioning.status()

        if status == PositioningStatus.RUNNING:
            waited = self.config.positioning_wait_ticks - self._positioning_ticks_remaining
            self.metrics.record_histogram('positioning_wait_ticks', waited)
            logger.info(f"Location services running after {waited} ticks")
            self._transition(AcquisitionState.READY)
            self._capture_fix()
        elif status == PositioningStatus.FAILED:
            logger.error("Unable to determine device location")
            self._fail(FailureReason.SERVICE_FAILED)
        else:
            self._positioning_ticks_remaining -= 1
            logger.debug(f"Initializing location services... "
                         f"{self._positioning_ticks_remaining} ticks remaining")
            if self._positioning_ticks_remaining <= 0:
                logger.error("Location service initialization timed out")
                self._transition(AcquisitionState.TIMED_OUT)

    def _step_ready(self):
        if self.simulate:
            self._capture_fix()
            return

        self.metrics.increment('positioning_polls')
        status = self.positioning.status()
        if status == PositioningStatus.FAILED:
            logger.error("Location service failed after READY")
            self._fail(FailureReason.SERVICE_FAILED)
            return
        if status != PositioningStatus.RUNNING:
            logger.warning(f"Location service stopped reporting (status={status.name})")
            self._lost_to_stale = False
            self._fail(FailureReason.SERVICE_LOST)
            return

        self._capture_fix()

        if self.config.stale_fix_ticks is not None and self._stale_ticks >= self.config.stale_fix_ticks:
            logger.warning(f"No new fix for {self._stale_ticks} ticks")
            self.metrics.increment_drop('stale_fix')
            self._lost_to_stale = True
            self._fail(FailureReason.SERVICE_LOST)

    def _step_failed(self):
        # Only SERVICE_LOST is non-terminal; recover in place
        self.metrics.increment('positioning_polls')
        status = self.positioning.status()
        if status == PositioningStatus.FAILED:
            logger.error("Location service failed while lost")
            self._fail(FailureReason.SERVICE_FAILED)
            return
        if status != PositioningStatus.RUNNING:
            return
        if self._lost_to_stale and not self._fix_advanced():
            logger.debug("Service running but fix is still frozen")
            return

        logger.info("Location service recovered")
        self._stale_ticks = 0
        self._lost_to_stale = False
        self._transition(AcquisitionState.READY)
        self._capture_fix()

    _handlers = {
        AcquisitionState.IDLE: _step_idle,
        AcquisitionState.AWAITING_PERMISSIONS: _step_permissions,
        AcquisitionState.AWAITING_TRACKING: _step_tracking,
        AcquisitionState.AWAITING_POSITIONING: _step_positioning,
        AcquisitionState.READY: _step_ready,
        AcquisitionState.FAILED: _step_failed,
    }

    # ------------------------------------------------------------------
    # Internals (caller holds lock)
    # ------------------------------------------------------------------

    def _capture_fix(self):
        """Read, validate and publish the service's latest fix."""
        try:
            fix = self.positioning.last_fix()
        except InvalidCoordinate as e:
            logger.warning(f"Rejected fix: {e.message}")
            self.metrics.increment_drop('invalid_coordinate')
            return

        if fix is None:
            logger.debug("Service running but no fix available yet")
            self.metrics.increment_drop('no_fix')
            return

        if not isinstance(fix, GeoFix):
            logger.warning(f"Rejected fix of type {type(fix).__name__}")
            self.metrics.increment_drop('invalid_coordinate')
            return

        previous = self._current_fix
        if previous is not None and fix.timestamp <= previous.timestamp:
            self._stale_ticks += 1
        else:
            self._stale_ticks = 0

        if fix == previous:
            # A cleared origin is still re-established from an unchanged fix
            self._set_origin_locked(fix)
            logger.debug("Fix unchanged since last tick, not republished")
            return

        self._current_fix = fix
        self.metrics.increment('fixes_accepted')
        self.metrics.record_histogram('fix_accuracy_m', fix.accuracy)
        self._set_origin_locked(fix)
        self._pending_fixes.append(fix)

        logger.debug(f"Fix - Lat: {fix.latitude:.6f}, Lon: {fix.longitude:.6f}, "
                     f"Alt: {fix.altitude}, Acc: {fix.accuracy:.1f}m")

    def _fix_advanced(self) -> bool:
        """True if the service holds a fix newer than the current one."""
        try:
            fix = self.positioning.last_fix()
        except InvalidCoordinate:
            return False
        if not isinstance(fix, GeoFix):
            return False
        return self._current_fix is None or fix.timestamp > self._current_fix.timestamp

    def _request_missing_permissions(self):
        for name in self.config.permissions:
            if not self.permissions.has(name):
                logger.info(f"Requesting permission: {name}")
                self.permissions.request(name)

    def _stop_positioning(self):
        if self._positioning_started:
            self.positioning.stop()
            self._positioning_started = False
            logger.info("Location service stopped")

    def _fail(self, reason: str):
        self._failure_reason = reason
        self._transition(AcquisitionState.FAILED, keep_reason=True)

    def _transition(self, new_state: AcquisitionState, keep_reason: bool = False):
        old_state = self._state
        if not keep_reason:
            self._failure_reason = None
        if old_state == new_state:
            return
        self._state = new_state
        self.metrics.increment('state_transitions')
        self._pending_transitions.append((old_state, new_state))

        suffix = f" ({self._failure_reason})" if self._failure_reason else ""
        log = logger.error if new_state in (AcquisitionState.FAILED, AcquisitionState.UNSUPPORTED) else logger.info
        log(f"Acquisition state: {old_state.name} -> {new_state.name}{suffix}")

    def _flush(self):
        """Deliver queued transitions and fixes outside the lock."""
        with self._lock:
            transitions, self._pending_transitions = self._pending_transitions, []
            fixes, self._pending_fixes = self._pending_fixes, []

        for old_state, new_state in transitions:
            for listener in list(self._listeners):
                try:
                    listener(old_state, new_state)
                except Exception:
                    logger.exception(f"Transition listener {listener!r} failed")

        for fix in fixes:
            for consumer in list(self._consumers):
                try:
                    consumer(fix)
                except Exception:
                    logger.exception(f"Fix consumer {consumer!r} failed")
                    self.metrics.increment_drop('consumer_error')
                    continue
                self.metrics.increment('fixes_published')
