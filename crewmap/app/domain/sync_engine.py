"""
Adaptive sync engine.

Runs on the producing device and decides whether a fresh position fix is
worth transmitting. The decision is a pure function of the fix, the carried
SyncState and the clock; the engine never performs I/O.

Rules, evaluated in order (first match wins):

1. accuracy worse than max_accuracy_m      -> skip ("poor accuracy")
2. nothing synced yet                      -> sync ("first position")
3. heartbeat interval elapsed              -> sync ("heartbeat")
4. moved at least movement_threshold_m     -> sync ("moved")
5. speed changed by speed_change_kmh       -> sync ("speed changed")
6. heading turned by heading_change_deg    -> sync ("direction changed")
7. moving/stopped state flipped            -> sync ("started moving" / "stopped")
8. otherwise                               -> skip ("no significant change")
"""

import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from crewmap.app.core.clock import as_utc
from crewmap.app.domain.geo import angle_delta_degrees, distance_meters

MPS_TO_KMH = 3.6


class RawPosition(BaseModel):
    """One raw fix from the device's positioning source."""
    latitude: float
    longitude: float
    accuracy: Optional[float] = None  # meters
    speed: Optional[float] = None  # meters per second
    heading: Optional[float] = None  # degrees
    timestamp: datetime

    class Config:
        frozen = True

    @property
    def speed_kmh(self) -> float:
        return (self.speed or 0.0) * MPS_TO_KMH


class SyncConfig(BaseModel):
    """Thresholds for the sync decision."""
    movement_threshold_m: float = 10.0
    speed_change_kmh: float = 5.0
    heading_change_deg: float = 15.0
    heartbeat_seconds: float = 30.0
    stopped_threshold_kmh: float = 2.0
    max_accuracy_m: float = 100.0

    class Config:
        frozen = True


DEFAULT_SYNC_CONFIG = SyncConfig()


class SyncReason(str, enum.Enum):
    POOR_ACCURACY = "poor accuracy"
    FIRST_POSITION = "first position"
    HEARTBEAT = "heartbeat"
    MOVED = "moved"
    SPEED_CHANGED = "speed changed"
    DIRECTION_CHANGED = "direction changed"
    STARTED_MOVING = "started moving"
    STOPPED = "stopped"
    NO_SIGNIFICANT_CHANGE = "no significant change"


class SyncDecision(BaseModel):
    """Outcome of one evaluation. `detail` is a log-friendly description."""
    should_sync: bool
    reason: SyncReason
    detail: str = ""

    class Config:
        frozen = True


class SyncState(BaseModel):
    """
    State carried between evaluations.

    Owned by the caller and replaced (never mutated) after a sync.
    """
    last_synced_fix: Optional[RawPosition] = None
    last_sync_time: Optional[datetime] = None
    is_moving: bool = False

    class Config:
        frozen = True

    def after_sync(self, fix: RawPosition, now: datetime, config: SyncConfig = DEFAULT_SYNC_CONFIG) -> "SyncState":
        """State to carry forward once `fix` has been transmitted at `now`."""
        return SyncState(
            last_synced_fix=fix,
            last_sync_time=as_utc(now),
            is_moving=fix.speed_kmh > config.stopped_threshold_kmh,
        )


def _skip(reason: SyncReason, detail: str = "") -> SyncDecision:
    return SyncDecision(should_sync=False, reason=reason, detail=detail or reason.value)


def _sync(reason: SyncReason, detail: str = "") -> SyncDecision:
    return SyncDecision(should_sync=True, reason=reason, detail=detail or reason.value)


def should_sync(
    fix: RawPosition,
    state: SyncState,
    now: datetime,
    config: SyncConfig = DEFAULT_SYNC_CONFIG
) -> SyncDecision:
    """
    Decide whether `fix` should be transmitted.

    Args:
        fix: The new raw fix
        state: Carried sync state (last synced fix, last sync time, moving flag)
        now: Current time on the device
        config: Thresholds

    Returns:
        SyncDecision with the first matching rule's reason
    """
    # Accuracy gate wins over everything, heartbeat included
    if fix.accuracy is not None and fix.accuracy > config.max_accuracy_m:
        return _skip(SyncReason.POOR_ACCURACY, f"poor accuracy ({fix.accuracy:.0f}m)")

    last = state.last_synced_fix
    if last is None:
        return _sync(SyncReason.FIRST_POSITION)

    if state.last_sync_time is not None:
        elapsed = (as_utc(now) - as_utc(state.last_sync_time)).total_seconds()
        if elapsed >= config.heartbeat_seconds:
            return _sync(SyncReason.HEARTBEAT)

    distance = distance_meters(last, fix)
    if distance >= config.movement_threshold_m:
        return _sync(SyncReason.MOVED, f"moved {distance:.0f}m")

    current_speed = fix.speed_kmh
    speed_change = abs(current_speed - last.speed_kmh)
    if speed_change >= config.speed_change_kmh:
        return _sync(SyncReason.SPEED_CHANGED, f"speed changed {speed_change:.0f}km/h")

    if fix.heading is not None and last.heading is not None:
        heading_change = angle_delta_degrees(fix.heading, last.heading)
        if heading_change >= config.heading_change_deg:
            return _sync(SyncReason.DIRECTION_CHANGED, f"direction changed {heading_change:.0f}deg")

    now_moving = current_speed > config.stopped_threshold_kmh
    if not state.is_moving and now_moving:
        return _sync(SyncReason.STARTED_MOVING)
    if state.is_moving and not now_moving:
        return _sync(SyncReason.STOPPED)

    return _skip(SyncReason.NO_SIGNIFICANT_CHANGE)


class AdaptiveSyncEngine:
    """
    Holds the carried state for a device loop.

    `evaluate` never changes state; call `commit` once the fix was sent.
    """

    def __init__(self, config: SyncConfig = DEFAULT_SYNC_CONFIG, state: Optional[SyncState] = None):
        self.config = config
        self.state = state or SyncState()

    def evaluate(self, fix: RawPosition, now: datetime) -> SyncDecision:
        return should_sync(fix, self.state, now, self.config)

    def commit(self, fix: RawPosition, now: datetime) -> SyncState:
        self.state = self.state.after_sync(fix, now, self.config)
        return self.state
