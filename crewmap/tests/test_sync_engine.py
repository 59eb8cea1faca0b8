"""
Adaptive sync engine tests.
"""

import pytest
from datetime import datetime, timedelta, timezone

from crewmap.app.domain.sync_engine import (
    AdaptiveSyncEngine, RawPosition, SyncConfig, SyncReason, SyncState, should_sync
)

T0 = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)
BASE_LAT, BASE_LON = 52.5200, 13.4050


def fix(lat=BASE_LAT, lon=BASE_LON, speed=None, heading=None, accuracy=5.0, at=T0):
    return RawPosition(latitude=lat, longitude=lon, speed=speed, heading=heading, accuracy=accuracy, timestamp=at)


def synced_state(last, seconds_ago=5, is_moving=False):
    return SyncState(last_synced_fix=last, last_sync_time=T0 - timedelta(seconds=seconds_ago), is_moving=is_moving)


def test_first_position_always_syncs():
    decision = should_sync(fix(), SyncState(), T0)
    assert decision.should_sync is True
    assert decision.reason == "first position"


def test_heartbeat_after_interval_without_change():
    state = synced_state(fix(), seconds_ago=31)
    decision = should_sync(fix(), state, T0)
    assert decision.should_sync is True
    assert decision.reason == SyncReason.HEARTBEAT


def test_heartbeat_boundary_is_inclusive():
    decision = should_sync(fix(), synced_state(fix(), seconds_ago=30), T0)
    assert decision.reason == SyncReason.HEARTBEAT


def test_poor_accuracy_wins_over_movement():
    state = synced_state(fix(), seconds_ago=5)
    far = fix(lat=BASE_LAT + 0.01, accuracy=150.0)
    decision = should_sync(far, state, T0)
    assert decision.should_sync is False
    assert decision.reason == SyncReason.POOR_ACCURACY


def test_poor_accuracy_wins_over_heartbeat_and_first_position():
    assert should_sync(fix(accuracy=101.0), SyncState(), T0).should_sync is False
    assert should_sync(fix(accuracy=101.0), synced_state(fix(), seconds_ago=600), T0).should_sync is False


def test_accuracy_at_ceiling_is_accepted():
    assert should_sync(fix(accuracy=100.0), SyncState(), T0).should_sync is True


def test_missing_accuracy_is_not_gated():
    assert should_sync(fix(accuracy=None), SyncState(), T0).should_sync is True


def test_moved_beyond_threshold():
    state = synced_state(fix())
    # ~11 m north
    decision = should_sync(fix(lat=BASE_LAT + 0.0001), state, T0)
    assert decision.should_sync is True
    assert decision.reason == SyncReason.MOVED


def test_small_jitter_is_skipped():
    state = synced_state(fix())
    # ~5.5 m north
    decision = should_sync(fix(lat=BASE_LAT + 0.00005), state, T0)
    assert decision.should_sync is False
    assert decision.reason == SyncReason.NO_SIGNIFICANT_CHANGE


def test_speed_change_uses_kmh():
    # 10 m/s -> 11.5 m/s is 5.4 km/h
    state = synced_state(fix(speed=10.0), is_moving=True)
    decision = should_sync(fix(speed=11.5), state, T0)
    assert decision.reason == SyncReason.SPEED_CHANGED

    # 10 m/s -> 11 m/s is 3.6 km/h, below threshold
    assert should_sync(fix(speed=11.0), state, T0).should_sync is False


def test_heading_change_with_wraparound():
    state = synced_state(fix(speed=10.0, heading=355.0), is_moving=True)
    assert should_sync(fix(speed=10.0, heading=5.0), state, T0).should_sync is False

    decision = should_sync(fix(speed=10.0, heading=12.0), state, T0)
    assert decision.should_sync is True
    assert decision.reason == SyncReason.DIRECTION_CHANGED


def test_heading_ignored_when_either_side_missing():
    state = synced_state(fix(speed=10.0, heading=None), is_moving=True)
    assert should_sync(fix(speed=10.0, heading=90.0), state, T0).should_sync is False


def test_started_moving():
    # 0 -> 1 m/s is 3.6 km/h: under the speed-change threshold, above stopped
    state = synced_state(fix(speed=0.0), is_moving=False)
    decision = should_sync(fix(speed=1.0), state, T0)
    assert decision.should_sync is True
    assert decision.reason == SyncReason.STARTED_MOVING


def test_stopped():
    state = synced_state(fix(speed=1.0), is_moving=True)
    decision = should_sync(fix(speed=0.2), state, T0)
    assert decision.should_sync is True
    assert decision.reason == SyncReason.STOPPED


def test_rule_order_movement_before_speed():
    state = synced_state(fix(speed=0.0))
    decision = should_sync(fix(lat=BASE_LAT + 0.001, speed=20.0), state, T0)
    assert decision.reason == SyncReason.MOVED


def test_custom_config_thresholds():
    config = SyncConfig(movement_threshold_m=100.0, heartbeat_seconds=5.0)
    state = synced_state(fix(), seconds_ago=2)
    assert should_sync(fix(lat=BASE_LAT + 0.0001), state, T0, config).should_sync is False
    assert should_sync(fix(), synced_state(fix(), seconds_ago=6), T0, config).reason == SyncReason.HEARTBEAT


def test_after_sync_replaces_state():
    state = SyncState()
    moving = fix(speed=5.0)
    new_state = state.after_sync(moving, T0)
    assert new_state.last_synced_fix == moving
    assert new_state.last_sync_time == T0
    assert new_state.is_moving is True
    assert state.last_synced_fix is None


def test_engine_only_changes_state_on_commit():
    engine = AdaptiveSyncEngine()
    first = fix()
    assert engine.evaluate(first, T0).should_sync is True
    assert engine.state.last_synced_fix is None

    engine.commit(first, T0)
    assert engine.state.last_synced_fix == first

    later = T0 + timedelta(seconds=5)
    decision = engine.evaluate(fix(at=later), later)
    assert decision.should_sync is False
    assert engine.state.last_sync_time == T0
