"""
Presence classification and trail aggregation.

View-layer helpers: status is derived from wall-clock time at evaluation,
so the same sample classifies differently as time passes.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from crewmap.app.core.clock import as_utc, utcnow
from crewmap.app.domain.geo import distance_meters
from crewmap.app.models.enums import PresenceStatus

# Upper bounds (exclusive) in seconds since the latest sample
LIVE_SECONDS = 30
ACTIVE_SECONDS = 300  # 5 minutes
INACTIVE_SECONDS = 3600  # 1 hour


def _seconds_since(timestamp: datetime, now: Optional[datetime]) -> float:
    now = as_utc(now) if now else utcnow()
    return (now - as_utc(timestamp)).total_seconds()


def classify(last_sample_timestamp: Optional[datetime], now: Optional[datetime] = None) -> PresenceStatus:
    """
    Bucket a driver by how long ago their latest sample was taken.

    Args:
        last_sample_timestamp: Timestamp of the newest sample, or None
        now: Evaluation time (defaults to current UTC time)

    Returns:
        LIVE (<30s), ACTIVE (<5m), INACTIVE (<1h), otherwise OFFLINE
    """
    if last_sample_timestamp is None:
        return PresenceStatus.OFFLINE

    elapsed = _seconds_since(last_sample_timestamp, now)
    if elapsed < LIVE_SECONDS:
        return PresenceStatus.LIVE
    if elapsed < ACTIVE_SECONDS:
        return PresenceStatus.ACTIVE
    if elapsed < INACTIVE_SECONDS:
        return PresenceStatus.INACTIVE
    return PresenceStatus.OFFLINE


def format_time_since(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """Human label for the age of a sample ("Live", "42s ago", "3h ago", ...)."""
    seconds = int(_seconds_since(timestamp, now))
    if seconds < LIVE_SECONDS:
        return "Live"
    if seconds < 60:
        return f"{seconds}s ago"

    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"

    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"

    days = hours // 24
    if days == 1:
        return "Yesterday"
    return f"{days}d ago"


def trail_distance(samples: Sequence) -> float:
    """
    Total length of a trail in meters.

    Samples must already be filtered to the retention window and sorted
    ascending by timestamp; no sorting happens here.
    """
    if len(samples) < 2:
        return 0.0

    total = 0.0
    for previous, current in zip(samples, samples[1:]):
        total += distance_meters(previous, current)
    return total


def sort_samples(samples: Iterable) -> List:
    """Order samples by their source timestamp (fan-out may reorder them)."""
    return sorted(samples, key=lambda sample: as_utc(sample.timestamp))
