"""
Location schemas.

RawFix is the tagged, protocol-agnostic output of every normalizer.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from crewmap.app.models.enums import Protocol


class RawFix(BaseModel):
    """Normalized fix, tagged with the protocol it arrived on."""
    protocol: Protocol
    driver_token: str
    latitude: float
    longitude: float
    timestamp: datetime
    speed: Optional[float] = None  # meters per second
    heading: Optional[float] = None  # degrees
    accuracy: Optional[float] = None  # meters
    altitude: Optional[float] = None  # meters


class LocationSampleResponse(BaseModel):
    """Persisted location sample."""
    id: int
    driver_id: str
    crew_id: str
    latitude: float
    longitude: float
    accuracy: Optional[float]
    speed: Optional[float]
    heading: Optional[float]
    altitude: Optional[float]
    timestamp: datetime
    received_at: datetime

    class Config:
        from_attributes = True


class BatchIngestResponse(BaseModel):
    """Overland batch acknowledgement. Always HTTP 200."""
    result: str = "ok"
    saved: int
    errors: int
