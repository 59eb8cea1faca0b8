"""
Crew schemas.

Schemas for crew creation, joining and the live crew view.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from crewmap.app.schemas.location import LocationSampleResponse


class CrewCreate(BaseModel):
    """Schema for creating a crew together with its first driver."""
    name: Optional[str] = Field(None, max_length=100)
    nickname: str = Field(..., min_length=1, max_length=50)


class CrewJoin(BaseModel):
    """Schema for joining an existing crew."""
    nickname: str = Field(..., min_length=1, max_length=50)


class DriverResponse(BaseModel):
    """Schema for driver response."""
    id: str
    crew_id: str
    nickname: str
    color: str
    is_active: bool
    created_at: datetime
    last_seen: Optional[datetime]

    class Config:
        from_attributes = True


class CrewResponse(BaseModel):
    """Schema for crew response."""
    id: str
    code: str
    name: Optional[str]
    created_at: datetime
    expires_at: Optional[datetime]

    class Config:
        from_attributes = True


class CrewDetailResponse(BaseModel):
    """Crew with its active drivers."""
    crew: CrewResponse
    drivers: List[DriverResponse] = []


class CrewMembershipResponse(BaseModel):
    """Response after creating or joining a crew."""
    crew: CrewResponse
    driver: DriverResponse


class DriverTrail(BaseModel):
    """One driver's trail inside the retention window."""
    driver: DriverResponse
    status: str  # live / active / inactive / offline
    last_update: Optional[str]  # "Live", "5m ago", ...
    distance_meters: float
    locations: List[LocationSampleResponse] = []


class CrewTrailsResponse(BaseModel):
    """Live crew view: every active driver's trail."""
    crew_id: str
    since: datetime
    trails: List[DriverTrail]


class CrewEventResponse(BaseModel):
    """Audit event for a crew."""
    id: int
    action: str
    crew_id: Optional[str]
    driver_id: Optional[str]
    meta_data: Optional[dict]
    timestamp: datetime

    class Config:
        from_attributes = True
