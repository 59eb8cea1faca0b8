"""
Crew live view.

READ-ONLY: assembles each active driver's trail within the retention
window, with trail length and presence status.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from crewmap.app.core.clock import utcnow
from crewmap.app.core.config import settings
from crewmap.app.domain.presence import classify, format_time_since, trail_distance
from crewmap.app.models.crew import Crew
from crewmap.app.models.location import LocationSample
from crewmap.app.schemas.crew import CrewTrailsResponse, DriverResponse, DriverTrail
from crewmap.app.schemas.location import LocationSampleResponse
from crewmap.app.services.location_store import LocationStore


class CrewViewService:

    @staticmethod
    async def get_trails(
        db: AsyncSession,
        crew: Crew,
        now: Optional[datetime] = None,
        retention_hours: Optional[int] = None
    ) -> CrewTrailsResponse:
        """Trails for every active driver, samples ascending by timestamp."""
        now = now or utcnow()
        hours = retention_hours if retention_hours is not None else settings.trail_retention_hours
        since = now - timedelta(hours=hours)

        store = LocationStore(db)
        drivers = await store.list_active_drivers(crew.id)
        samples = await store.list_crew_locations(crew.id, since)

        by_driver: Dict[str, List[LocationSample]] = defaultdict(list)
        for sample in samples:
            by_driver[sample.driver_id].append(sample)

        trails = []
        for driver in drivers:
            driver_samples = by_driver.get(driver.id, [])
            latest = driver_samples[-1].timestamp if driver_samples else None
            trails.append(DriverTrail(
                driver=DriverResponse.model_validate(driver),
                status=classify(latest, now).value,
                last_update=format_time_since(latest, now) if latest else None,
                distance_meters=trail_distance(driver_samples),
                locations=[LocationSampleResponse.model_validate(s) for s in driver_samples],
            ))

        return CrewTrailsResponse(crew_id=crew.id, since=since, trails=trails)
