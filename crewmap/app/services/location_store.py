"""
Backing store adapter for the ingestion core.

Wraps the async SQLAlchemy session behind the handful of operations the
ingestion pipeline, identity resolver and crew view need. Any SQLAlchemy
error surfaces as StorageFailureError.
"""

import logging
from datetime import datetime
from functools import wraps
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crewmap.app.core.exceptions import StorageFailureError
from crewmap.app.models.crew import Crew
from crewmap.app.models.driver import Driver
from crewmap.app.models.location import LocationSample

logger = logging.getLogger("crewmap.store")


def _storage_operation(func):
    """Translate SQLAlchemy errors raised by `func` into StorageFailureError."""
    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.error("Store operation %s failed: %s", func.__name__, e)
            raise StorageFailureError(operation=func.__name__) from e
    return wrapper


class LocationStore:
    """
    Request-scoped store. One instance per AsyncSession, no cached state.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @_storage_operation
    async def get_driver(self, driver_id: str) -> Optional[Driver]:
        result = await self.db.execute(
            select(Driver).where(Driver.id == driver_id)
        )
        return result.scalar_one_or_none()

    @_storage_operation
    async def get_crew_by_code(self, code: str) -> Optional[Crew]:
        """Codes are stored upper-case; the lookup normalizes the input."""
        result = await self.db.execute(
            select(Crew).where(Crew.code == code.strip().upper())
        )
        return result.scalar_one_or_none()

    @_storage_operation
    async def get_driver_by_nickname(self, crew_id: str, nickname: str) -> Optional[Driver]:
        """Exact, case-sensitive nickname match within one crew."""
        result = await self.db.execute(
            select(Driver).where(
                Driver.crew_id == crew_id,
                Driver.nickname == nickname
            )
        )
        return result.scalar_one_or_none()

    @_storage_operation
    async def list_active_drivers(self, crew_id: str) -> List[Driver]:
        result = await self.db.execute(
            select(Driver).where(
                Driver.crew_id == crew_id,
                Driver.is_active == True
            ).order_by(Driver.created_at, Driver.nickname)
        )
        return list(result.scalars().all())

    @_storage_operation
    async def list_crew_locations(self, crew_id: str, since: datetime) -> List[LocationSample]:
        """All samples for a crew at or after `since`, ascending by timestamp."""
        result = await self.db.execute(
            select(LocationSample).where(
                LocationSample.crew_id == crew_id,
                LocationSample.timestamp >= since
            ).order_by(LocationSample.timestamp.asc(), LocationSample.id.asc())
        )
        return list(result.scalars().all())

    @_storage_operation
    async def append_location(self, sample: LocationSample) -> LocationSample:
        """Append only. Samples are never updated or deleted on this path."""
        self.db.add(sample)
        await self.db.flush()
        return sample

    @_storage_operation
    async def touch_last_seen(self, driver_id: str, seen_at: datetime) -> None:
        """Last-write-wins liveness update."""
        await self.db.execute(
            update(Driver).where(Driver.id == driver_id).values(last_seen=seen_at)
        )

    @_storage_operation
    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
