"""
Request-scoped dependencies for FastAPI.

Wires the ingestion core to the request's database session and the
shared Redis client. Nothing here outlives a request.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crewmap.app.core.redis_client import get_redis
from crewmap.app.db.session import get_db
from crewmap.app.services.broadcast import LocationBroadcaster
from crewmap.app.services.identity_resolver import IdentityResolver
from crewmap.app.services.ingestion import IngestionPipeline
from crewmap.app.services.location_store import LocationStore


async def get_store(db: AsyncSession = Depends(get_db)) -> LocationStore:
    return LocationStore(db)


async def get_broadcaster(redis=Depends(get_redis)) -> LocationBroadcaster:
    return LocationBroadcaster(redis)


async def get_ingestion_pipeline(
    store: LocationStore = Depends(get_store),
    broadcaster: LocationBroadcaster = Depends(get_broadcaster)
) -> IngestionPipeline:
    """
    FastAPI dependency building a fresh pipeline per request.

    Returns:
        IngestionPipeline bound to this request's session
    """
    return IngestionPipeline(
        store=store,
        resolver=IdentityResolver(store),
        broadcaster=broadcaster
    )
