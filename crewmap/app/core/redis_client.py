"""
Redis connection for the real-time location fan-out.

Ingestion never depends on Redis being up: the broadcaster logs publish
failures, and startup only warns when the ping fails.
"""

import logging

import redis.asyncio as redis
from crewmap.app.core.config import settings

logger = logging.getLogger("crewmap.redis")


def create_redis_client(url: str = None) -> redis.Redis:
    """Build a client for `url` (defaults to settings.redis_url). Connects lazily."""
    return redis.from_url(
        url or settings.redis_url,
        decode_responses=settings.redis_decode_responses,
    )


redis_client = create_redis_client()


async def get_redis():
    """FastAPI dependency returning the shared fan-out client."""
    return redis_client


async def ping_redis() -> bool:
    """
    Check the fan-out channel is reachable.

    Returns:
        True if Redis answered, False otherwise
    """
    try:
        return await redis_client.ping()
    except redis.RedisError as e:
        logger.warning("Redis ping failed: %s", e)
        return False


async def close_redis() -> None:
    await redis_client.aclose()
