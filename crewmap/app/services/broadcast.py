"""
Real-time fan-out of newly ingested locations.

Publishes each committed sample on a per-crew Redis channel. Delivery is
at-least-once and unordered; consumers re-sort by `timestamp`.
"""

import json
import logging
from typing import Any, AsyncIterator, Dict

from redis.exceptions import RedisError

from crewmap.app.models.location import LocationSample
from crewmap.app.schemas.location import LocationSampleResponse

logger = logging.getLogger("crewmap.broadcast")


def crew_channel(crew_id: str) -> str:
    return f"crew:{crew_id}:locations"


class LocationBroadcaster:
    """Thin publish/subscribe wrapper over a redis.asyncio client."""

    def __init__(self, redis):
        self.redis = redis

    async def publish(self, sample: LocationSample) -> int:
        """
        Publish a sample to its crew channel.

        The sample is already durable, so a Redis outage is logged and
        reported as zero receivers instead of failing the ingestion.

        Returns:
            Number of subscribers that received the message
        """
        payload = LocationSampleResponse.model_validate(sample).model_dump_json()
        try:
            return await self.redis.publish(crew_channel(sample.crew_id), payload)
        except RedisError as e:
            logger.warning("Fan-out failed for crew %s: %s", sample.crew_id, e)
            return 0

    async def subscribe(self, crew_id: str) -> AsyncIterator[Dict[str, Any]]:
        """Yield decoded samples published for `crew_id` until the caller stops iterating."""
        channel = crew_channel(crew_id)
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                data = message["data"]
                if isinstance(data, bytes):
                    data = data.decode("utf-8")
                yield json.loads(data)
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
