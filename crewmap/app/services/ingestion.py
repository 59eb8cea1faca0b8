"""
Location ingestion pipeline.

validate -> resolve identity -> append sample -> touch last_seen -> commit
-> fan out. Batched protocols run the same steps per item with failures
isolated to the item.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from crewmap.app.core.clock import utcnow
from crewmap.app.core.exceptions import (
    InvalidPayloadError, StorageFailureError, UnknownDeviceError
)
from crewmap.app.models.location import LocationSample
from crewmap.app.schemas.location import BatchIngestResponse, RawFix
from crewmap.app.services.broadcast import LocationBroadcaster
from crewmap.app.services.identity_resolver import IdentityResolver
from crewmap.app.services.location_store import LocationStore

logger = logging.getLogger("crewmap.ingestion")


def validate_fix(fix: RawFix) -> None:
    """
    Reject fixes the store must never see.

    Raises:
        InvalidPayloadError: missing identifier or coordinates out of range
    """
    if not fix.driver_token:
        raise InvalidPayloadError("Missing device identifier")
    if not -90 <= fix.latitude <= 90:
        raise InvalidPayloadError(
            f"Latitude {fix.latitude} out of range",
            hint="Latitude must be between -90 and 90",
        )
    if not -180 <= fix.longitude <= 180:
        raise InvalidPayloadError(
            f"Longitude {fix.longitude} out of range",
            hint="Longitude must be between -180 and 180",
        )


class IngestionPipeline:
    """
    Request-scoped ingestion. Holds collaborators only, no state between calls.
    """

    def __init__(
        self,
        store: LocationStore,
        resolver: Optional[IdentityResolver] = None,
        broadcaster: Optional[LocationBroadcaster] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.resolver = resolver or IdentityResolver(store)
        self.broadcaster = broadcaster
        self.clock = clock

    async def ingest(self, fix: RawFix) -> LocationSample:
        """
        Persist one normalized fix.

        Args:
            fix: Output of a protocol normalizer

        Returns:
            The appended LocationSample

        Raises:
            InvalidPayloadError: coordinates out of range
            UnknownDeviceError: token resolves to no driver
            StorageFailureError: store write failed (rolled back)
        """
        validate_fix(fix)

        identity = await self.resolver.resolve(fix.driver_token)
        if identity is None:
            raise UnknownDeviceError(fix.driver_token)

        received_at = self.clock()
        sample = LocationSample(
            driver_id=identity.driver_id,
            crew_id=identity.crew_id,
            latitude=fix.latitude,
            longitude=fix.longitude,
            accuracy=fix.accuracy,
            speed=fix.speed,
            heading=fix.heading,
            altitude=fix.altitude,
            timestamp=fix.timestamp,
            received_at=received_at,
        )

        try:
            await self.store.append_location(sample)
            # Liveness tracks when we heard from the device, not the fix time
            await self.store.touch_last_seen(identity.driver_id, received_at)
            await self.store.commit()
        except StorageFailureError:
            await self.store.rollback()
            raise

        if self.broadcaster is not None:
            await self.broadcaster.publish(sample)

        return sample

    async def ingest_batch(
        self,
        items: Iterable[Any],
        parse: Callable[[Any], RawFix],
    ) -> BatchIngestResponse:
        """
        Parse and ingest each item independently.

        A malformed, unknown or unstorable item increments `errors` and is
        skipped; the batch itself never fails.
        """
        saved = 0
        errors = 0

        for index, item in enumerate(items):
            try:
                fix = parse(item)
                await self.ingest(fix)
                saved += 1
            except (InvalidPayloadError, UnknownDeviceError, StorageFailureError) as e:
                errors += 1
                logger.warning("Batch item %d rejected: %s (%s)", index, e.message, e.error_code)

        logger.info("Processed batch: %d saved, %d errors", saved, errors)
        return BatchIngestResponse(saved=saved, errors=errors)
