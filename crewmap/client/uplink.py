"""
Device-side location uplink.

Reads raw fixes from a positioning source, asks the adaptive sync engine
whether each one is worth sending, and transmits the ones that are to the
server's Traccar (Protocol C) endpoint. Single task, no shared state: the
only blocking point is waiting for the next fix.

Usage:
    async with CrewUplink("https://crewmap.example", device_id) as uplink:
        await uplink.run(position_source())
"""

import logging
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, Optional

import httpx

from crewmap.app.core.clock import utcnow
from crewmap.app.domain.sync_engine import AdaptiveSyncEngine, RawPosition, SyncDecision

logger = logging.getLogger("crewmap.client")

DEFAULT_PATH = "/v1/webhooks/traccar"


def fix_params(device_id: str, fix: RawPosition) -> Dict[str, str]:
    """Protocol C query parameters for one fix."""
    params = {
        "id": device_id,
        "lat": repr(fix.latitude),
        "lon": repr(fix.longitude),
        "timestamp": str(int(fix.timestamp.timestamp())),
    }
    if fix.speed is not None:
        params["speed"] = repr(fix.speed)
    if fix.heading is not None:
        params["bearing"] = repr(fix.heading)
    if fix.accuracy is not None:
        params["accuracy"] = repr(fix.accuracy)
    return params


class CrewUplink:
    """
    Gate fixes through an AdaptiveSyncEngine and send the survivors.

    Sync state only advances after the server accepted the fix, so a
    failed send is retried by the next qualifying fix.
    """

    def __init__(
        self,
        base_url: str,
        device_id: str,
        engine: Optional[AdaptiveSyncEngine] = None,
        client: Optional[httpx.AsyncClient] = None,
        path: str = DEFAULT_PATH,
        timeout: float = 10.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.device_id = device_id
        self.engine = engine or AdaptiveSyncEngine()
        self.path = path
        self.clock = clock
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "CrewUplink":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def send(self, fix: RawPosition) -> bool:
        """
        Transmit one fix.

        Returns:
            True if the server answered 2xx, False on any HTTP failure
        """
        try:
            response = await self.client.get(self.path, params=fix_params(self.device_id, fix))
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("Server rejected fix: %s %s", e.response.status_code, e.response.text)
            return False
        except httpx.HTTPError as e:
            logger.warning("Failed to send fix: %s", e)
            return False
        return True

    async def process(self, fix: RawPosition) -> SyncDecision:
        """Evaluate one fix and send it if the engine says so."""
        now = self.clock()
        decision = self.engine.evaluate(fix, now)
        if not decision.should_sync:
            logger.debug("Skip: %s", decision.detail)
            return decision

        if await self.send(fix):
            self.engine.commit(fix, now)
            logger.info("Synced: %s", decision.detail)
        return decision

    async def run(self, source: AsyncIterator[RawPosition]) -> int:
        """
        Consume the positioning source until it ends.

        Returns:
            Number of fixes the engine chose to sync
        """
        synced = 0
        async for fix in source:
            decision = await self.process(fix)
            if decision.should_sync:
                synced += 1
        return synced
