"""
Identity resolution for inbound device tokens.

A token resolves to a (driver_id, crew_id) pair by trying an ordered list
of strategies; the first hit wins. Resolution is read-only.

Supported schemes:
- the driver UUID itself (preferred, devices provisioned with it)
- "CREWCODE:nickname" for devices where typing a UUID is impractical
"""

import logging
from abc import ABC, abstractmethod
from typing import List, NamedTuple, Optional, Sequence

from crewmap.app.services.location_store import LocationStore

logger = logging.getLogger("crewmap.identity")


class ResolvedIdentity(NamedTuple):
    driver_id: str
    crew_id: str


class ResolutionStrategy(ABC):
    """One identifier scheme. Returns None when the token is not its kind or has no match."""

    name = "base"

    @abstractmethod
    async def resolve(self, store: LocationStore, token: str) -> Optional[ResolvedIdentity]:
        ...


class DirectIdStrategy(ResolutionStrategy):
    """Token is a driver primary key."""

    name = "driver_id"

    async def resolve(self, store: LocationStore, token: str) -> Optional[ResolvedIdentity]:
        driver = await store.get_driver(token)
        if driver is None:
            return None
        return ResolvedIdentity(driver.id, driver.crew_id)


class CompositeCodeStrategy(ResolutionStrategy):
    """Token is "CREWCODE:nickname"; crew code case-insensitive, nickname exact."""

    name = "crew_code_nickname"

    def __init__(self, separator: str = ":"):
        self.separator = separator

    async def resolve(self, store: LocationStore, token: str) -> Optional[ResolvedIdentity]:
        if self.separator not in token:
            return None

        crew_code, _, nickname = token.partition(self.separator)
        if not crew_code or not nickname:
            return None

        crew = await store.get_crew_by_code(crew_code)
        if crew is None:
            return None

        driver = await store.get_driver_by_nickname(crew.id, nickname)
        if driver is None:
            return None
        return ResolvedIdentity(driver.id, crew.id)


DEFAULT_STRATEGIES: Sequence[ResolutionStrategy] = (
    DirectIdStrategy(),
    CompositeCodeStrategy(),
)


class IdentityResolver:
    """
    Resolves tokens against the store using `strategies` in order.

    Append a strategy to support a new identifier scheme.
    """

    def __init__(self, store: LocationStore, strategies: Sequence[ResolutionStrategy] = DEFAULT_STRATEGIES):
        self.store = store
        self.strategies: List[ResolutionStrategy] = list(strategies)

    async def resolve(self, token: str) -> Optional[ResolvedIdentity]:
        """
        Resolve a raw device token.

        Args:
            token: Identifier string exactly as the device sent it

        Returns:
            ResolvedIdentity on the first strategy hit, None otherwise
        """
        token = (token or "").strip()
        if not token:
            return None

        for strategy in self.strategies:
            identity = await strategy.resolve(self.store, token)
            if identity is not None:
                logger.debug("Resolved %r via %s", token, strategy.name)
                return identity
        return None
