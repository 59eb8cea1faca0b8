"""
Crew lifecycle service.

Creates crews, adds drivers to them and deactivates drivers. Drivers are
never deleted.
"""

import logging
import secrets
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crewmap.app.core.clock import utcnow
from crewmap.app.core.config import settings
from crewmap.app.core.exceptions import ConflictError, ResourceNotFoundError, StorageFailureError
from crewmap.app.models.crew import Crew
from crewmap.app.models.driver import Driver
from crewmap.app.services.audit import log_event, AuditAction
from crewmap.app.services.location_store import LocationStore

logger = logging.getLogger("crewmap.crews")

# Color palette for drivers
DRIVER_COLORS = [
    "#FF6B6B", "#4ECDC4", "#45B7D1", "#FFA07A", "#98D8C8",
    "#F7DC6F", "#BB8FCE", "#85C1E2", "#F8B739", "#52B788",
]

# No 0/O or 1/I, codes get read aloud and typed on phones
CREW_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
MAX_CODE_ATTEMPTS = 5


def generate_crew_code(prefix: str = None, length: int = None) -> str:
    prefix = settings.crew_code_prefix if prefix is None else prefix
    length = settings.crew_code_length if length is None else length
    return prefix + "".join(secrets.choice(CREW_CODE_ALPHABET) for _ in range(length))


def pick_color(existing_colors: List[str]) -> str:
    """First unused palette color at random; any palette color once all are taken."""
    available = [c for c in DRIVER_COLORS if c not in existing_colors]
    if not available:
        return secrets.choice(DRIVER_COLORS)
    return secrets.choice(available)


class CrewService:

    @staticmethod
    async def create_crew(db: AsyncSession, nickname: str, name: Optional[str] = None) -> Tuple[Crew, Driver]:
        """
        Create a crew with a fresh code and its first driver.

        Raises:
            StorageFailureError: no unique code found or the write failed
        """
        store = LocationStore(db)
        code = None
        for _ in range(MAX_CODE_ATTEMPTS):
            candidate = generate_crew_code()
            if await store.get_crew_by_code(candidate) is None:
                code = candidate
                break
        if code is None:
            raise StorageFailureError("Could not allocate a unique crew code", operation="create_crew")

        now = utcnow()
        crew = Crew(code=code, name=name)
        try:
            db.add(crew)
            await db.flush()

            driver = Driver(
                crew_id=crew.id,
                nickname=nickname,
                color=DRIVER_COLORS[0],
                is_active=True,
                last_seen=now
            )
            db.add(driver)
            await db.flush()

            await log_event(
                db,
                AuditAction.CREW_CREATED,
                crew_id=crew.id,
                driver_id=driver.id,
                metadata={"code": code, "nickname": nickname}
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise StorageFailureError("Failed to create crew", operation="create_crew") from e

        logger.info("Crew %s created by %s", code, nickname)
        return crew, driver

    @staticmethod
    async def get_crew(db: AsyncSession, code: str) -> Crew:
        """Look up a crew by its (case-insensitive) code."""
        crew = await LocationStore(db).get_crew_by_code(code)
        if crew is None:
            raise ResourceNotFoundError("Crew", code)
        return crew

    @staticmethod
    async def join_crew(db: AsyncSession, code: str, nickname: str) -> Tuple[Crew, Driver]:
        """
        Add a driver to an existing, unexpired crew.

        Raises:
            ResourceNotFoundError: unknown or expired crew code
            ConflictError: nickname already taken in this crew
        """
        store = LocationStore(db)
        crew = await store.get_crew_by_code(code)
        if crew is None or (crew.expires_at is not None and crew.expires_at <= utcnow()):
            raise ResourceNotFoundError("Crew", code)

        if await store.get_driver_by_nickname(crew.id, nickname) is not None:
            raise ConflictError(
                f"Nickname '{nickname}' is already taken in this crew",
                details={"crew_code": crew.code, "nickname": nickname}
            )

        result = await db.execute(select(Driver.color).where(Driver.crew_id == crew.id))
        existing_colors = list(result.scalars().all())

        driver = Driver(
            crew_id=crew.id,
            nickname=nickname,
            color=pick_color(existing_colors),
            is_active=True,
            last_seen=utcnow()
        )
        try:
            db.add(driver)
            await db.flush()
            await log_event(
                db,
                AuditAction.DRIVER_JOINED,
                crew_id=crew.id,
                driver_id=driver.id,
                metadata={"nickname": nickname}
            )
            await db.commit()
        except IntegrityError:
            # Lost a race with another join using the same nickname
            await db.rollback()
            raise ConflictError(
                f"Nickname '{nickname}' is already taken in this crew",
                details={"crew_code": crew.code, "nickname": nickname}
            )
        except SQLAlchemyError as e:
            await db.rollback()
            raise StorageFailureError("Failed to join crew", operation="join_crew") from e

        logger.info("%s joined crew %s", nickname, crew.code)
        return crew, driver

    @staticmethod
    async def deactivate_driver(db: AsyncSession, crew: Crew, driver_id: str) -> Driver:
        """
        Mark a driver inactive. Their samples stay; they drop out of crew views.

        Raises:
            ResourceNotFoundError: driver not in this crew
        """
        driver = await LocationStore(db).get_driver(driver_id)
        if driver is None or driver.crew_id != crew.id:
            raise ResourceNotFoundError("Driver", driver_id)

        if driver.is_active:
            driver.is_active = False
            await log_event(
                db,
                AuditAction.DRIVER_DEACTIVATED,
                crew_id=crew.id,
                driver_id=driver.id,
                metadata={"nickname": driver.nickname}
            )
            await db.commit()
            logger.info("Driver %s deactivated in crew %s", driver.nickname, crew.code)

        return driver
