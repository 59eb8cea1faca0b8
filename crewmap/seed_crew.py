"""
Database seeding script for a demo crew.

Creates one crew with a fixed code and three drivers so tracking apps can
be pointed at it straight away ("CONVOY-DEMO01:Alice" etc.).
"""

import asyncio

from sqlalchemy import select

from crewmap.app.db.session import AsyncSessionLocal, engine, Base
from crewmap.app.models.crew import Crew
from crewmap.app.models.driver import Driver
from crewmap.app.models.location import LocationSample  # noqa: F401 (table registration)
from crewmap.app.models.audit_log import AuditLog  # noqa: F401
from crewmap.app.services.crew_service import DRIVER_COLORS

DEMO_CODE = "CONVOY-DEMO01"
DEMO_NICKNAMES = ["Alice", "Bob", "Carol"]


async def seed_crew():
    """
    Seed the demo crew.

    Creates:
    - crew CONVOY-DEMO01
    - drivers Alice, Bob, Carol
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("Starting crew seeding...")

        result = await db.execute(select(Crew).where(Crew.code == DEMO_CODE))
        if result.scalar_one_or_none():
            print(f"Crew {DEMO_CODE} already exists, skipping seeding")
            return

        crew = Crew(code=DEMO_CODE, name="Demo Convoy")
        db.add(crew)
        await db.flush()

        for nickname, color in zip(DEMO_NICKNAMES, DRIVER_COLORS):
            driver = Driver(crew_id=crew.id, nickname=nickname, color=color, is_active=True)
            db.add(driver)
            await db.flush()
            print(f"Created driver {nickname}: id={driver.id}")

        await db.commit()

        print(f"\nCrew seeding completed: {DEMO_CODE}")
        print("Point a tracking app at /v1/webhooks/traccar with a driver id,")
        print(f"or with the composite identifier e.g. {DEMO_CODE}:Alice")


if __name__ == "__main__":
    asyncio.run(seed_crew())
