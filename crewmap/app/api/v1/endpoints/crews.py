"""
Crew API Endpoints.

Create and join crews, read the live crew view, and stream new locations.
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, Path, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from crewmap.app.core.dependencies import get_broadcaster
from crewmap.app.db.session import get_db
from crewmap.app.schemas.crew import (
    CrewCreate, CrewJoin, CrewResponse, CrewDetailResponse,
    CrewMembershipResponse, CrewTrailsResponse, CrewEventResponse, DriverResponse
)
from crewmap.app.services.audit import get_crew_events
from crewmap.app.services.broadcast import LocationBroadcaster
from crewmap.app.services.crew_service import CrewService
from crewmap.app.services.crew_view import CrewViewService
from crewmap.app.services.location_store import LocationStore

logger = logging.getLogger("crewmap.crews")

router = APIRouter(prefix="/crews", tags=["Crews"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CrewMembershipResponse)
async def create_crew(
    payload: CrewCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Create a crew and its first driver.

    The crew code is generated (e.g. CONVOY-7KQ2XD) and shared by humans.
    """
    crew, driver = await CrewService.create_crew(db, nickname=payload.nickname, name=payload.name)
    return CrewMembershipResponse(
        crew=CrewResponse.model_validate(crew),
        driver=DriverResponse.model_validate(driver)
    )


@router.post("/{code}/join", status_code=status.HTTP_201_CREATED, response_model=CrewMembershipResponse)
async def join_crew(
    payload: CrewJoin,
    code: str = Path(..., description="Crew code (case-insensitive)"),
    db: AsyncSession = Depends(get_db)
):
    """Join an existing crew under a nickname unique within it."""
    crew, driver = await CrewService.join_crew(db, code=code, nickname=payload.nickname)
    return CrewMembershipResponse(
        crew=CrewResponse.model_validate(crew),
        driver=DriverResponse.model_validate(driver)
    )


@router.get("/{code}", response_model=CrewDetailResponse)
async def get_crew(
    code: str = Path(..., description="Crew code (case-insensitive)"),
    db: AsyncSession = Depends(get_db)
):
    """Crew details with its active drivers."""
    crew = await CrewService.get_crew(db, code)
    drivers = await LocationStore(db).list_active_drivers(crew.id)
    return CrewDetailResponse(
        crew=CrewResponse.model_validate(crew),
        drivers=[DriverResponse.model_validate(d) for d in drivers]
    )


@router.get("/{code}/trails", response_model=CrewTrailsResponse)
async def get_crew_trails(
    code: str = Path(..., description="Crew code (case-insensitive)"),
    db: AsyncSession = Depends(get_db)
):
    """
    Live crew view.

    Each active driver's samples from the retention window, ascending by
    timestamp, with trail distance and presence status.
    """
    crew = await CrewService.get_crew(db, code)
    return await CrewViewService.get_trails(db, crew)


@router.post("/{code}/drivers/{driver_id}/deactivate", response_model=DriverResponse)
async def deactivate_driver(
    code: str = Path(..., description="Crew code (case-insensitive)"),
    driver_id: str = Path(..., description="Driver ID"),
    db: AsyncSession = Depends(get_db)
):
    """Deactivate a driver. History is kept."""
    crew = await CrewService.get_crew(db, code)
    driver = await CrewService.deactivate_driver(db, crew, driver_id)
    return DriverResponse.model_validate(driver)


@router.get("/{code}/events", response_model=List[CrewEventResponse])
async def list_crew_events(
    code: str = Path(..., description="Crew code (case-insensitive)"),
    db: AsyncSession = Depends(get_db)
):
    """Crew lifecycle events, newest first."""
    crew = await CrewService.get_crew(db, code)
    events = await get_crew_events(db, crew.id)
    return [CrewEventResponse.model_validate(e) for e in events]


async def _forward_samples(websocket: WebSocket, broadcaster: LocationBroadcaster, crew_id: str) -> None:
    async for sample in broadcaster.subscribe(crew_id):
        await websocket.send_json(sample)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    """Viewers never send anything; return once the client goes away."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/{code}/stream")
async def crew_stream(
    websocket: WebSocket,
    code: str,
    db: AsyncSession = Depends(get_db),
    broadcaster: LocationBroadcaster = Depends(get_broadcaster)
):
    """
    Push every newly ingested sample for the crew.

    At-least-once and unordered: clients re-sort by `timestamp`. The
    database session is released before streaming starts, and the Redis
    subscription ends as soon as the client disconnects.
    """
    crew = await LocationStore(db).get_crew_by_code(code)
    # Streams are long-lived; do not hold a pooled connection for them
    await db.close()
    if crew is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    forward = asyncio.create_task(_forward_samples(websocket, broadcaster, crew.id))
    watcher = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        done, _ = await asyncio.wait({forward, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (forward, watcher):
            task.cancel()
        await asyncio.gather(forward, watcher, return_exceptions=True)

    if forward in done:
        try:
            forward.result()
        except WebSocketDisconnect:
            logger.debug("Stream client for crew %s closed mid-send", crew.code)
    logger.info("Stream client left crew %s", crew.code)
