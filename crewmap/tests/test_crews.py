"""
Crew lifecycle and crew view tests.
"""

import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import update

from crewmap.app.core.clock import utcnow
from crewmap.app.domain.geo import distance_meters
from crewmap.app.models.crew import Crew
from crewmap.app.models.location import LocationSample
from crewmap.app.services.audit import AuditAction
from crewmap.app.services.crew_service import (
    CREW_CODE_ALPHABET, DRIVER_COLORS, CrewService, generate_crew_code, pick_color
)
from crewmap.app.services.crew_view import CrewViewService

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def test_generate_crew_code():
    code = generate_crew_code(prefix="CONVOY-", length=6)
    assert code.startswith("CONVOY-")
    suffix = code[len("CONVOY-"):]
    assert len(suffix) == 6
    assert all(ch in CREW_CODE_ALPHABET for ch in suffix)


def test_pick_color_prefers_unused():
    taken = DRIVER_COLORS[:-1]
    assert pick_color(taken) == DRIVER_COLORS[-1]
    assert pick_color(DRIVER_COLORS) in DRIVER_COLORS


@pytest.mark.asyncio
async def test_create_crew(client):
    response = await client.post("/v1/crews", json={"nickname": "Dana", "name": "Road Trip"})

    assert response.status_code == 201
    data = response.json()
    assert data["crew"]["code"].startswith("CONVOY-")
    assert data["crew"]["name"] == "Road Trip"
    assert data["driver"]["nickname"] == "Dana"
    assert data["driver"]["color"] == DRIVER_COLORS[0]
    assert data["driver"]["crew_id"] == data["crew"]["id"]
    assert data["driver"]["is_active"] is True


@pytest.mark.asyncio
async def test_create_crew_requires_nickname(client):
    response = await client.post("/v1/crews", json={"name": "No one"})
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_join_crew_case_insensitive(client, crew1):
    response = await client.post("/v1/crews/crew1/join", json={"nickname": "Eve"})

    assert response.status_code == 201
    data = response.json()
    assert data["crew"]["id"] == crew1["crew_id"]
    assert data["driver"]["nickname"] == "Eve"
    # Bob and Alice already hold the first two colors
    assert data["driver"]["color"] not in ("#FF6B6B", "#4ECDC4")


@pytest.mark.asyncio
async def test_join_duplicate_nickname(client, crew1):
    response = await client.post("/v1/crews/CREW1/join", json={"nickname": "Bob"})

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_CONFLICT"


@pytest.mark.asyncio
async def test_join_unknown_crew(client, crew1):
    response = await client.post("/v1/crews/NOPE/join", json={"nickname": "Eve"})

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_join_expired_crew(client, db_session, crew1):
    await db_session.execute(
        update(Crew).where(Crew.id == crew1["crew_id"]).values(expires_at=utcnow() - timedelta(minutes=1))
    )
    await db_session.commit()

    response = await client.post("/v1/crews/CREW1/join", json={"nickname": "Eve"})
    assert response.status_code == 404

    # Existing members keep reporting
    response = await client.get("/v1/webhooks/traccar", params={"id": "CREW1:Bob", "lat": "1", "lon": "2"})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_get_crew_lists_active_drivers(client, crew1):
    response = await client.get("/v1/crews/CREW1")

    assert response.status_code == 200
    nicknames = {d["nickname"] for d in response.json()["drivers"]}
    assert nicknames == {"Bob", "Alice"}


@pytest.mark.asyncio
async def test_deactivate_driver(client, db_session, crew1):
    response = await client.post(f"/v1/crews/CREW1/drivers/{crew1['alice']}/deactivate")

    assert response.status_code == 200
    assert response.json()["is_active"] is False

    response = await client.get("/v1/crews/CREW1")
    nicknames = {d["nickname"] for d in response.json()["drivers"]}
    assert nicknames == {"Bob"}


@pytest.mark.asyncio
async def test_deactivate_driver_from_other_crew(client, crew1):
    response = await client.post(f"/v1/crews/CREW1/drivers/{crew1['other_bob']}/deactivate")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_crew_events(client, crew1):
    created = await client.post("/v1/crews", json={"nickname": "Dana"})
    code = created.json()["crew"]["code"]
    await client.post(f"/v1/crews/{code}/join", json={"nickname": "Finn"})

    response = await client.get(f"/v1/crews/{code}/events")

    assert response.status_code == 200
    actions = [e["action"] for e in response.json()]
    assert set(actions) == {AuditAction.CREW_CREATED, AuditAction.DRIVER_JOINED}


@pytest.mark.asyncio
async def test_trails_endpoint(client, crew1):
    for lat in ("52.5200", "52.5210"):
        response = await client.get("/v1/webhooks/traccar", params={"id": "CREW1:Bob", "lat": lat, "lon": "13.405"})
        assert response.status_code == 200

    response = await client.get("/v1/crews/crew1/trails")

    assert response.status_code == 200
    trails = {t["driver"]["nickname"]: t for t in response.json()["trails"]}
    assert set(trails) == {"Bob", "Alice"}

    bob = trails["Bob"]
    assert bob["status"] == "live"
    assert bob["last_update"] == "Live"
    assert len(bob["locations"]) == 2
    assert bob["distance_meters"] == pytest.approx(111.2, abs=0.5)

    alice = trails["Alice"]
    assert alice["status"] == "offline"
    assert alice["last_update"] is None
    assert alice["locations"] == []
    assert alice["distance_meters"] == 0.0


@pytest.mark.asyncio
async def test_trails_unknown_crew(client):
    response = await client.get("/v1/crews/NOPE/trails")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_crew_view_window_and_order(db_session, crew1):
    def add(driver, lat, minutes_ago):
        db_session.add(LocationSample(
            driver_id=crew1[driver], crew_id=crew1["crew_id"],
            latitude=lat, longitude=13.4,
            timestamp=NOW - timedelta(minutes=minutes_ago), received_at=NOW,
        ))

    # Inserted out of order; one sample outside the 24h window
    add("bob", 52.52, 2)
    add("bob", 52.50, 10)
    add("bob", 52.51, 6)
    add("bob", 40.00, 60 * 25)
    add("alice", 52.00, 20)
    await db_session.commit()

    crew = await CrewService.get_crew(db_session, "CREW1")
    view = await CrewViewService.get_trails(db_session, crew, now=NOW)

    assert view.since == NOW - timedelta(hours=24)
    trails = {t.driver.nickname: t for t in view.trails}

    bob = trails["Bob"]
    assert [s.latitude for s in bob.locations] == [52.50, 52.51, 52.52]
    assert bob.status == "active"
    assert bob.last_update == "2m ago"
    expected = distance_meters((52.50, 13.4), (52.51, 13.4)) + distance_meters((52.51, 13.4), (52.52, 13.4))
    assert bob.distance_meters == pytest.approx(expected)

    alice = trails["Alice"]
    assert alice.status == "inactive"
    assert alice.distance_meters == 0.0


@pytest.mark.asyncio
async def test_crew_view_excludes_other_crews(db_session, crew1):
    db_session.add(LocationSample(
        driver_id=crew1["other_bob"], crew_id=crew1["other_crew_id"],
        latitude=1.0, longitude=1.0, timestamp=NOW, received_at=NOW,
    ))
    await db_session.commit()

    crew = await CrewService.get_crew(db_session, "CREW1")
    view = await CrewViewService.get_trails(db_session, crew, now=NOW)

    assert all(t.locations == [] for t in view.trails)
