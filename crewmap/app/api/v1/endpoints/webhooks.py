"""
Location Webhook API Endpoints.

Inbound position reports from tracking apps, one endpoint per wire protocol:

- GET  /webhooks/osmand     Protocol A (OsmAnd / Traccar Client query string)
- POST /webhooks/overland   Protocol B (Overland GeoJSON batch)
- GET|POST /webhooks/traccar Protocol C (query string or form body)

Single-fix endpoints answer a bare `OK`; the apps only look at the status.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from crewmap.app.core.clock import utcnow
from crewmap.app.core.dependencies import get_ingestion_pipeline
from crewmap.app.core.exceptions import AppException, InvalidPayloadError
from crewmap.app.schemas.location import BatchIngestResponse
from crewmap.app.services.ingestion import IngestionPipeline
from crewmap.app.services.normalizers import (
    OVERLAND_SHAPE_HINT,
    parse_osmand,
    parse_overland_location,
    parse_overland_payload,
    parse_traccar,
)

logger = logging.getLogger("crewmap.webhooks")

router = APIRouter(prefix="/webhooks", tags=["Location Webhooks"])

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


@router.get("/osmand", response_class=PlainTextResponse)
async def osmand_webhook(
    request: Request,
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)
):
    """
    Record a single fix sent with the OsmAnd protocol (Protocol A).

    Parameters: id|deviceid, lat, lon, timestamp (epoch s), speed,
    altitude, hdop, bearing.
    """
    try:
        fix = parse_osmand(request.query_params, utcnow())
        await pipeline.ingest(fix)
    except AppException as e:
        logger.warning("OsmAnd fix rejected: %s (%s)", e.message, e.error_code)
        raise

    return PlainTextResponse("OK")


@router.post("/overland", response_model=BatchIngestResponse)
async def overland_webhook(
    request: Request,
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)
):
    """
    Record a batch of fixes sent by Overland (Protocol B).

    Always 200 once the envelope is valid; per-item failures are counted
    in `errors` because the protocol has no per-item status channel.
    """
    try:
        body = await request.json()
    except ValueError:
        raise InvalidPayloadError("Request body is not valid JSON", hint=OVERLAND_SHAPE_HINT)

    locations = parse_overland_payload(body)
    logger.info("Processing %d Overland location(s)", len(locations))

    received_at = utcnow()
    return await pipeline.ingest_batch(
        locations,
        lambda feature: parse_overland_location(feature, received_at)
    )


async def _collect_params(request: Request) -> Dict[str, Any]:
    """Query string, with form fields filling anything the query lacks."""
    params: Dict[str, Any] = dict(request.query_params)
    content_type = request.headers.get("content-type", "")
    if request.method == "POST" and content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        for key, value in form.items():
            params.setdefault(key, value)
    return params


@router.api_route("/traccar", methods=["GET", "POST"], response_class=PlainTextResponse)
async def traccar_webhook(
    request: Request,
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)
):
    """
    Record a single fix sent by Traccar Client (Protocol C).

    The identifier may be a driver UUID or "CREWCODE:nickname".
    """
    params = await _collect_params(request)
    try:
        fix = parse_traccar(params, utcnow())
        await pipeline.ingest(fix)
    except AppException as e:
        logger.warning("Traccar fix rejected: %s (%s)", e.message, e.error_code)
        raise

    return PlainTextResponse("OK")
