"""
HTTP routes for location ingestion and history queries.

Services are read from app.state, where create_app() wires them.
"""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request

from errors.exceptions import invalid_request, not_implemented
from identity.resolver import UNKNOWN_DEVICE, RequestContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["locations"])


async def _read_json_object(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    try:
        payload = json.loads(raw) if raw else None
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        logger.warning("Rejected request body that is not a JSON object", extra={
            "extra_data": {"content_length": len(raw)}
        })
        raise invalid_request("Invalid JSON in request body")
    return payload


@router.post("/locations")
async def save_location(request: Request):
    """
    Record one GPS observation sent by the tracking app.

    Returns:
        {"success": true, "message": "Location recorded", "locationId": ...}
    """
    payload = await _read_json_object(request)
    context = RequestContext.from_request(payload, request.headers)
    device_id = request.app.state.device_id_resolver.resolve(context)
    return await request.app.state.ingestion_service.ingest(payload, device_id)


@router.get("/locations")
async def query_locations(
    request: Request,
    device_id: Optional[str] = Query(None, alias="deviceId"),
    days: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
):
    """
    Location history for a device, newest first.

    Answers 501 until QUERY_ENDPOINT_ENABLED is switched on.
    """
    settings = request.app.state.settings
    if not settings.query_endpoint_enabled:
        raise not_implemented()

    device = device_id or settings.device_id or UNKNOWN_DEVICE
    return await request.app.state.query_service.query(
        device,
        days=days,
        start_date=start_date,
        end_date=end_date,
    )
