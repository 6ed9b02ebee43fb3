"""
Read side of the location history.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from errors.exceptions import invalid_request
from services.location_store import LocationStore
from validation.validator import format_iso8601, parse_iso8601

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 30

NUMERIC_FIELDS = ("latitude", "longitude", "accuracy", "altitude", "speed")


class LocationQueryService:
    """Answers "where was this device between A and B" from the store."""

    def __init__(self, store: LocationStore):
        self.store = store

    @staticmethod
    def resolve_window(
        days: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[datetime, datetime]:
        """
        Work out the query window from the request parameters.

        days wins over an explicit date pair; with neither the last 30 days
        are used.

        Raises:
            AppException: INVALID_REQUEST for a bad days value or unparseable dates
        """
        now = now or datetime.now(timezone.utc)

        if days is not None:
            try:
                count = int(days)
            except (TypeError, ValueError):
                raise invalid_request("Invalid days parameter")
            if count < 0:
                raise invalid_request("Invalid days parameter")
            try:
                return now - timedelta(days=count), now
            except OverflowError:
                raise invalid_request("Invalid days parameter")

        if start_date and end_date:
            try:
                return parse_iso8601(start_date), parse_iso8601(end_date)
            except ValueError:
                raise invalid_request("Invalid date format")

        return now - timedelta(days=DEFAULT_WINDOW_DAYS), now

    @staticmethod
    def _to_response_item(source: Dict[str, Any]) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            "locationId": source.get("locationId"),
            "timestamp": source.get("timestamp"),
        }
        for field in NUMERIC_FIELDS:
            value = source.get(field)
            item[field] = float(value) if value is not None else None
        return item

    async def query(
        self,
        device_id: str,
        days: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Fetch a device's locations for the requested window, newest first.

        Raises:
            AppException: INVALID_REQUEST for bad parameters,
                STORE_UNAVAILABLE when the store cannot be read
        """
        start, end = self.resolve_window(days, start_date, end_date, now)
        sources = await self.store.query_range(device_id, start, end)
        locations: List[Dict[str, Any]] = [self._to_response_item(s) for s in sources]

        logger.info(f"Queried {len(locations)} locations for device {device_id}", extra={
            "extra_data": {
                "device_id": device_id,
                "start": format_iso8601(start),
                "end": format_iso8601(end),
                "count": len(locations),
            }
        })

        return {
            "success": True,
            "count": len(locations),
            "locations": locations,
            "summary": {
                "totalLocations": len(locations),
                "dateRange": {
                    "start": format_iso8601(start),
                    "end": format_iso8601(end),
                },
            },
        }
