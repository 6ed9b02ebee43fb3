"""
Location ingestion: validate a payload and store it once.

LocationIngestionService is the single write path for GPS observations sent
by the tracking app. Validation failures are raised as a VALIDATION_ERROR
carrying every violation; a resubmitted observation is not an error and
answers with the locationId already on record.
"""

import logging
import time
from typing import Any, Dict, Mapping, Optional

from errors.exceptions import validation_error
from services.location_store import LocationRecord, LocationStore
from telemetry.service import TelemetryService, get_telemetry_service
from validation.validator import validate_location


class LocationIngestionService:
    """
    Attributes:
        store: Location store receiving the records
        telemetry: Telemetry service for metrics
    """

    def __init__(
        self,
        store: LocationStore,
        telemetry: Optional[TelemetryService] = None
    ):
        self.store = store
        self.telemetry = telemetry or get_telemetry_service()
        self._logger = logging.getLogger(__name__)

    async def ingest(self, payload: Mapping[str, Any], device_id: str) -> Dict[str, Any]:
        """
        Validate and store a single location.

        Args:
            payload: The decoded JSON object from the request body
            device_id: Device the location belongs to

        Returns:
            Response body with the stored locationId

        Raises:
            AppException: VALIDATION_ERROR when the payload is invalid,
                STORE_UNAVAILABLE when the write fails
        """
        start = time.perf_counter()

        errors = validate_location(payload)
        if errors:
            self._logger.warning(
                "Location rejected by validation",
                extra={"extra_data": {"device_id": device_id, "errors": errors}}
            )
            raise validation_error(errors)

        record = LocationRecord.from_payload(device_id, dict(payload))
        location_id = await self.store.put_if_absent(record)

        duration_ms = (time.perf_counter() - start) * 1000
        if self.telemetry:
            self.telemetry.record_metric(
                "location_ingest_duration_ms",
                duration_ms,
                tags={"device_id": device_id}
            )

        self._logger.info(
            f"Location recorded for device {device_id}",
            extra={"extra_data": {
                "device_id": device_id,
                "location_id": location_id,
                "timestamp": record.timestamp,
                "duplicate": location_id != record.location_id,
                "duration_ms": duration_ms,
            }}
        )

        return {
            "success": True,
            "message": "Location recorded",
            "locationId": location_id,
        }
