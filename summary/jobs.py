"""
Scheduled summary jobs.

run_summary_job() performs one summary run end to end: read the window from
the location store, aggregate, and email the result. It never raises; every
failure becomes a failed JobResult so the scheduler sees a clean outcome.
"""

import asyncio
import logging
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config.settings import Settings
from notifications.notifier import SummaryNotifier, get_ses_client
from services.location_store import LocationStore
from summary.aggregator import SUMMARY_CONFIGS, aggregate
from telemetry.service import get_telemetry_service

logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    success: bool
    message: Optional[str] = None
    locations_count: Optional[int] = None
    recipient: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "message": self.message,
            "locations_count": self.locations_count,
            "recipient": self.recipient,
        }


def _missing_configuration(settings: Settings) -> Optional[str]:
    for attr, env_name in (
        ("device_id", "DEVICE_ID"),
        ("sender_email", "SENDER_EMAIL"),
        ("recipient_email", "RECIPIENT_EMAIL"),
    ):
        if not getattr(settings, attr):
            return f"{env_name} not configured"
    return None


async def run_summary_job(
    variant: str,
    settings: Settings,
    store: LocationStore,
    notifier: Optional[SummaryNotifier] = None,
    now: Optional[datetime] = None,
) -> JobResult:
    """
    Run one summary job.

    Args:
        variant: "daily" or "monthly"
        settings: Application settings
        store: Location store to read from
        notifier: Email sender; built from settings when omitted
        now: Current time, for tests

    Returns:
        JobResult describing the outcome
    """
    config = SUMMARY_CONFIGS.get(variant)
    if config is None:
        return JobResult(success=False, error=f"Unknown summary variant: {variant}")
    config = config.with_offset(settings.summary_utc_offset_hours)

    missing = _missing_configuration(settings)
    if missing:
        logger.error(missing, extra={"extra_data": {"variant": variant}})
        return JobResult(success=False, error=missing)

    end = (now or datetime.now(timezone.utc)).astimezone(config.tz)
    start = end - config.window

    logger.info(f"Starting {variant} summary job", extra={"extra_data": {
        "variant": variant,
        "device_id": settings.device_id,
        "start": start.isoformat(),
        "end": end.isoformat(),
    }})

    telemetry = get_telemetry_service()
    timer = telemetry.timed("summary_job_duration_ms", tags={"variant": variant}) if telemetry else nullcontext()

    try:
        with timer:
            await store.ensure_index()
            records = await store.query_range(
                settings.device_id,
                start.astimezone(timezone.utc),
                end.astimezone(timezone.utc),
            )
            logger.info(f"Found {len(records)} locations for the {variant} summary")

            summary = aggregate(records, config, start, end)

            if notifier is None:
                notifier = SummaryNotifier(
                    sender=settings.sender_email,
                    recipient=settings.recipient_email,
                    ses_client_factory=lambda: get_ses_client(settings.aws_region),
                )
            await asyncio.to_thread(notifier.send, summary, end)
    except Exception as e:
        logger.error(f"{variant.capitalize()} summary job failed: {e}", exc_info=True, extra={
            "extra_data": {"variant": variant, "error_type": type(e).__name__}
        })
        return JobResult(success=False, error=str(e))

    if telemetry:
        telemetry.record_metric("summary_locations_count", len(records), tags={"variant": variant})

    return JobResult(
        success=True,
        message=f"{variant.capitalize()} summary email sent",
        locations_count=len(records),
        recipient=notifier.recipient,
    )
