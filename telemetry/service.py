"""
Structured logging for the API process and the summary jobs.

Every record is written to stdout as a single JSON object carrying the
request correlation ID, the service identity and any `extra_data` the caller
attached. Metrics are emitted through the same stream as debug entries.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from middleware.request_id import request_id_var

DEFAULT_LOG_LEVEL = "INFO"

# LogRecord attributes copied into the JSON line when they carry information
_SOURCE_ATTRIBUTES = (("module", "module"), ("funcName", "function"), ("lineno", "line"))


class JSONFormatter(logging.Formatter):
    """
    Render a LogRecord as one line of JSON.

    Keys: timestamp, level, message, logger, request_id, the static fields
    given at construction (service, environment), source location, the
    record's extra_data and, for errors, the formatted exception.
    """

    def __init__(self, static_fields: Optional[Dict[str, str]] = None):
        super().__init__()
        self.static_fields = dict(static_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "request_id": request_id_var.get(""),
        }
        entry.update(self.static_fields)

        for attr, key in _SOURCE_ATTRIBUTES:
            value = getattr(record, attr, None)
            if value and value != "<module>":
                entry[key] = value

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            entry.update(extra_data)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_trace"] = record.stack_info

        return json.dumps(entry, default=str)


def _static_fields(settings: Any) -> Dict[str, str]:
    fields = {}
    service_name = getattr(settings, "service_name", None)
    if isinstance(service_name, str):
        fields["service"] = service_name
    environment = getattr(settings, "environment", None)
    environment = getattr(environment, "value", environment)
    if isinstance(environment, str):
        fields["environment"] = environment
    return fields


class TelemetryService:
    """
    Owns the root logger configuration and metric recording.

    Constructing it replaces any handlers already on the root logger with a
    single stdout handler using JSONFormatter, at the settings' log_level.
    """

    def __init__(self, settings: Optional[Any] = None):
        self.settings = settings
        self.log_level = (getattr(settings, "log_level", None) or DEFAULT_LOG_LEVEL).upper()
        self._logger = logging.getLogger("telemetry")
        self._configure_root_logger()

    def _configure_root_logger(self) -> None:
        level = getattr(logging, self.log_level, logging.INFO)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(JSONFormatter(_static_fields(self.settings)))

        root = logging.getLogger()
        for existing in root.handlers[:]:
            root.removeHandler(existing)
        root.addHandler(handler)
        root.setLevel(level)

        self._logger.info("Logging configured", extra={
            "extra_data": {"log_level": self.log_level}
        })

    def record_metric(
        self,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Emit a metric as a debug log entry.

        Args:
            name: Metric name, e.g. location_ingest_duration_ms
            value: Observed value
            tags: Optional dimensions such as device_id or variant
        """
        metric: Dict[str, Any] = {"metric_name": name, "metric_value": value}
        if tags:
            metric["tags"] = tags
        self._logger.debug(f"Metric: {name}={value}", extra={"extra_data": metric})

    @contextmanager
    def timed(self, name: str, tags: Optional[Dict[str, str]] = None) -> Iterator[None]:
        """Record the wall time of the block in milliseconds, when it completes without raising."""
        started = time.perf_counter()
        yield
        self.record_metric(name, (time.perf_counter() - started) * 1000, tags=tags)


_telemetry_service: Optional[TelemetryService] = None


def get_telemetry_service() -> Optional[TelemetryService]:
    """The process-wide TelemetryService, or None before initialize_telemetry()."""
    return _telemetry_service


def initialize_telemetry(settings: Optional[Any] = None) -> TelemetryService:
    global _telemetry_service
    _telemetry_service = TelemetryService(settings)
    return _telemetry_service
