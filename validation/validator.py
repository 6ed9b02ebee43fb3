"""
Input validation for location payloads sent by the tracking app.

validate_location() runs every check and returns all violations together,
in a fixed order, so the client sees the complete list in one response.
"""

import math
import re
from datetime import datetime, timezone
from typing import Any, List, Mapping

REQUIRED_FIELDS = ("timestamp", "latitude", "longitude", "accuracy", "altitude", "speed")

# Extended ISO-8601 (xmlschema): a date, optionally a time with seconds and a zone designator.
ISO_8601_PATTERN = re.compile(
    r"^\d{4}-\d{2}-\d{2}"
    r"(T\d{2}:\d{2}:\d{2}(\.\d{1,6})?(Z|[+-]\d{2}(:?\d{2})?)?)?$"
)

LATITUDE_ERROR = "Invalid latitude (must be between -90 and 90)"
LONGITUDE_ERROR = "Invalid longitude (must be between -180 and 180)"
TIMESTAMP_ERROR = "Invalid timestamp format (expected ISO8601)"
ACCURACY_ERROR = "Invalid accuracy (must be >= 0)"
ALTITUDE_ERROR = "Invalid altitude (must be between -500 and 10000 meters)"
SPEED_ERROR = "Invalid speed (must be >= -1)"


def is_number(value: Any) -> bool:
    """True for finite ints and floats; bools and numeric strings are not numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large for a float
        return False


def parse_iso8601(value: Any) -> datetime:
    """
    Parse an ISO-8601 date-time string into an aware datetime.

    Values without a zone designator are taken as UTC.

    Raises:
        ValueError: If the value is not a string in ISO-8601 extended format
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO-8601 string, got {type(value).__name__}")

    text = value.strip()
    if not ISO_8601_PATTERN.match(text):
        raise ValueError(f"Not an ISO-8601 date-time: {value!r}")

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_iso8601(value: datetime, timespec: str = "seconds") -> str:
    """Render an aware datetime in UTC as e.g. 2025-10-26T15:00:00Z."""
    return value.astimezone(timezone.utc).isoformat(timespec=timespec).replace("+00:00", "Z")


def _in_range(value: Any, low: float, high: float) -> bool:
    return is_number(value) and low <= value <= high


def validate_location(data: Mapping[str, Any]) -> List[str]:
    """
    Validate a location payload.

    Args:
        data: The decoded request body

    Returns:
        List of human-readable error messages; empty when the payload is valid
    """
    errors: List[str] = []

    # Presence. timestamp must be truthy, the others only need the key.
    if not data.get("timestamp"):
        errors.append("Missing timestamp")
    for field in REQUIRED_FIELDS[1:]:
        if field not in data:
            errors.append(f"Missing {field}")

    if "latitude" in data and not _in_range(data["latitude"], -90, 90):
        errors.append(LATITUDE_ERROR)

    if "longitude" in data and not _in_range(data["longitude"], -180, 180):
        errors.append(LONGITUDE_ERROR)

    # Runs even when the presence check failed, e.g. for an empty string
    if data.get("timestamp") is not None:
        try:
            parse_iso8601(data["timestamp"])
        except ValueError:
            errors.append(TIMESTAMP_ERROR)

    if "accuracy" in data and not (is_number(data["accuracy"]) and data["accuracy"] >= 0):
        errors.append(ACCURACY_ERROR)

    if "altitude" in data and not _in_range(data["altitude"], -500, 10000):
        errors.append(ALTITUDE_ERROR)

    if "speed" in data and not (is_number(data["speed"]) and data["speed"] >= -1):
        errors.append(SPEED_ERROR)

    return errors
