"""
Validation of inbound location payloads.
"""

from validation.validator import (
    REQUIRED_FIELDS,
    format_iso8601,
    is_number,
    parse_iso8601,
    validate_location,
)

__all__ = [
    "REQUIRED_FIELDS",
    "format_iso8601",
    "is_number",
    "parse_iso8601",
    "validate_location",
]
