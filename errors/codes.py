"""
Error code catalog for the Location Tracker backend.

Covers malformed input, field validation failures, unavailable
dependencies (the location store), the gated query
endpoint, and internal errors.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used in the application.

    Each error code maps to a default HTTP status code:
    - Client errors (4xx): malformed bodies, failed validation
    - Dependency errors (5xx): location store failures
    - Internal errors (5xx): anything unclassified
    """

    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """One or more location fields failed validation (HTTP 400)"""

    INVALID_REQUEST = "INVALID_REQUEST"
    """Body or query parameters could not be parsed (HTTP 400)"""

    # Dependency errors (5xx)
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    """Location store read or write failed (HTTP 500)"""

    # Not yet available
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    """Endpoint exists but is switched off (HTTP 501)"""

    # Internal errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected server error (HTTP 500)"""


# Mapping of error codes to their default HTTP status codes
ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.STORE_UNAVAILABLE: 500,
    ErrorCode.NOT_IMPLEMENTED: 501,
    ErrorCode.INTERNAL_ERROR: 500,
}


def get_default_status_code(error_code: ErrorCode) -> int:
    """Get the default HTTP status code for an error code."""
    return ERROR_CODE_STATUS_MAP.get(error_code, 500)
