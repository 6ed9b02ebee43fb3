"""
Exception classes for the Location Tracker backend.

This module provides the AppException class and factory functions for
the error kinds the handlers raise.
"""

from typing import Any, List, Optional

from errors.codes import ErrorCode, get_default_status_code


class AppException(Exception):
    """
    Base exception class for all application-specific errors.

    Carries structured error information:
    - error_code: A standardized error code from the ErrorCode enum
    - message: A human-readable error message safe to show to clients
    - status_code: The HTTP status code to return
    - errors: Optional list of field-level messages (validation failures)
    - details: Optional additional client-safe context

    Example:
        raise AppException(
            error_code=ErrorCode.VALIDATION_ERROR,
            message="Invalid location data",
            errors=["Missing timestamp", "Invalid latitude (must be between -90 and 90)"],
        )
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        errors: Optional[List[str]] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.status_code = status_code or get_default_status_code(error_code)
        self.details = details
        self.errors = errors
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for JSON serialization."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.errors is not None:
            result["errors"] = list(self.errors)
        if self.details is not None:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return (
            f"AppException(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, status_code={self.status_code}, "
            f"errors={self.errors!r})"
        )


# Convenience factory functions for common error types

def validation_error(
    errors: List[str],
    message: str = "Invalid location data",
) -> AppException:
    """Create a validation error carrying every field-level violation."""
    return AppException(
        error_code=ErrorCode.VALIDATION_ERROR,
        message=message,
        errors=errors,
    )


def invalid_request(
    message: str,
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an invalid request exception."""
    return AppException(
        error_code=ErrorCode.INVALID_REQUEST,
        message=message,
        details=details
    )


def store_unavailable(
    message: str = "Failed to save location",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create a location store failure exception."""
    return AppException(
        error_code=ErrorCode.STORE_UNAVAILABLE,
        message=message,
        details=details
    )


def not_implemented(
    message: str = "Query endpoint not yet implemented. Coming soon!",
) -> AppException:
    """Create a not-implemented exception for switched-off endpoints."""
    return AppException(
        error_code=ErrorCode.NOT_IMPLEMENTED,
        message=message,
    )
