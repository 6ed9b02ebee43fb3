"""
Exception handlers for the Location Tracker backend.

This module provides FastAPI exception handlers that convert exceptions
to structured JSON error responses with a consistent format:

    {"success": false, "error_code": ..., "message": ..., "errors": [...],
     "request_id": ...}

Unexpected exceptions are logged with their full stack trace and answered
with a generic 500 that does not expose internal details.
"""

import logging
import traceback
import uuid
from typing import Any, List, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from errors.codes import ErrorCode
from errors.exceptions import AppException
from middleware.request_id import REQUEST_ID_HEADER

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """
    Structured error response model.

    All error responses from the API follow this format so the client can
    branch on `success` and `error_code`.
    """
    success: bool = False
    error_code: str
    message: str
    errors: Optional[List[str]] = None
    details: Optional[dict[str, Any]] = None
    request_id: str


def get_request_id(request: Request) -> str:
    """
    Get the request ID from the request state or generate a new one.

    RequestIDMiddleware sets request.state.request_id; requests that never
    passed through it get a fresh UUID.
    """
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return str(uuid.uuid4())


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle known application exceptions and convert to structured response.

    Args:
        request: The FastAPI request object
        exc: The AppException that was raised

    Returns:
        JSONResponse with structured error format
    """
    request_id = get_request_id(request)

    logger.warning(
        "Application error occurred",
        extra={"extra_data": {
            "error_code": exc.error_code.value,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "errors": exc.errors,
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        }}
    )

    error_response = ErrorResponse(
        error_code=exc.error_code.value,
        message=exc.message,
        errors=exc.errors,
        details=exc.details,
        request_id=request_id,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(exclude_none=True),
    )


async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions safely without exposing internal details.

    Logs the full stack trace and returns a generic error response.
    """
    request_id = get_request_id(request)

    logger.error(
        "Unexpected error occurred",
        extra={"extra_data": {
            "error_code": ErrorCode.INTERNAL_ERROR.value,
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "stack_trace": traceback.format_exc(),
        }},
        exc_info=exc,
    )

    error_response = ErrorResponse(
        error_code=ErrorCode.INTERNAL_ERROR.value,
        message="Internal server error",
        request_id=request_id,
    )

    # Answered outside RequestIDMiddleware, so the header is set here
    return JSONResponse(
        status_code=500,
        content=error_response.model_dump(exclude_none=True),
        headers={REQUEST_ID_HEADER: request_id},
    )


def register_exception_handlers(app) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(AppException, handle_app_exception)

    # Catch-all for anything unclassified
    app.add_exception_handler(Exception, handle_unexpected_exception)

    logger.info("Exception handlers registered successfully")
