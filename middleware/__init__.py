"""
Middleware components for the Location Tracker backend.
"""

from middleware.request_id import (
    REQUEST_ID_HEADER,
    RequestIDMiddleware,
    get_request_id,
    request_id_var,
)

__all__ = [
    "REQUEST_ID_HEADER",
    "RequestIDMiddleware",
    "get_request_id",
    "request_id_var",
]
