"""
HTTP API routers.
"""

from api.locations import router as locations_router

__all__ = ["locations_router"]
