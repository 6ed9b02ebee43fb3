"""
Storage services for the Location Tracker backend.
"""

from services.location_store import (
    LocationRecord,
    LocationStore,
    get_location_store,
    reset_location_store,
)

__all__ = [
    "LocationRecord",
    "LocationStore",
    "get_location_store",
    "reset_location_store",
]
