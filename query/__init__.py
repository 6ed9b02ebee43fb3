"""
Location history queries.
"""

from query.service import LocationQueryService

__all__ = ["LocationQueryService"]
