"""
Health reporting for the Location Tracker API.
"""

from health.service import (
    DependencyHealth,
    HealthCheckService,
    HealthStatus,
)

__all__ = [
    "DependencyHealth",
    "HealthCheckService",
    "HealthStatus",
]
