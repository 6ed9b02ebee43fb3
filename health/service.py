"""
Health reporting for the Location Tracker API.

check_health() is a static liveness answer that never consults a dependency,
so load balancers keep routing while the store is briefly unreachable.
check_readiness() pings the location store under a timeout and reports the
result with its response time.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from config.settings import Settings
from services.location_store import LocationStore
from validation.validator import format_iso8601

logger = logging.getLogger(__name__)

STORE_DEPENDENCY = "location_store"


@dataclass
class DependencyHealth:
    """
    Health status of a single dependency.

    Attributes:
        name: The name of the dependency
        healthy: Whether the dependency is healthy and responding
        response_time_ms: The time taken to check the dependency in milliseconds
        error: Optional error message if the dependency check failed
    """
    name: str
    healthy: bool
    response_time_ms: float
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "name": self.name,
            "healthy": self.healthy,
            "response_time_ms": round(self.response_time_ms, 2),
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class HealthStatus:
    """Readiness of the service: "healthy" or "unhealthy" plus per-dependency detail."""
    status: str
    timestamp: datetime
    dependencies: list[DependencyHealth] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": format_iso8601(self.timestamp),
            "dependencies": [dep.to_dict() for dep in self.dependencies],
        }


class HealthCheckService:
    """
    Attributes:
        settings: Settings providing service name and version
        store: The location store whose reachability decides readiness
        check_timeout: Timeout in seconds for the store ping (default: 5.0)
    """

    def __init__(
        self,
        settings: Settings,
        store: LocationStore,
        check_timeout: float = 5.0
    ):
        self.settings = settings
        self.store = store
        self.check_timeout = check_timeout

    async def check_health(self) -> dict[str, Any]:
        """Liveness payload; always healthy while the process can answer."""
        return {
            "status": "healthy",
            "service": self.settings.service_name,
            "timestamp": format_iso8601(datetime.now(timezone.utc)),
            "version": self.settings.service_version,
        }

    async def check_readiness(self) -> HealthStatus:
        store_health = await self._check_store()
        return HealthStatus(
            status="healthy" if store_health.healthy else "unhealthy",
            timestamp=datetime.now(timezone.utc),
            dependencies=[store_health],
        )

    async def _check_store(self) -> DependencyHealth:
        start_time = time.perf_counter()

        try:
            result = await asyncio.wait_for(self.store.ping(), timeout=self.check_timeout)
            elapsed_ms = (time.perf_counter() - start_time) * 1000

            if result:
                logger.debug(f"Location store health check passed in {elapsed_ms:.2f}ms")
                return DependencyHealth(
                    name=STORE_DEPENDENCY,
                    healthy=True,
                    response_time_ms=elapsed_ms
                )
            logger.warning(f"Location store ping returned False after {elapsed_ms:.2f}ms")
            return DependencyHealth(
                name=STORE_DEPENDENCY,
                healthy=False,
                response_time_ms=elapsed_ms,
                error="Location store ping returned False"
            )

        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            error_msg = f"Location store health check timed out after {self.check_timeout} seconds"
            logger.warning(error_msg)
            return DependencyHealth(
                name=STORE_DEPENDENCY,
                healthy=False,
                response_time_ms=elapsed_ms,
                error=error_msg
            )

        except Exception as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            error_msg = f"Location store health check failed: {e}"
            logger.error(error_msg)
            return DependencyHealth(
                name=STORE_DEPENDENCY,
                healthy=False,
                response_time_ms=elapsed_ms,
                error=error_msg
            )
