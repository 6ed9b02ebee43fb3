"""
FastAPI application for the Location Tracker backend.

Run locally with:

    uvicorn main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.locations import router as locations_router
from config.settings import Settings, get_settings, validate_startup
from errors.handlers import register_exception_handlers
from health.service import HealthCheckService
from identity.resolver import DeviceIdResolver, build_resolver
from ingestion.service import LocationIngestionService
from middleware.request_id import RequestIDMiddleware
from query.service import LocationQueryService
from services.location_store import LocationStore, get_location_store
from telemetry.service import initialize_telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration and prepare the locations index."""
    settings: Settings = app.state.settings
    validate_startup(settings)
    logger.info(f"Starting {settings.service_name} {settings.service_version}", extra={
        "extra_data": {"environment": settings.environment.value}
    })
    try:
        await app.state.store.ensure_index()
    except Exception as e:
        # Keep serving; /health/ready reports the store as unavailable
        logger.error(f"Failed to prepare locations index: {e}")

    yield

    logger.info(f"Shutting down {settings.service_name}")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[LocationStore] = None,
    device_id_resolver: Optional[DeviceIdResolver] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use instead of get_settings()
        store: Location store to use instead of the process-wide one
        device_id_resolver: Resolver to use instead of the configured strategy
    """
    settings = settings or get_settings()
    telemetry_service = initialize_telemetry(settings)
    store = store or get_location_store(settings)

    app = FastAPI(
        title=settings.service_name,
        version=settings.service_version,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.device_id_resolver = device_id_resolver or build_resolver(settings)
    app.state.ingestion_service = LocationIngestionService(store=store, telemetry=telemetry_service)
    app.state.query_service = LocationQueryService(store=store)
    app.state.health_check_service = HealthCheckService(settings=settings, store=store, check_timeout=5.0)

    register_exception_handlers(app)

    # Only configured origins, never wildcards
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Accept",
            "Content-Type",
            "X-Api-Key",
            "X-Request-ID",
            "X-User-Id",
        ],
        expose_headers=["X-Request-ID"],
        max_age=600,
    )

    # Added after CORS so it runs for every request
    app.add_middleware(RequestIDMiddleware)

    app.include_router(locations_router)

    @app.get("/health")
    async def health_basic():
        """Liveness; 200 whenever the process can answer, store state is not consulted."""
        return await app.state.health_check_service.check_health()

    @app.get("/health/ready")
    async def health_ready():
        """
        Readiness with a store ping.

        Returns:
            JSONResponse: 200 when the store answers, 503 with failure_reasons otherwise
        """
        health_status = await app.state.health_check_service.check_readiness()
        response_data = health_status.to_dict()
        response_data["service"] = settings.service_name
        response_data["version"] = settings.service_version

        if health_status.status == "unhealthy":
            response_data["failure_reasons"] = [
                {"dependency": dep.name, "error": dep.error}
                for dep in health_status.dependencies
                if not dep.healthy
            ]
            return JSONResponse(status_code=503, content=response_data)

        return response_data

    return app


app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    port = int(os.environ.get("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
