"""
Storefront Location API.

Serves delivery zones, place suggestions, device-position classification and
peak-adjusted ETAs to the storefront.
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import settings
from config.logging_config import logging_manager
from api.locations import router as locations_router, get_location_service
from api.middleware import RequestLoggingMiddleware
from database import close_redis, get_database_status


logging_manager.set_log_level(settings.log_level)
logger = logging.getLogger(__name__)

SERVICE_NAME = "storefront-location"
SERVICE_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load zone data before serving; release Redis connections on exit."""
    logger.info(f"Starting {SERVICE_NAME} ({settings.environment})")
    logger.info(f"Place search: {settings.photon_api_url} restricted to {settings.service_country}")

    # A broken zone file must stop startup rather than surface per request
    service = get_location_service()
    logger.info(f"{len(service.registry)} delivery zones loaded, data version {service.registry.version}")

    yield

    close_redis()
    logger.info(f"{SERVICE_NAME} stopped")


app = FastAPI(
    title="Storefront Location API",
    description="Delivery zone, fee and ETA resolution for typed text, place suggestions and device location",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

# Storefront frontends in development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["accept", "content-type", "origin", "x-client-id", "x-requested-with"],
    expose_headers=["x-process-time", "x-request-id"]
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(locations_router, prefix="/api", tags=["locations"])


@app.get("/health")
async def health_check():
    """Liveness plus zone data and Redis status."""
    try:
        service = get_location_service()
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "environment": settings.environment,
            "zones": len(service.registry),
            "zone_data_version": service.registry.version,
            "database": get_database_status()
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")


@app.get("/")
async def root():
    return {
        "service": SERVICE_NAME,
        "message": "Storefront Location API",
        "health_check": "/health",
        "documentation": "/docs"
    }


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    logger.error(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"message": "Internal server error", "error": str(exc) if settings.debug else "Server error"}
    )


if __name__ == "__main__":
    # Development server; production runs `uvicorn main:app`
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
