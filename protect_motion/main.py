"""
FastAPI application entry point for the Protect motion bridge

Initializes the FastAPI app, registers routers, and runs the HomeKit bridge
and the Protect controllers for the lifetime of the app.
"""
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Response

from protect_motion.core.config import settings
from protect_motion.core.logging_config import setup_logging, get_logger
from protect_motion.core.metrics import init_metrics, get_metrics, get_content_type
from protect_motion.api.v1.controllers import router as controllers_router
from protect_motion.api.v1.devices import router as devices_router
from protect_motion.api.v1.homekit import router as homekit_router
from protect_motion.services.homekit_service import get_homekit_service
from protect_motion.services.protect_service import ProtectService, get_protect_service

# Application version
APP_VERSION = "1.0.0"

# Initialize structured JSON logging
setup_logging(app_version=APP_VERSION)
logger = get_logger(__name__)

# Initialize Prometheus metrics
init_metrics(version=APP_VERSION)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler for startup and shutdown events.

    - Startup: prepares the HomeKit bridge, connects every controller
      (which exposes their cameras), then publishes the bridge
    - Shutdown: disconnects controllers and disposes devices, then stops
      the bridge
    """
    logger.info(
        "Application starting",
        extra={
            "event_type": "app_startup",
            "version": APP_VERSION,
            "log_level": settings.effective_log_level,
            "debug_mode": settings.DEBUG,
        }
    )

    homekit_service = get_homekit_service()
    protect_service = get_protect_service()

    # Accessories are added to the bridge before it is published
    homekit_service.prepare()
    await protect_service.start(settings.PROTECT_CONTROLLERS)
    if homekit_service.is_prepared:
        await homekit_service.start()

    logger.info(
        "Application ready",
        extra={
            "event_type": "app_ready",
            "device_count": len(protect_service.synchronizer),
            "homekit_running": homekit_service.is_running,
        }
    )

    yield

    logger.info("Application shutting down", extra={"event_type": "app_shutdown"})
    await protect_service.stop()
    await homekit_service.stop()
    logger.info("Application shutdown complete", extra={"event_type": "app_shutdown_complete"})


# Create FastAPI app
app = FastAPI(
    title="Protect Motion Bridge API",
    description="Status API for the UniFi Protect to HomeKit motion bridge",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.include_router(controllers_router, prefix=settings.API_V1_PREFIX)
app.include_router(devices_router, prefix=settings.API_V1_PREFIX)
app.include_router(homekit_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Root endpoint - API status check"""
    return {
        "name": "Protect Motion Bridge",
        "version": APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check(protect_service: ProtectService = Depends(get_protect_service)):
    """Health check endpoint"""
    statuses = protect_service.get_all_connection_statuses()
    return {
        "status": "healthy",
        "controller_count": len(statuses),
        "connected_controllers": sum(1 for s in statuses.values() if s["status"] == "connected"),
        "device_count": len(protect_service.synchronizer),
    }


@app.get("/metrics")
async def prometheus_metrics():
    """
    Prometheus metrics endpoint

    Returns Prometheus-compatible metrics for scraping.
    """
    return Response(
        content=get_metrics(),
        media_type=get_content_type()
    )


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "protect_motion.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.effective_log_level.lower()
    )


if __name__ == "__main__":
    run()
