"""
FastAPI app exposing health checks and on-demand runs of the daily summary job.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from calendar_digest.config import settings
from calendar_digest.features.daily_summary.api import router as daily_summary
from calendar_digest.infrastructure.observability.logging import get_logger, setup_logging
from calendar_digest.routes import health
from calendar_digest.services.calendar.google_client import google_calendar_service
from calendar_digest.services.sheets.google_client import google_sheets_service

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration on startup and close HTTP clients on shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    validation = settings.validate_configuration()
    if not validation["valid"]:
        logger.warning("Configuration incomplete", missing=validation["missing"])

    yield

    logger.info("Application shutting down")

    shutdown_errors = []
    for name, service in (
        ("google_sheets", google_sheets_service),
        ("google_calendar", google_calendar_service),
    ):
        try:
            await service.close()
        except Exception as e:
            logger.error("Error closing HTTP client", service=name, error=str(e))
            shutdown_errors.append(f"{name}: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="Calendar Digest",
    description="Daily calendar summary emails driven by a configuration sheet",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(daily_summary.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
