"""
Box Office API - Main Application Entry Point

Seat inventory for a ticketing marketplace:
- All-or-nothing seat locks with optimistic concurrency on the event row
- Hold expiry sweeper running in the background
- Checkout that re-validates seats, applies the best discount and redeems
  coupons atomically
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from boxoffice.api.middleware import RequestLoggingMiddleware
from boxoffice.api.router import api_router
from boxoffice.core.config import get_settings
from boxoffice.core.exceptions import BoxOfficeError
from boxoffice.core.logging import get_logger, setup_logging
from boxoffice.core.metrics import metrics_endpoint
from boxoffice.db.session import engine
from boxoffice.services.cache_service import close_redis, get_cache_stats, get_redis
from boxoffice.tasks import background_tasks

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        hold_duration_seconds=settings.HOLD_DURATION_SECONDS,
        sweep_interval_seconds=settings.SWEEP_INTERVAL_SECONDS,
    )

    if await get_redis() is None:
        logger.warning("seat_map_cache_unavailable", redis_enabled=settings.REDIS_ENABLED)

    if settings.SWEEPER_ENABLED:
        await background_tasks.start()
    else:
        logger.warning("hold_sweeper_disabled")

    yield

    await background_tasks.stop()
    await close_redis()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Seat inventory, booking holds and checkout for reserved-seating events",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.exception_handler(BoxOfficeError)
async def box_office_error_handler(request: Request, exc: BoxOfficeError) -> JSONResponse:
    logger.info("request_rejected", status_code=exc.status_code, error=exc.message, error_type=type(exc).__name__)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_error", error=str(exc), error_type=type(exc).__name__, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error"},
    )


async def _database_status() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("health_database_unreachable", error=str(e))
        return "unreachable"
    return "ok"


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Liveness plus dependency status for Docker and load balancers.
    Reports "degraded" when the database is unreachable; the cache is optional.
    """
    database = await _database_status()
    return {
        "status": "healthy" if database == "ok" else "degraded",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "database": database,
        "cache": await get_cache_stats(),
        "hold_sweeper": "running" if background_tasks.running else "stopped",
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
