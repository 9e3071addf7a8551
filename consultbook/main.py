"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status
from sqlalchemy import text

from consultbook.core.cache import close_cache_backend, get_cache_backend
from consultbook.core.config import get_settings
from consultbook.core.database import SessionLocal, close_engine
from consultbook.core.metrics import build_metrics_response, instrument_http_request
from consultbook.modules.audit.router import router as audit_router
from consultbook.modules.availability.router import router as availability_router
from consultbook.modules.booking.router import router as booking_router
from consultbook.modules.experts.router import router as experts_router
from consultbook.modules.scheduling.router import router as scheduling_router
from consultbook.shared.exceptions import CacheUnavailableError, register_exception_handlers
from consultbook.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Application startup and shutdown hooks."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info(
        "Starting %s (cache=%s, region=%s)",
        settings.app_name,
        settings.cache_backend,
        settings.region_timezone,
    )

    yield

    logger.info("Shutting down %s", settings.app_name)
    await close_cache_backend()
    await close_engine()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)
app.middleware("http")(instrument_http_request)

register_exception_handlers(app)

app.include_router(experts_router, prefix=settings.api_prefix)
app.include_router(scheduling_router, prefix=settings.api_prefix)
app.include_router(availability_router, prefix=settings.api_prefix)
app.include_router(booking_router, prefix=settings.api_prefix)
app.include_router(audit_router, prefix=settings.api_prefix)


@app.get("/health")
async def healthcheck() -> dict[str, str]:
    """Liveness probe endpoint."""
    return {"status": "ok"}


async def _is_database_ready() -> bool:
    """Return True if DB accepts basic queries."""
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("Database readiness check failed")
        return False


async def _is_cache_ready() -> bool:
    """Return True if the cache backend answers."""
    try:
        return await get_cache_backend().ping()
    except CacheUnavailableError:
        logger.warning("Cache readiness check failed", exc_info=True)
        return False


@app.get("/ready")
async def readiness_check() -> dict[str, str]:
    """Readiness probe endpoint with DB and cache dependency checks."""
    if not await _is_database_ready():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not ready",
        )
    if not await _is_cache_ready():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cache is not ready",
        )
    return {
        "status": "ready",
        "database": "ok",
        "cache": "ok",
        "timestamp": utc_now().isoformat(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics_endpoint(_: Request) -> Response:
    """Prometheus metrics endpoint."""
    return build_metrics_response()
