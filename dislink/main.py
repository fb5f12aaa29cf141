"""
Dislink FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dislink import config, db
from dislink.errors import CodeExpired, DislinkError, Throttled
from dislink.middleware.rate_limit import rate_limiter
from dislink.routes import auth_routes
from dislink.routes import codes as code_routes
from dislink.routes import connections as connection_routes
from dislink.routes import links as link_routes
from dislink.routes import needs as need_routes
from dislink.services.scan_recorder import scan_recorder
from dislink.store import MemoryStore, PostgresStore, set_store

logger = logging.getLogger(__name__)


# Background task for cleanup
async def cleanup_task():
    """
    Background task that sweeps ended rate limit windows.

    Runs every RATE_LIMIT_SWEEP_SECONDS.
    """
    while True:
        try:
            swept = rate_limiter.sweep()
            if swept > 0:
                logger.debug("Swept %d stale rate limit buckets", swept)
        except Exception:
            logger.exception("Error in cleanup task")

        await asyncio.sleep(config.settings.RATE_LIMIT_SWEEP_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Pick the storage backend (and open the database pool for postgres)
    - Start background cleanup task
    - Let pending geocode lookups finish, then close the pool
    """
    # Startup
    if config.settings.STORAGE_BACKEND == "memory":
        set_store(MemoryStore())
        logger.info("Using in-memory store")
    else:
        await db.init_pool()
        set_store(PostgresStore())
        logger.info("Database pool initialized")

    cleanup_task_handle = asyncio.create_task(cleanup_task())
    logger.info("Background cleanup task started")

    yield

    # Shutdown
    cleanup_task_handle.cancel()
    try:
        await cleanup_task_handle
    except asyncio.CancelledError:
        logger.info("Background cleanup task stopped")

    await scan_recorder.drain()

    if config.settings.STORAGE_BACKEND != "memory":
        await db.close_pool()
        logger.info("Database pool closed")


app = FastAPI(
    title="Dislink",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)


@app.exception_handler(DislinkError)
async def dislink_error_handler(request: Request, exc: DislinkError) -> JSONResponse:
    """Render every domain error as {"detail", "code"} with its HTTP status."""
    if isinstance(exc, (Throttled, CodeExpired)):
        logger.info("%s %s -> %s", request.method, request.url.path, exc.error_code)
    elif exc.status_code >= 500:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.error_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.error_code},
        headers=exc.headers,
    )


# Register routes
app.include_router(auth_routes.router)
app.include_router(code_routes.router)
app.include_router(link_routes.router)
app.include_router(connection_routes.router)
app.include_router(need_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}
