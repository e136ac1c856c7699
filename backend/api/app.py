"""FastAPI application factory"""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from api.core.config import get_settings
from api.core.logging import setup_logging
from api.routers import storefront_router, timers_router
from countdown.database import DatabaseManager, PoolConfig, get_database_manager, init_database_manager

logger = logging.getLogger(__name__)

SERVICE_NAME = "countdown-timer-api"
VERSION = "1.0.0"

_start_time: float = 0.0
_heartbeat_task: asyncio.Task | None = None
_db_retry_task: asyncio.Task | None = None


async def _heartbeat(interval: int = 300) -> None:
    """Periodic heartbeat: log uptime and DB status"""
    while True:
        await asyncio.sleep(interval)
        uptime = int(time.time() - _start_time)
        db_ok = await get_database_manager().check_health()
        logger.info(f"Heartbeat: uptime={uptime}s, db={db_ok}")


async def _db_retry_loop(db_manager: DatabaseManager) -> None:
    """Keep retrying the DB connection after a failed startup, with backoff."""
    delay = 5
    max_delay = 60
    while not db_manager.is_connected:
        await asyncio.sleep(delay)
        try:
            await db_manager.connect()
            logger.info("Database connected (background retry)")
            return
        except asyncio.CancelledError:
            return
        except Exception as e:
            delay = min(delay * 2, max_delay)
            logger.warning(
                f"DB background retry failed: {type(e).__name__}: {e}, next retry in {delay}s"
            )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    global _start_time, _heartbeat_task, _db_retry_task
    _start_time = time.time()

    settings = get_settings()
    logger.info(f"Starting {SERVICE_NAME} ({settings.environment})")

    # Wait for the pool before accepting requests; fall back to a background
    # retry so the storefront health endpoints still answer.
    db_manager = init_database_manager(
        settings.database_url, PoolConfig.for_service("api", ssl=settings.database_ssl)
    )
    try:
        await asyncio.wait_for(db_manager.connect(), timeout=30)
        logger.info("Database connected")
    except Exception as e:
        logger.error(
            f"DB connection failed during startup: {type(e).__name__}: {e}, retrying in background"
        )
        _db_retry_task = asyncio.create_task(_db_retry_loop(db_manager))

    if settings.enable_keep_alive:
        _heartbeat_task = asyncio.create_task(_heartbeat(settings.keep_alive_interval))
        logger.info(f"Heartbeat started (interval={settings.keep_alive_interval}s)")

    yield

    logger.info(f"Shutting down {SERVICE_NAME}")
    for task in (_db_retry_task, _heartbeat_task):
        if task:
            task.cancel()
    await db_manager.disconnect()


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()

    setup_logging(settings)

    app = FastAPI(
        title="Countdown Timer API",
        description="Merchant timer configuration and storefront timer delivery",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_origin_regex,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    app.include_router(timers_router.router)
    app.include_router(storefront_router.router)

    @app.get("/")
    async def root():
        return {"service": SERVICE_NAME, "status": "running"}

    # Liveness probe, no external dependency
    @app.get("/health")
    async def health():
        return {"status": "healthy", "uptime_seconds": int(time.time() - _start_time)}

    @app.get("/api/health")
    async def status():
        """Readiness endpoint, runs a real DB query"""
        try:
            db_ok = await get_database_manager().check_health()
        except RuntimeError:
            db_ok = False
        return {
            "success": True,
            "service": SERVICE_NAME,
            "version": VERSION,
            "status": "healthy",
            "database": "connected" if db_ok else "disconnected",
            "environment": settings.environment,
            "uptime_seconds": int(time.time() - _start_time),
        }

    @app.api_route("/ping", methods=["GET", "HEAD"], response_class=PlainTextResponse)
    async def ping():
        return "pong"

    logger.info("FastAPI application configured")
    return app
