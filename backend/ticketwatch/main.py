"""FastAPI application entrypoint."""

import asyncio
import contextlib
from contextlib import asynccontextmanager

import sentry_sdk
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ticketwatch import __version__
from ticketwatch.api import router as api_router
from ticketwatch.config import get_settings
from ticketwatch.db import init_db
from ticketwatch.engines.feedback.notifier import get_broadcaster
from ticketwatch.workers.watcher import create_watcher

settings = get_settings()
logger = structlog.get_logger()

# Initialize Sentry if configured
if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    The watcher runs in this process so its fresh tickets reach the
    stream subscribers through the shared broadcaster.
    """
    logger.info("Starting ticketwatch API", environment=settings.environment)
    await init_db()

    if not settings.watcher_enabled:
        yield
        logger.info("Shutting down ticketwatch API")
        return

    async with create_watcher(get_broadcaster(), settings) as watcher:
        task = asyncio.create_task(watcher.run())
        try:
            yield
        finally:
            logger.info("Shutting down ticketwatch API")
            watcher.stop()
            with contextlib.suppress(asyncio.CancelledError):
                await task


app = FastAPI(
    title="ticketwatch API",
    description="Parking tickets discovered on the city citation portal",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "watcher": settings.watcher_enabled,
        "stream_subscribers": get_broadcaster().subscriber_count,
    }
