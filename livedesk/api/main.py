"""
FastAPI application with assembled routers.

Initializes FastAPI app with all API routers, observability middleware and
the signal purge background task, and configures the uvicorn server.

Dependencies: fastapi, livedesk.api.routers, uvicorn
System role: API entry point with router assembly and server launch
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from livedesk.api.deps.dependencies import get_service_cache
from livedesk.application.services import SignalingService
from livedesk.boundary.db import create_tables, get_async_session_factory
from livedesk.configs import get_settings
from livedesk.core.exceptions import LiveDeskException
from livedesk.observability import configure_logging
from livedesk.observability.middleware import CorrelationMiddleware, RequestLoggingMiddleware
from .routers import (
    attachments_router,
    feed_router,
    health_router,
    live_sessions_router,
    messages_router,
    signals_router,
)

logger = logging.getLogger(__name__)


async def purge_signals_periodically(
    ttl_seconds: int,
    interval_seconds: int,
    session_factory=None,
) -> None:
    """
    Delete expired signal envelopes every interval until cancelled.

    A failed run is logged and the next interval tries again.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            factory = session_factory or get_async_session_factory()
            async with factory() as db:
                await SignalingService(db).purge_expired(ttl_seconds)
        except LiveDeskException as e:
            logger.warning("Signal purge failed", extra={"error": str(e)})
        except Exception as e:
            logger.exception("Signal purge crashed", extra={"error_type": type(e).__name__})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    # Startup
    if settings.database.create_tables_on_startup:
        await create_tables()
        logger.info("Database tables ensured")

    purge_task = asyncio.create_task(
        purge_signals_periodically(
            settings.realtime.signal_ttl_seconds,
            settings.realtime.signal_purge_interval_seconds,
        )
    )
    logger.info("LiveDesk API started", extra={"environment": settings.environment})

    yield

    # Shutdown
    purge_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await purge_task
    get_service_cache().clear()
    logger.info("LiveDesk API stopped")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application with routers.

    Returns:
        FastAPI: Configured application instance with all routers registered
    """
    app = FastAPI(
        title="LiveDesk API",
        description="Live support sessions between students and admins: chat, signaling and screen share",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add observability middleware
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationMiddleware)

    # Register all routers with /api/v1 prefix for versioning
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(live_sessions_router, prefix="/api/v1")
    app.include_router(messages_router, prefix="/api/v1")
    app.include_router(attachments_router, prefix="/api/v1")
    app.include_router(signals_router, prefix="/api/v1")

    # WebSocket feeds live at the root
    app.include_router(feed_router)

    return app


app = create_app()


if __name__ == "__main__":
    _settings = get_settings()
    uvicorn.run(
        "livedesk.api.main:app",
        host=_settings.api_host,
        port=_settings.api_port,
    )
