"""API routers."""

from .attachments import router as attachments_router
from .feed import router as feed_router
from .health import router as health_router
from .live_sessions import router as live_sessions_router
from .messages import router as messages_router
from .signals import router as signals_router

__all__ = [
    "attachments_router",
    "feed_router",
    "health_router",
    "live_sessions_router",
    "messages_router",
    "signals_router",
]
