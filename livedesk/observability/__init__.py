"""
Observability module.

Provides structured logging, correlation ID tracking and request logging
middleware.
"""

from livedesk.observability.correlation import get_correlation_id, set_correlation_id
from livedesk.observability.logger import configure_logging

__all__ = [
    "configure_logging",
    "get_correlation_id",
    "set_correlation_id",
]
