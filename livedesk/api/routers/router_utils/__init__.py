"""
Router utility functions.

Contains helpers extracted from router endpoints to keep them clean.
"""

from livedesk.api.routers.router_utils.error_handling import (
    error_detail,
    error_status_for,
    handle_live_desk_errors,
)

__all__ = [
    "error_detail",
    "error_status_for",
    "handle_live_desk_errors",
]
