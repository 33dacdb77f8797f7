"""
Realtime boundary: in-process change feed.

Exports: ChangeFeed, FeedSubscription, get_change_feed and predicate helpers
"""

from .change_feed import (
    ChangeFeed,
    FeedPredicate,
    FeedSubscription,
    get_change_feed,
    session_participant_filter,
    session_scope_filter,
    waiting_queue_filter,
)

__all__ = [
    "ChangeFeed",
    "FeedPredicate",
    "FeedSubscription",
    "get_change_feed",
    "session_participant_filter",
    "session_scope_filter",
    "waiting_queue_filter",
]
