"""
In-process change feed.

Services publish a ChangeEvent after every commit; WebSocket handlers
subscribe with a predicate and pump matching events to clients. Each
subscriber owns a bounded asyncio.Queue bound to the loop it subscribed
from, so publishing is safe from any thread. A subscriber whose queue is
full drops the event; clients recover on their next fetch.

Dependencies: asyncio, livedesk.models.feed
System role: Realtime push mechanism for sessions, messages and signals
"""

import asyncio
import logging
import threading
from functools import lru_cache
from typing import Callable
from uuid import UUID

from livedesk.configs import get_settings
from livedesk.core.session import SessionStatus
from livedesk.models.feed import ChangeEvent, FeedTable

logger = logging.getLogger(__name__)

FeedPredicate = Callable[[ChangeEvent], bool]

_CLOSED = object()


class FeedSubscription:
    """
    One subscriber's view of the feed.

    Usage:
        subscription = feed.subscribe(session_scope_filter(FeedTable.MESSAGES, sid))
        try:
            async for event in subscription:
                ...
        finally:
            subscription.close()
    """

    def __init__(
        self,
        feed: "ChangeFeed",
        predicate: FeedPredicate,
        maxsize: int,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._feed = feed
        self._predicate = predicate
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._loop = loop
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, event: ChangeEvent) -> bool:
        try:
            return self._predicate(event)
        except Exception as e:
            logger.warning(
                "Feed predicate raised; event skipped",
                extra={"error": str(e), "table": event.table.value},
            )
            return False

    def _offer(self, item) -> None:
        if self._closed and item is not _CLOSED:
            return
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            if item is _CLOSED:
                return
            self.dropped += 1
            logger.warning(
                "Feed subscriber queue full, dropping event",
                extra={"table": item.table.value, "dropped": self.dropped},
            )

    def deliver(self, event: ChangeEvent) -> None:
        """Hand an event to this subscriber from any thread."""
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._offer(event)
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._offer, event)

    async def get(self) -> ChangeEvent | None:
        """Next matching event, or None once closed."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def __aiter__(self) -> "FeedSubscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def close(self) -> None:
        """Detach from the feed and wake any pending reader. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._feed._remove(self)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._offer(_CLOSED)
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._offer, _CLOSED)


class ChangeFeed:
    """Fan-out of committed row changes to in-process subscribers."""

    def __init__(self, max_queue_size: int = 256) -> None:
        self._max_queue_size = max_queue_size
        self._subscribers: list[FeedSubscription] = []
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, predicate: FeedPredicate | None = None) -> FeedSubscription:
        """
        Register a subscriber on the running event loop.

        Args:
            predicate: Filter applied to every published event (None = all)

        Returns:
            FeedSubscription: Async iterator of matching events
        """
        subscription = FeedSubscription(
            self,
            predicate or (lambda event: True),
            self._max_queue_size,
            asyncio.get_running_loop(),
        )
        with self._lock:
            self._subscribers.append(subscription)
        logger.debug("Feed subscriber added", extra={"subscribers": len(self._subscribers)})
        return subscription

    def _remove(self, subscription: FeedSubscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

    def publish(self, event: ChangeEvent) -> int:
        """
        Deliver an event to every matching subscriber.

        Returns:
            int: Number of subscribers the event was handed to
        """
        with self._lock:
            targets = [s for s in self._subscribers if s.matches(event)]
        for subscription in targets:
            subscription.deliver(event)
        logger.debug(
            "Change published",
            extra={
                "table": event.table.value,
                "change_type": event.change_type.value,
                "receivers": len(targets),
            },
        )
        return len(targets)


def session_participant_filter(user_id: str) -> FeedPredicate:
    """Session rows where user_id is the student or the assigned admin."""

    def predicate(event: ChangeEvent) -> bool:
        if event.table != FeedTable.SESSIONS:
            return False
        record = event.record
        return user_id in (record.get("student_id"), record.get("admin_id"))

    return predicate


def waiting_queue_filter() -> FeedPredicate:
    """Session rows entering or leaving the waiting queue."""
    waiting = SessionStatus.WAITING.value

    def predicate(event: ChangeEvent) -> bool:
        if event.table != FeedTable.SESSIONS:
            return False
        if event.record.get("status") == waiting:
            return True
        return bool(event.old_record) and event.old_record.get("status") == waiting

    return predicate


def session_scope_filter(table: FeedTable, session_id: UUID | str) -> FeedPredicate:
    """Rows of one table that belong to one session."""
    wanted = str(session_id)

    def predicate(event: ChangeEvent) -> bool:
        return event.table == table and event.session_id == wanted

    return predicate


@lru_cache
def get_change_feed() -> ChangeFeed:
    """Process-wide change feed (single API worker)."""
    return ChangeFeed(max_queue_size=get_settings().realtime.feed_queue_size)
