"""
Test suite for the in-process change feed.

Tests fan-out, predicate filtering, overflow handling and the
subscription filters used by the WebSocket feeds.

System role: Verification of realtime push mechanism
"""

import asyncio
import threading
import uuid

import pytest

from livedesk.boundary.realtime.change_feed import (
    ChangeFeed,
    session_participant_filter,
    session_scope_filter,
    waiting_queue_filter,
)
from livedesk.models.feed import ChangeEvent, ChangeType, FeedTable


def _session_event(status: str, admin_id: str | None = None, old_status: str | None = None) -> ChangeEvent:
    record = {"id": str(uuid.uuid4()), "student_id": "student-1", "admin_id": admin_id, "status": status}
    old_record = dict(record, status=old_status) if old_status else None
    return ChangeEvent(
        table=FeedTable.SESSIONS,
        change_type=ChangeType.UPDATE if old_status else ChangeType.INSERT,
        record=record,
        old_record=old_record,
    )


def _message_event(session_id: uuid.UUID) -> ChangeEvent:
    return ChangeEvent(
        table=FeedTable.MESSAGES,
        change_type=ChangeType.INSERT,
        record={"id": str(uuid.uuid4()), "session_id": str(session_id), "message": "hi"},
    )


class TestChangeFeedPublish:
    """Test suite for ChangeFeed.publish()."""

    async def test_publish_reaches_every_matching_subscriber(self, feed: ChangeFeed) -> None:
        """Test fan-out to all subscribers without a predicate."""
        # Arrange
        first = feed.subscribe()
        second = feed.subscribe()
        event = _session_event("waiting")

        # Act
        receivers = feed.publish(event)

        # Assert
        assert receivers == 2
        assert await asyncio.wait_for(first.get(), 1) == event
        assert await asyncio.wait_for(second.get(), 1) == event

    async def test_predicate_filters_events(self, feed: ChangeFeed) -> None:
        # Arrange
        session_id = uuid.uuid4()
        subscription = feed.subscribe(session_scope_filter(FeedTable.MESSAGES, session_id))

        # Act
        skipped = feed.publish(_message_event(uuid.uuid4()))
        delivered = feed.publish(_message_event(session_id))

        # Assert
        assert skipped == 0
        assert delivered == 1
        event = await asyncio.wait_for(subscription.get(), 1)
        assert event.session_id == str(session_id)

    async def test_failing_predicate_skips_only_that_subscriber(self, feed: ChangeFeed) -> None:
        # Arrange
        def broken(event: ChangeEvent) -> bool:
            raise KeyError("boom")

        feed.subscribe(broken)
        healthy = feed.subscribe()

        # Act
        receivers = feed.publish(_session_event("waiting"))

        # Assert
        assert receivers == 1
        assert await asyncio.wait_for(healthy.get(), 1) is not None

    async def test_full_queue_drops_events(self) -> None:
        """Test a slow subscriber loses events instead of blocking publishers."""
        # Arrange
        feed = ChangeFeed(max_queue_size=1)
        subscription = feed.subscribe()

        # Act
        feed.publish(_session_event("waiting"))
        feed.publish(_session_event("active"))

        # Assert
        assert subscription.dropped == 1
        first = await asyncio.wait_for(subscription.get(), 1)
        assert first.record["status"] == "waiting"

    async def test_publish_from_another_thread(self, feed: ChangeFeed) -> None:
        """Test events published off-loop are handed over thread-safely."""
        # Arrange
        subscription = feed.subscribe()
        event = _session_event("active")

        # Act
        thread = threading.Thread(target=feed.publish, args=(event,))
        thread.start()
        thread.join()

        # Assert
        assert await asyncio.wait_for(subscription.get(), 1) == event


class TestFeedSubscription:
    """Test suite for subscription lifecycle."""

    async def test_close_detaches_and_ends_iteration(self, feed: ChangeFeed) -> None:
        # Arrange
        subscription = feed.subscribe()
        received: list[ChangeEvent] = []

        async def consume() -> None:
            async for event in subscription:
                received.append(event)

        consumer = asyncio.create_task(consume())
        feed.publish(_session_event("waiting"))
        await asyncio.sleep(0)

        # Act
        subscription.close()
        subscription.close()
        await asyncio.wait_for(consumer, 1)

        # Assert
        assert len(received) == 1
        assert subscription.closed
        assert feed.subscriber_count == 0
        assert feed.publish(_session_event("active")) == 0


class TestFeedFilters:
    """Test suite for the WebSocket feed predicates."""

    def test_participant_filter_matches_student_and_admin(self) -> None:
        assert session_participant_filter("student-1")(_session_event("waiting"))
        assert session_participant_filter("admin-1")(_session_event("active", admin_id="admin-1"))
        assert not session_participant_filter("admin-2")(_session_event("active", admin_id="admin-1"))

    def test_participant_filter_ignores_other_tables(self) -> None:
        assert not session_participant_filter("student-1")(_message_event(uuid.uuid4()))

    @pytest.mark.parametrize(
        "status,old_status,expected",
        [
            ("waiting", None, True),
            ("active", "waiting", True),
            ("ended", "waiting", True),
            ("ended", "active", False),
        ],
    )
    def test_queue_filter_tracks_entering_and_leaving(
        self, status: str, old_status: str | None, expected: bool
    ) -> None:
        """Test rows entering or leaving the waiting state are matched."""
        assert waiting_queue_filter()(_session_event(status, old_status=old_status)) is expected

    def test_scope_filter_for_session_rows_uses_id(self) -> None:
        event = _session_event("active")
        assert session_scope_filter(FeedTable.SESSIONS, event.record["id"])(event)
