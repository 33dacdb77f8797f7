"""
WebSocket change feeds.

Pushes committed row changes to participants in real time.

Routes:
- WS /ws/feed/sessions - Session rows where the caller is student or admin
- WS /ws/feed/queue - Session rows entering/leaving the waiting queue (admins)
- WS /ws/sessions/{session_id}/messages - Message inserts and read receipts
- WS /ws/sessions/{session_id}/signals - Signal envelopes

Client sends:
    {"event": "ping"}

Server sends:
    {"event": "subscribed", "data": {"feed": "...", ...}}
    {"event": "change", "data": ChangeEvent}
    {"event": "pong"}
    {"event": "error", "data": {"code": "...", "message": "..."}}

Identity is passed as user_id / role query parameters.

Dependencies: livedesk.boundary.realtime, livedesk.application.services
System role: Realtime push HTTP API
"""

import asyncio
import contextlib
import json
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from livedesk.api.deps.dependencies import get_live_session_service, get_ws_user
from livedesk.application.services import LiveSessionService
from livedesk.boundary.realtime.change_feed import (
    ChangeFeed,
    FeedPredicate,
    FeedSubscription,
    get_change_feed,
    session_participant_filter,
    session_scope_filter,
    waiting_queue_filter,
)
from livedesk.core.exceptions import LiveDeskException
from livedesk.models.feed import FeedEventType, FeedTable
from livedesk.models.user import CurrentUser

logger = logging.getLogger(__name__)
router = APIRouter(tags=["feed"])


async def _reject(websocket: WebSocket, reason: str) -> None:
    logger.warning("Feed subscription rejected", extra={"reason": reason})
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=reason)


async def _pump(websocket: WebSocket, subscription: FeedSubscription) -> None:
    """Forward matching changes to the socket until closed."""
    async for event in subscription:
        await websocket.send_json(
            {"event": FeedEventType.CHANGE.value, "data": event.to_dict()}
        )


async def _serve_feed(
    websocket: WebSocket,
    feed: ChangeFeed,
    predicate: FeedPredicate,
    scope: dict[str, Any],
) -> None:
    """
    Accept, subscribe, acknowledge, then answer pings until the client leaves.

    The subscription exists before the acknowledgement is sent, so a
    client never misses a change committed after it saw "subscribed".
    """
    await websocket.accept()
    subscription = feed.subscribe(predicate)
    pump = asyncio.create_task(_pump(websocket, subscription))

    logger.info("Feed subscribed", extra=scope)
    await websocket.send_json({"event": FeedEventType.SUBSCRIBED.value, "data": scope})

    try:
        while True:
            raw_data = await websocket.receive_text()
            try:
                data = json.loads(raw_data)
            except json.JSONDecodeError:
                await websocket.send_json({
                    "event": FeedEventType.ERROR.value,
                    "data": {"code": "INVALID_JSON", "message": "Invalid JSON format"},
                })
                continue

            event_type = data.get("event") if isinstance(data, dict) else None
            if event_type == FeedEventType.PING.value:
                await websocket.send_json({"event": FeedEventType.PONG.value})
                continue

            await websocket.send_json({
                "event": FeedEventType.ERROR.value,
                "data": {"code": "UNKNOWN_EVENT", "message": f"Unknown event type: {event_type}"},
            })

    except WebSocketDisconnect:
        logger.info("Feed client disconnected", extra=scope)
    finally:
        subscription.close()
        pump.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await pump


@router.websocket("/ws/feed/sessions")
async def session_feed(
    websocket: WebSocket,
    feed: ChangeFeed = Depends(get_change_feed),
) -> None:
    """Session changes for the sessions the caller takes part in."""
    user = get_ws_user(websocket)
    if user is None:
        await _reject(websocket, "user_id and role query parameters are required")
        return
    await _serve_feed(
        websocket,
        feed,
        session_participant_filter(user.id),
        {"feed": "sessions", "user_id": user.id},
    )


@router.websocket("/ws/feed/queue")
async def queue_feed(
    websocket: WebSocket,
    feed: ChangeFeed = Depends(get_change_feed),
) -> None:
    """Waiting queue changes (admins only)."""
    user = get_ws_user(websocket)
    if user is None or not user.is_admin:
        await _reject(websocket, "Only admins can watch the queue")
        return
    await _serve_feed(
        websocket,
        feed,
        waiting_queue_filter(),
        {"feed": "queue", "user_id": user.id},
    )


async def _authorize_session(
    websocket: WebSocket,
    session_service: LiveSessionService,
    session_id: UUID,
    participants_only: bool,
) -> CurrentUser | None:
    user = get_ws_user(websocket)
    if user is None:
        await _reject(websocket, "user_id and role query parameters are required")
        return None
    try:
        session = await session_service.get_session(session_id, user)
    except LiveDeskException as e:
        await _reject(websocket, e.message)
        return None
    finally:
        # Release the pooled connection for the lifetime of the socket
        await session_service.db.close()

    if participants_only and user.id not in (session.student_id, session.admin_id):
        await _reject(websocket, "Only participants can receive signals")
        return None
    return user


@router.websocket("/ws/sessions/{session_id}/messages")
async def message_feed(
    websocket: WebSocket,
    session_id: UUID,
    feed: ChangeFeed = Depends(get_change_feed),
    session_service: LiveSessionService = Depends(get_live_session_service),
) -> None:
    """Message inserts and read-receipt updates for one session."""
    user = await _authorize_session(websocket, session_service, session_id, participants_only=False)
    if user is None:
        return
    await _serve_feed(
        websocket,
        feed,
        session_scope_filter(FeedTable.MESSAGES, session_id),
        {"feed": "messages", "session_id": str(session_id), "user_id": user.id},
    )


@router.websocket("/ws/sessions/{session_id}/signals")
async def signal_feed(
    websocket: WebSocket,
    session_id: UUID,
    feed: ChangeFeed = Depends(get_change_feed),
    session_service: LiveSessionService = Depends(get_live_session_service),
) -> None:
    """Signal envelopes for one session; receivers drop their own."""
    user = await _authorize_session(websocket, session_service, session_id, participants_only=True)
    if user is None:
        return
    await _serve_feed(
        websocket,
        feed,
        session_scope_filter(FeedTable.SIGNALS, session_id),
        {"feed": "signals", "session_id": str(session_id), "user_id": user.id},
    )
