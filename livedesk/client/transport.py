"""
LiveDesk API transport.

REST calls over httpx and change-feed subscriptions over websockets.
HTTP errors are mapped back onto the domain exception hierarchy so the
orchestrator can tell validation problems from store failures.

Dependencies: httpx, websockets, livedesk.models
System role: Participant-side adapter for the Session Store, Message
Channel and Signaling Relay
"""

import asyncio
import inspect
import json
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable
from uuid import UUID

import httpx
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from livedesk.boundary.db.models import MessageType, SignalType
from livedesk.configs.webrtc import ClientSettings
from livedesk.core.exceptions import (
    ActiveSessionExistsError,
    InvalidSessionTransitionError,
    LiveDeskException,
    PermissionDeniedError,
    SessionClosedError,
    SessionNotFoundError,
    StoreError,
    ValidationError,
)
from livedesk.core.session import SessionRole
from livedesk.models.attachment import AttachmentResponse, AttachmentUrlResponse
from livedesk.models.feed import ChangeEvent, ChangeType, FeedEventType
from livedesk.models.message import MessageResponse
from livedesk.models.session import ConversationResponse, SessionResponse
from livedesk.models.signal import SignalResponse

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[ChangeEvent], Awaitable[None] | None]


def error_from_response(response: httpx.Response, operation: str) -> LiveDeskException:
    """Rebuild the domain exception the API reported."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        name = detail.get("error", "")
        message = detail.get("message") or response.reason_phrase
        details = detail.get("details") or {}
    else:
        name, message, details = "", str(detail or response.reason_phrase), {}

    status_code = response.status_code
    if status_code == 400 or status_code == 422:
        return ValidationError(message, field=details.get("field"))
    if status_code == 403:
        return PermissionDeniedError(message, user_id=details.get("user_id"))
    if status_code == 404 and name == "SessionNotFoundError":
        return SessionNotFoundError(details.get("session_id"))
    if status_code == 409:
        if name == "ActiveSessionExistsError":
            return ActiveSessionExistsError(details.get("student_id", ""), details.get("session_id"))
        if name == "SessionClosedError":
            return SessionClosedError(details.get("session_id"))
        if name == "InvalidSessionTransitionError":
            return InvalidSessionTransitionError(
                details.get("session_id"), details.get("current", ""), details.get("target", "")
            )
    return StoreError(message, operation=operation, status_code=status_code, details=details)


class RemoteFeedSubscription:
    """
    One WebSocket change feed.

    start() connects and waits for the server's "subscribed" frame, so any
    change committed afterwards is delivered. Callbacks may be sync or async;
    a failing callback is logged and the feed keeps running.
    """

    def __init__(
        self,
        url: str,
        on_change: ChangeCallback,
        connect: Callable[..., Any] | None = None,
    ) -> None:
        self.url = url
        self._on_change = on_change
        self._connect = connect or websockets.connect
        self._ws = None
        self._task: asyncio.Task | None = None
        self._closed = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> "RemoteFeedSubscription":
        try:
            self._ws = await self._connect(self.url)
            first = json.loads(await self._ws.recv())
        except (OSError, WebSocketException) as e:
            raise StoreError(f"Could not subscribe to {self.url}: {e}", operation="subscribe") from e
        if first.get("event") != FeedEventType.SUBSCRIBED.value:
            await self._ws.close()
            raise StoreError(f"Feed refused subscription: {first}", operation="subscribe")
        self._task = asyncio.create_task(self._reader())
        logger.debug("Feed subscribed", extra={"url": self.url})
        return self

    async def _reader(self) -> None:
        try:
            async for raw in self._ws:
                frame = json.loads(raw)
                if frame.get("event") != FeedEventType.CHANGE.value:
                    continue
                event = ChangeEvent.model_validate(frame["data"])
                try:
                    result = self._on_change(event)
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    logger.exception("Feed callback failed", extra={"url": self.url})
        except ConnectionClosed:
            if not self._closed:
                logger.warning("Feed connection closed by server", extra={"url": self.url})

    async def close(self) -> None:
        """Stop reading and close the socket. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        if self._ws is not None:
            await self._ws.close()


class LiveDeskClient:
    """
    HTTP + WebSocket client for one participant.

    Usage:
        async with LiveDeskClient("student-1", SessionRole.STUDENT) as client:
            session = await client.create_session()
            await client.send_message(session.id, "Wifi not working")
    """

    def __init__(
        self,
        user_id: str,
        role: SessionRole,
        settings: ClientSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        ws_connect: Callable[..., Any] | None = None,
    ) -> None:
        self.user_id = user_id
        self.role = SessionRole(role)
        self.settings = settings or ClientSettings()
        self._http = http_client or httpx.AsyncClient(
            base_url=self.settings.api_base_url,
            timeout=self.settings.request_timeout,
        )
        self._http.headers.update({"X-User-Id": user_id, "X-User-Role": self.role.value})
        self._ws_connect = ws_connect

    async def __aenter__(self) -> "LiveDeskClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> Any:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("API request failed", extra={"operation": operation, "error": str(e)})
            raise StoreError(f"Failed to {operation}: {e}", operation=operation) from e
        if response.status_code >= 400:
            raise error_from_response(response, operation)
        return response.json()

    # Sessions

    async def create_session(
        self,
        complaint_id: UUID | None = None,
        target_student_id: str | None = None,
    ) -> SessionResponse:
        body = {
            "complaint_id": str(complaint_id) if complaint_id else None,
            "target_student_id": target_student_id,
        }
        data = await self._request("POST", "/sessions", "create session", json=body)
        return SessionResponse.model_validate(data)

    async def join_session(self, session_id: UUID) -> SessionResponse:
        data = await self._request("POST", f"/sessions/{session_id}/join", "join session")
        return SessionResponse.model_validate(data)

    async def end_session(self, session_id: UUID) -> SessionResponse:
        data = await self._request("POST", f"/sessions/{session_id}/end", "end session")
        return SessionResponse.model_validate(data)

    async def get_session(self, session_id: UUID) -> SessionResponse:
        data = await self._request("GET", f"/sessions/{session_id}", "get session")
        return SessionResponse.model_validate(data)

    async def fetch_active(self) -> SessionResponse | None:
        data = await self._request("GET", "/sessions/active", "fetch active session")
        return SessionResponse.model_validate(data) if data else None

    async def fetch_waiting(self) -> list[SessionResponse]:
        data = await self._request("GET", "/sessions/waiting", "fetch waiting sessions")
        return [SessionResponse.model_validate(item) for item in data]

    async def list_conversations(self) -> list[ConversationResponse]:
        data = await self._request("GET", "/sessions/conversations", "list conversations")
        return [ConversationResponse.model_validate(item) for item in data["conversations"]]

    # Messages

    async def send_message(
        self,
        session_id: UUID,
        text: str,
        message_type: MessageType = MessageType.TEXT,
        file_url: str | None = None,
    ) -> MessageResponse:
        body = {"message": text, "message_type": MessageType(message_type).value, "file_url": file_url}
        data = await self._request(
            "POST", f"/sessions/{session_id}/messages", "send message", json=body
        )
        return MessageResponse.model_validate(data)

    async def fetch_messages(self, session_id: UUID) -> list[MessageResponse]:
        data = await self._request("GET", f"/sessions/{session_id}/messages", "fetch messages")
        return [MessageResponse.model_validate(item) for item in data["messages"]]

    async def mark_read(self, session_id: UUID) -> int:
        data = await self._request(
            "POST", f"/sessions/{session_id}/messages/read", "mark messages read"
        )
        return int(data["marked"])

    async def upload_file(
        self,
        session_id: UUID,
        filename: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> AttachmentResponse:
        files = {"file": (filename, data, content_type)}
        body = await self._request(
            "POST", f"/sessions/{session_id}/attachments", "upload file", files=files
        )
        return AttachmentResponse.model_validate(body)

    async def get_attachment_url(self, session_id: UUID, key: str) -> AttachmentUrlResponse:
        body = await self._request(
            "GET",
            f"/sessions/{session_id}/attachments/url",
            "get attachment url",
            params={"key": key},
        )
        return AttachmentUrlResponse.model_validate(body)

    # Signals

    async def send_signal(
        self,
        session_id: UUID,
        signal_type: SignalType,
        signal_data: dict[str, Any],
    ) -> SignalResponse:
        body = {"signal_type": SignalType(signal_type).value, "signal_data": signal_data}
        data = await self._request(
            "POST", f"/sessions/{session_id}/signals", "send signal", json=body
        )
        return SignalResponse.model_validate(data)

    async def list_signals(
        self,
        session_id: UUID,
        since: datetime | None = None,
    ) -> list[SignalResponse]:
        params = {"since": since.isoformat()} if since else None
        data = await self._request(
            "GET", f"/sessions/{session_id}/signals", "list signals", params=params
        )
        return [SignalResponse.model_validate(item) for item in data["signals"]]

    # Feeds

    def _feed_url(self, path: str) -> str:
        base = self.settings.ws_base_url.rstrip("/")
        return f"{base}{path}?{httpx.QueryParams({'user_id': self.user_id, 'role': self.role.value})}"

    async def _subscribe(self, path: str, on_change: ChangeCallback) -> RemoteFeedSubscription:
        subscription = RemoteFeedSubscription(self._feed_url(path), on_change, self._ws_connect)
        return await subscription.start()

    async def subscribe_sessions(self, on_change: ChangeCallback) -> RemoteFeedSubscription:
        """Changes to sessions where this user is student or admin."""
        return await self._subscribe("/ws/feed/sessions", on_change)

    async def subscribe_queue(self, on_change: ChangeCallback) -> RemoteFeedSubscription:
        """Waiting queue changes (admins)."""
        return await self._subscribe("/ws/feed/queue", on_change)

    async def subscribe_messages(
        self, session_id: UUID, on_change: ChangeCallback
    ) -> RemoteFeedSubscription:
        """Message inserts and read-receipt updates of one session."""
        return await self._subscribe(f"/ws/sessions/{session_id}/messages", on_change)

    async def subscribe_signals(
        self,
        session_id: UUID,
        handler: Callable[[SignalResponse], Awaitable[None] | None],
    ) -> RemoteFeedSubscription:
        """Signal envelopes of one session, delivered as SignalResponse."""

        async def on_change(event: ChangeEvent) -> None:
            if event.change_type != ChangeType.INSERT:
                return
            result = handler(SignalResponse.model_validate(event.record))
            if inspect.isawaitable(result):
                await result

        return await self._subscribe(f"/ws/sessions/{session_id}/signals", on_change)
