"""
Session orchestrator.

The single UI-facing object per open "tab". It holds the authoritative
in-memory state (active session, selected session, messages, connection
state, local/remote streams, media flags) and notifies observers through
pyee events whenever any of it changes. Every mutation of that state goes
through this class.

Events:
    state_changed(OrchestratorState)  - after any state change
    messages_changed(list[MessageResponse])
    notification(Notification)        - user-facing toasts

Session rows are reconciled level-triggered from the change feed: a
non-ended row becomes the active session, an ended or deleted row clears
it. Duplicates are harmless and stale rows are ignored.

Dependencies: pyee, livedesk.client.transport, livedesk.client.peer_connection
System role: Session Orchestrator
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import UUID

from pyee.asyncio import AsyncIOEventEmitter

from livedesk.boundary.db.models import MessageType
from livedesk.client.device_bus import BroadcastChannel, BroadcastMessage, DeviceEventBus, device_bus
from livedesk.client.media import MediaDevices, MediaStream
from livedesk.client.peer_connection import PeerConnectionManager
from livedesk.client.transport import LiveDeskClient, RemoteFeedSubscription
from livedesk.configs.webrtc import WebRTCSettings
from livedesk.core.exceptions import (
    LiveDeskException,
    MediaError,
    MediaPermissionDeniedError,
    MediaUnsupportedError,
    NegotiationError,
    ValidationError,
)
from livedesk.core.session import SessionRole, SessionStatus, status_rank
from livedesk.models.feed import ChangeEvent, ChangeType
from livedesk.models.message import MessageResponse
from livedesk.models.session import SessionResponse

logger = logging.getLogger(__name__)

SESSION_CREATED = "session_created"
SESSION_JOINED = "session_joined"
SESSION_ENDED = "session_ended"


@dataclass(frozen=True)
class Notification:
    """User-facing toast."""

    title: str
    description: str
    level: str = "info"


@dataclass
class OrchestratorState:
    """Snapshot of everything observers render."""

    active_session: SessionResponse | None = None
    selected_session: SessionResponse | None = None
    messages: list[MessageResponse] = field(default_factory=list)
    connection_state: str = "closed"
    local_stream: MediaStream | None = None
    remote_stream: MediaStream | None = None
    is_screen_sharing: bool = False
    is_audio_enabled: bool = False


class SessionOrchestrator(AsyncIOEventEmitter):
    """
    Observable live-session state for one participant tab.

    Usage:
        orchestrator = SessionOrchestrator(client)
        orchestrator.on("state_changed", render)
        orchestrator.on("notification", toast)
        await orchestrator.start()
        session = await orchestrator.create_session()
        await orchestrator.send_message("Wifi not working")
    """

    def __init__(
        self,
        client: LiveDeskClient,
        devices: MediaDevices | None = None,
        webrtc_settings: WebRTCSettings | None = None,
        bus: DeviceEventBus | None = None,
        pc_factory: Callable[..., Any] | None = None,
    ) -> None:
        super().__init__()
        self.client = client
        self.user_id = client.user_id
        self.role = SessionRole(client.role)
        self.devices = devices
        self.webrtc_settings = webrtc_settings or WebRTCSettings()
        self.bus = bus or device_bus
        self._pc_factory = pc_factory

        self.state = OrchestratorState()
        self._pcm: PeerConnectionManager | None = None
        self._session_feed: RemoteFeedSubscription | None = None
        self._message_feed: RemoteFeedSubscription | None = None
        self._channel: BroadcastChannel | None = None
        self._started = False

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def active_session(self) -> SessionResponse | None:
        return self.state.active_session

    @property
    def selected_session(self) -> SessionResponse | None:
        return self.state.selected_session

    @property
    def messages(self) -> list[MessageResponse]:
        return list(self.state.messages)

    @property
    def peer(self) -> PeerConnectionManager | None:
        return self._pcm

    @property
    def is_initiator(self) -> bool:
        session = self.state.selected_session
        return session is not None and session.initiator == self.role

    def _emit_state(self) -> None:
        self.emit("state_changed", self.state)

    def _emit_messages(self) -> None:
        self.emit("messages_changed", self.messages)
        self._emit_state()

    def _notify(self, title: str, description: str, level: str = "info") -> None:
        self.emit("notification", Notification(title=title, description=description, level=level))

    def _notify_failure(self, title: str, error: LiveDeskException) -> None:
        logger.warning(title, extra={"error_type": type(error).__name__, "error": str(error)})
        self._notify(title, error.message, level="error")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Cold start: open the device channel, subscribe to session changes
        and fetch the current session.
        """
        if self._started:
            return
        self._started = True
        self._channel = self.bus.channel(f"livedesk-{self.user_id}")
        self._channel.on_message(self._on_broadcast)

        try:
            self._session_feed = await self.client.subscribe_sessions(self._on_session_change)
        except LiveDeskException as e:
            self._notify_failure("Live updates unavailable", e)

        await self.refresh_active_session()
        logger.info("Orchestrator started", extra={"user_id": self.user_id, "role": self.role.value})

    async def close(self) -> None:
        """Release every resource. The session itself stays open."""
        await self._release_selection()
        if self._session_feed is not None:
            await self._session_feed.close()
            self._session_feed = None
        if self._channel is not None:
            self._channel.close()
            self._channel = None
        self._started = False
        self.state = OrchestratorState()
        self._emit_state()
        logger.info("Orchestrator closed", extra={"user_id": self.user_id})

    async def refresh_active_session(self) -> SessionResponse | None:
        """Re-fetch the caller's current session; the recovery path after errors."""
        try:
            session = await self.client.fetch_active()
        except LiveDeskException as e:
            self._notify_failure("Could not load your chat", e)
            return self.state.active_session
        self.state.active_session = session
        self._emit_state()
        return session

    def _broadcast(self, type: str, session: SessionResponse) -> None:
        if self._channel is not None:
            self._channel.post_message(type, {"session_id": str(session.id), "status": session.status.value})

    async def _on_broadcast(self, message: BroadcastMessage) -> None:
        logger.debug("Broadcast received", extra={"type": message.type})
        await self.refresh_active_session()

    # ------------------------------------------------------------------
    # Session reconciliation
    # ------------------------------------------------------------------

    def _accepts(self, current: SessionResponse | None, incoming: SessionResponse) -> bool:
        if current is None:
            return True
        if current.id == incoming.id:
            return status_rank(incoming.status) >= status_rank(current.status)
        return incoming.created_at >= current.created_at

    async def _on_session_change(self, event: ChangeEvent) -> None:
        source = event.old_record if event.change_type == ChangeType.DELETE and event.old_record else event.record
        incoming = SessionResponse.model_validate(source)
        await self.apply_session_change(incoming, deleted=event.change_type == ChangeType.DELETE)

    async def apply_session_change(self, incoming: SessionResponse, deleted: bool = False) -> None:
        """Fold one session row into the state (idempotent)."""
        active = self.state.active_session
        if deleted or incoming.status == SessionStatus.ENDED:
            if active is not None and active.id == incoming.id:
                self.state.active_session = None
        elif self._accepts(active, incoming):
            self.state.active_session = incoming

        selected = self.state.selected_session
        if selected is not None and selected.id == incoming.id:
            if deleted or status_rank(incoming.status) >= status_rank(selected.status):
                self.state.selected_session = incoming
            if deleted or incoming.status == SessionStatus.ENDED:
                await self._on_selected_ended()

        self._emit_state()

    async def _on_selected_ended(self) -> None:
        if self._pcm is None:
            return
        await self._release_peer()
        self._notify("Chat Ended", "This chat session has ended")

    # ------------------------------------------------------------------
    # Session operations
    # ------------------------------------------------------------------

    async def create_session(
        self,
        complaint_id: UUID | None = None,
        target_student_id: str | None = None,
    ) -> SessionResponse | None:
        """
        Open a session (students: waiting; admins: active with target student).

        Returns:
            The session, or None if the store rejected it (a notification
            is emitted and state is unchanged)

        Raises:
            ValidationError: Invalid input
        """
        try:
            session = await self.client.create_session(
                complaint_id=complaint_id, target_student_id=target_student_id
            )
        except ValidationError:
            raise
        except LiveDeskException as e:
            self._notify_failure("Could not start chat", e)
            return None

        await self.apply_session_change(session)
        self._broadcast(SESSION_CREATED, session)
        if target_student_id:
            self._notify("Chat Started", "Chat session created successfully")
        else:
            self._notify("Chat Request Sent", "Waiting for an admin to join...")
        await self.select_session(session)
        return session

    async def join_session(self, session_id: UUID) -> SessionResponse | None:
        """Admin joins a waiting session; None (plus a notification) on failure."""
        try:
            session = await self.client.join_session(session_id)
        except ValidationError:
            raise
        except LiveDeskException as e:
            self._notify_failure("Could not join chat", e)
            return None

        await self.apply_session_change(session)
        self._broadcast(SESSION_JOINED, session)
        self._notify("Joined Chat", "You are now connected with the student")
        return session

    async def end_session(self, session_id: UUID | None = None) -> SessionResponse | None:
        """End the given (or selected) session; closes media and deselects it."""
        target = session_id or (self.state.selected_session.id if self.state.selected_session else None)
        if target is None and self.state.active_session is not None:
            target = self.state.active_session.id
        if target is None:
            raise ValidationError("No session to end", field="session_id")

        try:
            session = await self.client.end_session(target)
        except ValidationError:
            raise
        except LiveDeskException as e:
            self._notify_failure("Could not end chat", e)
            return None

        if self.state.selected_session is not None and self.state.selected_session.id == session.id:
            await self._release_selection()
        await self.apply_session_change(session)
        self._broadcast(SESSION_ENDED, session)
        self._notify("Chat Ended", "The chat session has been closed")
        return session

    async def select_session(self, session: SessionResponse | UUID) -> SessionResponse | None:
        """
        Open a conversation: load its messages, follow new ones, set up the
        peer connection and mark messages read. Admins selecting a waiting
        session join it.
        """
        session_id = session.id if isinstance(session, SessionResponse) else session
        current = self.state.selected_session
        if current is not None and current.id == session_id and self._message_feed is not None:
            return current

        await self._release_selection()

        if not isinstance(session, SessionResponse):
            try:
                session = await self.client.get_session(session_id)
            except LiveDeskException as e:
                self._notify_failure("Could not open chat", e)
                return None

        if self.role == SessionRole.ADMIN and session.status == SessionStatus.WAITING:
            joined = await self.join_session(session.id)
            if joined is None:
                return None
            session = joined

        self.state.selected_session = session
        self.state.messages = []

        try:
            self._message_feed = await self.client.subscribe_messages(
                session.id, self._on_message_change
            )
            for message in await self.client.fetch_messages(session.id):
                self._upsert_message(message)
        except LiveDeskException as e:
            self._notify_failure("Could not load messages", e)

        if session.status != SessionStatus.ENDED:
            await self._open_peer(session)

        await self._mark_read()
        self._emit_messages()
        return session

    async def _release_selection(self) -> None:
        await self._release_peer()
        if self._message_feed is not None:
            await self._message_feed.close()
            self._message_feed = None
        self.state.selected_session = None
        self.state.messages = []

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def _upsert_message(self, message: MessageResponse) -> None:
        messages = [m for m in self.state.messages if m.id != message.id]
        messages.append(message)
        messages.sort(key=lambda m: m.created_at)
        self.state.messages = messages

    async def _on_message_change(self, event: ChangeEvent) -> None:
        message = MessageResponse.model_validate(event.record)
        selected = self.state.selected_session
        if selected is None or message.session_id != selected.id:
            return
        self._upsert_message(message)
        self._emit_messages()
        if event.change_type == ChangeType.INSERT and message.sender_id != self.user_id:
            await self._mark_read()

    async def _mark_read(self) -> None:
        selected = self.state.selected_session
        if selected is None:
            return
        if not any(m.sender_id != self.user_id and m.read_at is None for m in self.state.messages):
            return
        try:
            await self.client.mark_read(selected.id)
        except LiveDeskException as e:
            logger.info("Marking messages read failed", extra={"error": str(e)})

    async def send_message(
        self,
        text: str,
        message_type: MessageType = MessageType.TEXT,
        file_url: str | None = None,
    ) -> MessageResponse | None:
        """
        Send a message to the selected session.

        The message appears in `messages` when the feed delivers it.

        Raises:
            ValidationError: Blank text or no session selected (nothing is sent)
        """
        if not (text or "").strip():
            raise ValidationError("Message cannot be empty", field="message")
        selected = self.state.selected_session
        if selected is None:
            raise ValidationError("No session selected", field="session_id")

        try:
            return await self.client.send_message(
                selected.id, text.strip(), message_type=message_type, file_url=file_url
            )
        except ValidationError:
            raise
        except LiveDeskException as e:
            self._notify_failure("Message not sent", e)
            return None

    async def upload_file(
        self,
        filename: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> MessageResponse | None:
        """Upload an attachment, then post the "Shared file: <name>" message."""
        selected = self.state.selected_session
        if selected is None:
            raise ValidationError("No session selected", field="session_id")
        try:
            attachment = await self.client.upload_file(selected.id, filename, data, content_type)
        except ValidationError:
            raise
        except LiveDeskException as e:
            self._notify_failure("Upload failed", e)
            return None
        return await self.send_message(attachment.label, MessageType.FILE, attachment.key)

    # ------------------------------------------------------------------
    # Peer connection and media
    # ------------------------------------------------------------------

    async def _open_peer(self, session: SessionResponse) -> None:
        self._pcm = PeerConnectionManager(
            session.id,
            self.user_id,
            is_initiator=session.initiator == self.role,
            relay=self.client,
            devices=self.devices,
            settings=self.webrtc_settings,
            pc_factory=self._pc_factory,
            on_remote_stream=self._on_remote_stream,
            on_connection_state=self._on_connection_state,
            on_media_change=self._sync_media,
            on_error=self._on_peer_error,
        )
        try:
            await self._pcm.initialize()
        except LiveDeskException as e:
            self._notify_failure("Screen sharing unavailable", e)
            await self._release_peer()

    async def _release_peer(self) -> None:
        pcm, self._pcm = self._pcm, None
        if pcm is not None:
            await pcm.cleanup()
        self.state.local_stream = None
        self.state.remote_stream = None
        self.state.is_screen_sharing = False
        self.state.is_audio_enabled = False
        self.state.connection_state = "closed"

    def _on_remote_stream(self, stream: MediaStream) -> None:
        self.state.remote_stream = stream
        self._emit_state()

    def _on_connection_state(self, state: str) -> None:
        self.state.connection_state = state
        if state == "connected":
            self._notify("Connected", "Screen sharing connection established")
        elif state in ("disconnected", "failed"):
            self._notify("Disconnected", "Screen sharing connection lost", level="warning")
        self._emit_state()

    def _sync_media(self) -> None:
        if self._pcm is None:
            return
        self.state.local_stream = self._pcm.local_stream
        self.state.is_screen_sharing = self._pcm.is_screen_sharing
        self.state.is_audio_enabled = self._pcm.is_audio_enabled
        self._emit_state()

    def _on_peer_error(self, error: Exception) -> None:
        if isinstance(error, LiveDeskException):
            self._notify_failure("Connection problem", error)
        else:
            self._notify("Connection problem", str(error), level="error")

    def _notify_media_failure(self, error: MediaError, what: str) -> None:
        if isinstance(error, MediaUnsupportedError):
            description = f"{what} is not supported on this device"
        elif isinstance(error, MediaPermissionDeniedError):
            description = f"Permission to use {what.lower()} was denied"
        else:
            description = error.message or f"Failed to start {what.lower()}"
        logger.warning("Media acquisition failed", extra={"what": what, "error": str(error)})
        self._notify("Error", description, level="error")

    def _require_peer(self) -> PeerConnectionManager | None:
        if self._pcm is None:
            self._notify("Error", "WebRTC not initialized", level="error")
        return self._pcm

    async def _renegotiate(self) -> None:
        """Re-offer after adding media (initiator only)."""
        if self._pcm is None or not self._pcm.is_initiator:
            return
        try:
            await self._pcm.create_offer()
        except NegotiationError as e:
            self._notify_failure("Connection problem", e)
            raise

    async def start_screen_share(self) -> bool:
        """
        Share the screen.

        Returns:
            True once sharing; False if media could not be acquired

        Raises:
            NegotiationError: The follow-up offer could not be made
        """
        pcm = self._require_peer()
        if pcm is None:
            return False
        try:
            await pcm.start_screen_share()
        except MediaError as e:
            self._notify_media_failure(e, "Screen sharing")
            return False
        except NegotiationError as e:
            self._notify_failure("Connection problem", e)
            raise
        self._sync_media()
        await self._renegotiate()
        if pcm.is_initiator:
            self._notify("Screen Sharing", "Your screen is now being shared")
        else:
            # Responder tracks ride on the initiator's next offer
            self._notify("Screen Sharing", "Your screen will be visible after the next connection update")
        return True

    async def stop_screen_share(self) -> None:
        if self._pcm is None:
            return
        await self._pcm.stop_screen_share()
        self._sync_media()
        self._notify("Screen Sharing Stopped", "Your screen is no longer being shared")

    async def toggle_audio(self) -> bool:
        """
        Flip the microphone.

        Returns:
            Whether audio is enabled afterwards

        Raises:
            NegotiationError: The follow-up offer could not be made
        """
        pcm = self._require_peer()
        if pcm is None:
            return False
        if pcm.is_audio_enabled:
            await pcm.stop_audio()
            self._sync_media()
            self._notify("Audio Disabled", "Your microphone is now muted")
            return False
        try:
            await pcm.start_audio()
        except MediaError as e:
            self._notify_media_failure(e, "Microphone")
            return False
        except NegotiationError as e:
            self._notify_failure("Connection problem", e)
            raise
        self._sync_media()
        await self._renegotiate()
        self._notify("Audio Enabled", "Your microphone is now active")
        return True
