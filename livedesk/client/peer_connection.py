"""
Peer connection manager.

Owns one WebRTC peer connection per session membership: outbound screen
and microphone media, offer/answer negotiation over the signaling relay,
ICE candidate exchange and teardown.

Negotiation has exactly one offerer per session (the session's initiator).
The initiator serialises offers and waits for a stable signaling state
before each one; the other side only answers. Remote candidates that
arrive before a remote description are buffered.

Dependencies: aiortc, livedesk.client.media
System role: Peer Connection Manager
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Protocol

from aiortc import (
    MediaStreamTrack,
    RTCConfiguration,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp

from livedesk.boundary.db.models.signal_model import SignalType
from livedesk.client.media import AudioConstraints, MediaDevices, MediaStream, PlayerMediaDevices
from livedesk.configs.webrtc import WebRTCSettings
from livedesk.core.exceptions import NegotiationError
from livedesk.models.signal import SignalResponse

logger = logging.getLogger(__name__)

SignalHandler = Callable[[SignalResponse], Awaitable[None] | None]


class Subscription(Protocol):
    async def close(self) -> None: ...


class SignalRelay(Protocol):
    """Transport used to exchange signal envelopes with the other peer."""

    async def send_signal(
        self, session_id: Any, signal_type: SignalType, signal_data: dict[str, Any]
    ) -> Any: ...

    async def subscribe_signals(self, session_id: Any, handler: SignalHandler) -> Subscription: ...


def _default_pc_factory(configuration: RTCConfiguration) -> RTCPeerConnection:
    return RTCPeerConnection(configuration=configuration)


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class PeerConnectionManager:
    """
    WebRTC peer connection for one participant in one session.

    Attributes:
        session_id: Live session the connection belongs to
        user_id: This participant
        is_initiator: True if this side sends offers
        local_stream: Merged screen + microphone tracks being sent (or None)
        remote_stream: Tracks received from the other side (or None)
        connection_state: Last reported peer connection state
    """

    def __init__(
        self,
        session_id: Any,
        user_id: str,
        is_initiator: bool,
        relay: SignalRelay,
        devices: MediaDevices | None = None,
        settings: WebRTCSettings | None = None,
        pc_factory: Callable[[RTCConfiguration], Any] | None = None,
        on_remote_stream: Callable[[MediaStream], Any] | None = None,
        on_connection_state: Callable[[str], Any] | None = None,
        on_media_change: Callable[[], Any] | None = None,
        on_error: Callable[[Exception], Any] | None = None,
    ) -> None:
        self.session_id = session_id
        self.user_id = user_id
        self.is_initiator = is_initiator
        self.relay = relay
        self.settings = settings or WebRTCSettings()
        self.devices = devices or PlayerMediaDevices(self.settings)
        self._pc_factory = pc_factory or _default_pc_factory
        self._on_remote_stream = on_remote_stream
        self._on_connection_state = on_connection_state
        self._on_media_change = on_media_change
        self._on_error = on_error

        self.local_stream: MediaStream | None = None
        self.remote_stream: MediaStream | None = None
        self.connection_state = "new"
        self.is_screen_sharing = False
        self.is_audio_enabled = False

        self._pc = None
        self._subscription: Subscription | None = None
        self._negotiation_lock = asyncio.Lock()
        self._pending_candidates: list[dict[str, Any]] = []
        self._screen_tracks: list[MediaStreamTrack] = []
        self._watched_track: MediaStreamTrack | None = None
        self._closed = False

    @property
    def pc(self):
        return self._pc

    @property
    def signaling_state(self) -> str:
        return self._pc.signalingState if self._pc is not None else "closed"

    def _require_pc(self):
        if self._pc is None or self._closed:
            raise NegotiationError(
                "Peer connection is not initialized", session_id=self.session_id
            )
        return self._pc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the peer connection, register handlers and subscribe to signals."""
        if self._pc is not None:
            return
        self._closed = False
        configuration = RTCConfiguration(
            iceServers=[RTCIceServer(urls=url) for url in self.settings.ice_servers]
        )
        pc = self._pc_factory(configuration)
        pc.on("icecandidate", self._on_local_candidate)
        pc.on("track", self._on_track)
        pc.on("connectionstatechange", self._on_connection_state_change)
        pc.on("iceconnectionstatechange", self._on_ice_connection_state_change)
        self._pc = pc

        self._subscription = await self.relay.subscribe_signals(self.session_id, self.handle_signal)
        logger.info(
            "Peer connection initialized",
            extra={
                "session_id": str(self.session_id),
                "is_initiator": self.is_initiator,
                "ice_servers": len(self.settings.ice_servers),
            },
        )

    async def cleanup(self) -> None:
        """
        Stop local media, close the connection and unsubscribe.

        Safe to call any number of times.
        """
        self._closed = True
        if self.local_stream is not None:
            self.local_stream.stop()
        self.local_stream = None
        self.remote_stream = None
        self.is_screen_sharing = False
        self.is_audio_enabled = False
        self._pending_candidates.clear()
        self._screen_tracks = []
        self._watched_track = None

        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.close()

        pc, self._pc = self._pc, None
        if pc is not None:
            await pc.close()
            self.connection_state = "closed"
            logger.info("Peer connection closed", extra={"session_id": str(self.session_id)})

    # ------------------------------------------------------------------
    # Peer connection events
    # ------------------------------------------------------------------

    async def _on_local_candidate(self, candidate) -> None:
        if candidate is None or self._closed:
            return
        await self.relay.send_signal(
            self.session_id,
            SignalType.ICE_CANDIDATE,
            {
                "candidate": "candidate:" + candidate_to_sdp(candidate),
                "sdpMid": candidate.sdpMid,
                "sdpMLineIndex": candidate.sdpMLineIndex,
            },
        )

    async def _on_track(self, track: MediaStreamTrack) -> None:
        if self.remote_stream is None:
            self.remote_stream = MediaStream()
        self.remote_stream.add_track(track)
        logger.info(
            "Remote track received",
            extra={"session_id": str(self.session_id), "kind": track.kind},
        )
        if self._on_remote_stream:
            await _maybe_await(self._on_remote_stream(self.remote_stream))

    async def _on_connection_state_change(self) -> None:
        if self._pc is None:
            return
        self.connection_state = self._pc.connectionState
        logger.info(
            "Connection state changed",
            extra={"session_id": str(self.session_id), "state": self.connection_state},
        )
        if self._on_connection_state:
            await _maybe_await(self._on_connection_state(self.connection_state))

    async def _on_ice_connection_state_change(self) -> None:
        if self._pc is None or self._pc.iceConnectionState != "failed":
            return
        logger.warning("ICE connection failed, restarting", extra={"session_id": str(self.session_id)})
        await self.restart_ice()

    async def restart_ice(self) -> None:
        """
        Recover from ICE failure without tearing the connection down.

        The initiator re-offers, gathering fresh candidates; the other side
        waits for that offer.
        """
        if not self.is_initiator or self._closed:
            return
        try:
            await self.create_offer()
        except NegotiationError as e:
            await self._report(e)

    # ------------------------------------------------------------------
    # Negotiation
    # ------------------------------------------------------------------

    async def _wait_for_stable(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.stable_wait_timeout
        delay = self.settings.stable_wait_initial_delay
        while self.signaling_state != "stable":
            if self._closed:
                raise NegotiationError(
                    "Peer connection closed while waiting to negotiate",
                    session_id=self.session_id,
                )
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise NegotiationError(
                    "Timed out waiting for a stable signaling state",
                    session_id=self.session_id,
                    signaling_state=self.signaling_state,
                )
            await asyncio.sleep(min(delay, remaining))
            delay = min(delay * 2, self.settings.stable_wait_max_delay)

    async def create_offer(self) -> None:
        """
        Offer (or re-offer) the current local tracks.

        Concurrent calls are serialised; each waits until the signaling
        state is stable before touching the local description.

        Raises:
            NegotiationError: Not the initiator, not initialized, or the
                state never became stable within the timeout
        """
        if not self.is_initiator:
            raise NegotiationError(
                "Only the session initiator sends offers", session_id=self.session_id
            )
        async with self._negotiation_lock:
            pc = self._require_pc()
            await self._wait_for_stable()
            offer = await pc.createOffer()
            await pc.setLocalDescription(offer)
            description = pc.localDescription
            await self.relay.send_signal(
                self.session_id,
                SignalType.OFFER,
                {"type": description.type, "sdp": description.sdp},
            )
            logger.info("Offer sent", extra={"session_id": str(self.session_id)})

    async def handle_signal(self, envelope: SignalResponse) -> None:
        """Apply one inbound envelope; self-authored envelopes are ignored."""
        if envelope.sender_id == self.user_id or self._closed or self._pc is None:
            return
        try:
            if envelope.signal_type == SignalType.OFFER:
                await self._handle_offer(envelope.signal_data)
            elif envelope.signal_type == SignalType.ANSWER:
                await self._handle_answer(envelope.signal_data)
            elif envelope.signal_type == SignalType.ICE_CANDIDATE:
                await self._handle_candidate(envelope.signal_data)
        except Exception as e:
            logger.exception(
                "Failed to apply signal",
                extra={"session_id": str(self.session_id), "signal_type": envelope.signal_type.value},
            )
            await self._report(e)

    async def _handle_offer(self, data: dict[str, Any]) -> None:
        if self.is_initiator:
            logger.warning(
                "Ignoring offer received by the initiator",
                extra={"session_id": str(self.session_id)},
            )
            return
        async with self._negotiation_lock:
            pc = self._require_pc()
            await pc.setRemoteDescription(RTCSessionDescription(sdp=data["sdp"], type="offer"))
            await self._flush_candidates()
            answer = await pc.createAnswer()
            await pc.setLocalDescription(answer)
            description = pc.localDescription
            await self.relay.send_signal(
                self.session_id,
                SignalType.ANSWER,
                {"type": description.type, "sdp": description.sdp},
            )
        logger.info("Answer sent", extra={"session_id": str(self.session_id)})

    async def _handle_answer(self, data: dict[str, Any]) -> None:
        pc = self._require_pc()
        if pc.signalingState != "have-local-offer":
            logger.warning(
                "Ignoring answer without a pending offer",
                extra={"session_id": str(self.session_id), "signaling_state": pc.signalingState},
            )
            return
        await pc.setRemoteDescription(RTCSessionDescription(sdp=data["sdp"], type="answer"))
        await self._flush_candidates()

    async def _handle_candidate(self, data: dict[str, Any]) -> None:
        pc = self._require_pc()
        if pc.remoteDescription is None:
            self._pending_candidates.append(data)
            return
        await self._add_candidate(data)

    async def _flush_candidates(self) -> None:
        pending, self._pending_candidates = self._pending_candidates, []
        for data in pending:
            await self._add_candidate(data)

    async def _add_candidate(self, data: dict[str, Any]) -> None:
        raw = (data.get("candidate") or "").strip()
        if not raw:
            # End-of-candidates marker
            return
        if raw.startswith("candidate:"):
            raw = raw[len("candidate:"):]
        try:
            candidate = candidate_from_sdp(raw)
            candidate.sdpMid = data.get("sdpMid")
            candidate.sdpMLineIndex = data.get("sdpMLineIndex")
            await self._pc.addIceCandidate(candidate)
        except (AssertionError, ValueError, IndexError) as e:
            logger.warning(
                "Discarding malformed ICE candidate",
                extra={"session_id": str(self.session_id), "error": str(e)},
            )

    # ------------------------------------------------------------------
    # Outbound media
    # ------------------------------------------------------------------

    def _attach_track(self, track: MediaStreamTrack) -> None:
        """Reuse an idle sender of the same kind, otherwise add a new one."""
        pc = self._require_pc()
        for sender in pc.getSenders():
            current = sender.track
            if sender.kind == track.kind and (current is None or current.readyState == "ended"):
                sender.replaceTrack(track)
                return
        pc.addTrack(track)

    def _merge(self, stream: MediaStream) -> None:
        if self.local_stream is None:
            self.local_stream = MediaStream()
        for track in stream.get_tracks():
            self.local_stream.add_track(track)

    def _release_screen_tracks(self) -> None:
        """Stop the previous capture so its senders can be reused."""
        watched, self._watched_track = self._watched_track, None
        if watched is not None:
            watched.remove_listener("ended", self._on_screen_track_ended)
        tracks, self._screen_tracks = self._screen_tracks, []
        for track in tracks:
            track.stop()
            if self.local_stream is not None:
                self.local_stream.remove_track(track)

    async def start_screen_share(self) -> MediaStream:
        """
        Capture the screen and send it.

        A repeat share replaces the previous capture on the same senders.

        Returns:
            MediaStream: The merged local stream

        Raises:
            MediaUnsupportedError / MediaPermissionDeniedError / MediaAcquisitionError
        """
        self._require_pc()
        stream = await self.devices.get_display_media(include_audio=True)
        self._release_screen_tracks()
        for track in stream.get_tracks():
            self._attach_track(track)

        video_tracks = stream.get_video_tracks()
        if video_tracks:
            self._watched_track = video_tracks[0]
            self._watched_track.on("ended", self._on_screen_track_ended)

        self._screen_tracks = stream.get_tracks()
        self._merge(stream)
        self.is_screen_sharing = True
        logger.info("Screen share started", extra={"session_id": str(self.session_id)})
        await self._notify_media_change()
        return self.local_stream

    async def _on_screen_track_ended(self) -> None:
        if self.is_screen_sharing:
            await self.stop_screen_share()

    async def stop_screen_share(self) -> None:
        """Stop video tracks only; the microphone keeps running."""
        if not self.is_screen_sharing and self.local_stream is None:
            return
        self.is_screen_sharing = False
        if self.local_stream is not None:
            for track in self.local_stream.get_video_tracks():
                track.stop()
                self.local_stream.remove_track(track)
        logger.info("Screen share stopped", extra={"session_id": str(self.session_id)})
        await self._notify_media_change()

    async def start_audio(self, constraints: AudioConstraints | None = None) -> MediaStream:
        """
        Capture the microphone (echo cancellation, noise suppression and
        auto gain on by default) and merge it into the local stream.
        """
        self._require_pc()
        stream = await self.devices.get_user_media(constraints or AudioConstraints())
        for track in stream.get_audio_tracks():
            self._attach_track(track)
        self._merge(stream)
        self.is_audio_enabled = True
        logger.info("Audio started", extra={"session_id": str(self.session_id)})
        await self._notify_media_change()
        return self.local_stream

    async def stop_audio(self) -> None:
        """Stop audio tracks only."""
        self.is_audio_enabled = False
        if self.local_stream is not None:
            for track in self.local_stream.get_audio_tracks():
                track.stop()
                self.local_stream.remove_track(track)
        logger.info("Audio stopped", extra={"session_id": str(self.session_id)})
        await self._notify_media_change()

    async def _notify_media_change(self) -> None:
        if self._on_media_change:
            await _maybe_await(self._on_media_change())

    async def _report(self, error: Exception) -> None:
        if self._on_error:
            await _maybe_await(self._on_error(error))
