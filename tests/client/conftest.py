"""
Fixtures for the participant client.

Fakes stand in for the parts that need a browser or a network: an aiortc
peer connection without ICE/DTLS, capture tracks, capture devices and an
in-memory signaling relay that connects two peer connection managers.

Dependencies: pytest, pyee, aiortc
System role: Client test infrastructure
"""

import itertools
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

import pytest
from aiortc import RTCSessionDescription
from pyee.asyncio import AsyncIOEventEmitter

from livedesk.boundary.db.models import SignalType
from livedesk.client.media import AudioConstraints, MediaStream
from livedesk.configs.webrtc import WebRTCSettings
from livedesk.core.exceptions import MediaError
from livedesk.models.signal import SignalResponse

_track_ids = itertools.count(1)


class FakeTrack(AsyncIOEventEmitter):
    """Capture track; stop() emits "ended" like aiortc's MediaStreamTrack."""

    def __init__(self, kind: str) -> None:
        super().__init__()
        self.kind = kind
        self.id = f"{kind}-{next(_track_ids)}"
        self.readyState = "live"

    def stop(self) -> None:
        if self.readyState == "ended":
            return
        self.readyState = "ended"
        self.emit("ended")


class FakeSender:
    def __init__(self, kind: str, track: FakeTrack | None) -> None:
        self.kind = kind
        self.track = track

    def replaceTrack(self, track: FakeTrack | None) -> None:
        self.track = track


class FakePeerConnection(AsyncIOEventEmitter):
    """
    Peer connection double with the signaling state machine of RTCPeerConnection.

    Attributes:
        calls: Names of the negotiation methods invoked, in order
        candidates: Remote ICE candidates added
    """

    def __init__(self, configuration: Any = None) -> None:
        super().__init__()
        self.configuration = configuration
        self.signalingState = "stable"
        self.connectionState = "new"
        self.iceConnectionState = "new"
        self.localDescription: RTCSessionDescription | None = None
        self.remoteDescription: RTCSessionDescription | None = None
        self.senders: list[FakeSender] = []
        self.calls: list[str] = []
        self.candidates: list[Any] = []
        self.close_count = 0

    def getSenders(self) -> list[FakeSender]:
        return list(self.senders)

    def addTrack(self, track: FakeTrack) -> FakeSender:
        self.calls.append(f"addTrack:{track.kind}")
        sender = FakeSender(track.kind, track)
        self.senders.append(sender)
        return sender

    async def createOffer(self) -> RTCSessionDescription:
        self.calls.append("createOffer")
        return RTCSessionDescription(sdp=f"offer-{len(self.calls)}", type="offer")

    async def createAnswer(self) -> RTCSessionDescription:
        self.calls.append("createAnswer")
        return RTCSessionDescription(sdp=f"answer-{len(self.calls)}", type="answer")

    async def setLocalDescription(self, description: RTCSessionDescription) -> None:
        self.calls.append(f"setLocalDescription:{description.type}")
        self.localDescription = description
        self.signalingState = "have-local-offer" if description.type == "offer" else "stable"

    async def setRemoteDescription(self, description: RTCSessionDescription) -> None:
        self.calls.append(f"setRemoteDescription:{description.type}")
        self.remoteDescription = description
        self.signalingState = "have-remote-offer" if description.type == "offer" else "stable"

    async def addIceCandidate(self, candidate: Any) -> None:
        self.candidates.append(candidate)

    async def close(self) -> None:
        self.close_count += 1
        self.signalingState = "closed"
        self.connectionState = "closed"

    def set_connection_state(self, state: str) -> None:
        self.connectionState = state
        self.emit("connectionstatechange")


class FakeMediaDevices:
    """Capture devices producing FakeTracks, or raising a configured MediaError."""

    def __init__(self) -> None:
        self.display_error: MediaError | None = None
        self.user_error: MediaError | None = None
        self.audio_constraints: list[AudioConstraints] = []
        self.tracks: list[FakeTrack] = []

    def _track(self, kind: str) -> FakeTrack:
        track = FakeTrack(kind)
        self.tracks.append(track)
        return track

    async def get_display_media(self, include_audio: bool = True) -> MediaStream:
        if self.display_error is not None:
            raise self.display_error
        tracks = [self._track("video")]
        if include_audio:
            tracks.append(self._track("audio"))
        return MediaStream(tracks)

    async def get_user_media(self, constraints: AudioConstraints) -> MediaStream:
        if self.user_error is not None:
            raise self.user_error
        self.audio_constraints.append(constraints)
        return MediaStream([self._track("audio")])


class _HubSubscription:
    def __init__(self, hub: "SignalHub", session_id: Any, handler: Callable) -> None:
        self._hub = hub
        self._key = (str(session_id), handler)
        self.closed = False

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._hub.handlers.remove(self._key)


class RelayEndpoint:
    """One participant's view of the hub (send_signal / subscribe_signals)."""

    def __init__(self, hub: "SignalHub", user_id: str) -> None:
        self.hub = hub
        self.user_id = user_id

    async def send_signal(
        self, session_id: Any, signal_type: SignalType, signal_data: dict[str, Any]
    ) -> SignalResponse:
        envelope = SignalResponse(
            id=uuid.uuid4(),
            session_id=uuid.UUID(str(session_id)),
            sender_id=self.user_id,
            signal_type=signal_type,
            signal_data=signal_data,
            created_at=datetime.now(timezone.utc),
        )
        self.hub.sent.append(envelope)
        if self.hub.deliver:
            for key_session, handler in list(self.hub.handlers):
                if key_session == str(session_id):
                    await handler(envelope)
        return envelope

    async def subscribe_signals(self, session_id: Any, handler: Callable) -> _HubSubscription:
        subscription = _HubSubscription(self.hub, session_id, handler)
        self.hub.handlers.append(subscription._key)
        return subscription


class SignalHub:
    """In-memory signaling relay; every subscriber of a session sees every envelope."""

    def __init__(self) -> None:
        self.handlers: list[tuple[str, Callable]] = []
        self.sent: list[SignalResponse] = []
        self.deliver = True

    def endpoint(self, user_id: str) -> RelayEndpoint:
        return RelayEndpoint(self, user_id)

    def sent_types(self) -> list[SignalType]:
        return [e.signal_type for e in self.sent]


@pytest.fixture
def hub() -> SignalHub:
    return SignalHub()


@pytest.fixture
def devices() -> FakeMediaDevices:
    return FakeMediaDevices()


@pytest.fixture
def fast_settings() -> WebRTCSettings:
    """Short negotiation timings."""
    return WebRTCSettings(
        stable_wait_timeout=0.3,
        stable_wait_initial_delay=0.005,
        stable_wait_max_delay=0.02,
    )


@pytest.fixture
def pc_factory() -> Callable[..., FakePeerConnection]:
    """Factory that remembers every peer connection it built."""
    built: list[FakePeerConnection] = []

    def factory(configuration: Any) -> FakePeerConnection:
        pc = FakePeerConnection(configuration)
        built.append(pc)
        return pc

    factory.built = built  # type: ignore[attr-defined]
    return factory


@pytest.fixture
def make_track() -> Callable[[str], FakeTrack]:
    return FakeTrack


@pytest.fixture
def make_envelope() -> Callable[..., SignalResponse]:
    def build(
        session_id: uuid.UUID,
        sender_id: str,
        signal_type: SignalType,
        signal_data: dict[str, Any],
    ) -> SignalResponse:
        return SignalResponse(
            id=uuid.uuid4(),
            session_id=session_id,
            sender_id=sender_id,
            signal_type=signal_type,
            signal_data=signal_data,
            created_at=datetime.now(timezone.utc),
        )

    return build
