"""
WebRTC and participant client configuration.

ICE servers, negotiation timing and capture devices used by the
peer connection manager, plus the API endpoints the client talks to.

Dependencies: pydantic_settings
System role: Participant-side configuration
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WebRTCSettings(BaseSettings):
    """Peer connection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="WEBRTC_",
        case_sensitive=False,
        extra="ignore",
    )

    ice_servers: list[str] = Field(
        default=[
            "stun:stun.l.google.com:19302",
            "stun:stun1.l.google.com:19302",
        ],
        description="STUN/TURN server URLs (at least two independent servers)",
    )
    stable_wait_timeout: float = Field(
        default=10.0,
        description="Seconds to wait for a stable signaling state before offering",
    )
    stable_wait_initial_delay: float = Field(
        default=0.05,
        description="First poll delay while waiting for a stable signaling state",
    )
    stable_wait_max_delay: float = Field(
        default=1.0,
        description="Upper bound for the poll backoff",
    )

    screen_capture_device: str | None = Field(
        default=None,
        description="Override the platform screen capture source (e.g. ':0.0')",
    )
    screen_capture_framerate: int = Field(default=15, description="Capture framerate")
    microphone_device: str | None = Field(
        default=None,
        description="Override the platform microphone source",
    )
    echo_cancel_source: str | None = Field(
        default=None,
        description="PulseAudio echo-cancel source used when echo cancellation is requested",
    )


class ClientSettings(BaseSettings):
    """Participant client endpoints."""

    model_config = SettingsConfigDict(
        env_prefix="LIVEDESK_CLIENT_",
        case_sensitive=False,
        extra="ignore",
    )

    api_base_url: str = Field(
        default="http://localhost:8082/api/v1",
        description="Base URL of the HTTP API",
    )
    ws_base_url: str = Field(
        default="ws://localhost:8082",
        description="Base URL of the WebSocket feeds",
    )
    request_timeout: float = Field(default=15.0, description="HTTP timeout in seconds")
