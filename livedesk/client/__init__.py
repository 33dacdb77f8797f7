"""
Participant client.

Exports:
  - SessionOrchestrator: UI-facing facade with observable state
  - PeerConnectionManager: One WebRTC peer connection per session membership
  - LiveDeskClient: HTTP + WebSocket transport to the LiveDesk API
  - DeviceEventBus, BroadcastChannel: Same-device cross-tab notifications
"""

from livedesk.client.device_bus import BroadcastChannel, BroadcastMessage, DeviceEventBus
from livedesk.client.orchestrator import SessionOrchestrator
from livedesk.client.peer_connection import PeerConnectionManager
from livedesk.client.transport import LiveDeskClient

__all__ = [
    "BroadcastChannel",
    "BroadcastMessage",
    "DeviceEventBus",
    "LiveDeskClient",
    "PeerConnectionManager",
    "SessionOrchestrator",
]
