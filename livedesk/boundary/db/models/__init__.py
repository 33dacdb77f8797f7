"""
Database models package.

Exports:
  - LiveSessionModel: Live support session
  - ChatMessageModel, MessageType: Chat messages and their kinds
  - SignalEnvelopeModel, SignalType: WebRTC signaling envelopes

Dependencies: sqlalchemy, livedesk.boundary.db.base
System role: Database model definitions for domain entities
"""

from livedesk.boundary.db.models.live_session_model import LiveSessionModel
from livedesk.boundary.db.models.chat_message_model import ChatMessageModel, MessageType
from livedesk.boundary.db.models.signal_model import SignalEnvelopeModel, SignalType

__all__ = [
    "LiveSessionModel",
    "ChatMessageModel",
    "MessageType",
    "SignalEnvelopeModel",
    "SignalType",
]
