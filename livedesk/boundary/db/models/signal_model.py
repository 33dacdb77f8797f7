"""
Signal envelope ORM model.

Offer/answer/ICE candidate payloads relayed between the two peers of a
session. Rows are ephemeral: purged after a TTL and when the session ends.

Dependencies: sqlalchemy, livedesk.boundary.db.base
System role: Signaling Relay persistence
"""

import enum
from uuid import UUID

from sqlalchemy import JSON, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from livedesk.boundary.db.base import Base, CreatedAtMixin, UUIDMixin


class SignalType(str, enum.Enum):
    """WebRTC signaling payload kinds."""

    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"


class SignalEnvelopeModel(Base, UUIDMixin, CreatedAtMixin):
    """
    Signal envelope ORM model.

    Attributes:
        id: UUID primary key (auto-generated)
        session_id: Live session the signal belongs to
        sender_id: Participant that produced the signal
        signal_type: offer/answer/ice-candidate
        signal_data: Opaque JSON payload (SDP or candidate)
        created_at: Insert timestamp (UTC)
    """

    __tablename__ = "signal_envelopes"

    session_id: Mapped[UUID] = mapped_column(
        ForeignKey("live_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    sender_id: Mapped[str] = mapped_column(String(255), nullable=False)

    signal_type: Mapped[SignalType] = mapped_column(
        Enum(
            SignalType,
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )

    signal_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
