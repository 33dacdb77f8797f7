"""
Chat message ORM model.

Append-only messages exchanged within a live session. Only the read
receipt columns change after insert.

Dependencies: sqlalchemy, livedesk.boundary.db.base
System role: Message Channel persistence
"""

import enum
from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from livedesk.boundary.db.base import Base, CreatedAtMixin, UUIDMixin


class MessageType(str, enum.Enum):
    """
    Chat message kinds.

    TEXT: Typed by a participant
    FILE: Points at an uploaded attachment via file_url
    SYSTEM: Synthesized on lifecycle events (join, end)
    """

    TEXT = "text"
    FILE = "file"
    SYSTEM = "system"


class ChatMessageModel(Base, UUIDMixin, CreatedAtMixin):
    """
    Chat message ORM model.

    Attributes:
        id: UUID primary key (auto-generated)
        session_id: Parent live session
        sender_id: Author (participant id)
        message: Trimmed, non-empty text
        message_type: text/file/system
        file_url: Attachment object key, set iff message_type is file
        read_at: When a recipient marked it read
        read_by: Who marked it read
        created_at: Insert timestamp (UTC)
    """

    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("ix_chat_messages_session_created_at", "session_id", "created_at"),
    )

    session_id: Mapped[UUID] = mapped_column(
        ForeignKey("live_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    sender_id: Mapped[str] = mapped_column(String(255), nullable=False)

    message: Mapped[str] = mapped_column(Text, nullable=False)

    message_type: Mapped[MessageType] = mapped_column(
        Enum(
            MessageType,
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=MessageType.TEXT,
    )

    file_url: Mapped[str | None] = mapped_column(
        String(1024),
        nullable=True,
        default=None,
    )

    read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    read_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        default=None,
    )

    session = relationship("LiveSessionModel", back_populates="messages")
