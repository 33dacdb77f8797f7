"""
Chat message schemas.

Dependencies: pydantic
System role: Message Channel API contracts
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from livedesk.boundary.db.models.chat_message_model import MessageType


class SendMessageRequest(BaseModel):
    """Request schema for sending a chat message."""

    message: str = Field(description="Message text; must not be blank")
    message_type: MessageType = Field(default=MessageType.TEXT)
    file_url: str | None = Field(
        default=None, description="Attachment key, required for file messages"
    )


class MessageResponse(BaseModel):
    """Response schema for a chat message."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    session_id: uuid.UUID
    sender_id: str
    message: str
    message_type: MessageType
    file_url: str | None = None
    created_at: datetime
    read_at: datetime | None = None
    read_by: str | None = None


class MessageListResponse(BaseModel):
    """Messages of a session, oldest first."""

    messages: list[MessageResponse]
    total: int


class MarkReadResponse(BaseModel):
    """Result of a read-receipt update."""

    session_id: uuid.UUID
    marked: int
