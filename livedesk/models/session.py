"""
Live session schemas.

Request/response schemas for session operations.

Dependencies: pydantic
System role: Session API contracts
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from livedesk.core.session import SessionRole, SessionStatus


class CreateSessionRequest(BaseModel):
    """
    Request schema for creating a live session.

    Students omit target_student_id. Admins must supply it and the session
    starts active with the admin already assigned.
    """

    complaint_id: uuid.UUID | None = Field(
        default=None, description="Complaint the session is opened for"
    )
    target_student_id: str | None = Field(
        default=None, description="Student to open the session with (admins only)"
    )


class SessionResponse(BaseModel):
    """Response schema for session operations."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    student_id: str
    admin_id: str | None = None
    status: SessionStatus
    complaint_id: uuid.UUID | None = None
    initiator: SessionRole
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    ended_at: datetime | None = None


class ConversationResponse(BaseModel):
    """One row of the conversations list."""

    session: SessionResponse
    last_message: str | None = None
    last_message_at: datetime | None = None
    unread_count: int = 0


class ConversationListResponse(BaseModel):
    """Conversations visible to the caller, most recently updated first."""

    conversations: list[ConversationResponse]
    total: int
