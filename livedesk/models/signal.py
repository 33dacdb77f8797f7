"""
Signaling envelope schemas.

Dependencies: pydantic
System role: Signaling Relay API contracts
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from livedesk.boundary.db.models.signal_model import SignalType


class SignalRequest(BaseModel):
    """Request schema for relaying one signal."""

    signal_type: SignalType
    signal_data: dict[str, Any] = Field(default_factory=dict)


class SignalResponse(BaseModel):
    """Response schema for a relayed signal."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    session_id: uuid.UUID
    sender_id: str
    signal_type: SignalType
    signal_data: dict[str, Any]
    created_at: datetime


class SignalListResponse(BaseModel):
    """Envelopes of a session in insert order."""

    signals: list[SignalResponse]
    total: int
