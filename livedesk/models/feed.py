"""
Change feed event schemas.

Every committed insert/update/delete is described by one ChangeEvent,
pushed to WebSocket subscribers and consumed by the client orchestrator.

Dependencies: pydantic
System role: Realtime push protocol schemas
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class FeedTable(str, Enum):
    """Tables whose changes are published."""

    SESSIONS = "live_sessions"
    MESSAGES = "chat_messages"
    SIGNALS = "signal_envelopes"


class ChangeType(str, Enum):
    """Row-level change kinds."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class FeedEventType(str, Enum):
    """Server/client WebSocket frame types."""

    SUBSCRIBED = "subscribed"
    CHANGE = "change"
    ERROR = "error"
    PING = "ping"
    PONG = "pong"


class ChangeEvent(BaseModel):
    """
    One committed row change.

    Attributes:
        table: Source table
        change_type: INSERT/UPDATE/DELETE
        record: New row (JSON-safe); the old row for DELETE
        old_record: Previous row when known
        committed_at: When the change was published
    """

    table: FeedTable
    change_type: ChangeType
    record: dict[str, Any]
    old_record: dict[str, Any] | None = None
    committed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return self.model_dump(mode="json")

    @property
    def session_id(self) -> str | None:
        """Session the row belongs to (its own id for session rows)."""
        if self.table == FeedTable.SESSIONS:
            return self.record.get("id")
        return self.record.get("session_id")
