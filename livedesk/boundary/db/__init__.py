"""
Database boundary layer: ORM models, CRUD operations, and connection management.

Exports:
  - Base, UUIDMixin, TimestampMixin, CreatedAtMixin: Model building blocks
  - get_async_engine(), get_async_session_factory(), get_async_db(): Connection management
  - LiveSessionModel, ChatMessageModel, SignalEnvelopeModel: Persisted entities
  - MessageType, SignalType: Enum types
  - live_session_crud, chat_message_crud, signal_crud: CRUD operation singletons

Dependencies: sqlalchemy, livedesk.configs
System role: Database adapter for the Session Store, Message Channel and Signaling Relay
"""

from livedesk.boundary.db.base import Base, CreatedAtMixin, TimestampMixin, UUIDMixin, utcnow
from livedesk.boundary.db.connection import (
    create_tables,
    get_async_db,
    get_async_engine,
    get_async_session_factory,
)
from livedesk.boundary.db.models import (
    ChatMessageModel,
    LiveSessionModel,
    MessageType,
    SignalEnvelopeModel,
    SignalType,
)
from livedesk.boundary.db.CRUD import (
    BaseCRUD,
    ChatMessageCRUD,
    LiveSessionCRUD,
    SignalCRUD,
    chat_message_crud,
    live_session_crud,
    signal_crud,
)

__all__ = [
    # Base classes
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    "UUIDMixin",
    "utcnow",
    # Connection
    "create_tables",
    "get_async_db",
    "get_async_engine",
    "get_async_session_factory",
    # Models
    "LiveSessionModel",
    "ChatMessageModel",
    "MessageType",
    "SignalEnvelopeModel",
    "SignalType",
    # CRUD classes
    "BaseCRUD",
    "LiveSessionCRUD",
    "ChatMessageCRUD",
    "SignalCRUD",
    # CRUD singletons
    "live_session_crud",
    "chat_message_crud",
    "signal_crud",
]
