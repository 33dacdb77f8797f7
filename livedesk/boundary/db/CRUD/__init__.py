"""
CRUD operations for database models.

Exports base CRUD class and model-specific CRUD implementations
with pre-instantiated singletons for direct use.

Usage:
    from livedesk.boundary.db.CRUD import live_session_crud, chat_message_crud

    session = await live_session_crud.get_by_id(db, session_id)
    messages = await chat_message_crud.list_for_session(db, session_id)
"""

from livedesk.boundary.db.CRUD.base_crud import BaseCRUD
from livedesk.boundary.db.CRUD.live_session_crud import LiveSessionCRUD, live_session_crud
from livedesk.boundary.db.CRUD.chat_message_crud import ChatMessageCRUD, chat_message_crud
from livedesk.boundary.db.CRUD.signal_crud import SignalCRUD, signal_crud

__all__ = [
    "BaseCRUD",
    "LiveSessionCRUD",
    "live_session_crud",
    "ChatMessageCRUD",
    "chat_message_crud",
    "SignalCRUD",
    "signal_crud",
]
