"""
Message service.

Sends, lists and read-marks chat messages of a live session. Delivery to
participants happens through the change feed; send returns only once the
row is committed.

Dependencies: livedesk.boundary.db.CRUD, livedesk.boundary.realtime
System role: Message Channel use case orchestration
"""

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from livedesk.application.services.base_service import LiveDeskService, message_record
from livedesk.boundary.db.CRUD.chat_message_crud import chat_message_crud
from livedesk.boundary.db.CRUD.live_session_crud import live_session_crud
from livedesk.boundary.db.models import MessageType
from livedesk.core.attachments import key_belongs_to_session
from livedesk.core.exceptions import StoreError, ValidationError
from livedesk.models.feed import ChangeType, FeedTable
from livedesk.models.message import MessageResponse
from livedesk.models.user import CurrentUser

logger = logging.getLogger(__name__)


def validate_outgoing_message(
    session_id: UUID,
    text: str,
    message_type: MessageType,
    file_url: str | None,
) -> str:
    """
    Check a message before any I/O.

    Returns:
        str: The trimmed text to persist

    Raises:
        ValidationError: Blank text, client-sent system message, or file_url
            not matching the message type
    """
    trimmed = (text or "").strip()
    if not trimmed:
        raise ValidationError("Message cannot be empty", field="message")
    if message_type == MessageType.SYSTEM:
        raise ValidationError("System messages cannot be sent by clients", field="message_type")
    if message_type == MessageType.FILE:
        if not file_url:
            raise ValidationError("File messages require file_url", field="file_url")
        if not key_belongs_to_session(file_url, session_id):
            raise ValidationError("file_url does not belong to this session", field="file_url")
    elif file_url:
        raise ValidationError("Only file messages may carry file_url", field="file_url")
    return trimmed


class MessageService(LiveDeskService):
    """Chat message orchestrator."""

    async def send_message(
        self,
        session_id: UUID,
        user: CurrentUser,
        text: str,
        message_type: MessageType = MessageType.TEXT,
        file_url: str | None = None,
    ) -> MessageResponse:
        """
        Persist a message from a participant.

        Args:
            session_id: Target session
            user: Sender
            text: Message text (trimmed before storing)
            message_type: text or file
            file_url: Attachment key for file messages

        Returns:
            MessageResponse: The committed message

        Raises:
            ValidationError: Invalid content (raised before touching the store)
            SessionNotFoundError: Unknown session
            PermissionDeniedError: Sender is not a participant
            SessionClosedError: Session has ended
            StoreError: If the database write fails
        """
        trimmed = validate_outgoing_message(session_id, text, message_type, file_url)

        session = await self._load_session(session_id)
        self._require_participant(session, user)
        self._require_open(session)

        try:
            message = await chat_message_crud.create(
                self.db,
                session_id=session_id,
                sender_id=user.id,
                message=trimmed,
                message_type=message_type,
                file_url=file_url,
            )
            await live_session_crud.touch(self.db, session_id)
            await self._commit("send message", session_id=str(session_id))
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError("Failed to send message", operation="send") from e

        record = message_record(message)
        logger.info(
            "Message sent",
            extra={
                "session_id": str(session_id),
                "message_id": record["id"],
                "message_type": message_type.value,
            },
        )
        self._publish(FeedTable.MESSAGES, ChangeType.INSERT, record)
        return MessageResponse.model_validate(record)

    async def fetch_messages(self, session_id: UUID, user: CurrentUser) -> list[MessageResponse]:
        """All messages of a session, oldest first."""
        session = await self._load_session(session_id)
        self._require_viewer(session, user)
        messages = await chat_message_crud.list_for_session(self.db, session_id)
        return [MessageResponse.model_validate(m) for m in messages]

    async def mark_read(self, session_id: UUID, user: CurrentUser) -> int:
        """
        Mark messages from other participants as read by the caller.

        Idempotent: already-read messages are left alone.

        Returns:
            int: Number of messages newly marked
        """
        session = await self._load_session(session_id)
        self._require_participant(session, user)

        try:
            marked = await chat_message_crud.mark_read(self.db, session_id, user.id)
            await self._commit("mark messages read", session_id=str(session_id))
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError("Failed to mark messages read", operation="mark_read") from e

        for message in marked:
            self._publish(FeedTable.MESSAGES, ChangeType.UPDATE, message_record(message))
        if marked:
            logger.debug(
                "Messages marked read",
                extra={"session_id": str(session_id), "reader_id": user.id, "count": len(marked)},
            )
        return len(marked)
