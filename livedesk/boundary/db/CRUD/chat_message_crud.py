"""
Chat message CRUD operations.

Dependencies: sqlalchemy, livedesk.boundary.db.models
System role: Message Channel persistence operations
"""

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from livedesk.boundary.db.base import utcnow
from livedesk.boundary.db.CRUD.base_crud import BaseCRUD
from livedesk.boundary.db.models.chat_message_model import ChatMessageModel


class ChatMessageCRUD(BaseCRUD[ChatMessageModel]):
    """CRUD operations for ChatMessageModel."""

    def __init__(self) -> None:
        super().__init__(ChatMessageModel)

    async def list_for_session(
        self,
        session: AsyncSession,
        session_id: UUID,
    ) -> Sequence[ChatMessageModel]:
        """
        All messages of a session in non-decreasing created_at order.

        Args:
            session: Async database session
            session_id: Live session UUID

        Returns:
            Messages, oldest first
        """
        stmt = (
            select(ChatMessageModel)
            .where(ChatMessageModel.session_id == session_id)
            .order_by(ChatMessageModel.created_at.asc())
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_last_for_session(
        self,
        session: AsyncSession,
        session_id: UUID,
    ) -> ChatMessageModel | None:
        """Newest message of a session, or None."""
        stmt = (
            select(ChatMessageModel)
            .where(ChatMessageModel.session_id == session_id)
            .order_by(ChatMessageModel.created_at.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_unread_by_session(
        self,
        session: AsyncSession,
        session_ids: Sequence[UUID],
        reader_id: str,
    ) -> dict[UUID, int]:
        """
        Unread messages authored by someone other than reader_id, per session.

        Sessions with nothing unread are absent from the result.
        """
        if not session_ids:
            return {}
        stmt = (
            select(ChatMessageModel.session_id, func.count(ChatMessageModel.id))
            .where(
                ChatMessageModel.session_id.in_(session_ids),
                ChatMessageModel.sender_id != reader_id,
                ChatMessageModel.read_at.is_(None),
            )
            .group_by(ChatMessageModel.session_id)
        )
        result = await session.execute(stmt)
        return {row[0]: int(row[1]) for row in result.all()}

    async def mark_read(
        self,
        session: AsyncSession,
        session_id: UUID,
        reader_id: str,
        read_at: datetime | None = None,
    ) -> Sequence[ChatMessageModel]:
        """
        Stamp read_at/read_by on unread messages authored by others.

        Already-read rows are untouched, so repeating the call is a no-op.

        Returns:
            Messages that were newly marked
        """
        return await self.update_where(
            session,
            ChatMessageModel.session_id == session_id,
            ChatMessageModel.sender_id != reader_id,
            ChatMessageModel.read_at.is_(None),
            read_at=read_at or utcnow(),
            read_by=reader_id,
        )


chat_message_crud = ChatMessageCRUD()
