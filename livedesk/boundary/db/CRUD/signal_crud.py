"""
Signal envelope CRUD operations.

Dependencies: sqlalchemy, livedesk.boundary.db.models
System role: Signaling Relay persistence operations
"""

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from livedesk.boundary.db.CRUD.base_crud import BaseCRUD
from livedesk.boundary.db.models.signal_model import SignalEnvelopeModel


class SignalCRUD(BaseCRUD[SignalEnvelopeModel]):
    """CRUD operations for SignalEnvelopeModel."""

    def __init__(self) -> None:
        super().__init__(SignalEnvelopeModel)

    async def list_for_session(
        self,
        session: AsyncSession,
        session_id: UUID,
        since: datetime | None = None,
    ) -> Sequence[SignalEnvelopeModel]:
        """Envelopes of a session in insert order, optionally after `since`."""
        stmt = select(SignalEnvelopeModel).where(
            SignalEnvelopeModel.session_id == session_id
        )
        if since is not None:
            stmt = stmt.where(SignalEnvelopeModel.created_at > since)
        stmt = stmt.order_by(SignalEnvelopeModel.created_at.asc())
        result = await session.execute(stmt)
        return result.scalars().all()

    async def delete_for_session(self, session: AsyncSession, session_id: UUID) -> int:
        """Drop every envelope of a session."""
        return await self.delete_where(
            session, SignalEnvelopeModel.session_id == session_id
        )

    async def delete_older_than(self, session: AsyncSession, cutoff: datetime) -> int:
        """Drop envelopes created before cutoff."""
        return await self.delete_where(
            session, SignalEnvelopeModel.created_at < cutoff
        )


signal_crud = SignalCRUD()
