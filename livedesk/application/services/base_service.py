"""
Shared service plumbing.

Commit/rollback handling, change publication and participant checks used
by every live-desk service.

Dependencies: sqlalchemy, livedesk.boundary
System role: Unit-of-work helper for application services
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from livedesk.boundary.db.CRUD.live_session_crud import live_session_crud
from livedesk.boundary.db.models import ChatMessageModel, LiveSessionModel, SignalEnvelopeModel
from livedesk.boundary.realtime.change_feed import ChangeFeed
from livedesk.core.exceptions import (
    PermissionDeniedError,
    SessionClosedError,
    SessionNotFoundError,
    StoreError,
)
from livedesk.core.session import SessionStatus
from livedesk.models.feed import ChangeEvent, ChangeType, FeedTable
from livedesk.models.message import MessageResponse
from livedesk.models.session import SessionResponse
from livedesk.models.signal import SignalResponse
from livedesk.models.user import CurrentUser

logger = logging.getLogger(__name__)


def session_record(row: LiveSessionModel) -> dict[str, Any]:
    return SessionResponse.model_validate(row).model_dump(mode="json")


def message_record(row: ChatMessageModel) -> dict[str, Any]:
    return MessageResponse.model_validate(row).model_dump(mode="json")


def signal_record(row: SignalEnvelopeModel) -> dict[str, Any]:
    return SignalResponse.model_validate(row).model_dump(mode="json")


class LiveDeskService:
    """Base for services that write to the store and publish changes."""

    def __init__(self, db: AsyncSession, feed: ChangeFeed | None = None) -> None:
        """
        Args:
            db: Async SQLAlchemy session
            feed: Change feed to publish committed rows on (None disables push)
        """
        self.db = db
        self.feed = feed

    async def _commit(self, operation: str, **context: Any) -> None:
        """
        Commit the unit of work.

        Raises:
            StoreError: If the commit fails (the transaction is rolled back)
        """
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(
                "Commit failed",
                extra={"operation": operation, "error": str(e), **context},
            )
            await self.db.rollback()
            raise StoreError(f"Failed to {operation}", operation=operation) from e

    def _publish(
        self,
        table: FeedTable,
        change_type: ChangeType,
        record: dict[str, Any],
        old_record: dict[str, Any] | None = None,
    ) -> None:
        if self.feed is None:
            return
        self.feed.publish(
            ChangeEvent(
                table=table,
                change_type=change_type,
                record=record,
                old_record=old_record,
            )
        )

    async def _load_session(self, session_id: UUID) -> LiveSessionModel:
        session = await live_session_crud.get_by_id(self.db, session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _require_participant(self, session: LiveSessionModel, user: CurrentUser) -> None:
        if not session.is_participant(user.id):
            raise PermissionDeniedError(
                f"User is not a participant of session {session.id}", user_id=user.id
            )

    def _require_viewer(self, session: LiveSessionModel, user: CurrentUser) -> None:
        """Participants may read a session; admins may read any."""
        if user.is_admin:
            return
        self._require_participant(session, user)

    def _require_open(self, session: LiveSessionModel) -> None:
        if session.status == SessionStatus.ENDED:
            raise SessionClosedError(session.id)
