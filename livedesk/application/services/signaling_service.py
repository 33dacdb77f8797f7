"""
Signaling service.

Relays WebRTC offers, answers and ICE candidates between the two peers
of a session. Envelopes are ephemeral: pruned when the session ends and
purged after a TTL.

Dependencies: livedesk.boundary.db.CRUD, livedesk.boundary.realtime
System role: Signaling Relay use case orchestration
"""

import logging
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from livedesk.application.services.base_service import LiveDeskService, signal_record
from livedesk.boundary.db.base import utcnow
from livedesk.boundary.db.CRUD.signal_crud import signal_crud
from livedesk.boundary.db.models import SignalType
from livedesk.core.exceptions import StoreError
from livedesk.models.feed import ChangeType, FeedTable
from livedesk.models.signal import SignalResponse
from livedesk.models.user import CurrentUser

logger = logging.getLogger(__name__)


class SignalingService(LiveDeskService):
    """Signal envelope relay."""

    async def send_signal(
        self,
        session_id: UUID,
        user: CurrentUser,
        signal_type: SignalType,
        signal_data: dict[str, Any],
    ) -> SignalResponse:
        """
        Persist one envelope and push it to the session's signal feed.

        No ack and no retry; receivers drop envelopes they authored.

        Raises:
            SessionNotFoundError / PermissionDeniedError / SessionClosedError
            StoreError: If the database write fails
        """
        session = await self._load_session(session_id)
        self._require_participant(session, user)
        self._require_open(session)

        try:
            envelope = await signal_crud.create(
                self.db,
                session_id=session_id,
                sender_id=user.id,
                signal_type=signal_type,
                signal_data=signal_data,
            )
            await self._commit("send signal", session_id=str(session_id))
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError("Failed to send signal", operation="send_signal") from e

        record = signal_record(envelope)
        logger.debug(
            "Signal relayed",
            extra={"session_id": str(session_id), "signal_type": signal_type.value},
        )
        self._publish(FeedTable.SIGNALS, ChangeType.INSERT, record)
        return SignalResponse.model_validate(record)

    async def list_signals(
        self,
        session_id: UUID,
        user: CurrentUser,
        since: datetime | None = None,
    ) -> list[SignalResponse]:
        """Envelopes of a session in insert order (catch-up after reconnect)."""
        session = await self._load_session(session_id)
        self._require_participant(session, user)
        envelopes = await signal_crud.list_for_session(self.db, session_id, since=since)
        return [SignalResponse.model_validate(e) for e in envelopes]

    async def prune(self, session_id: UUID) -> int:
        """Delete every envelope of a session."""
        try:
            removed = await signal_crud.delete_for_session(self.db, session_id)
            await self._commit("prune signals", session_id=str(session_id))
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError("Failed to prune signals", operation="prune") from e
        return removed

    async def purge_expired(self, ttl_seconds: int) -> int:
        """
        Delete envelopes older than ttl_seconds.

        Returns:
            int: Number of envelopes removed
        """
        cutoff = utcnow() - timedelta(seconds=ttl_seconds)
        try:
            removed = await signal_crud.delete_older_than(self.db, cutoff)
            await self._commit("purge signals")
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError("Failed to purge signals", operation="purge") from e
        if removed:
            logger.info("Expired signals purged", extra={"removed": removed, "ttl_seconds": ttl_seconds})
        return removed
