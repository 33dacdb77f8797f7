"""
Live session service.

Coordinates the session lifecycle: create, join, end, and the read-side
queries the orchestrator uses to find a user's current session.

Dependencies: livedesk.boundary.db.CRUD, livedesk.boundary.realtime
System role: Session Store use case orchestration
"""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from livedesk.application.services.base_service import (
    LiveDeskService,
    message_record,
    session_record,
)
from livedesk.boundary.db.base import utcnow
from livedesk.boundary.db.CRUD.chat_message_crud import chat_message_crud
from livedesk.boundary.db.CRUD.live_session_crud import live_session_crud
from livedesk.boundary.db.CRUD.signal_crud import signal_crud
from livedesk.boundary.db.models import MessageType
from livedesk.core.exceptions import (
    ActiveSessionExistsError,
    InvalidSessionTransitionError,
    PermissionDeniedError,
    StoreError,
    ValidationError,
)
from livedesk.core.session import SessionRole, SessionStatus, ensure_transition, initiator_for
from livedesk.models.feed import ChangeType, FeedTable
from livedesk.models.session import ConversationResponse, SessionResponse
from livedesk.models.user import CurrentUser

logger = logging.getLogger(__name__)

ADMIN_JOINED_TEXT = "Admin has joined the chat"
SESSION_ENDED_TEXT = "Chat session has ended"


class LiveSessionService(LiveDeskService):
    """Live session lifecycle orchestrator."""

    async def create_session(
        self,
        user: CurrentUser,
        complaint_id: UUID | None = None,
        target_student_id: str | None = None,
    ) -> SessionResponse:
        """
        Open a live session.

        A student opens a waiting session for themselves. An admin opens a
        session with target_student_id that starts active with the admin
        assigned, so no waiting state is ever observed.

        Args:
            user: Caller
            complaint_id: Complaint the session is about (optional)
            target_student_id: Student to talk to (admins only)

        Returns:
            SessionResponse: The created session

        Raises:
            ValidationError: Admin omitted target_student_id
            PermissionDeniedError: Student tried to open a session for someone else
            ActiveSessionExistsError: The student already has a non-ended session
            StoreError: If the database write fails
        """
        if user.role == SessionRole.ADMIN:
            student_id = (target_student_id or "").strip()
            if not student_id:
                raise ValidationError(
                    "Admins must name the student to open a session with",
                    field="target_student_id",
                )
            fields = {
                "admin_id": user.id,
                "status": SessionStatus.ACTIVE,
                "started_at": utcnow(),
            }
        else:
            if target_student_id and target_student_id != user.id:
                raise PermissionDeniedError(
                    "Students can only open sessions for themselves", user_id=user.id
                )
            student_id = user.id
            fields = {"admin_id": None, "status": SessionStatus.WAITING}

        existing = await live_session_crud.get_open_for_student(self.db, student_id)
        if existing is not None:
            raise ActiveSessionExistsError(student_id, existing.id)

        try:
            session = await live_session_crud.create(
                self.db,
                student_id=student_id,
                complaint_id=complaint_id,
                initiator=initiator_for(user.role),
                **fields,
            )
            await self.db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent create for the same student
            await self.db.rollback()
            logger.warning(
                "Concurrent session create rejected",
                extra={"student_id": student_id, "error": str(e)},
            )
            raise ActiveSessionExistsError(student_id) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Failed to create session",
                extra={"student_id": student_id, "error": str(e)},
            )
            raise StoreError("Failed to create session", operation="create") from e

        record = session_record(session)
        logger.info(
            "Live session created",
            extra={
                "session_id": record["id"],
                "student_id": student_id,
                "status": record["status"],
                "initiator": record["initiator"],
            },
        )
        self._publish(FeedTable.SESSIONS, ChangeType.INSERT, record)
        return SessionResponse.model_validate(record)

    async def join_session(self, session_id: UUID, user: CurrentUser) -> SessionResponse:
        """
        Assign the calling admin to a waiting session.

        The update is conditional on the session still waiting; an admin who
        loses the race gets InvalidSessionTransitionError and the winner's
        assignment is never overwritten.

        Raises:
            PermissionDeniedError: Caller is not an admin
            SessionNotFoundError: Unknown session
            InvalidSessionTransitionError: Session is not waiting
            StoreError: If the database write fails
        """
        if not user.is_admin:
            raise PermissionDeniedError("Only admins can join sessions", user_id=user.id)

        session = await self._load_session(session_id)
        ensure_transition(session_id, session.status, SessionStatus.ACTIVE)
        old_record = session_record(session)

        try:
            joined = await live_session_crud.activate(self.db, session_id, admin_id=user.id)
            if joined is None:
                await self.db.rollback()
                current = await self._load_session(session_id)
                raise InvalidSessionTransitionError(
                    session_id, current.status.value, SessionStatus.ACTIVE.value
                )
            notice = await chat_message_crud.create(
                self.db,
                session_id=session_id,
                sender_id=user.id,
                message=ADMIN_JOINED_TEXT,
                message_type=MessageType.SYSTEM,
            )
            await self._commit("join session", session_id=str(session_id))
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError("Failed to join session", operation="join") from e

        record = session_record(joined)
        logger.info(
            "Admin joined live session",
            extra={"session_id": str(session_id), "admin_id": user.id},
        )
        self._publish(FeedTable.SESSIONS, ChangeType.UPDATE, record, old_record)
        self._publish(FeedTable.MESSAGES, ChangeType.INSERT, message_record(notice))
        return SessionResponse.model_validate(record)

    async def end_session(self, session_id: UUID, user: CurrentUser) -> SessionResponse:
        """
        End a session on behalf of either participant.

        Ending an already-ended session returns it unchanged and emits
        nothing. Signal envelopes of the session are deleted.

        Raises:
            SessionNotFoundError: Unknown session
            PermissionDeniedError: Caller is not a participant
            StoreError: If the database write fails
        """
        session = await self._load_session(session_id)
        self._require_participant(session, user)
        if session.status == SessionStatus.ENDED:
            return SessionResponse.model_validate(session)
        old_record = session_record(session)

        try:
            ended = await live_session_crud.close(self.db, session_id)
            if ended is None:
                # Ended concurrently by the other participant
                await self.db.rollback()
                return SessionResponse.model_validate(await self._load_session(session_id))
            notice = await chat_message_crud.create(
                self.db,
                session_id=session_id,
                sender_id=user.id,
                message=SESSION_ENDED_TEXT,
                message_type=MessageType.SYSTEM,
            )
            pruned = await signal_crud.delete_for_session(self.db, session_id)
            await self._commit("end session", session_id=str(session_id))
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError("Failed to end session", operation="end") from e

        record = session_record(ended)
        logger.info(
            "Live session ended",
            extra={"session_id": str(session_id), "actor_id": user.id, "signals_pruned": pruned},
        )
        self._publish(FeedTable.SESSIONS, ChangeType.UPDATE, record, old_record)
        self._publish(FeedTable.MESSAGES, ChangeType.INSERT, message_record(notice))
        return SessionResponse.model_validate(record)

    async def fetch_active(self, user: CurrentUser) -> SessionResponse | None:
        """
        Most recent non-ended session the caller takes part in.

        For admins this includes sessions still waiting in the queue.
        """
        session = await live_session_crud.get_active_for_user(self.db, user.id, user.role)
        if session is None:
            return None
        return SessionResponse.model_validate(session)

    async def fetch_waiting(self, user: CurrentUser) -> list[SessionResponse]:
        """Waiting sessions, oldest first (admins only)."""
        if not user.is_admin:
            raise PermissionDeniedError("Only admins can view the queue", user_id=user.id)
        sessions = await live_session_crud.list_waiting(self.db)
        return [SessionResponse.model_validate(s) for s in sessions]

    async def get_session(self, session_id: UUID, user: CurrentUser) -> SessionResponse:
        session = await self._load_session(session_id)
        self._require_viewer(session, user)
        return SessionResponse.model_validate(session)

    async def list_conversations(
        self,
        user: CurrentUser,
        limit: int | None = None,
    ) -> list[ConversationResponse]:
        """
        Sessions visible to the caller with last-message preview and unread count.

        Args:
            user: Caller
            limit: Maximum number of conversations

        Returns:
            list[ConversationResponse]: Most recently updated first
        """
        sessions = await live_session_crud.list_for_user(self.db, user.id, user.role, limit=limit)
        unread = await chat_message_crud.count_unread_by_session(
            self.db, [s.id for s in sessions], user.id
        )

        conversations = []
        for session in sessions:
            last = await chat_message_crud.get_last_for_session(self.db, session.id)
            conversations.append(
                ConversationResponse(
                    session=SessionResponse.model_validate(session),
                    last_message=last.message if last else None,
                    last_message_at=last.created_at if last else None,
                    unread_count=unread.get(session.id, 0),
                )
            )
        return conversations
