"""
Live session CRUD operations.

Session-specific queries and the guarded status transitions that keep
the lifecycle atomic under concurrent writers.

Dependencies: sqlalchemy, livedesk.boundary.db.models
System role: Session Store persistence operations
"""

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from livedesk.boundary.db.base import utcnow
from livedesk.boundary.db.CRUD.base_crud import BaseCRUD
from livedesk.boundary.db.models.live_session_model import LiveSessionModel
from livedesk.core.session import SessionRole, SessionStatus


class LiveSessionCRUD(BaseCRUD[LiveSessionModel]):
    """CRUD operations for LiveSessionModel."""

    def __init__(self) -> None:
        super().__init__(LiveSessionModel)

    def _participant_clause(self, user_id: str, role: SessionRole):
        if role == SessionRole.ADMIN:
            return or_(
                LiveSessionModel.admin_id == user_id,
                LiveSessionModel.status == SessionStatus.WAITING,
            )
        return LiveSessionModel.student_id == user_id

    async def get_open_for_student(
        self,
        session: AsyncSession,
        student_id: str,
    ) -> LiveSessionModel | None:
        """
        Return the student's non-ended session, if any.

        At most one exists; the partial unique index enforces it.
        """
        stmt = (
            select(LiveSessionModel)
            .where(
                LiveSessionModel.student_id == student_id,
                LiveSessionModel.status != SessionStatus.ENDED,
            )
            .order_by(LiveSessionModel.created_at.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        role: SessionRole,
    ) -> LiveSessionModel | None:
        """
        Most recent non-ended session the user takes part in.

        Students match on student_id. Admins match sessions they were
        assigned plus any session still waiting in the queue.
        """
        stmt = (
            select(LiveSessionModel)
            .where(
                LiveSessionModel.status != SessionStatus.ENDED,
                self._participant_clause(user_id, role),
            )
            .order_by(LiveSessionModel.created_at.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_waiting(self, session: AsyncSession) -> Sequence[LiveSessionModel]:
        """Waiting sessions, oldest first."""
        stmt = (
            select(LiveSessionModel)
            .where(LiveSessionModel.status == SessionStatus.WAITING)
            .order_by(LiveSessionModel.created_at.asc())
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        role: SessionRole,
        limit: int | None = None,
    ) -> Sequence[LiveSessionModel]:
        """Every session visible to the user, most recently updated first."""
        stmt = (
            select(LiveSessionModel)
            .where(self._participant_clause(user_id, role))
            .order_by(LiveSessionModel.updated_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def activate(
        self,
        session: AsyncSession,
        id: UUID,
        admin_id: str,
        started_at: datetime | None = None,
    ) -> LiveSessionModel | None:
        """
        Assign an admin to a waiting session.

        The UPDATE only matches while status is still waiting, so two admins
        racing for the same session cannot both win.

        Returns:
            The activated session, None if it was not waiting (or missing)
        """
        return await self.update_by_id(
            session,
            id,
            LiveSessionModel.status == SessionStatus.WAITING,
            status=SessionStatus.ACTIVE,
            admin_id=admin_id,
            started_at=started_at or utcnow(),
        )

    async def close(
        self,
        session: AsyncSession,
        id: UUID,
        ended_at: datetime | None = None,
    ) -> LiveSessionModel | None:
        """
        End a non-ended session.

        Returns:
            The ended session, None if it was already ended (or missing)
        """
        return await self.update_by_id(
            session,
            id,
            LiveSessionModel.status != SessionStatus.ENDED,
            status=SessionStatus.ENDED,
            ended_at=ended_at or utcnow(),
        )

    async def touch(self, session: AsyncSession, id: UUID) -> LiveSessionModel | None:
        """Bump updated_at on a non-ended session (conversation ordering)."""
        return await self.update_by_id(
            session,
            id,
            LiveSessionModel.status != SessionStatus.ENDED,
            updated_at=utcnow(),
        )


live_session_crud = LiveSessionCRUD()
