"""
Test suite for LiveSessionCRUD against an in-memory database.

Tests the partial unique index and the guarded status transitions that
keep the session lifecycle atomic.

System role: Verification of Session Store persistence layer
"""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from livedesk.boundary.db.CRUD.live_session_crud import LiveSessionCRUD, live_session_crud
from livedesk.boundary.db.models import LiveSessionModel
from livedesk.core.session import SessionRole, SessionStatus


async def _create(db: AsyncSession, student_id: str = "student-1", **fields) -> LiveSessionModel:
    session = await live_session_crud.create(db, student_id=student_id, **fields)
    await db.commit()
    return session


class TestLiveSessionCRUDInit:
    """Test suite for LiveSessionCRUD initialization."""

    def test_init_should_set_model(self) -> None:
        # Act
        crud = LiveSessionCRUD()

        # Assert
        assert crud.model == LiveSessionModel


class TestOpenSessionConstraint:
    """Test suite for the one-open-session-per-student index."""

    async def test_defaults_for_new_session(self, test_async_db: AsyncSession) -> None:
        # Act
        session = await _create(test_async_db)

        # Assert
        assert session.status == SessionStatus.WAITING
        assert session.initiator == SessionRole.STUDENT
        assert session.admin_id is None
        assert session.created_at is not None

    async def test_second_open_session_is_rejected(self, test_async_db: AsyncSession) -> None:
        # Arrange
        await _create(test_async_db)

        # Act / Assert
        with pytest.raises(IntegrityError):
            await live_session_crud.create(test_async_db, student_id="student-1")
        await test_async_db.rollback()

    async def test_new_session_allowed_after_end(self, test_async_db: AsyncSession) -> None:
        # Arrange
        first = await _create(test_async_db)
        await live_session_crud.close(test_async_db, first.id)
        await test_async_db.commit()

        # Act
        second = await _create(test_async_db)

        # Assert
        assert second.id != first.id
        found = await live_session_crud.get_open_for_student(test_async_db, "student-1")
        assert found.id == second.id


class TestGuardedTransitions:
    """Test suite for activate() and close()."""

    async def test_activate_assigns_admin(self, test_async_db: AsyncSession) -> None:
        # Arrange
        session = await _create(test_async_db)

        # Act
        joined = await live_session_crud.activate(test_async_db, session.id, admin_id="admin-1")
        await test_async_db.commit()

        # Assert
        assert joined.status == SessionStatus.ACTIVE
        assert joined.admin_id == "admin-1"
        assert joined.started_at is not None

    async def test_second_activate_loses(self, test_async_db: AsyncSession) -> None:
        """Test a later join never overwrites the winner's assignment."""
        # Arrange
        session = await _create(test_async_db)
        await live_session_crud.activate(test_async_db, session.id, admin_id="admin-1")
        await test_async_db.commit()

        # Act
        result = await live_session_crud.activate(test_async_db, session.id, admin_id="admin-2")

        # Assert
        assert result is None
        stored = await live_session_crud.get_by_id(test_async_db, session.id)
        assert stored.admin_id == "admin-1"

    async def test_close_is_single_shot(self, test_async_db: AsyncSession) -> None:
        # Arrange
        session = await _create(test_async_db)

        # Act
        first = await live_session_crud.close(test_async_db, session.id)
        await test_async_db.commit()
        second = await live_session_crud.close(test_async_db, session.id)

        # Assert
        assert first.status == SessionStatus.ENDED
        assert first.ended_at is not None
        assert second is None

    async def test_activate_after_end_is_rejected(self, test_async_db: AsyncSession) -> None:
        session = await _create(test_async_db)
        await live_session_crud.close(test_async_db, session.id)
        await test_async_db.commit()

        assert await live_session_crud.activate(test_async_db, session.id, admin_id="admin-1") is None


class TestSessionQueries:
    """Test suite for the read-side queries."""

    async def test_waiting_queue_is_oldest_first(self, test_async_db: AsyncSession) -> None:
        # Arrange
        first = await _create(test_async_db, "student-1")
        second = await _create(test_async_db, "student-2")
        joined = await _create(test_async_db, "student-3")
        await live_session_crud.activate(test_async_db, joined.id, admin_id="admin-1")
        await test_async_db.commit()

        # Act
        waiting = await live_session_crud.list_waiting(test_async_db)

        # Assert
        assert [s.id for s in waiting] == [first.id, second.id]

    async def test_active_for_admin_includes_queue(self, test_async_db: AsyncSession) -> None:
        # Arrange
        waiting = await _create(test_async_db, "student-1")

        # Act
        found = await live_session_crud.get_active_for_user(test_async_db, "admin-1", SessionRole.ADMIN)

        # Assert
        assert found.id == waiting.id

    async def test_active_for_student_ignores_others(self, test_async_db: AsyncSession) -> None:
        await _create(test_async_db, "student-2")

        found = await live_session_crud.get_active_for_user(
            test_async_db, "student-1", SessionRole.STUDENT
        )

        assert found is None

    async def test_list_for_admin_hides_other_admins_sessions(self, test_async_db: AsyncSession) -> None:
        # Arrange
        mine = await _create(test_async_db, "student-1")
        theirs = await _create(test_async_db, "student-2")
        await live_session_crud.activate(test_async_db, mine.id, admin_id="admin-1")
        await live_session_crud.activate(test_async_db, theirs.id, admin_id="admin-2")
        await test_async_db.commit()

        # Act
        visible = await live_session_crud.list_for_user(test_async_db, "admin-1", SessionRole.ADMIN)

        # Assert
        assert [s.id for s in visible] == [mine.id]
