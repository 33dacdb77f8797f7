"""
Live session ORM model.

One support conversation between a student and, once joined, an admin.
Status moves waiting -> active -> ended and rows are never deleted.

Dependencies: sqlalchemy, livedesk.boundary.db.base, livedesk.core.session
System role: Session Store persistence
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from livedesk.boundary.db.base import Base, TimestampMixin, UUIDMixin
from livedesk.core.session import SessionRole, SessionStatus


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class LiveSessionModel(Base, UUIDMixin, TimestampMixin):
    """
    Live session ORM model.

    Attributes:
        id: UUID primary key (auto-generated)
        student_id: Opaque student identifier, fixed at creation
        admin_id: Assigned admin; null while waiting
        status: Lifecycle state (waiting/active/ended)
        complaint_id: Complaint the session was opened for (optional)
        initiator: Role that drives WebRTC negotiation (student/admin)
        started_at: When the session became active
        ended_at: When the session was ended
        created_at: Creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)

    Constraints:
        uq_live_sessions_open_student: at most one non-ended session per student
    """

    __tablename__ = "live_sessions"
    __table_args__ = (
        Index(
            "uq_live_sessions_open_student",
            "student_id",
            unique=True,
            postgresql_where=text("status != 'ended'"),
            sqlite_where=text("status != 'ended'"),
        ),
        Index("ix_live_sessions_status_created_at", "status", "created_at"),
    )

    student_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        doc="Opaque student identifier",
    )

    admin_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        default=None,
        index=True,
        doc="Admin assigned to the session",
    )

    status: Mapped[SessionStatus] = mapped_column(
        Enum(
            SessionStatus,
            native_enum=False,
            length=16,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=SessionStatus.WAITING,
    )

    complaint_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        default=None,
        doc="Complaint this session was opened for",
    )

    initiator: Mapped[SessionRole] = mapped_column(
        Enum(
            SessionRole,
            native_enum=False,
            length=16,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=SessionRole.STUDENT,
    )

    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    ended_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    messages = relationship(
        "ChatMessageModel",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ChatMessageModel.created_at",
    )

    def is_participant(self, user_id: str) -> bool:
        """True if user_id is the student or the assigned admin."""
        return user_id == self.student_id or (
            self.admin_id is not None and user_id == self.admin_id
        )
