"""
Live session state machine.

waiting -> active -> ended, with waiting -> ended allowed and ended terminal.

Dependencies: livedesk.core.exceptions
System role: Session lifecycle rules shared by the store and the orchestrator
"""

import enum
from typing import Any

from livedesk.core.exceptions import InvalidSessionTransitionError


class SessionStatus(str, enum.Enum):
    """
    Live session states.

    WAITING: Created by a student, no admin assigned yet
    ACTIVE: Student and admin paired
    ENDED: Closed by either participant (terminal)
    """

    WAITING = "waiting"
    ACTIVE = "active"
    ENDED = "ended"


class SessionRole(str, enum.Enum):
    """Participant roles as claimed by the identity provider."""

    STUDENT = "student"
    ADMIN = "admin"


ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.WAITING: frozenset({SessionStatus.ACTIVE, SessionStatus.ENDED}),
    SessionStatus.ACTIVE: frozenset({SessionStatus.ENDED}),
    SessionStatus.ENDED: frozenset(),
}

_RANK = {
    SessionStatus.WAITING: 0,
    SessionStatus.ACTIVE: 1,
    SessionStatus.ENDED: 2,
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    """Return True if `current -> target` is a legal move."""
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(session_id: Any, current: SessionStatus, target: SessionStatus) -> None:
    """
    Guard a status change.

    Raises:
        InvalidSessionTransitionError: If the move is not allowed
    """
    if not can_transition(current, target):
        raise InvalidSessionTransitionError(session_id, current.value, target.value)


def status_rank(status: SessionStatus | str) -> int:
    """Position of a status along the lifecycle; later states rank higher."""
    return _RANK[SessionStatus(status)]


def initiator_for(created_by: SessionRole) -> SessionRole:
    """
    Designated offerer for a session.

    The creator of the session drives negotiation: a student-created session
    is initiated by the student, an admin-created one by the admin. Exactly
    one side offers, so glare cannot occur.
    """
    return SessionRole(created_by)
