"""Live session lifecycle rules."""

from .state_machine import (
    SessionRole,
    SessionStatus,
    ensure_transition,
    initiator_for,
    status_rank,
)

__all__ = [
    "SessionRole",
    "SessionStatus",
    "ensure_transition",
    "initiator_for",
    "status_rank",
]
