"""
Exception hierarchy for LiveDesk.

Provides layered exception structure for domain-specific errors.
All exceptions include context for observability and debugging.

Dependencies: None (pure domain layer)
System role: Centralized exception handling across the application
"""

from typing import Any


class LiveDeskException(Exception):
    """Base exception for all LiveDesk errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize base exception with message and optional context.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional context for debugging
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation including details."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(LiveDeskException):
    """Raised when input validation fails (before any I/O)."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Field name that failed validation
            details: Additional context
        """
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class PermissionDeniedError(LiveDeskException):
    """Raised when the caller's role or participation forbids the operation."""

    def __init__(self, message: str, user_id: str | None = None) -> None:
        details = {"user_id": user_id} if user_id else {}
        super().__init__(message, details)


class SessionNotFoundError(LiveDeskException):
    """Raised when a live session cannot be found."""

    def __init__(self, session_id: Any, details: dict[str, Any] | None = None) -> None:
        """
        Initialize session not found error.

        Args:
            session_id: ID of the missing session
            details: Additional context
        """
        details = details or {}
        details["session_id"] = str(session_id)
        super().__init__(f"Session not found: {session_id}", details)


class InvalidSessionTransitionError(LiveDeskException):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, session_id: Any, current: str, target: str) -> None:
        super().__init__(
            f"Cannot move session {session_id} from '{current}' to '{target}'",
            {"session_id": str(session_id), "current": current, "target": target},
        )


class ActiveSessionExistsError(LiveDeskException):
    """Raised when a student already has a non-ended session."""

    def __init__(self, student_id: str, session_id: Any | None = None) -> None:
        details = {"student_id": student_id}
        if session_id is not None:
            details["session_id"] = str(session_id)
        super().__init__(f"Student {student_id} already has an open session", details)


class SessionClosedError(LiveDeskException):
    """Raised when writing into a session that has ended."""

    def __init__(self, session_id: Any) -> None:
        super().__init__(f"Session {session_id} has ended", {"session_id": str(session_id)})


class StoreError(LiveDeskException):
    """Raised when a store or network operation fails."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize store error.

        Args:
            message: Error message
            operation: Operation that failed (create, join, send, ...)
            status_code: HTTP status when raised by the client transport
            details: Additional context
        """
        details = details or {}
        if operation:
            details["operation"] = operation
        if status_code is not None:
            details["status_code"] = status_code
        self.status_code = status_code
        super().__init__(message, details)


class AttachmentError(LiveDeskException):
    """Raised when blob storage operations fail."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message, {"key": key} if key else {})


class MediaError(LiveDeskException):
    """Base exception for local media acquisition failures."""

    pass


class MediaUnsupportedError(MediaError):
    """Raised when the platform cannot capture the requested media at all."""

    pass


class MediaPermissionDeniedError(MediaError):
    """Raised when the user or OS denies access to the capture device."""

    pass


class MediaAcquisitionError(MediaError):
    """Raised when capture fails for any other reason."""

    pass


class NegotiationError(LiveDeskException):
    """Raised when offer/answer negotiation cannot proceed."""

    def __init__(
        self,
        message: str,
        session_id: Any | None = None,
        signaling_state: str | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if session_id is not None:
            details["session_id"] = str(session_id)
        if signaling_state:
            details["signaling_state"] = signaling_state
        super().__init__(message, details)
