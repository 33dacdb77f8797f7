"""
Live desk error handling utilities.

A decorator that maps domain exceptions onto HTTP responses with
consistent logging across every router.
"""

import functools
import logging
from typing import Any, Callable, TypeVar

from fastapi import HTTPException, status

from livedesk.core.exceptions import (
    ActiveSessionExistsError,
    AttachmentError,
    InvalidSessionTransitionError,
    LiveDeskException,
    PermissionDeniedError,
    SessionClosedError,
    SessionNotFoundError,
    StoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Type for the decorated function
F = TypeVar("F", bound=Callable[..., Any])

_STATUS_BY_ERROR: list[tuple[type[LiveDeskException], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (SessionNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidSessionTransitionError, status.HTTP_409_CONFLICT),
    (ActiveSessionExistsError, status.HTTP_409_CONFLICT),
    (SessionClosedError, status.HTTP_409_CONFLICT),
    (StoreError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (AttachmentError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def error_status_for(error: LiveDeskException) -> int:
    """HTTP status for a domain exception (500 when unmapped)."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_detail(error: LiveDeskException) -> dict[str, Any]:
    """Response body the client transport maps back onto exception types."""
    return {
        "error": type(error).__name__,
        "message": error.message,
        "details": error.details,
    }


def handle_live_desk_errors(func: F) -> F:
    """
    Decorator to turn domain exceptions into HTTPExceptions.

    Client mistakes (4xx) are logged as warnings, server failures (5xx)
    as errors with the traceback.
    """

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)

        except HTTPException:
            raise

        except LiveDeskException as e:
            status_code = error_status_for(e)
            if status_code >= 500:
                logger.exception(
                    "Live desk operation failed",
                    extra={"error_type": type(e).__name__, "error": str(e)},
                )
            else:
                logger.warning(
                    "Live desk request rejected",
                    extra={
                        "error_type": type(e).__name__,
                        "status_code": status_code,
                        "error": str(e),
                    },
                )
            raise HTTPException(status_code=status_code, detail=error_detail(e))

        except Exception as e:
            logger.exception(
                "Unexpected failure in live desk operation",
                extra={"error": str(e)},
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={
                    "error": "InternalError",
                    "message": "An internal error occurred",
                    "details": {},
                },
            )

    return wrapper  # type: ignore
