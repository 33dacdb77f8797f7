"""
Test suite for HTTP error mapping.

Covers the router decorator and the client transport's reverse mapping so
both sides agree on the error contract.

System role: Verification of error handling across the API boundary
"""

import uuid

import httpx
import pytest
from fastapi import HTTPException

from livedesk.api.routers.router_utils import error_detail, error_status_for, handle_live_desk_errors
from livedesk.client.transport import error_from_response
from livedesk.core.exceptions import (
    ActiveSessionExistsError,
    AttachmentError,
    InvalidSessionTransitionError,
    PermissionDeniedError,
    SessionClosedError,
    SessionNotFoundError,
    StoreError,
    ValidationError,
)


class TestErrorStatus:
    """Test suite for exception to status mapping."""

    @pytest.mark.parametrize(
        "error,status_code",
        [
            (ValidationError("bad", field="message"), 400),
            (PermissionDeniedError("no"), 403),
            (SessionNotFoundError(uuid.uuid4()), 404),
            (InvalidSessionTransitionError("s", "active", "active"), 409),
            (ActiveSessionExistsError("student-1"), 409),
            (SessionClosedError("s"), 409),
            (StoreError("db down"), 500),
            (AttachmentError("s3 down"), 500),
        ],
    )
    def test_status_for_each_error(self, error, status_code: int) -> None:
        assert error_status_for(error) == status_code

    def test_detail_carries_type_and_context(self) -> None:
        detail = error_detail(ValidationError("Message cannot be empty", field="message"))
        assert detail == {
            "error": "ValidationError",
            "message": "Message cannot be empty",
            "details": {"field": "message"},
        }


class TestHandleLiveDeskErrors:
    """Test suite for the router decorator."""

    async def test_domain_error_becomes_http_exception(self) -> None:
        # Arrange
        @handle_live_desk_errors
        async def endpoint() -> None:
            raise SessionClosedError("abc")

        # Act
        with pytest.raises(HTTPException) as exc_info:
            await endpoint()

        # Assert
        assert exc_info.value.status_code == 409
        assert exc_info.value.detail["error"] == "SessionClosedError"

    async def test_unexpected_error_becomes_500(self) -> None:
        @handle_live_desk_errors
        async def endpoint() -> None:
            raise RuntimeError("kaboom")

        with pytest.raises(HTTPException) as exc_info:
            await endpoint()

        assert exc_info.value.status_code == 500
        assert exc_info.value.detail["error"] == "InternalError"

    async def test_http_exception_passes_through(self) -> None:
        @handle_live_desk_errors
        async def endpoint() -> None:
            raise HTTPException(status_code=418, detail="teapot")

        with pytest.raises(HTTPException) as exc_info:
            await endpoint()

        assert exc_info.value.status_code == 418

    async def test_return_value_is_untouched(self) -> None:
        @handle_live_desk_errors
        async def endpoint() -> dict:
            return {"ok": True}

        assert await endpoint() == {"ok": True}


class TestErrorFromResponse:
    """Test suite for the client-side reverse mapping."""

    def test_round_trip_of_each_mapped_error(self) -> None:
        """Test every error the API reports comes back as the same type."""
        errors = [
            ValidationError("bad", field="message"),
            PermissionDeniedError("no", user_id="student-2"),
            SessionNotFoundError(uuid.uuid4()),
            InvalidSessionTransitionError("s", "active", "active"),
            ActiveSessionExistsError("student-1", "s"),
            SessionClosedError("s"),
        ]
        for error in errors:
            response = httpx.Response(error_status_for(error), json={"detail": error_detail(error)})
            assert type(error_from_response(response, "op")) is type(error)

    def test_validation_keeps_field(self) -> None:
        error = ValidationError("Message cannot be empty", field="message")
        response = httpx.Response(400, json={"detail": error_detail(error)})

        mapped = error_from_response(response, "send message")

        assert mapped.details["field"] == "message"
        assert mapped.message == "Message cannot be empty"

    def test_server_error_becomes_store_error(self) -> None:
        response = httpx.Response(500, json={"detail": error_detail(StoreError("db down"))})

        mapped = error_from_response(response, "send message")

        assert isinstance(mapped, StoreError)
        assert mapped.status_code == 500
        assert mapped.details["operation"] == "send message"

    def test_non_json_body_is_tolerated(self) -> None:
        response = httpx.Response(502, text="Bad Gateway")

        mapped = error_from_response(response, "fetch")

        assert isinstance(mapped, StoreError)
        assert mapped.status_code == 502
