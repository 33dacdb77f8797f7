"""
Test suite for correlation IDs and request middleware.

System role: Verification of logging context propagation
"""

import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from livedesk.observability.correlation import (
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from livedesk.observability.logger import CorrelationIdFilter
from livedesk.observability.middleware import CorrelationMiddleware, RequestLoggingMiddleware


def build_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationMiddleware)

    @app.get("/api/v1/sessions/{session_id}")
    async def echo(session_id: str) -> dict:
        return {"correlation_id": get_correlation_id()}

    return app


class TestCorrelation:
    """Test suite for the correlation ID context."""

    def test_generates_id_when_missing(self) -> None:
        value = set_correlation_id()

        assert value
        assert get_correlation_id() == value
        clear_correlation_id()
        assert get_correlation_id() == ""

    def test_filter_stamps_records(self) -> None:
        # Arrange
        record = logging.LogRecord("livedesk", logging.INFO, __file__, 1, "hello", None, None)
        set_correlation_id("req-42")

        # Act
        CorrelationIdFilter().filter(record)
        clear_correlation_id()

        # Assert
        assert record.correlation_id == "req-42"

    def test_filter_outside_request(self) -> None:
        record = logging.LogRecord("livedesk", logging.INFO, __file__, 1, "hello", None, None)

        CorrelationIdFilter().filter(record)

        assert record.correlation_id == "-"


class TestMiddleware:
    """Test suite for CorrelationMiddleware and RequestLoggingMiddleware."""

    def test_correlation_id_is_echoed_and_bound(self) -> None:
        client = TestClient(build_app())

        response = client.get(
            "/api/v1/sessions/0b7f1c1e-9a57-4c36-8d53-5bd0a0f0d8a1",
            headers={"X-Correlation-ID": "abc-123"},
        )

        assert response.headers["X-Correlation-ID"] == "abc-123"
        assert response.json() == {"correlation_id": "abc-123"}

    def test_request_log_carries_caller_and_session(self, caplog) -> None:
        # Arrange
        client = TestClient(build_app())
        session_id = "0b7f1c1e-9a57-4c36-8d53-5bd0a0f0d8a1"

        # Act
        with caplog.at_level(logging.INFO, logger="livedesk.observability.middleware"):
            client.get(
                f"/api/v1/sessions/{session_id}",
                headers={"X-User-Id": "student-1", "X-User-Role": "student"},
            )

        # Assert
        records = [r for r in caplog.records if r.name == "livedesk.observability.middleware"]
        assert len(records) == 2
        assert all(r.user_id == "student-1" and r.session_id == session_id for r in records)
        assert records[1].status_code == 200

    def test_client_errors_log_as_warning(self, caplog) -> None:
        client = TestClient(build_app())

        with caplog.at_level(logging.INFO, logger="livedesk.observability.middleware"):
            client.get("/missing")

        records = [r for r in caplog.records if r.name == "livedesk.observability.middleware"]
        assert records[-1].levelno == logging.WARNING
