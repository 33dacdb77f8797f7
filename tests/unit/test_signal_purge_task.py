"""
Test suite for the periodic signal purge task.

System role: Verification of the API lifespan background purge
"""

import asyncio
import contextlib
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from livedesk.api.main import purge_signals_periodically
from livedesk.core.exceptions import StoreError


@contextlib.asynccontextmanager
async def fake_session_factory():
    yield MagicMock()


async def run_until(calls: list, count: int) -> asyncio.Task:
    task = asyncio.create_task(
        purge_signals_periodically(600, 0, session_factory=fake_session_factory)
    )
    for _ in range(100):
        await asyncio.sleep(0)
        if len(calls) >= count:
            break
    return task


async def stop(task: asyncio.Task) -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


class TestPurgeSignalsPeriodically:
    """Test suite for purge_signals_periodically()."""

    @pytest.mark.parametrize("error", [RuntimeError("connection reset"), StoreError("rollback failed")])
    async def test_failed_run_does_not_stop_the_loop(self, error: Exception, caplog) -> None:
        # Arrange
        calls = []

        def purge(ttl_seconds: int) -> int:
            calls.append(ttl_seconds)
            if len(calls) == 1:
                raise error
            return 0

        service = MagicMock()
        service.return_value.purge_expired = AsyncMock(side_effect=purge)

        # Act
        with patch("livedesk.api.main.SignalingService", service):
            with caplog.at_level(logging.WARNING, logger="livedesk.api.main"):
                task = await run_until(calls, 3)
                finished_early = task.done()
                await stop(task)

        # Assert
        assert not finished_early
        assert len(calls) >= 3
        assert calls[0] == 600
        assert task.cancelled()
        assert any(r.message.startswith("Signal purge") for r in caplog.records)
