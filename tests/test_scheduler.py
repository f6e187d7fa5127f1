"""Tests for the deferred action scheduler."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from digifriend.scheduler import DeferredScheduler


@pytest.mark.asyncio
class TestDeferredScheduler:
    async def test_runs_sync_action_after_delay(self):
        scheduler = DeferredScheduler()
        action = Mock()

        scheduler.schedule(0.01, action)
        action.assert_not_called()

        await asyncio.sleep(0.05)
        action.assert_called_once_with()

    async def test_awaits_coroutine_action(self):
        scheduler = DeferredScheduler()
        action = AsyncMock()

        task = scheduler.schedule(0, action)
        await task

        action.assert_awaited_once()

    async def test_runs_exactly_once(self):
        scheduler = DeferredScheduler()
        action = Mock()

        await scheduler.schedule(0, action)
        await asyncio.sleep(0.02)

        assert action.call_count == 1

    async def test_pending_count(self):
        scheduler = DeferredScheduler()

        task = scheduler.schedule(0.01, Mock())
        assert scheduler.pending == 1

        await task
        await asyncio.sleep(0)
        assert scheduler.pending == 0

    async def test_failing_action_does_not_propagate(self):
        scheduler = DeferredScheduler()
        action = Mock(side_effect=RuntimeError("boom"))

        await scheduler.schedule(0, action)

        action.assert_called_once()

    async def test_negative_delay_runs_immediately(self):
        scheduler = DeferredScheduler()
        action = Mock()

        await scheduler.schedule(-5, action)

        action.assert_called_once()

    async def test_shutdown_cancels_pending(self):
        scheduler = DeferredScheduler()
        action = Mock()

        task = scheduler.schedule(10, action)
        scheduler.shutdown()
        await asyncio.sleep(0.01)

        assert task.cancelled()
        assert scheduler.pending == 0
        action.assert_not_called()
