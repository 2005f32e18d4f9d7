"""Shared fixtures for draftsync tests."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from draftsync.api import DraftClient
from draftsync.sync.state import DraftCache

EPOCH = 1_700_000_000.0


class FakeTimerHandle:
    """Timer handle returned by FakeLoop.call_later."""

    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    def cancelled(self):
        return self._cancelled


class FakeLoop:
    """Event loop stand-in whose timers only fire when time is advanced.

    Tasks are created on the real running loop so awaited network calls
    still complete; advance() yields to them after every timer.
    """

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def time(self):
        return self.now

    def call_later(self, delay, callback, *args):
        handle = FakeTimerHandle(self.now + delay, callback, args)
        self.timers.append(handle)
        return handle

    def create_task(self, coro):
        return asyncio.get_running_loop().create_task(coro)

    @property
    def pending(self):
        return [h for h in self.timers if not h.cancelled()]

    def _pop_due(self, target):
        due = [h for h in self.pending if h.when <= target]
        if not due:
            return None
        handle = min(due, key=lambda h: h.when)
        self.timers.remove(handle)
        self.now = handle.when
        return handle

    def advance_sync(self, seconds):
        """Fire due timers without yielding to the real loop."""
        target = self.now + seconds
        handle = self._pop_due(target)
        while handle is not None:
            handle.callback(*handle.args)
            handle = self._pop_due(target)
        self.now = target

    async def advance(self, seconds):
        """Fire due timers in order, letting spawned tasks run after each."""
        target = self.now + seconds
        handle = self._pop_due(target)
        while handle is not None:
            handle.callback(*handle.args)
            await settle()
            handle = self._pop_due(target)
        self.now = target
        await settle()


async def settle(rounds=20):
    """Yield to the event loop until pending callbacks have run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def fake_loop():
    """Provide a loop with manually driven timers."""
    return FakeLoop()


@pytest.fixture
def clock(fake_loop):
    """Wall clock (epoch seconds) that moves with the fake loop."""
    return lambda: EPOCH + fake_loop.now


@pytest.fixture
def cache(tmp_path):
    """Provide a draft cache in a temporary directory."""
    return DraftCache(tmp_path / "drafts")


@pytest.fixture
def mock_client():
    """Create a mock draft API client that accepts every save."""
    client = Mock(spec=DraftClient)
    client.save_draft = AsyncMock(return_value={"success": True})
    client.load_draft = AsyncMock(return_value=None)
    client.aclose = AsyncMock()
    return client
