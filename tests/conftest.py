"""
Shared test fixtures: a manually advanced event loop clock, a fixed random
source and a scheduler wired to both.
"""

import heapq

import pytest

from bot.plugins.persona_typing.delivery import DeliveryScheduler
from bot.plugins.persona_typing.simulation import SimulationBuilder


class FakeHandle:
    def __init__(self, callback, args):
        self._callback = callback
        self._args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def run(self):
        self._callback(*self._args)


class FakeLoop:
    """Just enough of asyncio's loop API (time / call_later) to drive timers by hand."""

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = 0

    def time(self):
        return self.now

    def call_later(self, delay, callback, *args):
        handle = FakeHandle(callback, args)
        self._seq += 1
        heapq.heappush(self._queue, (self.now + max(0.0, delay), self._seq, handle))
        return handle

    def advance(self, ms):
        self.advance_to(self.now * 1000 + ms)

    def advance_to(self, ms):
        target = ms / 1000
        while self._queue and self._queue[0][0] <= target:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = max(self.now, when)
            handle.run()
        self.now = max(self.now, target)

    @property
    def pending(self):
        return sum(1 for _, _, h in self._queue if not h.cancelled)


class FixedRandom:
    """random.Random stand-in that always draws the same point of every range."""

    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value

    def uniform(self, a, b):
        return a + (b - a) * self.value


@pytest.fixture
def loop():
    return FakeLoop()


@pytest.fixture
def events():
    return []


@pytest.fixture
def steady_builder():
    """No random pauses or backtracks, jitter fixed at 1.196."""
    return SimulationBuilder(rng=FixedRandom(0.99))


@pytest.fixture
def scheduler(loop, events, steady_builder):
    return DeliveryScheduler(events.append, builder=steady_builder, loop=loop, completion_grace_ms=1000)


def event_types(events, session_id=None):
    return [e.type for e in events if session_id is None or e.session_id == session_id]
