from datetime import datetime

import pytest

from tracker.aggregator import DeltaAggregator
from tracker.registry import ServerRegistry
from tracker.storage.memory import MemoryStore
from tracker.storage.sqlite import SqliteStore

MAY = datetime(2024, 5, 15, 12, 0).timestamp()
JUNE = datetime(2024, 6, 2, 12, 0).timestamp()


class _Handle:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Timer source advanced by hand."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def call_later(self, delay, callback):
        h = _Handle(self.now + delay, callback)
        self.timers.append(h)
        return h

    @property
    def armed(self):
        return [h for h in self.timers if not h.cancelled]

    def advance(self, dt):
        self.now += dt
        due = [h for h in self.armed if h.due <= self.now]
        self.timers = [h for h in self.timers if h not in due and not h.cancelled]
        for h in due:
            h.callback()


class Clock:
    def __init__(self, ts=MAY):
        self.ts = ts

    def __call__(self):
        return self.ts


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        s = MemoryStore()
    else:
        s = SqliteStore(str(tmp_path / "ranking.sqlite3"))
    s.init()
    yield s
    s.close()


@pytest.fixture
def registry(store, clock):
    return ServerRegistry(store, clock=clock)


@pytest.fixture
def aggregator(store, scheduler, clock):
    return DeltaAggregator(store, scheduler, flush_delay=0.5, clock=clock)
