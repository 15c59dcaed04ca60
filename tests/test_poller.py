import asyncio

from conftest import Clock, ManualScheduler
from tracker.aggregator import DeltaAggregator
from tracker.net.protocol import PlayerCounters, StatusSnapshot
from tracker.net.query import TransportError
from tracker.poller import StatusPoller
from tracker.registry import ServerRegistry
from tracker.storage.memory import MemoryStore


def _setup(query, max_concurrent=64):
    clock = Clock()
    store = MemoryStore()
    scheduler = ManualScheduler()
    registry = ServerRegistry(store, clock=clock)
    aggregator = DeltaAggregator(store, scheduler, clock=clock)
    poller = StatusPoller(registry, aggregator, timeout=0.5, max_concurrent=max_concurrent, query=query, clock=clock)
    return store, scheduler, registry, poller


def test_failed_server_does_not_affect_others():
    async def query(address, timeout):
        if address[0] == "10.0.0.2":
            raise TransportError("no response")
        return StatusSnapshot(hostname="ok", player_count=1, players=[PlayerCounters("Alice", 3, 1, 7)])

    store, scheduler, registry, poller = _setup(query)
    registry.register(("10.0.0.1", 3030))
    registry.register(("10.0.0.2", 3030))

    ok = asyncio.run(poller.poll_all())
    scheduler.advance(0.5)

    good = registry.get(("10.0.0.1", 3030))
    bad = registry.get(("10.0.0.2", 3030))
    assert ok == 1
    assert good.snapshot.hostname == "ok"
    assert good.failures == 0
    assert good.last_polled_at > 0
    assert bad.failures == 1
    assert bad.snapshot.hostname == ""
    assert store.query_ranking("2024-05") == [{"name": "Alice", "kills": 3, "deaths": 1, "points": 7}]


def test_snapshot_is_replaced_wholesale():
    replies = [
        StatusSnapshot(hostname="first", mapname="m1", players=[PlayerCounters("Alice", 1)]),
        StatusSnapshot(hostname="second"),
    ]

    async def query(address, timeout):
        return replies.pop(0)

    _, _, registry, poller = _setup(query)
    registry.register(("10.0.0.1", 3030))
    asyncio.run(poller.poll_all())
    asyncio.run(poller.poll_all())

    snap = registry.get(("10.0.0.1", 3030)).snapshot
    assert snap.hostname == "second"
    assert snap.mapname == ""
    assert snap.players == []
    assert poller.polls == 2


def test_concurrency_is_capped():
    in_flight = 0
    peak = 0

    async def query(address, timeout):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return StatusSnapshot()

    _, _, registry, poller = _setup(query, max_concurrent=2)
    for i in range(6):
        registry.register((f"10.0.0.{i}", 3030))

    assert asyncio.run(poller.poll_all()) == 6
    assert peak == 2


def test_empty_registry_is_a_no_op():
    async def query(address, timeout):
        raise AssertionError("should not be called")

    _, _, _, poller = _setup(query)
    assert asyncio.run(poller.poll_all()) == 0
