import asyncio

from aiohttp.test_utils import TestClient, TestServer

from tracker.app import TrackerService, create_app
from tracker.config import TrackerConfig
from tracker.net.protocol import PlayerCounters, StatusSnapshot


def _service():
    config = TrackerConfig(masters=[], discovery_interval=0, poll_interval=60, sqlite_enabled=False, ranking_page_size=2)
    svc = TrackerService(config)

    async def query(address, timeout):
        return StatusSnapshot(hostname="Panzer Pit", mapname="Bad Bay", player_count=1, players=[PlayerCounters("Alice", 4, 1, 9)])

    svc.poller.query = query
    svc.registry.register(("127.0.0.1", 3030))
    return config, svc


def _run(check):
    config, svc = _service()

    async def run():
        async with TestClient(TestServer(create_app(config, svc))) as client:
            # Let the startup discovery pass and its poll complete.
            for _ in range(50):
                if svc.poller.polls:
                    break
                await asyncio.sleep(0.01)
            await check(client, svc)

    asyncio.run(run())


def test_server_snapshot_endpoints():
    async def check(client, svc):
        resp = await client.get("/servers")
        assert resp.status == 200
        servers = (await resp.json())["servers"]
        assert [s["address"] for s in servers] == ["127.0.0.1:3030"]

        resp = await client.get("/servers/127.0.0.1:3030")
        data = await resp.json()
        assert data["hostname"] == "Panzer Pit"
        assert data["players"] == [{"name": "Alice", "kills": 4, "deaths": 1, "points": 9}]

        assert (await client.get("/servers/10.9.9.9:1")).status == 404
        assert (await client.get("/servers/garbage")).status == 400

    _run(check)


def test_ranking_paging_and_empty_month():
    async def check(client, svc):
        svc.aggregator.flush()
        month = svc.current_month()
        svc.store.add_ranking("Bob", 1, 0, 20, month)
        svc.store.add_ranking("Carol", 1, 0, 1, month)

        resp = await client.get("/ranking", params={"page": "2"})
        data = await resp.json()
        assert data["total"] == 3
        assert data["pages"] == 2
        assert [(p["rank"], p["name"]) for p in data["players"]] == [(3, "Carol")]

        resp = await client.get("/ranking", params={"month": "1999-01"})
        data = await resp.json()
        assert data["total"] == 0
        assert data["players"] == []

        assert (await client.get("/ranking", params={"month": "May"})).status == 400
        assert (await client.get("/ranking", params={"page": "x"})).status == 400

    _run(check)


def test_stats_health_and_months():
    async def check(client, svc):
        svc.aggregator.flush()

        data = await (await client.get("/stats", params={"search": "ali"})).json()
        assert [p["name"] for p in data["players"]] == ["Alice"]
        assert data["players"][0]["actionCount"] == 5
        assert "strength" in data["metrics"]

        data = await (await client.get("/health")).json()
        assert data["ok"] is True
        assert data["servers"] == 1

        data = await (await client.get("/months")).json()
        assert data["months"] == [svc.current_month()]

    _run(check)
