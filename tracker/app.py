"""HTTP entrypoint: runs the discovery/poll pipeline and serves read-only JSON.

Rendering (HTML, localization) is left to whatever consumes these endpoints.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from aiohttp import web

from tracker.aggregator import DeltaAggregator
from tracker.config import TrackerConfig
from tracker.months import month_key
from tracker.net.master import DiscoveryClient
from tracker.net.protocol import parse_address
from tracker.poller import StatusPoller
from tracker.registry import ServerRegistry
from tracker.scheduler import Scheduler
from tracker.stats import describe_metrics, player_stats
from tracker.storage.memory import MemoryStore
from tracker.storage.sqlite import SqliteStore

logger = logging.getLogger(__name__)


class TrackerService:
    def __init__(self, config: TrackerConfig, clock: Callable[[], float] = time.time):
        self.config = config
        self.clock = clock
        self.start_time = clock()

        self.store = SqliteStore(config.sqlite_path) if config.sqlite_enabled else MemoryStore()
        self.scheduler = Scheduler()
        self.registry = ServerRegistry(self.store, clock=clock)
        self.aggregator = DeltaAggregator(
            self.store,
            self.scheduler,
            flush_delay=config.flush_delay,
            identity_scope=config.identity_scope,
            clamp_points=config.clamp_points,
            clock=clock,
        )
        self.poller = StatusPoller(
            self.registry,
            self.aggregator,
            timeout=config.query_timeout,
            max_concurrent=config.max_concurrent_queries,
            clock=clock,
        )
        self.discovery = DiscoveryClient(
            config.masters,
            self.registry,
            timeout=config.master_timeout,
            max_bytes=config.master_max_bytes,
            on_complete=self.poller.poll_all,
        )

    def current_month(self) -> str:
        return month_key(self.clock())

    async def start(self) -> None:
        self.store.init()
        if self.config.discovery_interval > 0:
            self.scheduler.every("discovery", self.config.discovery_interval, self.discovery.run, run_immediately=True)
        else:
            self.scheduler.once("discovery", self.discovery.run)
        self.scheduler.every("poll", self.config.poll_interval, self.poller.poll_all)
        await self.scheduler.start()
        logger.info(
            "tracker started: %d masters, poll every %.1fs, store=%s",
            len(self.config.masters),
            self.config.poll_interval,
            type(self.store).__name__,
        )

    async def stop(self) -> None:
        await self.scheduler.stop()
        self.aggregator.close()
        self.store.close()
        logger.info("tracker stopped")

    # Read API

    def query_ranking(self, month: str | None = None, search: str = "", limit: int = 20, offset: int = 0):
        return self.store.query_ranking(month or self.current_month(), search, limit, offset)

    def count_ranking(self, month: str | None = None, search: str = "") -> int:
        return self.store.count_ranking(month or self.current_month(), search)

    def get_server_snapshot(self, address) -> dict[str, Any] | None:
        server = self.registry.get(address)
        return server.public_info() if server else None

    def list_servers(self) -> list[dict[str, Any]]:
        return [s.public_info() for s in self.registry.all()]

    def player_stats(self, month: str | None = None, search: str = "", limit: int | None = None):
        return player_stats(self.store, month or self.current_month(), search, limit or self.config.stats_limit)

    def list_months(self) -> list[str]:
        return self.store.list_months()

    def version_payload(self) -> dict[str, Any]:
        return {"service": "netpanzer-tracker", "version": self.config.service_version}


def _int_param(request: web.Request, name: str, default: int, lo: int = 0, hi: int | None = None) -> int:
    try:
        v = int(request.query.get(name, default))
    except ValueError:
        raise web.HTTPBadRequest(text=f"{name} must be an integer") from None
    v = max(lo, v)
    if hi is not None:
        v = min(hi, v)
    return v


def _month_param(request: web.Request, svc: TrackerService) -> str:
    month = request.query.get("month") or svc.current_month()
    if len(month) != 7 or month[4] != "-" or not (month[:4] + month[5:]).isdigit():
        raise web.HTTPBadRequest(text="month must be YYYY-MM")
    return month


def create_app(config: TrackerConfig, svc: TrackerService | None = None) -> web.Application:
    app = web.Application()
    svc = svc or TrackerService(config)

    app["config"] = config
    app["svc"] = svc

    async def on_startup(_: web.Application):
        await svc.start()

    async def on_cleanup(_: web.Application):
        await svc.stop()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)

    async def root(_: web.Request):
        return web.json_response(
            {
                "ok": True,
                **svc.version_payload(),
                "endpoints": {
                    "health": "/health",
                    "servers": "/servers",
                    "server": "/servers/{address}",
                    "ranking": "/ranking",
                    "stats": "/stats",
                    "months": "/months",
                },
            }
        )

    async def health(_: web.Request):
        return web.json_response(
            {
                "ok": True,
                "uptimeSec": svc.clock() - svc.start_time,
                "servers": len(svc.registry),
                "polls": svc.poller.polls,
                "pendingDeltas": len(svc.aggregator.pending),
                "droppedDeltas": svc.aggregator.dropped,
                **svc.version_payload(),
            }
        )

    async def servers(_: web.Request):
        return web.json_response({"servers": svc.list_servers()})

    async def server(request: web.Request):
        addr = parse_address(request.match_info["address"])
        if addr is None:
            raise web.HTTPBadRequest(text="address must be ip:port")
        snap = svc.get_server_snapshot(addr)
        if snap is None:
            raise web.HTTPNotFound(text="unknown server")
        return web.json_response(snap)

    async def ranking(request: web.Request):
        month = _month_param(request, svc)
        search = request.query.get("search", "")
        per_page = _int_param(request, "perPage", config.ranking_page_size, lo=1, hi=200)
        total = svc.count_ranking(month, search)
        pages = max(1, -(-total // per_page))
        page = _int_param(request, "page", 1, lo=1, hi=pages)
        offset = (page - 1) * per_page
        rows = svc.query_ranking(month, search, per_page, offset)
        players = [{"rank": offset + i + 1, **r} for i, r in enumerate(rows)]
        return web.json_response(
            {"month": month, "search": search, "total": total, "page": page, "pages": pages, "players": players}
        )

    async def stats(request: web.Request):
        month = _month_param(request, svc)
        search = request.query.get("search", "")
        limit = _int_param(request, "limit", config.stats_limit, lo=1, hi=5000)
        return web.json_response(
            {"month": month, "players": svc.player_stats(month, search, limit), "metrics": describe_metrics()}
        )

    async def months(_: web.Request):
        return web.json_response({"current": svc.current_month(), "months": svc.list_months()})

    app.router.add_get("/", root)
    app.router.add_get("/health", health)
    app.router.add_get("/servers", servers)
    app.router.add_get("/servers/{address}", server)
    app.router.add_get("/ranking", ranking)
    app.router.add_get("/stats", stats)
    app.router.add_get("/months", months)

    return app


def main() -> None:
    config = TrackerConfig.from_env()
    logging.basicConfig(level=config.log_level, format="[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    app = create_app(config)
    web.run_app(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
