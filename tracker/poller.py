"""Status polling over every registered server."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from tracker.net.protocol import Address, StatusSnapshot
from tracker.net.query import TransportError, query_status
from tracker.registry import GameServer, ServerRegistry

logger = logging.getLogger(__name__)

QueryFunc = Callable[[Address, float], Awaitable[StatusSnapshot]]


class StatusPoller:
    def __init__(
        self,
        registry: ServerRegistry,
        aggregator,
        *,
        timeout: float = 2.0,
        max_concurrent: int = 64,
        query: QueryFunc = query_status,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.aggregator = aggregator
        self.timeout = timeout
        self.query = query
        self.clock = clock
        self._sem = asyncio.Semaphore(max(1, int(max_concurrent)))
        self.polls = 0

    async def poll_one(self, server: GameServer) -> bool:
        async with self._sem:
            try:
                snapshot = await self.query(server.address, self.timeout)
            except TransportError as e:
                server.failures += 1
                logger.warning("status query failed for %s: %s", server.key, e)
                return False

        server.snapshot = snapshot
        server.last_polled_at = self.clock()
        server.failures = 0
        self.aggregator.observe(server, snapshot.players)
        return True

    async def poll_all(self) -> int:
        servers = self.registry.all()
        if not servers:
            return 0
        results = await asyncio.gather(*(self.poll_one(s) for s in servers), return_exceptions=True)
        ok = 0
        for server, res in zip(servers, results):
            if isinstance(res, BaseException):
                logger.error("poll of %s crashed", server.key, exc_info=res)
            elif res:
                ok += 1
        self.polls += 1
        logger.debug("poll %d: %d/%d servers answered", self.polls, ok, len(servers))
        return ok
