"""Known game servers and their latest status."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from tracker.config import MasterDirectory
from tracker.months import month_key
from tracker.net.protocol import Address, PlayerCounters, StatusSnapshot, address_key

logger = logging.getLogger(__name__)


@dataclass
class GameServer:
    address: Address
    master: MasterDirectory | None = None
    snapshot: StatusSnapshot = field(default_factory=StatusSnapshot)

    # Mirror of the persisted last-known counters for `baseline_month`.
    baseline: dict[str, PlayerCounters] = field(default_factory=dict)
    baseline_month: str = ""

    discovered_at: float = 0.0
    last_polled_at: float = 0.0
    failures: int = 0

    @property
    def key(self) -> str:
        return address_key(self.address)

    def public_info(self) -> dict[str, Any]:
        return {
            "address": self.key,
            "ip": self.address[0],
            "port": self.address[1],
            "master": self.master.key if self.master else None,
            "lastPolledAt": self.last_polled_at or None,
            "failures": self.failures,
            **self.snapshot.as_dict(),
        }


class ServerRegistry:
    def __init__(self, store, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock
        self._servers: dict[str, GameServer] = {}

    def __len__(self) -> int:
        return len(self._servers)

    def __contains__(self, address: Address) -> bool:
        return address_key(address) in self._servers

    def register(self, address: Address, master: MasterDirectory | None = None) -> bool:
        key = address_key(address)
        if key in self._servers:
            return False

        now = self.clock()
        server = GameServer(address=(address[0], int(address[1])), master=master, discovered_at=now)
        server.baseline_month = month_key(now)
        try:
            server.baseline = self.store.get_last_states(key, server.baseline_month)
        except Exception:
            logger.exception("could not load last state for %s; starting from zero", key)
        self._servers[key] = server
        logger.info("server added: %s (%d known players)", key, len(server.baseline))
        return True

    def get(self, address: Address | str) -> GameServer | None:
        if not isinstance(address, str):
            address = address_key(address)
        return self._servers.get(address)

    def all(self) -> list[GameServer]:
        return list(self._servers.values())
