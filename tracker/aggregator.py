"""Counter deltas between polls, buffered and flushed in batches.

Servers report absolute counters per connected player. Each poll is compared
against the last observation for (server, player, month); the positive
difference is buffered per ranking identity and written as an additive update
after a short quiet period.

Durability is best effort: a failed ranking write is logged and that
identity's pending delta is dropped. The last-known counters are always
replaced with the newest observation, whether or not the delta made it to the
store.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from tracker.months import month_key
from tracker.net.protocol import PlayerCounters

logger = logging.getLogger(__name__)


@dataclass
class Delta:
    kills: int = 0
    deaths: int = 0
    points: int = 0

    def __bool__(self) -> bool:
        return bool(self.kills or self.deaths or self.points)

    def merge(self, other: "Delta") -> None:
        self.kills += other.kills
        self.deaths += other.deaths
        self.points += other.points


def counter_delta(new: int, last: int) -> int:
    # A decrease means the server restarted or the session reset.
    d = new - last
    return new if d < 0 else d


def compute_delta(new: PlayerCounters, last: PlayerCounters, *, clamp_points: bool = False) -> Delta:
    return Delta(
        kills=counter_delta(new.kills, last.kills),
        deaths=counter_delta(new.deaths, last.deaths),
        points=counter_delta(new.points, last.points) if clamp_points else new.points - last.points,
    )


class DeltaAggregator:
    def __init__(
        self,
        store,
        scheduler,
        *,
        flush_delay: float = 0.5,
        identity_scope: str = "name",
        clamp_points: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.scheduler = scheduler
        self.flush_delay = flush_delay
        self.identity_scope = identity_scope
        self.clamp_points = clamp_points
        self.clock = clock

        self.pending: dict[tuple[str, str], Delta] = {}
        self._flush_handle = None

        self.flushed = 0
        self.dropped = 0

    @property
    def flush_scheduled(self) -> bool:
        return self._flush_handle is not None

    def identity(self, name: str, server_key: str) -> str:
        if self.identity_scope == "server":
            return f"{name}@{server_key}"
        return name

    def _baseline_for(self, server, month: str) -> dict[str, PlayerCounters]:
        if server.baseline_month != month:
            try:
                server.baseline = self.store.get_last_states(server.key, month)
            except Exception:
                logger.exception("could not load last state for %s in %s", server.key, month)
                server.baseline = {}
            server.baseline_month = month
        return server.baseline

    def observe(self, server, players: list[PlayerCounters]) -> int:
        """Account one poll of `server`; returns how many players produced a delta."""
        month = month_key(self.clock())
        baseline = self._baseline_for(server, month)
        changed = 0
        for p in players:
            if not p.name:
                continue
            last = baseline.get(p.name) or PlayerCounters(p.name)
            delta = compute_delta(p, last, clamp_points=self.clamp_points)

            if delta:
                key = (self.identity(p.name, server.key), month)
                self.pending.setdefault(key, Delta()).merge(delta)
                changed += 1

            baseline[p.name] = PlayerCounters(p.name, p.kills, p.deaths, p.points)
            try:
                self.store.put_last_state(server.key, p.name, p.kills, p.deaths, p.points, month)
            except Exception:
                logger.exception("could not save last state for %s on %s", p.name, server.key)

        if self.pending:
            self._schedule_flush()
        return changed

    def _schedule_flush(self) -> None:
        if self._flush_handle is None:
            self._flush_handle = self.scheduler.call_later(self.flush_delay, self.flush)

    def flush(self) -> int:
        pending, self.pending = self.pending, {}
        self._flush_handle = None
        written = 0
        for (name, month), d in pending.items():
            try:
                self.store.add_ranking(name, d.kills, d.deaths, d.points, month)
                written += 1
            except Exception:
                self.dropped += 1
                logger.exception("dropping ranking delta for %s (%s): %s", name, month, d)
        self.flushed += written
        if pending:
            logger.debug("flushed %d/%d ranking deltas", written, len(pending))
        return written

    def close(self) -> None:
        if self._flush_handle is not None:
            self._flush_handle.cancel()
        self.flush()
