"""Periodic jobs and one-shot timers on the running event loop."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass
class Job:
    name: str
    interval: float
    func: Callable[[], Awaitable[None]]
    run_immediately: bool = False
    max_runs: int | None = None
    runs: int = 0


class Scheduler:
    def __init__(self):
        self.jobs: dict[str, Job] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._timers: set[asyncio.TimerHandle] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def every(
        self,
        name: str,
        interval: float,
        func: Callable[[], Awaitable[None]],
        *,
        run_immediately: bool = False,
        max_runs: int | None = None,
    ) -> Job:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        job = Job(name=name, interval=float(interval), func=func, run_immediately=run_immediately, max_runs=max_runs)
        self.jobs[name] = job
        if self._running:
            self._tasks[name] = asyncio.create_task(self._job_loop(job), name=f"job:{name}")
        return job

    def once(self, name: str, func: Callable[[], Awaitable[None]]) -> None:
        """Run `func` a single time as soon as the scheduler is running."""
        self.every(name, 1.0, func, run_immediately=True, max_runs=1)

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()

        def fire() -> None:
            self._timers.discard(handle)
            callback()

        handle = loop.call_later(delay, fire)
        self._timers.add(handle)
        return handle

    async def start(self) -> None:
        self._running = True
        for job in self.jobs.values():
            if job.name not in self._tasks:
                self._tasks[job.name] = asyncio.create_task(self._job_loop(job), name=f"job:{job.name}")

    async def stop(self) -> None:
        self._running = False
        for handle in list(self._timers):
            handle.cancel()
        self._timers.clear()
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for t in tasks:
            t.cancel()
        for t in tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass

    async def _job_loop(self, job: Job) -> None:
        if not job.run_immediately:
            await asyncio.sleep(job.interval)
        loop = asyncio.get_running_loop()
        while self._running:
            started = loop.time()
            try:
                await job.func()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("job %s failed", job.name)
            job.runs += 1
            if job.max_runs is not None and job.runs >= job.max_runs:
                return
            # Fixed rate: a run that overruns its interval starts the next one right away.
            await asyncio.sleep(max(0.0, job.interval - (loop.time() - started)))
