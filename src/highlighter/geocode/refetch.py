"""Sequential re-fetch queue.

Jobs run one at a time through a single worker task with a fixed pause
between completions, which keeps Nominatim at its 1 request/second limit.
A failing job is recorded and the queue moves on to the next one, unless
``stop_on_error`` is set.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from loguru import logger

from highlighter.errors import HighlighterError


@dataclass(frozen=True)
class RefetchJob:
    """Re-fetch the geometry of one OSM-backed feature."""
    layer_id: int | str
    feature_id: str
    osm_type: str
    osm_id: int | str
    want_polygon: bool = True


@dataclass
class RefetchReport:
    completed: list[RefetchJob] = field(default_factory=list)
    failed: list[tuple[RefetchJob, HighlighterError]] = field(default_factory=list)
    aborted: bool = False

    @property
    def total(self) -> int:
        return len(self.completed) + len(self.failed)


class RefetchQueue:
    """Single-worker FIFO of re-fetch jobs.

    Args:
        worker: Coroutine function that processes one job.
        delay: Seconds to wait after each job before starting the next.
        stop_on_error: Abort the remaining jobs after the first failure.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        worker: Callable[[RefetchJob], Awaitable[None]],
        delay: float = 1.0,
        *,
        stop_on_error: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._worker = worker
        self.delay = delay
        self.stop_on_error = stop_on_error
        self._sleep = sleep
        self._jobs: deque[RefetchJob] = deque()
        self._task: asyncio.Task | None = None
        self.report = RefetchReport()

    @property
    def pending(self) -> int:
        return len(self._jobs)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(self, jobs: Iterable[RefetchJob]) -> int:
        """Queue jobs and start the worker if idle. Returns how many were queued.

        A job already waiting for the same feature is not queued twice.
        Requires a running event loop.
        """
        queued = {(j.layer_id, j.feature_id) for j in self._jobs}
        added = 0
        for job in jobs:
            key = (job.layer_id, job.feature_id)
            if key in queued:
                continue
            queued.add(key)
            self._jobs.append(job)
            added += 1
        if added and not self.running:
            self.report = RefetchReport()
            self._task = asyncio.get_running_loop().create_task(self._drain())
        if added:
            logger.info(f"Queued {added} features for re-fetch ({self.pending} pending)")
        return added

    async def _drain(self) -> RefetchReport:
        report = self.report
        while self._jobs:
            job = self._jobs.popleft()
            try:
                await self._worker(job)
                report.completed.append(job)
            except HighlighterError as e:
                logger.warning(f"Re-fetch of {job.feature_id} in layer {job.layer_id} failed: {e}")
                report.failed.append((job, e))
                if self.stop_on_error:
                    report.aborted = True
                    self._jobs.clear()
                    break
            if self._jobs:
                await self._sleep(self.delay)
        logger.info(f"Re-fetch finished: {len(report.completed)} ok, {len(report.failed)} failed")
        return report

    async def join(self) -> RefetchReport:
        """Wait until the queue is empty and return the report of that run."""
        if self._task is not None:
            await self._task
        return self.report

    async def run(self, jobs: Iterable[RefetchJob]) -> RefetchReport:
        self.submit(jobs)
        return await self.join()

    async def stop(self) -> None:
        """Drop pending jobs and cancel the worker."""
        self._jobs.clear()
        if self.running:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
