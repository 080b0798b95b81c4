"""
Bounded worker pool and result aggregation.

A single producer task feeds items into a bounded asyncio.Queue; a
fixed number of worker tasks drain it. A full queue blocks the
producer, which is the only backpressure in the system. Every handler
result funnels into one ResultAggregator guarded by one lock, and the
aggregator is sealed only after every worker has exited.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import logging
import math
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Iterable, TypeVar

from netsweep.recon.errors import InvalidSpec


logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# Marks end of input; enqueued once per worker after the last item
_END = object()


class PoolState(str, Enum):
    """Lifecycle of a WorkerPool run."""
    IDLE = "idle"            # Constructed, not started
    RUNNING = "running"      # Producer pushing, workers consuming
    DRAINING = "draining"    # Producer finished, workers finishing in-flight items
    DONE = "done"            # All workers exited, results sealed


class ResultAggregator(Generic[R]):
    """Collects results from concurrent workers.

    ``add`` holds the lock for the append (and the optional stream
    callback) only. ``results`` refuses to answer until ``seal`` has
    been called, so a partially filled collection is never observed.
    """

    def __init__(self, on_result: Callable[[R], Any] | None = None):
        self._results: list[R] = []
        self._lock = asyncio.Lock()
        self._sealed = False
        self._on_result = on_result

    async def add(self, result: R) -> None:
        async with self._lock:
            if self._sealed:
                raise RuntimeError("Cannot add to a sealed aggregator")
            self._results.append(result)
            if self._on_result is not None:
                self._on_result(result)

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def __len__(self) -> int:
        return len(self._results)

    def results(self) -> list[R]:
        if not self._sealed:
            raise RuntimeError("Results read before all workers exited")
        return list(self._results)


class WorkerPool(Generic[T, R]):
    """
    Fixed-size pool of asyncio workers draining a bounded queue.

    Usage:
        pool = WorkerPool(50, executor.probe)
        results = await pool.run(PortRange("10.0.0.1", 1, 1024))

    Args:
        worker_count: Number of concurrent workers (>= 1)
        handler: Coroutine function applied to each item; a None return
            is not recorded
        queue_size: Queue capacity (defaults to worker_count)
        on_result: Called with each result as it is recorded
        name: Prefix for task names and log lines
    """

    def __init__(
        self,
        worker_count: int,
        handler: Callable[[T], Awaitable[R | None]],
        queue_size: int | None = None,
        on_result: Callable[[R], Any] | None = None,
        name: str = "pool",
    ):
        if not isinstance(worker_count, int) or worker_count < 1:
            raise InvalidSpec(f"Concurrency must be >= 1, got {worker_count!r}")
        if queue_size is not None and queue_size < 1:
            raise InvalidSpec(f"Queue size must be >= 1, got {queue_size!r}")

        self.worker_count = worker_count
        self.queue_size = queue_size or worker_count
        self.handler = handler
        self.name = name
        self.aggregator: ResultAggregator[R] = ResultAggregator(on_result)

        self.state = PoolState.IDLE
        self.cancelled = False
        self.processed = 0

        self._queue: asyncio.Queue | None = None
        self._tasks: list[asyncio.Task] = []

    @property
    def queue(self) -> asyncio.Queue | None:
        return self._queue

    def cancel(self) -> None:
        """Abort the run; in-flight handlers are cancelled immediately."""
        if self.state is PoolState.DONE or self.cancelled:
            return
        self.cancelled = True
        logger.info(f"{self.name}: cancelling after {self.processed} items")
        for task in self._tasks:
            task.cancel()

    async def run(self, items: Iterable[T], deadline: float | None = None) -> list[R]:
        """
        Process every item and return the collected results.

        Args:
            items: Items to process; consumed lazily as queue slots free up
            deadline: Seconds after which the run is cancelled

        Returns:
            Results in completion order (partial if cancelled)
        """
        if self.state is not PoolState.IDLE:
            raise RuntimeError("WorkerPool.run() may only be called once")
        if deadline is not None and not (math.isfinite(deadline) and deadline > 0):
            raise InvalidSpec(f"deadline must be positive, got {deadline!r}")

        if self.cancelled:
            self._finish()
            return self.aggregator.results()

        loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self.queue_size)
        self.state = PoolState.RUNNING

        self._tasks = [
            asyncio.create_task(self._worker(), name=f"{self.name}-worker-{i}")
            for i in range(self.worker_count)
        ]
        self._tasks.insert(0, asyncio.create_task(self._produce(items), name=f"{self.name}-producer"))

        timer = loop.call_later(deadline, self.cancel) if deadline is not None else None

        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            # Only our own cancel() is absorbed; the caller being cancelled is not
            current = asyncio.current_task()
            if not self.cancelled or (current is not None and current.cancelling()):
                raise
        finally:
            if timer is not None:
                timer.cancel()
            for task in self._tasks:
                task.cancel()
            # Join barrier: every worker has exited before results are sealed
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._finish()

        return self.aggregator.results()

    def _finish(self) -> None:
        self.aggregator.seal()
        self.state = PoolState.DONE

    async def _produce(self, items: Iterable[T]) -> None:
        for item in items:
            await self._queue.put(item)

        self.state = PoolState.DRAINING
        for _ in range(self.worker_count):
            await self._queue.put(_END)

    async def _worker(self) -> None:
        while True:
            item = await self._queue.get()
            if item is _END:
                return

            result = await self.handler(item)
            self.processed += 1
            if result is not None:
                await self.aggregator.add(result)
