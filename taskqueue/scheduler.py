"""Timer abstraction owned by the task queue and notification channel.

Retries, purges and notification expiry are all delayed callbacks. Routing
them through a Scheduler lets production code use the asyncio event loop
while tests drive a virtual clock with ManualScheduler.advance().
"""

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from typing import Any

import structlog

log = structlog.get_logger()


class ScheduledCall:
    """Handle for a delayed callback. Cancelling is idempotent."""

    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False
        self._timer: asyncio.TimerHandle | None = None

    def cancel(self) -> None:
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()

    def _run(self) -> None:
        if self.cancelled:
            return
        try:
            self.callback()
        except Exception as exc:
            log.error(
                "scheduler.callback_failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )


class Scheduler(ABC):
    """Source of time, delayed callbacks and background tasks."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    @abstractmethod
    def now(self) -> float:
        """Return the current time in seconds on this scheduler's clock."""
        ...

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        """Run callback once after delay seconds. Never runs inline."""
        ...

    @abstractmethod
    async def sleep(self, delay: float) -> None:
        """Suspend the calling coroutine for delay seconds."""
        ...

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Start a tracked background task on the running loop.

        A reference is held until the task finishes so it cannot be
        garbage-collected mid-flight.
        """
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending_tasks(self) -> int:
        return sum(1 for task in self._tasks if not task.done())


class LoopScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        loop = asyncio.get_running_loop()
        call = ScheduledCall(loop.time() + delay, callback)
        call._timer = loop.call_later(max(delay, 0.0), call._run)
        return call

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(delay)


class ManualScheduler(Scheduler):
    """Virtual-clock scheduler for deterministic tests.

    Nothing happens until advance() is awaited. advance() fires due callbacks
    in (time, registration) order and, after each one, lets spawned tasks run
    until every live task has either finished or is parked on sleep().
    """

    def __init__(self, start: float = 0.0, max_drain_iterations: int = 1000) -> None:
        super().__init__()
        self._now = start
        self._max_drain_iterations = max_drain_iterations
        self._heap: list[tuple[float, int, ScheduledCall]] = []
        self._sequence = itertools.count()
        self._parked: set[asyncio.Task[Any]] = set()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(self._now + max(delay, 0.0), callback)
        heapq.heappush(self._heap, (call.when, next(self._sequence), call))
        return call

    async def sleep(self, delay: float) -> None:
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()
        task = asyncio.current_task()

        def wake() -> None:
            if task is not None:
                self._parked.discard(task)
            if not waiter.done():
                waiter.set_result(None)

        self.call_later(delay, wake)
        if task is not None:
            self._parked.add(task)
        try:
            await waiter
        finally:
            if task is not None:
                self._parked.discard(task)

    @property
    def pending_calls(self) -> int:
        return sum(1 for _, _, call in self._heap if not call.cancelled)

    def next_deadline(self) -> float | None:
        live = [when for when, _, call in self._heap if not call.cancelled]
        return min(live) if live else None

    async def advance(self, seconds: float = 0.0) -> None:
        """Move the virtual clock forward, running everything that comes due."""
        target = self._now + seconds
        await self._drain()
        while self._heap and self._heap[0][0] <= target:
            when, _, call = heapq.heappop(self._heap)
            if call.cancelled:
                continue
            self._now = max(self._now, when)
            call._run()
            await self._drain()
        self._now = target

    async def _drain(self) -> None:
        for _ in range(self._max_drain_iterations):
            live = {task for task in self._tasks if not task.done()}
            if live <= self._parked:
                return
            await asyncio.sleep(0)
        log.warning("scheduler.drain_incomplete", live_tasks=len(self._tasks))
