"""Shared concurrency primitive for outbound provider calls.

Every request the ingestion pipeline makes (storage upload, vision
analysis, record persistence, connection probes) goes through one
:class:`TaskSerializer`.  It runs tasks strictly one at a time, in the
order they were enqueued, and keeps a configurable quiet period between
the end of one task and the start of the next so that none of the
third-party APIs sees bursts from this process.

Guarantees:

1. **FIFO** -- tasks start in enqueue order; there is no priority.
2. **Exclusive** -- at most one task is executing at any instant.
3. **Spaced** -- the gap between the completion of task *n* and the start
   of task *n + 1* is at least the delay in force when *n + 1* starts.
   The very first task (or the first after a long idle spell) starts
   immediately.
4. **Isolated** -- a task's exception is delivered to that task's future
   only; the runner always moves on to the next task.  A task that
   cancels itself fails its future with :class:`TaskCancelledError`.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from src.utils.errors import TaskCancelledError
from src.utils.logging import get_logger

_T = TypeVar("_T")

DEFAULT_DELAY_MS = 5000

_logger: structlog.BoundLogger = get_logger(__name__)


class TaskSerializer:
    """FIFO executor for zero-argument async tasks with inter-task spacing.

    Parameters
    ----------
    delay_ms:
        Minimum number of milliseconds between the completion of one task
        and the start of the next.  ``0`` disables spacing but keeps the
        one-at-a-time ordering.
    """

    def __init__(self, delay_ms: int = DEFAULT_DELAY_MS) -> None:
        self._delay_ms = self._validate_delay(delay_ms)
        self._queue: deque[tuple[Callable[[], Awaitable[Any]], asyncio.Future[Any]]] = deque()
        self._runner: asyncio.Task[None] | None = None
        self._last_completed: float | None = None
        self._delay_changed = asyncio.Event()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    @property
    def pending(self) -> int:
        """Number of tasks queued but not yet started."""
        return len(self._queue)

    @property
    def is_running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def set_delay(self, delay_ms: int) -> None:
        """Change the spacing applied before every task that has not started yet."""
        self._delay_ms = self._validate_delay(delay_ms)
        self._delay_changed.set()
        _logger.info("task_serializer_delay_changed", delay_ms=self._delay_ms)

    def enqueue(self, task: Callable[[], Awaitable[_T]]) -> asyncio.Future[_T]:
        """Queue *task* and return a future for its result.

        The task is not called until its turn comes.  Whatever it returns
        or raises ends up on the returned future; nothing is raised here.
        Must be called from within a running event loop.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[_T] = loop.create_future()
        self._queue.append((task, future))

        if not self.is_running:
            self._runner = loop.create_task(self._run())

        return future

    async def run(self, task: Callable[[], Awaitable[_T]]) -> _T:
        """Enqueue *task* and wait for its outcome."""
        return await self.enqueue(task)

    # ------------------------------------------------------------------
    # Internal runner
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        """Drain the queue one task at a time, then exit."""
        loop = asyncio.get_running_loop()

        while self._queue:
            task, future = self._queue.popleft()
            if future.cancelled():
                continue

            await self._wait_for_spacing(loop)

            try:
                await self._execute(task, future)
            finally:
                self._last_completed = loop.time()

    async def _execute(
        self,
        task: Callable[[], Awaitable[Any]],
        future: asyncio.Future[Any],
    ) -> None:
        # The task runs as its own asyncio.Task so that a CancelledError
        # raised by the task is told apart from cancellation of the runner.
        try:
            inner = asyncio.ensure_future(task())
        except Exception as exc:
            self._settle_failure(future, exc)
            return

        try:
            await asyncio.wait({inner})
        except asyncio.CancelledError:
            inner.cancel()
            future.cancel()
            raise

        if inner.cancelled():
            self._settle_failure(future, TaskCancelledError())
        elif (exc := inner.exception()) is not None:
            self._settle_failure(future, exc)
        elif not future.done():
            future.set_result(inner.result())

    @staticmethod
    def _settle_failure(future: asyncio.Future[Any], exc: BaseException) -> None:
        _logger.warning(
            "serialized_task_failed",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        if not future.done():
            future.set_exception(exc)

    async def _wait_for_spacing(self, loop: asyncio.AbstractEventLoop) -> None:
        # set_delay() wakes the wait early so the new delay applies to the
        # task about to start, whether it was raised or lowered.
        if self._last_completed is None:
            return
        while True:
            remaining = self._last_completed + self._delay_ms / 1000 - loop.time()
            if remaining <= 0:
                return
            self._delay_changed.clear()
            try:
                await asyncio.wait_for(self._delay_changed.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                pass

    @staticmethod
    def _validate_delay(delay_ms: int) -> int:
        if delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
        return int(delay_ms)
