"""Unit tests for the FIFO rate-limited TaskSerializer."""

from __future__ import annotations

import asyncio

import pytest

from src.utils.concurrency import DEFAULT_DELAY_MS, TaskSerializer
from src.utils.errors import TaskCancelledError

# Tolerance for event-loop clock resolution.
_EPS = 0.005


class TestConstruction:
    def test_default_delay(self) -> None:
        assert TaskSerializer().delay_ms == DEFAULT_DELAY_MS == 5000

    def test_negative_delay_rejected(self) -> None:
        with pytest.raises(ValueError):
            TaskSerializer(delay_ms=-1)

    def test_set_delay_rejects_negative(self) -> None:
        serializer = TaskSerializer(delay_ms=10)
        with pytest.raises(ValueError):
            serializer.set_delay(-5)
        assert serializer.delay_ms == 10

    def test_idle_state(self) -> None:
        serializer = TaskSerializer(delay_ms=0)
        assert serializer.pending == 0
        assert serializer.is_running is False


class TestOrdering:
    @pytest.mark.asyncio
    async def test_tasks_run_in_enqueue_order(self) -> None:
        serializer = TaskSerializer(delay_ms=0)
        order: list[int] = []

        def make_task(n: int):
            async def task() -> int:
                await asyncio.sleep(0.01 * (3 - n))
                order.append(n)
                return n

            return task

        futures = [serializer.enqueue(make_task(n)) for n in range(3)]
        results = await asyncio.gather(*futures)

        assert order == [0, 1, 2]
        assert results == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_at_most_one_task_running(self) -> None:
        serializer = TaskSerializer(delay_ms=0)
        active = 0
        peak = 0

        async def task() -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.005)
            active -= 1

        await asyncio.gather(*(serializer.enqueue(task) for _ in range(5)))
        assert peak == 1

    @pytest.mark.asyncio
    async def test_enqueue_does_not_call_task_immediately(self) -> None:
        serializer = TaskSerializer(delay_ms=0)
        called = False

        async def task() -> None:
            nonlocal called
            called = True

        future = serializer.enqueue(task)
        assert called is False
        assert serializer.pending == 1
        await future
        assert called is True


class TestSpacing:
    @pytest.mark.asyncio
    async def test_gap_between_completion_and_next_start(self) -> None:
        delay_ms = 50
        serializer = TaskSerializer(delay_ms=delay_ms)
        loop = asyncio.get_running_loop()
        spans: list[tuple[float, float]] = []

        async def task() -> None:
            start = loop.time()
            await asyncio.sleep(0.01)
            spans.append((start, loop.time()))

        await asyncio.gather(*(serializer.enqueue(task) for _ in range(3)))

        for (_, prev_end), (next_start, _) in zip(spans, spans[1:]):
            assert next_start - prev_end >= delay_ms / 1000 - _EPS

    @pytest.mark.asyncio
    async def test_first_task_starts_immediately(self) -> None:
        serializer = TaskSerializer(delay_ms=10_000)
        result = await asyncio.wait_for(serializer.run(_return_value(7)), timeout=1.0)
        assert result == 7

    @pytest.mark.asyncio
    async def test_delay_applies_after_idle_gap(self) -> None:
        delay_ms = 60
        serializer = TaskSerializer(delay_ms=delay_ms)
        loop = asyncio.get_running_loop()

        await serializer.run(_return_value(None))
        finished = loop.time()
        # Runner goes idle; the next task still waits out the remainder.
        await asyncio.sleep(0.02)
        started: list[float] = []

        async def task() -> None:
            started.append(loop.time())

        await serializer.run(task)
        assert started[0] - finished >= delay_ms / 1000 - _EPS

    @pytest.mark.asyncio
    async def test_lowering_delay_releases_waiting_task(self) -> None:
        serializer = TaskSerializer(delay_ms=10_000)
        await serializer.run(_return_value(None))

        future = serializer.enqueue(_return_value("done"))
        await asyncio.sleep(0.01)
        assert not future.done()

        serializer.set_delay(0)
        assert await asyncio.wait_for(future, timeout=1.0) == "done"

    @pytest.mark.asyncio
    async def test_raising_delay_extends_wait(self) -> None:
        serializer = TaskSerializer(delay_ms=20)
        loop = asyncio.get_running_loop()
        await serializer.run(_return_value(None))
        finished = loop.time()

        started: list[float] = []

        async def task() -> None:
            started.append(loop.time())

        future = serializer.enqueue(task)
        await asyncio.sleep(0.005)
        serializer.set_delay(80)
        await future
        assert started[0] - finished >= 0.08 - _EPS


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_failure_goes_to_owning_future_only(self) -> None:
        serializer = TaskSerializer(delay_ms=0)

        async def boom() -> None:
            raise RuntimeError("boom")

        first = serializer.enqueue(_return_value(1))
        failing = serializer.enqueue(boom)
        last = serializer.enqueue(_return_value(3))

        assert await first == 1
        with pytest.raises(RuntimeError, match="boom"):
            await failing
        assert await last == 3

    @pytest.mark.asyncio
    async def test_run_raises_task_exception(self) -> None:
        serializer = TaskSerializer(delay_ms=0)

        async def boom() -> None:
            raise ValueError("bad input")

        with pytest.raises(ValueError, match="bad input"):
            await serializer.run(boom)

    @pytest.mark.asyncio
    async def test_cancelled_future_is_skipped(self) -> None:
        serializer = TaskSerializer(delay_ms=0)
        calls: list[str] = []

        def recorder(label: str):
            async def task() -> str:
                calls.append(label)
                return label

            return task

        first = serializer.enqueue(recorder("a"))
        skipped = serializer.enqueue(recorder("b"))
        third = serializer.enqueue(recorder("c"))
        skipped.cancel()

        assert await first == "a"
        assert await third == "c"
        assert calls == ["a", "c"]

    @pytest.mark.asyncio
    async def test_task_cancelling_itself_does_not_stall_queue(self) -> None:
        serializer = TaskSerializer(delay_ms=0)

        async def cancels_itself() -> None:
            raise asyncio.CancelledError()

        failing = serializer.enqueue(cancels_itself)
        last = serializer.enqueue(_return_value("after"))

        assert await asyncio.wait_for(last, timeout=1) == "after"
        with pytest.raises(TaskCancelledError):
            await failing

    @pytest.mark.asyncio
    async def test_cancelling_runner_cancels_in_flight_future(self) -> None:
        serializer = TaskSerializer(delay_ms=0)
        started = asyncio.Event()

        async def slow() -> None:
            started.set()
            await asyncio.sleep(10)

        future = serializer.enqueue(slow)
        await started.wait()
        serializer._runner.cancel()

        with pytest.raises(asyncio.CancelledError):
            await future

    @pytest.mark.asyncio
    async def test_runner_exits_when_queue_drains(self) -> None:
        serializer = TaskSerializer(delay_ms=0)
        await serializer.run(_return_value(None))
        await asyncio.sleep(0)
        assert serializer.is_running is False
        assert serializer.pending == 0


def _return_value(value):  # noqa: ANN001, ANN202
    async def task():  # noqa: ANN202
        return value

    return task
