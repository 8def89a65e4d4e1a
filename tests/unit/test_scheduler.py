"""Unit tests for the scheduler implementations."""

import asyncio

from taskqueue.scheduler import LoopScheduler, ManualScheduler


class TestManualScheduler:
    async def test_callbacks_fire_in_deadline_order(self) -> None:
        scheduler = ManualScheduler()
        fired: list[str] = []
        scheduler.call_later(2.0, lambda: fired.append("late"))
        scheduler.call_later(1.0, lambda: fired.append("early"))
        scheduler.call_later(1.0, lambda: fired.append("early-second"))

        await scheduler.advance(5.0)

        assert fired == ["early", "early-second", "late"]
        assert scheduler.now() == 5.0

    async def test_nothing_fires_before_deadline(self) -> None:
        scheduler = ManualScheduler()
        fired: list[float] = []
        scheduler.call_later(3.0, lambda: fired.append(scheduler.now()))

        await scheduler.advance(2.5)
        assert fired == []

        await scheduler.advance(0.5)
        assert fired == [3.0]

    async def test_zero_delay_is_never_inline(self) -> None:
        scheduler = ManualScheduler()
        fired: list[bool] = []
        scheduler.call_later(0.0, lambda: fired.append(True))
        assert fired == []

        await scheduler.advance()
        assert fired == [True]

    async def test_cancelled_call_does_not_fire(self) -> None:
        scheduler = ManualScheduler()
        fired: list[bool] = []
        call = scheduler.call_later(1.0, lambda: fired.append(True))
        call.cancel()
        call.cancel()

        await scheduler.advance(2.0)
        assert fired == []
        assert scheduler.pending_calls == 0

    async def test_raising_callback_does_not_stop_others(self) -> None:
        scheduler = ManualScheduler()
        fired: list[str] = []

        def boom() -> None:
            raise RuntimeError("boom")

        scheduler.call_later(1.0, boom)
        scheduler.call_later(1.0, lambda: fired.append("after"))

        await scheduler.advance(1.0)
        assert fired == ["after"]

    async def test_sleep_parks_until_virtual_deadline(self) -> None:
        scheduler = ManualScheduler()
        steps: list[float] = []

        async def worker() -> None:
            steps.append(scheduler.now())
            await scheduler.sleep(4.0)
            steps.append(scheduler.now())

        scheduler.spawn(worker())
        await scheduler.advance()
        assert steps == [0.0]
        assert scheduler.pending_tasks == 1

        await scheduler.advance(3.0)
        assert steps == [0.0]

        await scheduler.advance(1.0)
        assert steps == [0.0, 4.0]
        assert scheduler.pending_tasks == 0

    async def test_callbacks_scheduled_while_advancing_run_if_due(self) -> None:
        scheduler = ManualScheduler()
        fired: list[float] = []

        def first() -> None:
            fired.append(scheduler.now())
            scheduler.call_later(1.0, lambda: fired.append(scheduler.now()))

        scheduler.call_later(1.0, first)
        await scheduler.advance(10.0)

        assert fired == [1.0, 2.0]

    async def test_next_deadline(self) -> None:
        scheduler = ManualScheduler(start=10.0)
        assert scheduler.next_deadline() is None
        scheduler.call_later(5.0, lambda: None)
        assert scheduler.next_deadline() == 15.0


class TestLoopScheduler:
    async def test_call_later_runs_on_loop(self) -> None:
        scheduler = LoopScheduler()
        fired = asyncio.Event()
        scheduler.call_later(0.01, fired.set)

        await asyncio.wait_for(fired.wait(), timeout=1.0)

    async def test_cancel_prevents_callback(self) -> None:
        scheduler = LoopScheduler()
        fired: list[bool] = []
        call = scheduler.call_later(0.01, lambda: fired.append(True))
        call.cancel()

        await asyncio.sleep(0.05)
        assert fired == []

    async def test_spawned_tasks_are_tracked_until_done(self) -> None:
        scheduler = LoopScheduler()
        task = scheduler.spawn(asyncio.sleep(0.01))
        assert scheduler.pending_tasks == 1

        await task
        await asyncio.sleep(0)
        assert scheduler.pending_tasks == 0
