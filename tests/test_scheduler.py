from __future__ import annotations

import asyncio

import pytest

from iceorders.scheduler import RolloverScheduler


class _Stop(Exception):
    pass


@pytest.fixture
def scheduler(orders, clock) -> RolloverScheduler:
    return RolloverScheduler(orders, clock)


class TestRunOnce:
    def test_success(self, scheduler, orders, clock, registered_venue, backend) -> None:
        orders.add_order(
            user_id="100",
            venue_id="100",
            address="Abay 1",
            amount=20,
            delivery_date=clock.tomorrow(),
            created_at=clock.now(),
        )
        clock.set(2024, 3, 19, 0, 1)

        assert scheduler.run_once() is True
        assert scheduler.last_ok is True
        assert len(backend.table("Orders").read_rows()) == 1

    def test_failure_is_contained(self, scheduler, backend) -> None:
        backend.table("Archive").fail_on.add("read")
        assert scheduler.run_once() is False
        assert scheduler.last_ok is False

        backend.table("Archive").fail_on.clear()
        assert scheduler.run_once() is True

    def test_overlapping_run_is_skipped(self, scheduler) -> None:
        scheduler._in_flight.acquire()
        try:
            assert scheduler.run_once() is False
        finally:
            scheduler._in_flight.release()
        assert scheduler.run_once() is True


class TestRunForever:
    def test_runs_at_start_then_sleeps_to_midnight(self, orders, clock) -> None:
        delays = []

        async def fake_sleep(seconds: float) -> None:
            delays.append(seconds)
            if len(delays) == 2:
                raise _Stop()

        scheduler = RolloverScheduler(orders, clock, sleep=fake_sleep)
        with pytest.raises(_Stop):
            asyncio.run(scheduler.run_forever())

        # 10:00 local -> 14h to midnight, plus the one-second margin
        assert delays[0] == 14 * 3600 + 1
        assert scheduler.last_ok is True

    def test_start_and_stop(self, orders, clock) -> None:
        async def never(seconds: float) -> None:
            await asyncio.Event().wait()

        scheduler = RolloverScheduler(orders, clock, sleep=never)

        async def scenario() -> None:
            task = scheduler.start()
            assert scheduler.start() is task
            await asyncio.sleep(0)
            await scheduler.stop()
            assert task.done()

        asyncio.run(scenario())
