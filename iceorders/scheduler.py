# iceorders/scheduler.py
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Optional

from .clock import Clock
from .store.orders import OrderStore

logger = logging.getLogger("iceorders.rollover")


class RolloverScheduler:
    """
    Rebuilds the live table once at start-up and then at every local
    midnight. A failed run is logged and the loop carries on.
    """

    def __init__(
        self,
        orders: OrderStore,
        clock: Clock,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.orders = orders
        self.clock = clock
        self._sleep = sleep
        self._in_flight = threading.Lock()
        self._task: Optional[asyncio.Task] = None
        self.last_ok: Optional[bool] = None

    def run_once(self) -> bool:
        if not self._in_flight.acquire(blocking=False):
            logger.warning("Rollover already running; skipping this trigger")
            return False
        try:
            count = self.orders.rebuild_live_table()
        except Exception:
            logger.exception("Rollover failed")
            self.last_ok = False
            return False
        finally:
            self._in_flight.release()

        logger.info("Rollover done: %d orders due today", count)
        self.last_ok = True
        return True

    async def run_forever(self) -> None:
        logger.info("Rollover scheduler running (UTC%s)", self.clock.now().strftime("%z"))
        await asyncio.to_thread(self.run_once)
        while True:
            delay = self.clock.seconds_until_midnight()
            # land just after midnight so "today" has already flipped
            await self._sleep(delay + 1)
            await asyncio.to_thread(self.run_once)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
