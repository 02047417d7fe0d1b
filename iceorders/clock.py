# iceorders/clock.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Optional


class Clock:
    """
    Wall clock pinned to one fixed UTC offset.

    Every "today", cutoff and midnight decision goes through here so the
    rest of the code never does its own offset arithmetic.
    """

    def __init__(
        self,
        utc_offset_hours: int = 6,
        cutoff_hour: int = 17,
        now_fn: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.tz = timezone(timedelta(hours=utc_offset_hours))
        self.cutoff = time(hour=cutoff_hour)
        self._now_fn = now_fn

    def now(self) -> datetime:
        if self._now_fn is not None:
            current = self._now_fn()
            if current.tzinfo is None:
                return current.replace(tzinfo=self.tz)
            return current.astimezone(self.tz)
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def tomorrow(self) -> date:
        return self.today() + timedelta(days=1)

    def is_past_cutoff(self, now: Optional[datetime] = None) -> bool:
        current = (now or self.now()).astimezone(self.tz)
        return current.time() >= self.cutoff

    def seconds_until_midnight(self, now: Optional[datetime] = None) -> float:
        current = (now or self.now()).astimezone(self.tz)
        midnight = datetime.combine(current.date() + timedelta(days=1), time(0), tzinfo=self.tz)
        return max((midnight - current).total_seconds(), 0.0)
