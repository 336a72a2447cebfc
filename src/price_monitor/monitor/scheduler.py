"""Periodic quote and historical refresh.

Two independent asyncio tasks:

- the quote loop waits ``initial_quote_delay_seconds`` then refreshes the quote
  every ``quote_interval_seconds``, unconditionally;
- the history loop wakes immediately and then every
  ``historical_wake_interval_seconds``. A wake only reaches the network when
  the cache's last-update timestamp is stale (or absent) and the rolling
  24-hour budget of historical cycles is not exhausted. Cycle start times
  are recorded in the store, so the budget holds across processes.

The loops share no lock. The cache store is the coordination point, and
replace-on-write keeps an overlapping cycle harmless.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

from price_monitor.cache.store import CacheStore
from price_monitor.core.config import ScheduleConfig
from price_monitor.core.exceptions import CacheError
from price_monitor.core.models import millis_from_datetime
from price_monitor.monitor.service import PriceMonitor, RefreshReport

logger = logging.getLogger(__name__)

_BUDGET_WINDOW = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UpdateScheduler:
    """Drives a ``PriceMonitor`` on two timers."""

    def __init__(
        self,
        monitor: PriceMonitor,
        store: CacheStore,
        schedule: ScheduleConfig,
        *,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.monitor = monitor
        self.store = store
        self.schedule = schedule
        self._clock = clock or _utcnow
        self._sleep = sleep
        self._cycles: deque[datetime] = deque()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def is_stale(self, now: datetime | None = None) -> bool:
        """True if no update is recorded or the last one is older than the threshold.

        An unreadable timestamp counts as stale.
        """
        now = now or self._clock()
        try:
            last = await self.store.get_last_update_time()
        except CacheError as e:
            logger.warning("Could not read last update time, treating as stale: %s", e)
            return True
        if last is None:
            return True
        threshold_ms = self.schedule.staleness_threshold_seconds * 1000
        return millis_from_datetime(now) - last > threshold_ms

    async def budget_remaining(self, now: datetime | None = None) -> int:
        """Historical cycles still allowed in the rolling 24-hour window.

        Cycles are counted from the store's ledger, so runs by other processes
        sharing the cache file count too. Cycles started by this scheduler are
        also kept in memory and used when the ledger is unreadable.
        """
        now = now or self._clock()
        while self._cycles and now - self._cycles[0] >= _BUDGET_WINDOW:
            self._cycles.popleft()
        try:
            recorded = await self.store.count_cycles_since(
                millis_from_datetime(now - _BUDGET_WINDOW)
            )
        except CacheError as e:
            logger.warning("Could not read refresh cycle ledger: %s", e)
            recorded = 0
        used = max(len(self._cycles), recorded)
        return max(0, self.schedule.daily_historical_budget - used)

    async def maybe_refresh_history(
        self, now: datetime | None = None, force: bool = False
    ) -> RefreshReport:
        """Run a historical cycle if the data is stale and budget allows.

        ``force`` skips the staleness check but never the budget.
        """
        now = now or self._clock()
        if not force and not await self.is_stale(now):
            logger.info("Historical data is fresh; skipping refresh")
            return RefreshReport(skipped="fresh")
        if await self.budget_remaining(now) <= 0:
            logger.warning(
                "Daily historical budget of %d exhausted; skipping refresh",
                self.schedule.daily_historical_budget,
            )
            return RefreshReport(skipped="budget")

        self._cycles.append(now)
        try:
            await self.store.record_cycle(millis_from_datetime(now))
        except CacheError as e:
            logger.warning("Could not record refresh cycle: %s", e)
        return await self.monitor.run_historical_cycle(now)

    async def _quote_loop(self) -> None:
        await self._sleep(self.schedule.initial_quote_delay_seconds)
        while True:
            try:
                await self.monitor.refresh_quote()
            except Exception:
                logger.exception("Quote refresh failed")
            await self._sleep(self.schedule.quote_interval_seconds)

    async def _history_loop(self) -> None:
        while True:
            try:
                await self.maybe_refresh_history()
            except Exception:
                logger.exception("Historical refresh failed")
            await self._sleep(self.schedule.historical_wake_interval_seconds)

    def start(self) -> None:
        """Spawn both loops on the running event loop."""
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._quote_loop(), name="price-monitor-quote"),
            asyncio.create_task(self._history_loop(), name="price-monitor-history"),
        ]
        logger.info(
            "Scheduler started: quote every %ss, history wake every %ss",
            self.schedule.quote_interval_seconds,
            self.schedule.historical_wake_interval_seconds,
        )

    async def stop(self) -> None:
        """Cancel both loops and wait for them to finish."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Scheduler stopped")

    async def run_forever(self) -> None:
        """Start the loops and wait on them until cancelled."""
        self.start()
        try:
            await asyncio.gather(*self._tasks)
        finally:
            await self.stop()
