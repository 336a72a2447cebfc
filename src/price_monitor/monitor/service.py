"""Display-facing monitor operations.

``PriceMonitor`` owns the only in-memory state of the system: the selected
period, the series currently on screen, the last quote, and the anchor price
for synthetic data. Everything durable lives in the cache store.

Every operation resolves to something displayable. Cache failures read as
"nothing cached", chain exhaustion falls through to synthetic data, and the
status sink is told which of real / simulated / error applies.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from price_monitor.cache.store import CacheStore
from price_monitor.core.config import MonitorConfig
from price_monitor.core.exceptions import CacheError
from price_monitor.core.models import (
    EpochMillis,
    Period,
    PeriodSeries,
    PricePoint,
    Provenance,
    Quote,
    StatusKind,
    millis_from_datetime,
)
from price_monitor.monitor.display import ChartSink, StatusSink, format_labels
from price_monitor.monitor.orchestrator import FallbackOrchestrator
from price_monitor.monitor.synthetic import SyntheticGenerator

logger = logging.getLogger(__name__)


@dataclass
class RefreshReport:
    """Outcome of one historical refresh cycle."""

    succeeded: list[Period] = field(default_factory=list)
    failed: list[Period] = field(default_factory=list)
    unsaved: list[Period] = field(default_factory=list)  # fetched, cache write failed
    updated_at: EpochMillis | None = None
    skipped: str | None = None  # "fresh" | "budget" when no cycle ran

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def ran(self) -> bool:
        return self.skipped is None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PriceMonitor:
    """Wires cache, fallback chains and generator to the display sinks.

    Parameters
    ----------
    config : MonitorConfig
        Full configuration; ``instrument``, ``periods`` and ``schedule`` are used.
    store : CacheStore
        Durable per-period series and the last-update timestamp.
    orchestrator : FallbackOrchestrator
        History and quote chains.
    generator : SyntheticGenerator
        Last resort when neither network nor cache has data.
    chart, status : ChartSink, StatusSink
        Display collaborators.
    clock : Callable[[], datetime] | None
        Returns the current UTC time.
    sleep : Callable[[float], Awaitable[None]]
        Used for the delay between periods of a refresh cycle.
    """

    def __init__(
        self,
        config: MonitorConfig,
        store: CacheStore,
        orchestrator: FallbackOrchestrator,
        generator: SyntheticGenerator,
        chart: ChartSink,
        status: StatusSink,
        *,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.store = store
        self.orchestrator = orchestrator
        self.generator = generator
        self.chart = chart
        self.status = status
        self._clock = clock or _utcnow
        self._sleep = sleep

        self.symbol = config.instrument.symbol
        self.selected_period: Period = config.periods.default_period
        self.displayed: PeriodSeries | None = None
        self.last_quote: Quote | None = None
        self.last_real_price: float | None = None

    @property
    def anchor_price(self) -> float:
        """Last real price seen, or the configured default before any."""
        if self.last_real_price is not None:
            return self.last_real_price
        return self.config.instrument.default_anchor_price

    def now(self) -> datetime:
        return self._clock()

    # --- Display helpers ---

    def _display(self, series: PeriodSeries) -> None:
        self.chart.set_series(format_labels(series.points, series.period), series.prices)
        self.chart.redraw()
        self.displayed = series
        if series.provenance != Provenance.SIMULATED and series.last_price is not None:
            self.last_real_price = series.last_price

    def _display_simulated(self, period: Period, message: str) -> PeriodSeries:
        series = self.generator.series(period, self.anchor_price, now=self.now())
        logger.info(
            "Showing %d simulated points for %s around %.2f",
            len(series), period.value, self.anchor_price,
        )
        self._display(series)
        self.status.report_status(StatusKind.SIMULATED, message)
        return series

    async def _read_cache(self, period: Period) -> list[PricePoint]:
        try:
            return await self.store.get_series(period)
        except CacheError as e:
            logger.warning("Cache read failed for %s: %s", period.value, e)
            return []

    async def _persist(self, series: PeriodSeries) -> bool:
        try:
            await self.store.put_series(series.period, series.points)
        except CacheError as e:
            logger.warning("Cache write failed for %s: %s", series.period.value, e)
            return False
        return True

    def _cached_series(self, period: Period, points: list[PricePoint]) -> PeriodSeries:
        sources = {p.source for p in points}
        return PeriodSeries(
            period=period,
            points=points,
            provenance=Provenance.CACHED,
            source=sources.pop() if len(sources) == 1 else "mixed",
        )

    # --- Operations ---

    async def initial_load(self) -> PeriodSeries:
        """Show the selected period: cache, then network, then synthetic."""
        return await self.select_period(self.selected_period)

    async def select_period(self, period: Period) -> PeriodSeries:
        """Switch the chart to ``period`` and return what is now displayed."""
        self.selected_period = period

        cached = await self._read_cache(period)
        if cached:
            series = self._cached_series(period, cached)
            self._display(series)
            self.status.report_status(
                StatusKind.REAL,
                f"Cached data ({len(series)} points, {period.alias})",
            )
            return series

        logger.info("No cached data for %s; fetching", period.value)
        series = await self.orchestrator.fetch_series(self.symbol, period)
        if series is not None:
            await self._persist(series)
            self._display(series)
            self.status.report_status(
                StatusKind.REAL,
                f"Live data from {series.source} ({len(series)} points, {period.alias})",
            )
            return series

        return self._display_simulated(
            period,
            f"Simulated data ({period.alias}); live sources unavailable",
        )

    async def refresh_quote(self) -> Quote:
        """Run the quote chain and report the result."""
        quote = await self.orchestrator.fetch_quote(self.symbol, self.anchor_price, now=self.now())
        self.last_quote = quote
        self.status.report_quote(quote)
        if quote.provenance == Provenance.SIMULATED:
            self.status.report_error("Live quote unavailable; showing simulated values.")
        else:
            self.last_real_price = quote.price
            self.status.clear_error()
        return quote

    async def _fetch_and_persist(self, period: Period) -> tuple[PeriodSeries | None, bool]:
        series = await self.orchestrator.fetch_series(self.symbol, period)
        if series is None:
            return None, False
        saved = await self._persist(series)
        if series.last_price is not None:
            self.last_real_price = series.last_price
        return series, saved

    async def refresh_period(self, period: Period) -> bool:
        """Fetch one period from the network and persist it.

        True only when the series was both fetched and written to the cache.
        """
        _, saved = await self._fetch_and_persist(period)
        return saved

    async def run_historical_cycle(self, now: datetime | None = None) -> RefreshReport:
        """Refresh every period in turn, then redisplay the selected one.

        A period counts as succeeded only once it is in the cache; a period
        fetched but not written is reported as unsaved, and its live series is
        shown if it is the selected one. The last-update timestamp is written
        only when at least one period succeeded. Otherwise stale cached data
        stays on screen under an error status, or synthetic data is shown when
        nothing is cached.
        """
        report = RefreshReport()
        live: dict[Period, PeriodSeries] = {}
        periods = list(Period)
        for i, period in enumerate(periods):
            series, saved = await self._fetch_and_persist(period)
            if series is None:
                report.failed.append(period)
            elif saved:
                report.succeeded.append(period)
            else:
                report.unsaved.append(period)
                live[period] = series
            if i < len(periods) - 1:
                await self._sleep(self.config.schedule.inter_call_delay_seconds)

        logger.info(
            "Historical cycle: %d/%d periods updated, %d fetched but not cached",
            report.success_count, len(periods), len(report.unsaved),
        )

        if report.succeeded:
            stamp = millis_from_datetime(now or self.now())
            try:
                await self.store.set_last_update_time(stamp)
                report.updated_at = stamp
            except CacheError as e:
                logger.warning("Could not record last update time: %s", e)

        period = self.selected_period
        if period in live:
            series = live[period]
            self._display(series)
            self.status.report_status(
                StatusKind.REAL,
                f"Live data from {series.source} ({len(series)} points, {period.alias}); not cached",
            )
            self.status.report_error("Could not save refreshed data to the cache.")
            return report

        if report.succeeded:
            await self._redisplay_from_cache()
            return report

        cached = await self._read_cache(period)
        if cached:
            self._display(self._cached_series(period, cached))
            message = "Historical refresh failed; showing previously cached data."
            self.status.report_status(StatusKind.ERROR, message)
            self.status.report_error(message)
        else:
            self._display_simulated(
                period,
                f"Simulated data ({period.alias}); live sources unavailable",
            )
        return report

    async def _redisplay_from_cache(self) -> None:
        period = self.selected_period
        cached = await self._read_cache(period)
        if cached:
            series = self._cached_series(period, cached)
            self._display(series)
            self.status.report_status(
                StatusKind.REAL,
                f"Updated data ({len(series)} points, {period.alias})",
            )
        else:
            self._display_simulated(
                period,
                f"Simulated data ({period.alias}); no data for this period",
            )
