"""Application context: every long-lived component, built once at startup."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

import httpx

from price_monitor.cache.store import SqliteCacheStore
from price_monitor.core.config import MonitorConfig
from price_monitor.monitor.display import ChartSink, StatusSink
from price_monitor.monitor.orchestrator import FallbackOrchestrator
from price_monitor.monitor.scheduler import UpdateScheduler
from price_monitor.monitor.service import PriceMonitor
from price_monitor.monitor.synthetic import SyntheticGenerator
from price_monitor.sources import build_sources
from price_monitor.sources.base import HttpSource

logger = logging.getLogger(__name__)


@dataclass
class MonitorContext:
    """Holds the wired components. Use as ``async with`` to close on exit."""

    config: MonitorConfig
    store: SqliteCacheStore
    orchestrator: FallbackOrchestrator
    generator: SyntheticGenerator
    monitor: PriceMonitor
    scheduler: UpdateScheduler
    sources: list[HttpSource]

    async def aclose(self) -> None:
        await self.scheduler.stop()
        for source in self.sources:
            await source.aclose()

    async def __aenter__(self) -> MonitorContext:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


async def create_context(
    config: MonitorConfig,
    chart: ChartSink,
    status: StatusSink,
    *,
    client: httpx.AsyncClient | None = None,
    clock: Callable[[], datetime] | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> MonitorContext:
    """Build and initialize every component from ``config``.

    Raises CacheError if the SQLite database cannot be created.
    """
    sleep = sleep or asyncio.sleep

    store = SqliteCacheStore(config.storage.sqlite_path)
    await store.initialize()

    history, quotes, sources = build_sources(config, client=client, clock=clock)
    generator = SyntheticGenerator(config.periods, config.synthetic)
    orchestrator = FallbackOrchestrator(history, quotes, generator)
    monitor = PriceMonitor(
        config, store, orchestrator, generator, chart, status,
        clock=clock, sleep=sleep,
    )
    scheduler = UpdateScheduler(monitor, store, config.schedule, clock=clock, sleep=sleep)

    logger.info(
        "Monitor ready for %s: history=%s quote=%s cache=%s",
        config.instrument.symbol,
        ",".join(config.sources.history_order),
        ",".join(config.sources.quote_order),
        store.path,
    )
    return MonitorContext(
        config=config,
        store=store,
        orchestrator=orchestrator,
        generator=generator,
        monitor=monitor,
        scheduler=scheduler,
        sources=sources,
    )
