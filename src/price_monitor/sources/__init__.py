"""Upstream price providers behind a common adapter interface.

Architecture
------------
    Provider API → HttpSource subclass → PeriodSeries | Quote | None

- ``HistorySource`` / ``QuoteSource``: protocols the orchestrator depends on.
- ``HttpSource``: shared HTTP plumbing and the soft-failure boundary.

Built-in providers:

- ``YahooFinanceSource``: chart endpoint (history + quote).
- ``AlphaVantageSource``: TIME_SERIES_* and GLOBAL_QUOTE (history + quote).
- ``PolygonSource``: aggregates (history).
- ``IEXSource``: chart ranges (history).
- ``FinnhubSource``: candles (history) and quote.

``build_sources()`` instantiates the configured chains in priority order.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import httpx

from price_monitor.core.config import MonitorConfig
from price_monitor.core.models import Period
from price_monitor.sources.alpha_vantage import AlphaVantageSource
from price_monitor.sources.base import HistorySource, HttpSource, QuoteSource
from price_monitor.sources.finnhub import FinnhubSource
from price_monitor.sources.iex import IEXSource
from price_monitor.sources.polygon import PolygonSource
from price_monitor.sources.sampling import downsample, lookback_window, within_lookback
from price_monitor.sources.yahoo import YahooFinanceSource


def build_sources(
    config: MonitorConfig,
    client: httpx.AsyncClient | None = None,
    clock: Callable[[], datetime] | None = None,
) -> tuple[list[HistorySource], list[QuoteSource], list[HttpSource]]:
    """Create the history and quote chains described by ``config.sources``.

    Providers that serve both capabilities are instantiated once and shared.
    The third element lists every distinct instance, for closing.
    """
    src = config.sources
    common = dict(
        timeout=src.request_timeout,
        requests_per_minute=src.requests_per_minute,
        max_points={p: config.periods.for_period(p).max_points for p in Period},
        client=client,
        clock=clock,
    )
    factories: dict[str, Callable[[], HttpSource]] = {
        "yahoo": lambda: YahooFinanceSource(**common),
        "alpha_vantage": lambda: AlphaVantageSource(api_key=src.alpha_vantage_api_key, **common),
        "polygon": lambda: PolygonSource(api_key=src.polygon_api_key, **common),
        "iex": lambda: IEXSource(token=src.iex_token, **common),
        "finnhub": lambda: FinnhubSource(api_key=src.finnhub_api_key, **common),
    }

    instances: dict[str, HttpSource] = {}

    def get(name: str) -> HttpSource:
        if name not in instances:
            instances[name] = factories[name]()
        return instances[name]

    history = [get(name) for name in src.history_order]
    quotes = [get(name) for name in src.quote_order]
    return history, quotes, list(instances.values())


__all__ = [
    # Protocols
    "HistorySource",
    "QuoteSource",
    "HttpSource",
    # Providers
    "YahooFinanceSource",
    "AlphaVantageSource",
    "PolygonSource",
    "IEXSource",
    "FinnhubSource",
    # Helpers
    "build_sources",
    "downsample",
    "lookback_window",
    "within_lookback",
]
