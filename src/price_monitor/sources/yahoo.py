"""Yahoo Finance source — unauthenticated ``/v8/finance/chart/`` endpoint.

The same endpoint serves both capabilities: the ``timestamp`` /
``indicators.quote[0].close`` arrays give the historical series, and the
``meta`` block carries the current market price. The query1 host is tried
first, then query2.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from price_monitor.core.exceptions import ProviderError
from price_monitor.core.models import Period, PricePoint, Provenance, Quote
from price_monitor.sources.base import HttpSource, require, to_float
from price_monitor.sources.sampling import lookback_window

logger = logging.getLogger(__name__)

_HOSTS = (
    "https://query1.finance.yahoo.com",
    "https://query2.finance.yahoo.com",
)
_CHART_PATH = "/v8/finance/chart"

# Period → Yahoo sampling interval
_INTERVAL_MAP: dict[Period, str] = {
    Period.INTRADAY: "5m",
    Period.WEEK: "1d",
    Period.MONTH: "1d",
}


def decode_chart(data: Any) -> dict:
    """Return ``chart.result[0]`` or raise ProviderError."""
    chart = require(data, "chart", YahooFinanceSource.name)
    if not isinstance(chart, dict):
        raise ProviderError(
            f"yahoo: chart is {type(chart).__name__}, expected an object",
            context={"source": YahooFinanceSource.name},
        )
    err = chart.get("error")
    if err:
        if isinstance(err, dict):
            err = f"{err.get('code')} ({err.get('description')})"
        raise ProviderError(
            f"yahoo API error: {str(err)[:200]}",
            context={"source": YahooFinanceSource.name},
        )
    results = require(chart, "result", YahooFinanceSource.name)
    if not isinstance(results, list) or not isinstance(results[0], dict):
        raise ProviderError(
            f"yahoo: unexpected chart result of type {type(results).__name__}",
            context={"source": YahooFinanceSource.name},
        )
    return results[0]


def decode_points(result: dict) -> list[PricePoint]:
    """Turn a chart result into points, skipping null closes."""
    timestamps: list[int] = require(result, "timestamp", YahooFinanceSource.name)
    quotes = (result.get("indicators") or {}).get("quote") or [{}]
    closes: list[float | None] = quotes[0].get("close") or []
    if not closes:
        raise ProviderError(
            "yahoo: chart has no close prices",
            context={"source": YahooFinanceSource.name},
        )

    points: list[PricePoint] = []
    for ts, close in zip(timestamps, closes):
        if close is None or close <= 0:
            continue
        points.append(PricePoint.at(int(ts) * 1000, float(close), YahooFinanceSource.name))
    return points


def decode_quote(result: dict, as_of: datetime) -> Quote:
    """Build a quote from the chart ``meta`` block."""
    meta = require(result, "meta", YahooFinanceSource.name)
    price = to_float(require(meta, "regularMarketPrice", "yahoo"), "regularMarketPrice", "yahoo")
    previous = meta.get("previousClose") or meta.get("chartPreviousClose")
    previous_close = to_float(previous, "previousClose", "yahoo") if previous else price
    change = price - previous_close
    change_percent = (change / previous_close) * 100 if previous_close else 0.0

    volumes = ((result.get("indicators") or {}).get("quote") or [{}])[0].get("volume") or []
    volume = sum(int(v) for v in volumes if v)
    if not volume:
        volume = int(meta.get("regularMarketVolume") or 0)

    return Quote(
        price=price,
        change=change,
        change_percent=change_percent,
        open=float(meta.get("regularMarketOpen") or price),
        high=float(meta.get("regularMarketDayHigh") or price),
        low=float(meta.get("regularMarketDayLow") or price),
        volume=volume,
        as_of=as_of,
        source=YahooFinanceSource.name,
        provenance=Provenance.REAL,
    )


class YahooFinanceSource(HttpSource):
    """Historical series and current quote from Yahoo Finance.

    Parameters
    ----------
    hosts : tuple[str, ...]
        Base URLs tried in order. Override for testing.
    """

    name = "yahoo"

    def __init__(self, *, hosts: tuple[str, ...] = _HOSTS, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._hosts = hosts

    async def _fetch_chart(self, symbol: str, params: dict[str, str]) -> dict:
        """Try each host in turn; return the first usable chart result."""
        last_error: ProviderError | None = None
        for host in self._hosts:
            url = f"{host}{_CHART_PATH}/{symbol}"
            try:
                data = await self._get_json(url, params=params)
                return decode_chart(data)
            except ProviderError as e:
                logger.debug("yahoo host %s failed: %s", host, e)
                last_error = e
        raise last_error or ProviderError(
            "yahoo: no hosts configured", context={"source": self.name}
        )

    async def _fetch_points(self, symbol: str, period: Period) -> list[PricePoint]:
        start, end = lookback_window(period, self.now())
        params = {
            "period1": str(int(start.timestamp())),
            "period2": str(int(end.timestamp())),
            "interval": _INTERVAL_MAP[period],
            "includePrePost": "false",
            "events": "div|split",
        }
        result = await self._fetch_chart(symbol, params)
        return self._filter_window(decode_points(result), period)

    async def _fetch_quote(self, symbol: str) -> Quote:
        result = await self._fetch_chart(symbol, {"interval": "5m", "range": "1d"})
        return decode_quote(result, self.now().astimezone(timezone.utc))
