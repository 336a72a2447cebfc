"""Finnhub source — ``/stock/candle`` for history and ``/quote`` for prices."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from price_monitor.core.exceptions import ProviderError, RateLimitError
from price_monitor.core.models import Period, PricePoint, Provenance, Quote
from price_monitor.sources.base import HttpSource, require, to_float
from price_monitor.sources.sampling import lookback_window

_BASE_URL = "https://finnhub.io/api/v1"

_RESOLUTION_MAP: dict[Period, str] = {
    Period.INTRADAY: "5",
    Period.WEEK: "D",
    Period.MONTH: "D",
}


def _check_error(data: Any) -> dict:
    if not isinstance(data, dict):
        raise ProviderError(
            f"finnhub: expected an object, got {type(data).__name__}",
            context={"source": FinnhubSource.name},
        )
    if "error" in data:
        message = str(data["error"])[:200]
        if "limit" in message.lower():
            raise RateLimitError(
                f"finnhub notice: {message}",
                context={"source": FinnhubSource.name, "notice": message},
            )
        raise ProviderError(f"finnhub error: {message}", context={"source": FinnhubSource.name})
    return data


def decode_candles(data: Any) -> list[PricePoint]:
    """Parse parallel ``c`` / ``t`` arrays (t in epoch seconds)."""
    payload = _check_error(data)
    if payload.get("s") != "ok":
        raise ProviderError(
            f"finnhub candle status {payload.get('s')!r}",
            context={"source": FinnhubSource.name},
        )
    closes = require(payload, "c", "finnhub")
    times = require(payload, "t", "finnhub")
    if len(closes) != len(times):
        raise ProviderError(
            "finnhub: close and time arrays differ in length",
            context={"source": FinnhubSource.name},
        )
    return [
        PricePoint.at(int(ts) * 1000, to_float(c, "c", "finnhub"), FinnhubSource.name)
        for c, ts in zip(closes, times)
        if c
    ]


def decode_quote(data: Any, as_of: datetime) -> Quote:
    """Parse ``{c, d, dp, o, h, l, pc}``. Unknown symbols come back as zeros."""
    payload = _check_error(data)
    price = to_float(payload.get("c"), "c", "finnhub")
    if price <= 0:
        raise ProviderError(
            "finnhub: quote has no current price",
            context={"source": FinnhubSource.name},
        )
    previous = to_float(payload.get("pc") or price, "pc", "finnhub")
    change = payload.get("d")
    change = to_float(change, "d", "finnhub") if change is not None else price - previous
    change_percent = payload.get("dp")
    change_percent = (
        to_float(change_percent, "dp", "finnhub")
        if change_percent is not None
        else (change / previous * 100 if previous else 0.0)
    )
    return Quote(
        price=price,
        change=change,
        change_percent=change_percent,
        open=to_float(payload.get("o") or price, "o", "finnhub"),
        high=to_float(payload.get("h") or price, "h", "finnhub"),
        low=to_float(payload.get("l") or price, "l", "finnhub"),
        volume=0,
        as_of=as_of,
        source=FinnhubSource.name,
        provenance=Provenance.REAL,
    )


class FinnhubSource(HttpSource):
    """Historical candles and current quote from Finnhub."""

    name = "finnhub"

    def __init__(self, *, api_key: str = "demo", base_url: str = _BASE_URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key
        self._base_url = base_url

    async def _fetch_points(self, symbol: str, period: Period) -> list[PricePoint]:
        start, end = lookback_window(period, self.now())
        data = await self._get_json(
            f"{self._base_url}/stock/candle",
            params={
                "symbol": symbol,
                "resolution": _RESOLUTION_MAP[period],
                "from": str(int(start.timestamp())),
                "to": str(int(end.timestamp())),
                "token": self._api_key,
            },
        )
        return decode_candles(data)

    async def _fetch_quote(self, symbol: str) -> Quote:
        data = await self._get_json(
            f"{self._base_url}/quote",
            params={"symbol": symbol, "token": self._api_key},
        )
        return decode_quote(data, self.now())
