"""Polygon.io source — aggregates (bars) endpoint."""

from __future__ import annotations

from typing import Any

from price_monitor.core.exceptions import ProviderError, RateLimitError
from price_monitor.core.models import Period, PricePoint
from price_monitor.sources.base import HttpSource, require, to_float
from price_monitor.sources.sampling import lookback_window

_BASE_URL = "https://api.polygon.io"

# Period → (multiplier, timespan)
_RANGE_MAP: dict[Period, tuple[int, str]] = {
    Period.INTRADAY: (5, "minute"),
    Period.WEEK: (1, "day"),
    Period.MONTH: (1, "day"),
}


def decode_aggregates(data: Any) -> list[PricePoint]:
    """Parse ``results[].{t, c}`` (t in epoch ms) into points."""
    if not isinstance(data, dict):
        raise ProviderError(
            f"polygon: expected an object, got {type(data).__name__}",
            context={"source": PolygonSource.name},
        )
    status = str(data.get("status", "")).upper()
    if status in ("ERROR", "NOT_AUTHORIZED") or "error" in data:
        message = data.get("error") or data.get("message") or status
        if "exceeded" in str(message).lower():
            raise RateLimitError(
                f"polygon notice: {str(message)[:200]}",
                context={"source": PolygonSource.name, "notice": str(message)[:200]},
            )
        raise ProviderError(
            f"polygon error: {str(message)[:200]}",
            context={"source": PolygonSource.name},
        )

    results = require(data, "results", PolygonSource.name)
    points: list[PricePoint] = []
    for bar in results:
        ts = require(bar, "t", "polygon")
        close = to_float(require(bar, "c", "polygon"), "c", "polygon")
        points.append(PricePoint.at(int(ts), close, PolygonSource.name))
    return points


class PolygonSource(HttpSource):
    """Historical series from Polygon aggregates (5-minute or daily bars)."""

    name = "polygon"

    def __init__(self, *, api_key: str = "demo", base_url: str = _BASE_URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key
        self._base_url = base_url

    async def _fetch_points(self, symbol: str, period: Period) -> list[PricePoint]:
        start, end = lookback_window(period, self.now())
        multiplier, timespan = _RANGE_MAP[period]
        url = (
            f"{self._base_url}/v2/aggs/ticker/{symbol}/range/{multiplier}/{timespan}"
            f"/{start.date().isoformat()}/{end.date().isoformat()}"
        )
        data = await self._get_json(
            url,
            params={"adjusted": "true", "sort": "asc", "apiKey": self._api_key},
        )
        return self._filter_window(decode_aggregates(data), period)
