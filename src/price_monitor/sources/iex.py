"""IEX source — ``/stock/{symbol}/chart/{range}`` endpoint.

Intraday items carry ``date`` plus ``minute`` (exchange local time); daily
items carry only ``date``. ``close`` may be null on thin minutes, in which
case ``average`` is used.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from price_monitor.core.exceptions import ProviderError
from price_monitor.core.models import Period, PricePoint, millis_from_datetime
from price_monitor.sources.base import HttpSource, to_float

_BASE_URL = "https://api.iextrading.com/1.0"
_EXCHANGE_TZ = ZoneInfo("America/New_York")

_RANGE_MAP: dict[Period, str] = {
    Period.INTRADAY: "1d",
    Period.WEEK: "5d",
    Period.MONTH: "1m",
}


def _parse_moment(item: dict) -> datetime:
    day = str(item.get("date", "")).replace("-", "")
    minute = item.get("minute")
    try:
        if minute:
            return datetime.strptime(f"{day} {minute}", "%Y%m%d %H:%M").replace(
                tzinfo=_EXCHANGE_TZ
            )
        return datetime.strptime(day, "%Y%m%d").replace(tzinfo=_EXCHANGE_TZ)
    except ValueError as e:
        raise ProviderError(
            f"iex: bad date {item.get('date')!r} / minute {minute!r}",
            context={"source": IEXSource.name},
        ) from e


def decode_chart(data: Any) -> list[PricePoint]:
    """Parse a chart array into points; items without any price are skipped."""
    if isinstance(data, dict) and ("error" in data or "message" in data):
        raise ProviderError(
            f"iex error: {str(data.get('error') or data.get('message'))[:200]}",
            context={"source": IEXSource.name},
        )
    if not isinstance(data, list) or not data:
        raise ProviderError("iex: empty chart", context={"source": IEXSource.name})

    points: list[PricePoint] = []
    for item in data:
        if not isinstance(item, dict):
            raise ProviderError(
                f"iex: chart item is {type(item).__name__}, expected an object",
                context={"source": IEXSource.name},
            )
        raw = item.get("close")
        if raw is None:
            raw = item.get("average")
        if raw is None:
            continue
        price = to_float(raw, "close", "iex")
        if price <= 0:
            continue
        moment = _parse_moment(item)
        points.append(
            PricePoint(
                timestamp=millis_from_datetime(moment),
                price=price,
                date=moment.isoformat(),
                source=IEXSource.name,
            )
        )
    return points


class IEXSource(HttpSource):
    """Historical series from the IEX chart endpoint."""

    name = "iex"

    def __init__(self, *, token: str = "demo", base_url: str = _BASE_URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._token = token
        self._base_url = base_url

    async def _fetch_points(self, symbol: str, period: Period) -> list[PricePoint]:
        url = f"{self._base_url}/stock/{symbol.lower()}/chart/{_RANGE_MAP[period]}"
        data = await self._get_json(url, params={"token": self._token})
        return decode_chart(data)
