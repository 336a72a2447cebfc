"""Alpha Vantage source — ``TIME_SERIES_*`` and ``GLOBAL_QUOTE`` functions.

Alpha Vantage answers HTTP 200 even when it refuses a request; refusals come
back as an ``"Error Message"`` payload or a ``"Note"`` / ``"Information"``
rate-limit notice. Values are strings keyed like ``"4. close"``.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from price_monitor.core.exceptions import ProviderError, RateLimitError
from price_monitor.core.models import Period, PricePoint, Provenance, Quote, millis_from_datetime
from price_monitor.sources.base import HttpSource, require, to_float

_BASE_URL = "https://www.alphavantage.co/query"
_DEFAULT_TZ = "US/Eastern"

# Daily sessions kept per period
_SESSIONS: dict[Period, int] = {
    Period.WEEK: 7,
    Period.MONTH: 30,
}


def check_payload(data: Any) -> dict:
    """Raise on error payloads and rate-limit notices."""
    if not isinstance(data, dict):
        raise ProviderError(
            f"alpha_vantage: expected an object, got {type(data).__name__}",
            context={"source": AlphaVantageSource.name},
        )
    if "Error Message" in data:
        raise ProviderError(
            f"alpha_vantage error: {str(data['Error Message'])[:200]}",
            context={"source": AlphaVantageSource.name},
        )
    for key in ("Note", "Information"):
        if key in data:
            raise RateLimitError(
                f"alpha_vantage notice: {str(data[key])[:200]}",
                context={"source": AlphaVantageSource.name, "notice": str(data[key])[:200]},
            )
    return data


def _zone(data: dict) -> tzinfo:
    meta = data.get("Meta Data") or {}
    name = meta.get("6. Time Zone") or meta.get("5. Time Zone") or _DEFAULT_TZ
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def decode_series(data: Any, series_key: str, date_format: str) -> list[PricePoint]:
    """Parse a ``Time Series (...)`` block into points, oldest first."""
    payload = check_payload(data)
    series: dict = require(payload, series_key, AlphaVantageSource.name)
    tz = _zone(payload)

    points: list[PricePoint] = []
    for stamp, values in series.items():
        try:
            moment = datetime.strptime(stamp, date_format).replace(tzinfo=tz)
        except ValueError as e:
            raise ProviderError(
                f"alpha_vantage: bad timestamp {stamp!r}",
                context={"source": AlphaVantageSource.name},
            ) from e
        close = to_float(require(values, "4. close", "alpha_vantage"), "4. close", "alpha_vantage")
        points.append(
            PricePoint(
                timestamp=millis_from_datetime(moment),
                price=close,
                date=stamp,
                source=AlphaVantageSource.name,
            )
        )
    points.sort(key=lambda p: p.timestamp)
    return points


def latest_trading_day(points: list[PricePoint]) -> list[PricePoint]:
    """Keep the points sharing the most recent calendar date."""
    if not points:
        return []
    last_day = points[-1].date[:10]
    return [p for p in points if p.date[:10] == last_day]


def decode_quote(data: Any, as_of: datetime) -> Quote:
    """Parse a ``GLOBAL_QUOTE`` response."""
    payload = check_payload(data)
    quote = require(payload, "Global Quote", AlphaVantageSource.name)

    def field(key: str) -> float:
        return to_float(require(quote, key, "alpha_vantage"), key, "alpha_vantage")

    return Quote(
        price=field("05. price"),
        change=field("09. change"),
        change_percent=field("10. change percent"),
        open=field("02. open"),
        high=field("03. high"),
        low=field("04. low"),
        volume=int(field("06. volume")),
        as_of=as_of,
        source=AlphaVantageSource.name,
        provenance=Provenance.REAL,
    )


class AlphaVantageSource(HttpSource):
    """Historical series and current quote from Alpha Vantage.

    Intraday uses 15-minute bars from the latest trading day; week and month
    use the most recent 7 and 30 daily sessions.
    """

    name = "alpha_vantage"

    def __init__(self, *, api_key: str = "demo", base_url: str = _BASE_URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key
        self._base_url = base_url

    async def _fetch_points(self, symbol: str, period: Period) -> list[PricePoint]:
        if period is Period.INTRADAY:
            data = await self._get_json(
                self._base_url,
                params={
                    "function": "TIME_SERIES_INTRADAY",
                    "symbol": symbol,
                    "interval": "15min",
                    "outputsize": "compact",
                    "apikey": self._api_key,
                },
            )
            points = decode_series(data, "Time Series (15min)", "%Y-%m-%d %H:%M:%S")
            return latest_trading_day(points)

        data = await self._get_json(
            self._base_url,
            params={
                "function": "TIME_SERIES_DAILY",
                "symbol": symbol,
                "outputsize": "compact",
                "apikey": self._api_key,
            },
        )
        points = decode_series(data, "Time Series (Daily)", "%Y-%m-%d")
        return points[-_SESSIONS[period]:]

    async def _fetch_quote(self, symbol: str) -> Quote:
        data = await self._get_json(
            self._base_url,
            params={"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self._api_key},
        )
        return decode_quote(data, self.now())
