"""Source protocols and the shared HTTP adapter base.

Architecture
------------
Each upstream provider gets one adapter that turns its response schema into
the common models:

    Provider JSON → decode (raises ProviderError) → list[PricePoint] | Quote

- **HistorySource** / **QuoteSource** are the orchestrator-facing protocols.
  Their methods return ``None`` for "unsuccessful" and never raise.
- **HttpSource** holds the plumbing every adapter shares: a rate-limited,
  time-bounded ``httpx`` GET that turns transport failures, non-success
  statuses and non-JSON bodies into ``ProviderError``, plus the boundary
  that converts any ``ProviderError`` or malformed-payload error into ``None``.

Adding a provider = subclass ``HttpSource`` and implement ``_fetch_points``
and/or ``_fetch_quote``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any, ClassVar, Protocol, runtime_checkable

import httpx
from aiolimiter import AsyncLimiter

from price_monitor.core.exceptions import ProviderError, RateLimitError
from price_monitor.core.models import Period, PeriodSeries, PricePoint, Provenance, Quote
from price_monitor.sources.sampling import downsample, within_lookback

logger = logging.getLogger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; price-monitor/0.1)"

DEFAULT_MAX_POINTS: dict[Period, int] = {
    Period.INTRADAY: 80,
    Period.WEEK: 50,
    Period.MONTH: 60,
}

# Raised by decoders that meet a payload of an unexpected shape
_DECODE_ERRORS = (ProviderError, ValueError, TypeError, KeyError, AttributeError, IndexError)


@runtime_checkable
class HistorySource(Protocol):
    """Fetches a historical series for one period."""

    name: str

    async def fetch_series(self, symbol: str, period: Period) -> PeriodSeries | None:
        """Return a non-empty series, or None if the provider failed."""
        ...


@runtime_checkable
class QuoteSource(Protocol):
    """Fetches the current quote."""

    name: str

    async def fetch_quote(self, symbol: str) -> Quote | None:
        """Return a quote, or None if the provider failed."""
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HttpSource:
    """Base class for HTTP/JSON price providers.

    Parameters
    ----------
    timeout : float
        Per-request timeout in seconds.
    requests_per_minute : int
        Token-bucket throttle applied to this provider's requests.
    max_points : Mapping[Period, int] | None
        Per-period point caps applied after decoding.
    client : httpx.AsyncClient | None
        Shared client. When omitted the source creates and owns one.
    clock : Callable[[], datetime] | None
        Returns the current UTC time. Injectable for tests.
    """

    name: ClassVar[str] = "http"

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        requests_per_minute: int = 30,
        max_points: Mapping[Period, int] | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._timeout = timeout
        self._limiter = AsyncLimiter(max_rate=requests_per_minute, time_period=60.0)
        self._max_points = dict(max_points or DEFAULT_MAX_POINTS)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers={"User-Agent": _USER_AGENT},
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )
        self._clock = clock or _utcnow

    async def aclose(self) -> None:
        """Close the HTTP client if this source created it."""
        if self._owns_client:
            await self._client.aclose()

    def now(self) -> datetime:
        return self._clock()

    # --- Orchestrator-facing boundary ---

    async def fetch_series(self, symbol: str, period: Period) -> PeriodSeries | None:
        try:
            points = await self._fetch_points(symbol, period)
            if not points:
                raise ProviderError(
                    f"{self.name} returned no points for {symbol} ({period.value})",
                    context={"source": self.name},
                )
            series = PeriodSeries(
                period=period,
                points=points,
                provenance=Provenance.REAL,
                source=self.name,
            )
        except _DECODE_ERRORS as e:
            logger.warning("%s history failed for %s (%s): %s", self.name, symbol, period.value, e)
            return None

        capped = downsample(series.points, self._max_points[period])
        if len(capped) < len(series.points):
            logger.debug(
                "%s: downsampled %d -> %d points for %s",
                self.name, len(series.points), len(capped), period.value,
            )
            series = series.model_copy(update={"points": capped})
        return series

    async def fetch_quote(self, symbol: str) -> Quote | None:
        try:
            return await self._fetch_quote(symbol)
        except _DECODE_ERRORS as e:
            logger.warning("%s quote failed for %s: %s", self.name, symbol, e)
            return None

    # --- Provider hooks ---

    async def _fetch_points(self, symbol: str, period: Period) -> list[PricePoint]:
        raise ProviderError(
            f"{self.name} does not provide historical data",
            context={"source": self.name},
        )

    async def _fetch_quote(self, symbol: str) -> Quote:
        raise ProviderError(
            f"{self.name} does not provide quotes",
            context={"source": self.name},
        )

    # --- HTTP plumbing ---

    async def _get_json(self, url: str, params: Mapping[str, Any] | None = None) -> Any:
        """GET ``url`` and decode JSON, mapping every failure to ProviderError."""
        await self._limiter.acquire()
        try:
            response = await self._client.get(
                url, params=params, timeout=httpx.Timeout(self._timeout)
            )
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"{self.name} request timed out after {self._timeout}s",
                context={"source": self.name, "url": url},
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(
                f"{self.name} request error: {e}",
                context={"source": self.name, "url": url},
            ) from e

        if response.status_code == 429:
            raise RateLimitError(
                f"{self.name} rate limited (HTTP 429)",
                context={"source": self.name, "url": url,
                         "retry_after": response.headers.get("Retry-After")},
            )
        if not response.is_success:
            raise ProviderError(
                f"{self.name} HTTP {response.status_code}",
                context={"source": self.name, "url": url,
                         "status_code": response.status_code,
                         "response_body": response.text[:200]},
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.name} returned a non-JSON body",
                context={"source": self.name, "url": url,
                         "response_body": response.text[:200]},
            ) from e

    def _filter_window(self, points: list[PricePoint], period: Period) -> list[PricePoint]:
        return within_lookback(points, period, self.now())


def require(data: Any, key: str, source: str) -> Any:
    """Return ``data[key]`` or raise ProviderError if missing or empty."""
    if not isinstance(data, Mapping):
        raise ProviderError(
            f"{source}: expected an object, got {type(data).__name__}",
            context={"source": source},
        )
    value = data.get(key)
    if value is None or (hasattr(value, "__len__") and len(value) == 0):
        raise ProviderError(
            f"{source}: missing or empty field {key!r}",
            context={"source": source, "field": key},
        )
    return value


def to_float(value: Any, field: str, source: str) -> float:
    """Parse a numeric field that may arrive as a string."""
    try:
        return float(str(value).strip().rstrip("%"))
    except (TypeError, ValueError) as e:
        raise ProviderError(
            f"{source}: field {field!r} is not numeric: {value!r}",
            context={"source": source, "field": field},
        ) from e
