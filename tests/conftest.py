"""Shared pytest fixtures for price-monitor."""

from datetime import datetime, timedelta, timezone

import pytest

from price_monitor.cache.store import SqliteCacheStore
from price_monitor.core.config import (
    MonitorConfig,
    ScheduleConfig,
    StorageConfig,
    SyntheticConfig,
)
from price_monitor.core.models import (
    Period,
    PeriodSeries,
    PricePoint,
    Provenance,
    Quote,
    millis_from_datetime,
)

FIXED_NOW = datetime(2024, 3, 15, 16, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def no_sleep():
    """Async sleep replacement that records requested delays."""
    calls: list[float] = []

    async def _sleep(seconds: float) -> None:
        calls.append(seconds)

    _sleep.calls = calls
    return _sleep


@pytest.fixture
def make_points():
    """Factory: ``count`` evenly spaced points ending at FIXED_NOW, rising by 0.5."""

    def _make(
        count: int,
        *,
        start_price: float = 500.0,
        step: timedelta = timedelta(days=1),
        end: datetime = FIXED_NOW,
        source: str = "test",
    ) -> list[PricePoint]:
        points = []
        for i in range(count):
            moment = end - step * (count - 1 - i)
            points.append(
                PricePoint(
                    timestamp=millis_from_datetime(moment),
                    price=round(start_price + i * 0.5, 2),
                    date=moment.isoformat(),
                    source=source,
                )
            )
        return points

    return _make


@pytest.fixture
def make_series(make_points):
    """Factory for a REAL PeriodSeries with period-appropriate spacing."""

    def _make(
        period: Period, count: int, *, source: str = "test", start_price: float = 500.0
    ) -> PeriodSeries:
        step = timedelta(minutes=15) if period.is_intraday else timedelta(days=1)
        return PeriodSeries(
            period=period,
            points=make_points(count, start_price=start_price, step=step, source=source),
            provenance=Provenance.REAL,
            source=source,
        )

    return _make


@pytest.fixture
def make_quote():
    """Factory for a REAL Quote with overridable price and source."""

    def _make(price: float = 512.34, source: str = "test") -> Quote:
        return Quote(
            price=price,
            change=1.5,
            change_percent=0.29,
            open=510.0,
            high=514.0,
            low=509.0,
            volume=42_000_000,
            as_of=FIXED_NOW,
            source=source,
            provenance=Provenance.REAL,
        )

    return _make


@pytest.fixture
def config(tmp_path) -> MonitorConfig:
    return MonitorConfig(
        storage=StorageConfig(sqlite_path=str(tmp_path / "cache.db")),
        synthetic=SyntheticConfig(seed=42),
        schedule=ScheduleConfig(inter_call_delay_seconds=0),
    )


@pytest.fixture
async def store(tmp_path):
    """Initialized SqliteCacheStore in a temporary directory."""
    s = SqliteCacheStore(str(tmp_path / "store.db"))
    await s.initialize()
    return s
