"""Integration test fixtures: real SQLite and real adapters, HTTP mocked with respx."""

from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path

import pytest

from price_monitor.core.config import (
    MonitorConfig,
    ScheduleConfig,
    SourcesConfig,
    StorageConfig,
    SyntheticConfig,
)
from price_monitor.monitor.context import create_context
from price_monitor.monitor.display import SnapshotDisplay


@pytest.fixture
def integration_config(tmp_path: Path) -> MonitorConfig:
    """Yahoo first, Alpha Vantage second; cache in a temp directory."""
    return MonitorConfig(
        sources=SourcesConfig(
            history_order=["yahoo", "alpha_vantage"],
            quote_order=["yahoo"],
            alpha_vantage_api_key="test-key",
        ),
        storage=StorageConfig(sqlite_path=str(tmp_path / "integration.db")),
        synthetic=SyntheticConfig(seed=7),
        schedule=ScheduleConfig(inter_call_delay_seconds=0),
    )


@pytest.fixture
def display() -> SnapshotDisplay:
    return SnapshotDisplay()


@pytest.fixture
async def context(integration_config, display, clock, no_sleep):
    """A fully wired MonitorContext, closed after the test."""
    ctx = await create_context(integration_config, display, display, clock=clock, sleep=no_sleep)
    yield ctx
    await ctx.aclose()


@pytest.fixture
def av_daily():
    """Alpha Vantage TIME_SERIES_DAILY payload with ``days`` consecutive sessions."""

    def _make(days: int, *, last: date = date(2024, 3, 15), base: float = 480.0) -> dict:
        series = {}
        for i in range(days):
            day = last - timedelta(days=days - 1 - i)
            series[day.isoformat()] = {"4. close": f"{base + i:.2f}"}
        return {"Meta Data": {"5. Time Zone": "US/Eastern"}, "Time Series (Daily)": series}

    return _make
