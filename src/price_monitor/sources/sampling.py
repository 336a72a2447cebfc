"""Period windows and point-count reduction shared by all adapters."""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime

from price_monitor.core.models import EpochMillis, Period, PricePoint, millis_from_datetime


def lookback_window(period: Period, now: datetime) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` for a period ending at ``now``."""
    return now - period.lookback, now


def within_lookback(
    points: Sequence[PricePoint], period: Period, now: datetime
) -> list[PricePoint]:
    """Keep only points inside the period's lookback window."""
    cutoff: EpochMillis = millis_from_datetime(now - period.lookback)
    return [p for p in points if p.timestamp >= cutoff]


def downsample(points: Sequence[PricePoint], cap: int) -> list[PricePoint]:
    """Reduce ``points`` to at most ``cap`` by taking every Nth point.

    Uniform stride selection keeps the first point and the overall shape;
    no averaging is done. Input order is preserved.
    """
    if cap < 1:
        raise ValueError(f"cap must be >= 1, got {cap}")
    if len(points) <= cap:
        return list(points)
    stride = math.ceil(len(points) / cap)
    return list(points[::stride])
