"""Synthetic price data for when every live source has failed.

The shape is fixed and the values are random: a bounded random walk scaled
by a per-period volatility, plus a half-sine trend with a random sign, with
every value clamped to ``anchor * (1 ± clamp_fraction)``. Output is always
tagged ``Provenance.SIMULATED`` with source ``"synthetic"``, which the cache
store refuses to persist.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import numpy as np

from price_monitor.core.config import PeriodsConfig, SyntheticConfig
from price_monitor.core.models import (
    SYNTHETIC_SOURCE,
    Period,
    PeriodSeries,
    PricePoint,
    Provenance,
    Quote,
    millis_from_datetime,
)

_INTRADAY_STEP = timedelta(minutes=15)
_DAILY_STEP = timedelta(days=1)


def generate_series(
    period: Period,
    anchor_price: float,
    point_count: int,
    *,
    volatility: float,
    trend: float = 0.001,
    clamp_fraction: float = 0.15,
    rng: np.random.Generator | None = None,
    now: datetime | None = None,
) -> PeriodSeries:
    """Generate ``point_count`` plausible prices ending at ``now``.

    Parameters
    ----------
    period : Period
        Controls point spacing: 15 minutes intraday, one day otherwise.
    anchor_price : float
        Last known price. Every output value lies within
        ``anchor_price * (1 ± clamp_fraction)``.
    volatility : float
        Max fractional step of the random walk (0.005 intraday, 0.02 daily).
    trend : float
        Amplitude of the sinusoidal trend, as a fraction of price.
    """
    if anchor_price <= 0:
        raise ValueError(f"anchor_price must be > 0, got {anchor_price}")
    if point_count < 1:
        raise ValueError(f"point_count must be >= 1, got {point_count}")

    rng = rng or np.random.default_rng()
    now = now or datetime.now(timezone.utc)
    step = _INTRADAY_STEP if period.is_intraday else _DAILY_STEP
    floor = anchor_price * (1 - clamp_fraction)
    ceiling = anchor_price * (1 + clamp_fraction)
    direction = 1.0 if rng.random() > 0.5 else -1.0

    points: list[PricePoint] = []
    price = anchor_price
    for i in range(point_count):
        walk = rng.uniform(-1.0, 1.0) * volatility * price
        trend_term = direction * trend * price * math.sin(i / point_count * math.pi)
        price = min(ceiling, max(floor, price + walk + trend_term))
        value = min(ceiling, max(floor, round(price, 2)))
        moment = now - step * (point_count - 1 - i)
        points.append(
            PricePoint(
                timestamp=millis_from_datetime(moment),
                price=value,
                date=moment.isoformat(),
                source=SYNTHETIC_SOURCE,
            )
        )

    return PeriodSeries(
        period=period,
        points=points,
        provenance=Provenance.SIMULATED,
        source=SYNTHETIC_SOURCE,
    )


def simulate_quote(
    anchor_price: float,
    *,
    rng: np.random.Generator | None = None,
    now: datetime | None = None,
) -> Quote:
    """Small random walk around ``anchor_price``, shaped like a real quote."""
    if anchor_price <= 0:
        raise ValueError(f"anchor_price must be > 0, got {anchor_price}")

    rng = rng or np.random.default_rng()
    price = max(0.01, anchor_price + rng.uniform(-1.0, 1.0))
    change = rng.uniform(-2.5, 2.5)
    return Quote(
        price=price,
        change=change,
        change_percent=change / price * 100,
        open=price - rng.uniform(0.0, 3.0),
        high=price + rng.uniform(0.0, 5.0),
        low=price - rng.uniform(0.0, 5.0),
        volume=int(rng.integers(10_000_000, 60_000_000)),
        as_of=now or datetime.now(timezone.utc),
        source=SYNTHETIC_SOURCE,
        provenance=Provenance.SIMULATED,
    )


class SyntheticGenerator:
    """Binds the generator functions to configured per-period parameters.

    A fixed ``seed`` makes every run reproducible.
    """

    def __init__(
        self,
        periods: PeriodsConfig | None = None,
        config: SyntheticConfig | None = None,
    ) -> None:
        self._periods = periods or PeriodsConfig()
        self._config = config or SyntheticConfig()
        self._rng = np.random.default_rng(self._config.seed)

    def series(
        self, period: Period, anchor_price: float, now: datetime | None = None
    ) -> PeriodSeries:
        settings = self._periods.for_period(period)
        return generate_series(
            period,
            anchor_price,
            settings.synthetic_points,
            volatility=settings.volatility,
            trend=settings.trend,
            clamp_fraction=self._config.clamp_fraction,
            rng=self._rng,
            now=now,
        )

    def quote(self, anchor_price: float, now: datetime | None = None) -> Quote:
        return simulate_quote(anchor_price, rng=self._rng, now=now)
