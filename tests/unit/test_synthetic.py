"""Tests for the synthetic data generator."""

from datetime import timedelta

import numpy as np
import pytest

from price_monitor.core.config import PeriodsConfig, SyntheticConfig
from price_monitor.core.models import SYNTHETIC_SOURCE, Period, Provenance, millis_from_datetime
from price_monitor.monitor.synthetic import SyntheticGenerator, generate_series, simulate_quote

# Rounding to cents can nudge a clamped value by at most half a cent.
TOLERANCE = 0.005


class TestGenerateSeries:
    @pytest.mark.parametrize("seed", range(25))
    @pytest.mark.parametrize("period, volatility", [(Period.INTRADAY, 0.005), (Period.MONTH, 0.02)])
    def test_values_within_fifteen_percent_of_anchor(self, seed, period, volatility):
        series = generate_series(
            period, 450.0, 200, volatility=volatility, rng=np.random.default_rng(seed)
        )
        assert all(382.5 - TOLERANCE <= v <= 517.5 + TOLERANCE for v in series.prices)

    def test_clamp_holds_under_extreme_volatility(self):
        series = generate_series(
            Period.MONTH, 450.0, 500, volatility=0.5, trend=0.2,
            rng=np.random.default_rng(1),
        )
        assert min(series.prices) >= 382.5 - TOLERANCE
        assert max(series.prices) <= 517.5 + TOLERANCE
        # with this much noise the walk must have hit a bound
        assert min(series.prices) == pytest.approx(382.5, abs=0.01) or max(
            series.prices
        ) == pytest.approx(517.5, abs=0.01)

    def test_tagged_simulated(self, fixed_now):
        series = generate_series(Period.WEEK, 450.0, 7, volatility=0.02, now=fixed_now)
        assert series.provenance == Provenance.SIMULATED
        assert series.source == SYNTHETIC_SOURCE
        assert {p.source for p in series.points} == {SYNTHETIC_SOURCE}

    def test_daily_spacing_ends_now(self, fixed_now):
        series = generate_series(Period.WEEK, 450.0, 7, volatility=0.02, now=fixed_now)
        stamps = [p.timestamp for p in series.points]
        assert len(stamps) == 7
        assert stamps[-1] == millis_from_datetime(fixed_now)
        assert {b - a for a, b in zip(stamps, stamps[1:])} == {86_400_000}

    def test_intraday_spacing(self, fixed_now):
        series = generate_series(Period.INTRADAY, 450.0, 26, volatility=0.005, now=fixed_now)
        stamps = [p.timestamp for p in series.points]
        assert {b - a for a, b in zip(stamps, stamps[1:])} == {15 * 60 * 1000}
        assert stamps[0] == millis_from_datetime(fixed_now - timedelta(minutes=15 * 25))

    def test_rounded_to_cents(self):
        series = generate_series(
            Period.MONTH, 451.37, 30, volatility=0.002, rng=np.random.default_rng(5)
        )
        assert all(round(v, 2) == v for v in series.prices)

    def test_same_seed_same_series(self, fixed_now):
        a = generate_series(Period.MONTH, 450.0, 30, volatility=0.02,
                            rng=np.random.default_rng(7), now=fixed_now)
        b = generate_series(Period.MONTH, 450.0, 30, volatility=0.02,
                            rng=np.random.default_rng(7), now=fixed_now)
        assert a == b

    def test_invalid_anchor(self):
        with pytest.raises(ValueError, match="anchor_price"):
            generate_series(Period.WEEK, 0, 7, volatility=0.02)

    def test_invalid_count(self):
        with pytest.raises(ValueError, match="point_count"):
            generate_series(Period.WEEK, 450.0, 0, volatility=0.02)


class TestSimulateQuote:
    @pytest.mark.parametrize("seed", range(20))
    def test_ranges(self, seed, fixed_now):
        q = simulate_quote(450.0, rng=np.random.default_rng(seed), now=fixed_now)
        assert 449.0 <= q.price <= 451.0
        assert -2.5 <= q.change <= 2.5
        assert q.price - 3.0 <= q.open <= q.price
        assert q.price <= q.high <= q.price + 5.0
        assert q.price - 5.0 <= q.low <= q.price
        assert 10_000_000 <= q.volume < 60_000_000
        assert q.change_percent == pytest.approx(q.change / q.price * 100)
        assert q.as_of == fixed_now

    def test_tagged_simulated(self):
        q = simulate_quote(450.0)
        assert q.provenance == Provenance.SIMULATED
        assert q.source == SYNTHETIC_SOURCE

    def test_tiny_anchor_stays_positive(self):
        for seed in range(20):
            assert simulate_quote(0.5, rng=np.random.default_rng(seed)).price > 0


class TestSyntheticGenerator:
    @pytest.mark.parametrize("period, count", [(Period.INTRADAY, 26), (Period.WEEK, 7), (Period.MONTH, 30)])
    def test_nominal_point_counts(self, period, count):
        gen = SyntheticGenerator()
        assert len(gen.series(period, 450.0)) == count

    def test_uses_configured_clamp(self):
        gen = SyntheticGenerator(
            PeriodsConfig(), SyntheticConfig(clamp_fraction=0.01, seed=3)
        )
        prices = gen.series(Period.MONTH, 100.0).prices
        assert all(99.0 - TOLERANCE <= v <= 101.0 + TOLERANCE for v in prices)

    def test_seed_makes_runs_reproducible(self, fixed_now):
        a = SyntheticGenerator(config=SyntheticConfig(seed=11))
        b = SyntheticGenerator(config=SyntheticConfig(seed=11))
        assert a.series(Period.WEEK, 450.0, now=fixed_now) == b.series(Period.WEEK, 450.0, now=fixed_now)
        assert a.quote(450.0, now=fixed_now) == b.quote(450.0, now=fixed_now)
