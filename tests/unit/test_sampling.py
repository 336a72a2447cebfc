"""Tests for period windows and downsampling."""

from datetime import timedelta

import pytest

from price_monitor.core.models import Period, millis_from_datetime
from price_monitor.sources.sampling import downsample, lookback_window, within_lookback


class TestDownsample:
    def test_500_points_to_cap_60(self, make_points):
        points = make_points(500, step=timedelta(minutes=5))
        result = downsample(points, 60)
        assert len(result) <= 60
        assert result[0] == points[0]
        timestamps = [p.timestamp for p in result]
        assert timestamps == sorted(timestamps)

    def test_uniform_stride(self, make_points):
        points = make_points(10)
        result = downsample(points, 4)
        # ceil(10 / 4) = 3 → indices 0, 3, 6, 9
        assert result == [points[0], points[3], points[6], points[9]]

    def test_no_averaging(self, make_points):
        points = make_points(100)
        result = downsample(points, 30)
        assert set(p.price for p in result) <= set(p.price for p in points)

    def test_under_cap_returned_unchanged(self, make_points):
        points = make_points(20)
        assert downsample(points, 60) == points

    def test_exactly_cap(self, make_points):
        points = make_points(60)
        assert downsample(points, 60) == points

    def test_invalid_cap(self, make_points):
        with pytest.raises(ValueError, match="cap must be >= 1"):
            downsample(make_points(3), 0)

    @pytest.mark.parametrize("n, cap", [(81, 80), (199, 50), (61, 60), (1000, 7)])
    def test_never_exceeds_cap(self, make_points, n, cap):
        assert len(downsample(make_points(n, step=timedelta(minutes=1)), cap)) <= cap


class TestLookback:
    def test_window(self, fixed_now):
        start, end = lookback_window(Period.WEEK, fixed_now)
        assert end == fixed_now
        assert end - start == timedelta(days=7)

    def test_within_lookback_filters_old_points(self, make_points, fixed_now):
        points = make_points(10)  # daily, ending at fixed_now
        kept = within_lookback(points, Period.WEEK, fixed_now)
        cutoff = millis_from_datetime(fixed_now - timedelta(days=7))
        assert len(kept) == 8
        assert all(p.timestamp >= cutoff for p in kept)
