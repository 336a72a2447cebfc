"""Tests for display sinks and label formatting."""

import io
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from rich.console import Console

from price_monitor.core.models import Period, PricePoint, StatusKind, millis_from_datetime
from price_monitor.monitor.display import (
    ChartSink,
    ConsoleDisplay,
    SnapshotDisplay,
    StatusSink,
    format_labels,
)


def _point(moment: datetime) -> PricePoint:
    return PricePoint.at(millis_from_datetime(moment), 500.0, "test")


class TestFormatLabels:
    def test_intraday_uses_time_of_day_in_new_york(self):
        # 14:30 UTC on 2024-03-15 is 10:30 EDT
        points = [_point(datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc))]
        assert format_labels(points, Period.INTRADAY) == ["10:30"]

    def test_daily_uses_month_and_day(self):
        points = [_point(datetime(2024, 3, 5, 16, tzinfo=timezone.utc))]
        assert format_labels(points, Period.MONTH) == ["Mar 05"]
        assert format_labels(points, Period.WEEK) == ["Mar 05"]

    def test_custom_timezone(self):
        points = [_point(datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc))]
        assert format_labels(points, Period.INTRADAY, tz=ZoneInfo("UTC")) == ["14:30"]

    def test_empty(self):
        assert format_labels([], Period.WEEK) == []


class TestSnapshotDisplay:
    def test_implements_both_sinks(self):
        display = SnapshotDisplay()
        assert isinstance(display, ChartSink)
        assert isinstance(display, StatusSink)

    def test_snapshot(self, make_quote):
        display = SnapshotDisplay()
        display.set_series(["Mar 14", "Mar 15"], [500.0, 501.5])
        display.redraw()
        display.report_quote(make_quote(501.5))
        display.report_status(StatusKind.REAL, "Live data")
        display.report_error("hiccup")

        snap = display.snapshot()

        assert snap["labels"] == ["Mar 14", "Mar 15"]
        assert snap["values"] == [500.0, 501.5]
        assert snap["quote"]["price"] == 501.5
        assert snap["status"] == "real"
        assert snap["status_message"] == "Live data"
        assert snap["error"] == "hiccup"
        assert display.redraws == 1

    def test_clear_error(self):
        display = SnapshotDisplay()
        display.report_error("x")
        display.clear_error()
        assert display.snapshot()["error"] is None

    def test_empty_snapshot(self):
        snap = SnapshotDisplay().snapshot()
        assert snap["quote"] is None
        assert snap["status"] is None


class TestConsoleDisplay:
    def _display(self):
        buffer = io.StringIO()
        console = Console(file=buffer, width=120, color_system=None)
        return ConsoleDisplay(console=console, title="SPY"), buffer

    def test_redraw_renders_rows(self):
        display, buffer = self._display()
        display.set_series(["Mar 14", "Mar 15"], [500.0, 510.25])
        display.redraw()
        out = buffer.getvalue()
        assert "SPY (2 points)" in out
        assert "Mar 15" in out
        assert "510.25" in out

    def test_redraw_without_data(self):
        display, buffer = self._display()
        display.redraw()
        assert "No data" in buffer.getvalue()

    def test_flat_series_does_not_divide_by_zero(self):
        display, buffer = self._display()
        display.set_series(["a", "b"], [500.0, 500.0])
        display.redraw()
        assert "500.00" in buffer.getvalue()

    def test_quote_and_status_lines(self, make_quote):
        display, buffer = self._display()
        display.report_quote(make_quote(512.34))
        display.report_status(StatusKind.SIMULATED, "Simulated data (1M)")
        display.report_error("Live quote unavailable")
        out = buffer.getvalue()
        assert "512.34" in out
        assert "+1.50" in out
        assert "Simulated data (1M)" in out
        assert "Warning: Live quote unavailable" in out
