"""Output sinks for the monitor.

The service pushes to two abstract sinks and never knows how they render:

- **ChartSink** receives parallel label/value arrays and a redraw request.
- **StatusSink** receives quotes, a provenance status, and error messages.

``ConsoleDisplay`` renders both with rich; ``SnapshotDisplay`` keeps the last
state in memory for the HTTP API and for tests.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import tzinfo
from typing import Any, Protocol, runtime_checkable
from zoneinfo import ZoneInfo

from rich.console import Console
from rich.table import Table

from price_monitor.core.models import Period, PricePoint, Quote, StatusKind

DISPLAY_TZ = ZoneInfo("America/New_York")


@runtime_checkable
class ChartSink(Protocol):
    def set_series(self, labels: Sequence[str], values: Sequence[float]) -> None: ...

    def redraw(self) -> None: ...


@runtime_checkable
class StatusSink(Protocol):
    def report_quote(self, quote: Quote) -> None: ...

    def report_status(self, kind: StatusKind, message: str) -> None: ...

    def report_error(self, message: str) -> None: ...

    def clear_error(self) -> None: ...


def format_labels(
    points: Sequence[PricePoint], period: Period, tz: tzinfo | None = None
) -> list[str]:
    """Time of day for intraday points, month and day otherwise."""
    tz = tz or DISPLAY_TZ
    fmt = "%H:%M" if period.is_intraday else "%b %d"
    return [p.as_datetime.astimezone(tz).strftime(fmt) for p in points]


class SnapshotDisplay:
    """Implements both sinks by recording the latest state."""

    def __init__(self) -> None:
        self.labels: list[str] = []
        self.values: list[float] = []
        self.redraws = 0
        self.quote: Quote | None = None
        self.status: StatusKind | None = None
        self.status_message = ""
        self.error: str | None = None

    def set_series(self, labels: Sequence[str], values: Sequence[float]) -> None:
        self.labels = list(labels)
        self.values = list(values)

    def redraw(self) -> None:
        self.redraws += 1

    def report_quote(self, quote: Quote) -> None:
        self.quote = quote

    def report_status(self, kind: StatusKind, message: str) -> None:
        self.status = kind
        self.status_message = message

    def report_error(self, message: str) -> None:
        self.error = message

    def clear_error(self) -> None:
        self.error = None

    def snapshot(self) -> dict[str, Any]:
        return {
            "labels": list(self.labels),
            "values": list(self.values),
            "quote": self.quote.model_dump(mode="json") if self.quote else None,
            "status": self.status.value if self.status else None,
            "status_message": self.status_message,
            "error": self.error,
        }


_STATUS_STYLE = {
    StatusKind.REAL: "green",
    StatusKind.SIMULATED: "yellow",
    StatusKind.ERROR: "red",
}


class ConsoleDisplay:
    """Implements both sinks on a rich console."""

    def __init__(self, console: Console | None = None, title: str = "SPY") -> None:
        self.console = console or Console()
        self.title = title
        self._labels: list[str] = []
        self._values: list[float] = []

    def set_series(self, labels: Sequence[str], values: Sequence[float]) -> None:
        self._labels = list(labels)
        self._values = list(values)

    def redraw(self) -> None:
        if not self._values:
            self.console.print("[dim]No data to display[/dim]")
            return
        table = Table(title=f"{self.title} ({len(self._values)} points)")
        table.add_column("Time")
        table.add_column("Price", justify="right")
        table.add_column("", justify="left")
        low, high = min(self._values), max(self._values)
        span = (high - low) or 1.0
        for label, value in zip(self._labels, self._values):
            bar = "█" * (1 + int((value - low) / span * 30))
            table.add_row(label, f"{value:,.2f}", f"[cyan]{bar}[/cyan]")
        self.console.print(table)

    def report_quote(self, quote: Quote) -> None:
        color = "green" if quote.change >= 0 else "red"
        self.console.print(
            f"[bold]{self.title}[/bold] {quote.price:,.2f} "
            f"[{color}]{quote.change:+.2f} ({quote.change_percent:+.2f}%)[/{color}]  "
            f"O {quote.open:,.2f}  H {quote.high:,.2f}  L {quote.low:,.2f}  "
            f"Vol {quote.volume:,}  [dim]{quote.source}[/dim]"
        )

    def report_status(self, kind: StatusKind, message: str) -> None:
        style = _STATUS_STYLE[kind]
        self.console.print(f"[{style}]● {message}[/{style}]")

    def report_error(self, message: str) -> None:
        self.console.print(f"[red]Warning:[/red] {message}")

    def clear_error(self) -> None:
        pass
