"""Monitor pipeline: fallback chains, synthetic data, service and scheduler."""

from price_monitor.monitor.context import MonitorContext, create_context
from price_monitor.monitor.display import (
    ChartSink,
    ConsoleDisplay,
    SnapshotDisplay,
    StatusSink,
    format_labels,
)
from price_monitor.monitor.orchestrator import FallbackOrchestrator
from price_monitor.monitor.scheduler import UpdateScheduler
from price_monitor.monitor.service import PriceMonitor, RefreshReport
from price_monitor.monitor.synthetic import SyntheticGenerator, generate_series, simulate_quote

__all__ = [
    # Display
    "ChartSink",
    "StatusSink",
    "ConsoleDisplay",
    "SnapshotDisplay",
    "format_labels",
    # Pipeline
    "FallbackOrchestrator",
    "SyntheticGenerator",
    "generate_series",
    "simulate_quote",
    "PriceMonitor",
    "RefreshReport",
    "UpdateScheduler",
    # Wiring
    "MonitorContext",
    "create_context",
]
