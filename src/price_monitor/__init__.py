"""price-monitor: near-real-time instrument price with a cached, multi-source history."""

__version__ = "0.1.0"
