"""price_monitor.core — Foundation types, config, and exceptions."""

from price_monitor.core.config import (
    APIConfig,
    InstrumentConfig,
    MonitorConfig,
    PeriodSettings,
    PeriodsConfig,
    ScheduleConfig,
    SourcesConfig,
    StorageConfig,
    SyntheticConfig,
    load_config,
)
from price_monitor.core.exceptions import (
    CacheError,
    ConfigError,
    PriceMonitorError,
    ProviderError,
    RateLimitError,
)
from price_monitor.core.models import (
    SYNTHETIC_SOURCE,
    EpochMillis,
    Period,
    PeriodSeries,
    PricePoint,
    Provenance,
    Quote,
    SourceName,
    StatusKind,
    Symbol,
)

__all__ = [
    # Type aliases
    "EpochMillis",
    "SourceName",
    "Symbol",
    "SYNTHETIC_SOURCE",
    # Enums
    "Period",
    "Provenance",
    "StatusKind",
    # Price models
    "PricePoint",
    "PeriodSeries",
    "Quote",
    # Config
    "MonitorConfig",
    "InstrumentConfig",
    "ScheduleConfig",
    "PeriodSettings",
    "PeriodsConfig",
    "SourcesConfig",
    "SyntheticConfig",
    "StorageConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "PriceMonitorError",
    "ConfigError",
    "ProviderError",
    "RateLimitError",
    "CacheError",
]
