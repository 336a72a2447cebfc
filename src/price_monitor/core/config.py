"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from price_monitor.core.exceptions import ConfigError
from price_monitor.core.models import Period

KNOWN_HISTORY_SOURCES = ("alpha_vantage", "yahoo", "polygon", "iex", "finnhub")
KNOWN_QUOTE_SOURCES = ("yahoo", "alpha_vantage", "finnhub")


class InstrumentConfig(BaseModel):
    """The instrument being monitored."""

    model_config = ConfigDict(frozen=True)

    symbol: str = "SPY"
    default_anchor_price: float = 450.0

    @field_validator("symbol")
    @classmethod
    def symbol_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("symbol must not be blank")
        return v.strip().upper()

    @field_validator("default_anchor_price")
    @classmethod
    def anchor_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("default_anchor_price must be > 0")
        return v


class ScheduleConfig(BaseModel):
    """Refresh timers and the historical call budget."""

    model_config = ConfigDict(frozen=True)

    quote_interval_seconds: float = 300.0
    initial_quote_delay_seconds: float = 2.0
    historical_wake_interval_seconds: float = 12 * 60 * 60
    staleness_threshold_seconds: float = 12 * 60 * 60
    daily_historical_budget: int = 2
    inter_call_delay_seconds: float = 2.0

    @field_validator(
        "quote_interval_seconds",
        "historical_wake_interval_seconds",
        "staleness_threshold_seconds",
    )
    @classmethod
    def interval_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("intervals must be > 0")
        return v

    @field_validator("initial_quote_delay_seconds", "inter_call_delay_seconds")
    @classmethod
    def delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("delays must be >= 0")
        return v

    @field_validator("daily_historical_budget")
    @classmethod
    def budget_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("daily_historical_budget must be >= 1")
        return v


class PeriodSettings(BaseModel):
    """Point caps and synthetic-data shape for one period."""

    model_config = ConfigDict(frozen=True)

    max_points: int
    synthetic_points: int
    volatility: float
    trend: float = 0.001

    @field_validator("max_points", "synthetic_points")
    @classmethod
    def count_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("point counts must be >= 1")
        return v

    @field_validator("volatility", "trend")
    @classmethod
    def fraction_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("volatility and trend must be >= 0")
        return v


class PeriodsConfig(BaseModel):
    """Per-period settings plus the period shown at startup."""

    model_config = ConfigDict(frozen=True)

    default_period: Period = Period.MONTH
    intraday: PeriodSettings = PeriodSettings(
        max_points=80, synthetic_points=26, volatility=0.005
    )
    week: PeriodSettings = PeriodSettings(
        max_points=50, synthetic_points=7, volatility=0.02
    )
    month: PeriodSettings = PeriodSettings(
        max_points=60, synthetic_points=30, volatility=0.02
    )

    @field_validator("default_period", mode="before")
    @classmethod
    def parse_period(cls, v):
        return Period.parse(v) if isinstance(v, str) else v

    def for_period(self, period: Period) -> PeriodSettings:
        return getattr(self, period.value)


class SourcesConfig(BaseModel):
    """Upstream provider selection, ordering and credentials."""

    model_config = ConfigDict(frozen=True)

    history_order: list[str] = list(KNOWN_HISTORY_SOURCES)
    quote_order: list[str] = list(KNOWN_QUOTE_SOURCES)
    request_timeout: float = 10.0
    requests_per_minute: int = 30
    alpha_vantage_api_key: str = "demo"
    polygon_api_key: str = "demo"
    finnhub_api_key: str = "demo"
    iex_token: str = "demo"

    @field_validator("history_order", "quote_order", mode="before")
    @classmethod
    def split_csv(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("history_order")
    @classmethod
    def known_history_sources(cls, v: list[str]) -> list[str]:
        return _check_known(v, KNOWN_HISTORY_SOURCES, "history_order")

    @field_validator("quote_order")
    @classmethod
    def known_quote_sources(cls, v: list[str]) -> list[str]:
        return _check_known(v, KNOWN_QUOTE_SOURCES, "quote_order")

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v

    @field_validator("requests_per_minute")
    @classmethod
    def rate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("requests_per_minute must be >= 1")
        return v


def _check_known(names: list[str], known: tuple[str, ...], field: str) -> list[str]:
    unknown = [n for n in names if n not in known]
    if unknown:
        raise ValueError(
            f"{field} contains unknown sources {unknown}; expected any of {list(known)}"
        )
    if len(set(names)) != len(names):
        raise ValueError(f"{field} must not repeat a source")
    return names


class SyntheticConfig(BaseModel):
    """Synthetic data generator settings."""

    model_config = ConfigDict(frozen=True)

    clamp_fraction: float = 0.15
    seed: int | None = None

    @field_validator("clamp_fraction")
    @classmethod
    def clamp_in_range(cls, v: float) -> float:
        if not 0 < v < 1:
            raise ValueError("clamp_fraction must be between 0 and 1")
        return v


class StorageConfig(BaseModel):
    """Cache store location."""

    model_config = ConfigDict(frozen=True)

    sqlite_path: str = "./data/price_monitor.db"


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000
    api_key: str | None = None
    run_scheduler: bool = True


class MonitorConfig(BaseModel):
    """Root configuration for the entire price-monitor system."""

    model_config = ConfigDict(frozen=True)

    instrument: InstrumentConfig = InstrumentConfig()
    schedule: ScheduleConfig = ScheduleConfig()
    periods: PeriodsConfig = PeriodsConfig()
    sources: SourcesConfig = SourcesConfig()
    synthetic: SyntheticConfig = SyntheticConfig()
    storage: StorageConfig = StorageConfig()
    api: APIConfig = APIConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "PRICE_MONITOR_",
) -> MonitorConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (PRICE_MONITOR_INSTRUMENT__SYMBOL, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        PRICE_MONITOR_SCHEDULE__DAILY_HISTORICAL_BUDGET=3
            ->  schedule.daily_historical_budget = 3
    """
    try:
        yaml_path = _resolve_config_path(config_path, env_prefix)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return MonitorConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None, env_prefix: str) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_var = f"{env_prefix}CONFIG"
    env_path = os.environ.get(env_var)
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from {env_var} not found: {env_path}",
                context={"field": env_var, "value": env_path},
            )
        return p

    default = Path("price-monitor.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int/float.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        # Skip the CONFIG env var itself
        if parts == ["config"]:
            continue

        cast_value = _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = dict(target.get(part) or {})
            target = target[part]
        target[parts[-1]] = cast_value

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
