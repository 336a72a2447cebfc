"""Pydantic data models — the system's type contracts."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator

# --- Type Aliases ---

Symbol = str
SourceName = str
EpochMillis = int

SYNTHETIC_SOURCE: SourceName = "synthetic"

# --- Enumerations ---


class Period(StrEnum):
    """Chart time windows."""

    INTRADAY = "intraday"
    WEEK = "week"
    MONTH = "month"

    @property
    def alias(self) -> str:
        """Short form used by the chart buttons ("1d", "7d", "30d")."""
        return _PERIOD_ALIASES[self]

    @property
    def lookback(self) -> timedelta:
        """Nominal duration of the window."""
        return _PERIOD_LOOKBACK[self]

    @property
    def is_intraday(self) -> bool:
        return self is Period.INTRADAY

    @classmethod
    def parse(cls, value: str | Period) -> Period:
        """Accept either the period name or its short alias."""
        if isinstance(value, Period):
            return value
        text = value.strip().lower()
        for period, alias in _PERIOD_ALIASES.items():
            if text in (period.value, alias):
                return period
        raise ValueError(f"Unknown period: {value!r}")


_PERIOD_ALIASES: dict[Period, str] = {
    Period.INTRADAY: "1d",
    Period.WEEK: "7d",
    Period.MONTH: "30d",
}

_PERIOD_LOOKBACK: dict[Period, timedelta] = {
    Period.INTRADAY: timedelta(days=1),
    Period.WEEK: timedelta(days=7),
    Period.MONTH: timedelta(days=30),
}


class Provenance(StrEnum):
    """Where a displayed value came from."""

    REAL = "real"
    CACHED = "cached"
    SIMULATED = "simulated"


class StatusKind(StrEnum):
    """Status indicator states reported to the display."""

    REAL = "real"
    SIMULATED = "simulated"
    ERROR = "error"


# --- Price Models ---


class PricePoint(BaseModel):
    """A single point on the price chart."""

    model_config = ConfigDict(frozen=True)

    timestamp: EpochMillis
    price: float
    date: str
    source: SourceName = "unknown"

    @field_validator("timestamp")
    @classmethod
    def timestamp_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"timestamp must be >= 0, got {v}")
        return v

    @field_validator("price")
    @classmethod
    def price_positive(cls, v: float) -> float:
        if not v > 0:
            raise ValueError(f"price must be > 0, got {v}")
        return v

    @property
    def as_datetime(self) -> datetime:
        """Timestamp as a timezone-aware UTC datetime."""
        return datetime_from_millis(self.timestamp)

    @classmethod
    def at(cls, timestamp: EpochMillis, price: float, source: SourceName) -> PricePoint:
        """Build a point, deriving the ISO date string from the timestamp."""
        return cls(
            timestamp=timestamp,
            price=price,
            date=datetime_from_millis(timestamp).isoformat(),
            source=source,
        )


class PeriodSeries(BaseModel):
    """An ordered price series for one period.

    Points are normalized on construction: sorted ascending by timestamp,
    and for duplicate timestamps the last occurrence wins.
    """

    model_config = ConfigDict(frozen=True)

    period: Period
    points: list[PricePoint]
    provenance: Provenance = Provenance.REAL
    source: SourceName = "unknown"

    @field_validator("points")
    @classmethod
    def sorted_unique(cls, v: list[PricePoint]) -> list[PricePoint]:
        by_ts = {p.timestamp: p for p in v}
        return [by_ts[ts] for ts in sorted(by_ts)]

    @property
    def prices(self) -> list[float]:
        return [p.price for p in self.points]

    @property
    def last_price(self) -> float | None:
        return self.points[-1].price if self.points else None

    def __len__(self) -> int:
        return len(self.points)


class Quote(BaseModel):
    """Current-price snapshot. Transient, never persisted."""

    model_config = ConfigDict(frozen=True)

    price: float
    change: float
    change_percent: float
    open: float
    high: float
    low: float
    volume: int
    as_of: datetime
    source: SourceName = "unknown"
    provenance: Provenance = Provenance.REAL

    @field_validator("price")
    @classmethod
    def price_positive(cls, v: float) -> float:
        if not v > 0:
            raise ValueError(f"price must be > 0, got {v}")
        return v

    @field_validator("volume")
    @classmethod
    def volume_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"volume must be >= 0, got {v}")
        return v


# --- Time helpers ---


def datetime_from_millis(ms: EpochMillis) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def millis_from_datetime(dt: datetime) -> EpochMillis:
    return int(dt.timestamp() * 1000)
