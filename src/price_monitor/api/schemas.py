"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Health --


class HealthResponse(BaseModel):
    """System health check."""

    status: str
    version: str
    symbol: str
    cache_ok: bool
    scheduler_running: bool


# -- Quote --


class QuoteResponse(BaseModel):
    """Current quote with its provenance."""

    symbol: str
    price: float
    change: float
    change_percent: float
    open: float
    high: float
    low: float
    volume: int
    as_of: datetime
    source: str
    provenance: str


# -- Series --


class PointResponse(BaseModel):
    timestamp: int
    price: float
    date: str
    label: str


class SeriesResponse(BaseModel):
    """The series now displayed for a period."""

    symbol: str
    period: str
    alias: str
    provenance: str
    source: str
    count: int
    points: list[PointResponse]


# -- Refresh --


class RefreshRequest(BaseModel):
    """Run a historical cycle; ``force`` bypasses staleness but not the budget."""

    force: bool = Field(default=False)


class RefreshResponse(BaseModel):
    ran: bool
    skipped: str | None = None
    succeeded: list[str]
    failed: list[str]
    unsaved: list[str] = Field(default_factory=list)
    updated_at: int | None = None


# -- Status --


class StatusResponse(BaseModel):
    """Monitor state as last reported to the display."""

    symbol: str
    selected_period: str
    status: str | None
    status_message: str
    error: str | None
    anchor_price: float
    last_real_price: float | None
    last_update: int | None
    stale: bool
    budget_remaining: int
    cached_points: dict[str, int]
    source_failures: dict[str, int]
