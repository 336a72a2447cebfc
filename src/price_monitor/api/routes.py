"""FastAPI route definitions for the price monitor API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

import price_monitor
from price_monitor.api.deps import get_context, get_display
from price_monitor.api.schemas import (
    HealthResponse,
    PointResponse,
    QuoteResponse,
    RefreshRequest,
    RefreshResponse,
    SeriesResponse,
    StatusResponse,
)
from price_monitor.core.exceptions import CacheError
from price_monitor.core.models import Period
from price_monitor.monitor.context import MonitorContext
from price_monitor.monitor.display import SnapshotDisplay, format_labels

router = APIRouter()


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(ctx: MonitorContext = Depends(get_context)):
    """Liveness plus cache reachability."""
    return HealthResponse(
        status="ok",
        version=price_monitor.__version__,
        symbol=ctx.monitor.symbol,
        cache_ok=await ctx.store.health_check(),
        scheduler_running=ctx.scheduler.running,
    )


# -- Quote --


@router.get("/quote", response_model=QuoteResponse)
async def get_quote(
    refresh: bool = Query(False, description="Run the quote chain now"),
    ctx: MonitorContext = Depends(get_context),
):
    """Latest quote; fetched on demand when none is held yet."""
    quote = ctx.monitor.last_quote
    if quote is None or refresh:
        quote = await ctx.monitor.refresh_quote()
    return QuoteResponse(
        symbol=ctx.monitor.symbol,
        price=quote.price,
        change=quote.change,
        change_percent=quote.change_percent,
        open=quote.open,
        high=quote.high,
        low=quote.low,
        volume=quote.volume,
        as_of=quote.as_of,
        source=quote.source,
        provenance=quote.provenance.value,
    )


# -- Series --


@router.get("/series/{period}", response_model=SeriesResponse)
async def get_series(period: str, ctx: MonitorContext = Depends(get_context)):
    """Select ``period`` (name or alias) and return what is displayed for it."""
    try:
        selected = Period.parse(period)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    series = await ctx.monitor.select_period(selected)
    labels = format_labels(series.points, series.period)
    return SeriesResponse(
        symbol=ctx.monitor.symbol,
        period=series.period.value,
        alias=series.period.alias,
        provenance=series.provenance.value,
        source=series.source,
        count=len(series),
        points=[
            PointResponse(timestamp=p.timestamp, price=p.price, date=p.date, label=label)
            for p, label in zip(series.points, labels)
        ],
    )


# -- Refresh --


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_history(
    request: RefreshRequest | None = None,
    ctx: MonitorContext = Depends(get_context),
):
    """Run a historical cycle subject to the staleness gate and daily budget."""
    force = request.force if request else False
    report = await ctx.scheduler.maybe_refresh_history(force=force)
    return RefreshResponse(
        ran=report.ran,
        skipped=report.skipped,
        succeeded=[p.value for p in report.succeeded],
        failed=[p.value for p in report.failed],
        unsaved=[p.value for p in report.unsaved],
        updated_at=report.updated_at,
    )


# -- Status --


@router.get("/status", response_model=StatusResponse)
async def get_status(
    ctx: MonitorContext = Depends(get_context),
    display: SnapshotDisplay = Depends(get_display),
):
    """Monitor state, cache contents and per-source failure counts."""
    try:
        counts = await ctx.store.count_by_period()
        last_update = await ctx.store.get_last_update_time()
    except CacheError:
        counts, last_update = {}, None

    snapshot = display.snapshot()
    return StatusResponse(
        symbol=ctx.monitor.symbol,
        selected_period=ctx.monitor.selected_period.value,
        status=snapshot["status"],
        status_message=snapshot["status_message"],
        error=snapshot["error"],
        anchor_price=ctx.monitor.anchor_price,
        last_real_price=ctx.monitor.last_real_price,
        last_update=last_update,
        stale=await ctx.scheduler.is_stale(),
        budget_remaining=await ctx.scheduler.budget_remaining(),
        cached_points={p.value: n for p, n in counts.items()},
        source_failures=dict(ctx.orchestrator.failures),
    )
