"""Click-based CLI for price-monitor.

Thin wrapper around library modules. Every command builds a
``MonitorContext`` and delegates to the monitor service or scheduler.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone

import click
from rich.console import Console
from rich.table import Table

console = Console(stderr=True)

_PERIOD_CHOICES = ["intraday", "week", "month", "1d", "7d", "30d"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from price_monitor.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
    return ctx.obj["config"]


async def _create_context_async(config, display):
    """Build the monitor context with one display acting as both sinks."""
    from price_monitor.monitor import create_context

    return await create_context(config, display, display)


def _display_for(output_format: str, symbol: str):
    from price_monitor.monitor import ConsoleDisplay, SnapshotDisplay

    if output_format == "json":
        return SnapshotDisplay()
    return ConsoleDisplay(console=console, title=symbol)


def _format_millis(ms: int | None) -> str:
    if ms is None:
        return "never"
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="PRICE_MONITOR_CONFIG",
    default=None,
    help="Path to price-monitor.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output.",
)
@click.version_option(package_name="price-monitor")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Price Monitor: near-real-time quote and cached price history."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# quote
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def quote(ctx: click.Context, output_format: str) -> None:
    """Fetch the current quote (simulated if every source fails)."""
    async def _run():
        config = _load_config(ctx)
        display = _display_for(output_format, config.instrument.symbol)
        async with await _create_context_async(config, display) as mc:
            return await mc.monitor.refresh_quote()

    result = _run_async(_run())
    if output_format == "json":
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--period",
    "-p",
    type=click.Choice(_PERIOD_CHOICES, case_sensitive=False),
    default=None,
    help="Chart period. Default: periods.default_period from config.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def history(ctx: click.Context, period: str | None, output_format: str) -> None:
    """Show the price history for a period: cache first, then network."""
    from price_monitor.core import Period

    async def _run():
        config = _load_config(ctx)
        selected = Period.parse(period) if period else config.periods.default_period
        display = _display_for(output_format, config.instrument.symbol)
        async with await _create_context_async(config, display) as mc:
            return await mc.monitor.select_period(selected)

    series = _run_async(_run())
    if output_format == "json":
        click.echo(json.dumps(series.model_dump(mode="json"), indent=2))


# ---------------------------------------------------------------------------
# refresh
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Refresh even if cached data is still fresh.",
)
@click.pass_context
def refresh(ctx: click.Context, force: bool) -> None:
    """Run one historical refresh cycle over every period."""
    async def _run():
        from price_monitor.monitor import SnapshotDisplay

        config = _load_config(ctx)
        display = SnapshotDisplay()
        async with await _create_context_async(config, display) as mc:
            return await mc.scheduler.maybe_refresh_history(force=force)

    report = _run_async(_run())
    if report.skipped == "fresh":
        console.print("[green]Historical data is fresh.[/green] Use --force to refresh anyway.")
        return
    if report.skipped == "budget":
        console.print("[yellow]Daily refresh budget exhausted.[/yellow]")
        raise SystemExit(1)

    succeeded = ", ".join(p.value for p in report.succeeded) or "none"
    failed = ", ".join(p.value for p in report.failed) or "none"
    console.print(f"Updated: [green]{succeeded}[/green]  Failed: [red]{failed}[/red]")
    if report.unsaved:
        unsaved = ", ".join(p.value for p in report.unsaved)
        console.print(f"[yellow]Fetched but not cached:[/yellow] {unsaved}")
    if not report.succeeded:
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Show the chart and keep quote and history updated until interrupted."""
    async def _run():
        from price_monitor.monitor import ConsoleDisplay

        config = _load_config(ctx)
        display = ConsoleDisplay(console=console, title=config.instrument.symbol)
        async with await _create_context_async(config, display) as mc:
            await mc.monitor.initial_load()
            await mc.scheduler.run_forever()

    console.print("Monitoring... press Ctrl+C to stop.")
    try:
        _run_async(_run())
    except KeyboardInterrupt:
        console.print("Stopped.")


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show cache contents and refresh state."""
    async def _run():
        from price_monitor.cache import SqliteCacheStore
        from price_monitor.core import Period

        config = _load_config(ctx)
        store = SqliteCacheStore(config.storage.sqlite_path)
        await store.initialize()
        counts = await store.count_by_period()
        last_update = await store.get_last_update_time()

        threshold_ms = config.schedule.staleness_threshold_seconds * 1000
        now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
        stale = last_update is None or now_ms - last_update > threshold_ms

        table = Table(title=f"Price Monitor Status ({config.instrument.symbol})")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")

        table.add_row("Database path", store.path)
        table.add_row("Last historical update", _format_millis(last_update))
        table.add_row("Stale", "[red]yes[/red]" if stale else "[green]no[/green]")
        table.add_section()
        for period in Period:
            table.add_row(f"Cached points ({period.alias})", str(counts[period]))
        table.add_section()
        table.add_row("History sources", ", ".join(config.sources.history_order))
        table.add_row("Quote sources", ", ".join(config.sources.quote_order))

        console.print(table)

    _run_async(_run())


# ---------------------------------------------------------------------------
# clear-cache
# ---------------------------------------------------------------------------


@cli.command("clear-cache")
@click.confirmation_option(prompt="Delete all cached price history?")
@click.pass_context
def clear_cache(ctx: click.Context) -> None:
    """Delete every cached point and the last-update timestamp."""
    async def _run():
        from price_monitor.cache import SqliteCacheStore

        config = _load_config(ctx)
        store = SqliteCacheStore(config.storage.sqlite_path)
        await store.initialize()
        await store.clear()
        return store.path

    path = _run_async(_run())
    console.print(f"Cleared cache at [bold]{path}[/bold]")


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", default=None, help="Bind host. Default: api.host from config.")
@click.option("--port", type=int, default=None, help="Bind port. Default: api.port from config.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the REST API server."""
    import uvicorn

    from price_monitor.api.app import create_app

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    console.print(f"Starting price-monitor API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(create_app(config), host=host, port=port)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
