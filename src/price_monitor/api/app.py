"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from price_monitor.api.deps import AppState, api_key_middleware
from price_monitor.api.routes import router
from price_monitor.api.schemas import ErrorResponse
from price_monitor.core.config import MonitorConfig, load_config
from price_monitor.core.exceptions import CacheError, ConfigError, PriceMonitorError
from price_monitor.monitor.context import create_context
from price_monitor.monitor.display import SnapshotDisplay


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the monitor, show the initial series, and start the timers."""
    config = app.state._pending_config or load_config()
    display = SnapshotDisplay()
    context = await create_context(config, display, display)
    await context.monitor.initial_load()
    if config.api.run_scheduler:
        context.scheduler.start()

    app.state.app_state = AppState(config=config, context=context, display=display)

    yield

    await context.aclose()


def create_app(config: MonitorConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    import price_monitor

    app = FastAPI(
        title="Price Monitor API",
        description="Near-real-time price and cached history with source fallback",
        version=price_monitor.__version__,
        lifespan=lifespan,
    )

    # Stash config so lifespan can retrieve it
    app.state._pending_config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Checks api.api_key from the resolved config on every request
    app.middleware("http")(api_key_middleware)

    app.include_router(router, prefix="/api")

    @app.exception_handler(PriceMonitorError)
    async def monitor_exception_handler(request: Request, exc: PriceMonitorError):
        status_map = {
            ConfigError: 400,
            CacheError: 503,
        }
        status = status_map.get(type(exc), 500)
        return JSONResponse(
            status_code=status,
            content=ErrorResponse(error=type(exc).__name__, detail=str(exc)).model_dump(),
        )

    return app
