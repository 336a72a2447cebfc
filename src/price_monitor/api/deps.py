"""Dependency injection for FastAPI routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse

from price_monitor.api.schemas import ErrorResponse
from price_monitor.core.config import MonitorConfig
from price_monitor.monitor.context import MonitorContext
from price_monitor.monitor.display import SnapshotDisplay


@dataclass
class AppState:
    """Shared application state, attached to app.state during lifespan."""

    config: MonitorConfig
    context: MonitorContext
    display: SnapshotDisplay


def get_app_state(request: Request) -> AppState:
    """Dependency: retrieve AppState from the request."""
    return request.app.state.app_state


def get_config(request: Request) -> MonitorConfig:
    """Dependency: retrieve config."""
    return request.app.state.app_state.config


def get_context(request: Request) -> MonitorContext:
    """Dependency: retrieve the monitor context."""
    return request.app.state.app_state.context


def get_display(request: Request) -> SnapshotDisplay:
    """Dependency: retrieve the in-memory display."""
    return request.app.state.app_state.display


EXEMPT_PATHS = {"/api/health"}


async def api_key_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware: validate X-API-Key header when authentication is enabled."""
    if request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    config = request.app.state.app_state.config
    if config.api.api_key:
        api_key = request.headers.get("X-API-Key")
        if api_key != config.api.api_key:
            return JSONResponse(
                status_code=401,
                content=ErrorResponse(
                    error="Unauthorized", detail="Invalid or missing API key"
                ).model_dump(),
            )
    return await call_next(request)
