"""Custom exception hierarchy for price-monitor."""

from typing import Any


class PriceMonitorError(Exception):
    """Base exception for all price-monitor errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(PriceMonitorError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value (redacted for secrets)
    """


class ProviderError(PriceMonitorError):
    """An upstream price provider failed to deliver usable data.

    Covers network failures, non-success responses, non-JSON bodies,
    missing fields and provider-reported error payloads.

    Policy: caught at the adapter boundary and converted to "no result".
    Never propagated to the orchestrator.

    Context keys:
        source: str — the adapter name ("yahoo", "alpha_vantage", ...)
        url: str — the URL that was being fetched
    """


class RateLimitError(ProviderError):
    """Provider signalled a rate limit (HTTP 429 or an in-body notice).

    Policy: same as ProviderError. The next adapter in the chain is tried.

    Context keys:
        source: str — the adapter name
        notice: str | None — the provider's message, truncated
    """


class CacheError(PriceMonitorError):
    """Cache store operation failed or was refused.

    Policy: callers treat it as "no cached data available" and fall through
    to the network or synthetic path.

    Context keys:
        operation: str — "get_series", "put_series", "initialize", ...
        table: str — the table involved
    """
