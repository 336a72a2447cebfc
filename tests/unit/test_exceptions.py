"""Tests for price_monitor.core.exceptions."""

import pytest

from price_monitor.core.exceptions import (
    CacheError,
    ConfigError,
    PriceMonitorError,
    ProviderError,
    RateLimitError,
)


class TestExceptionHierarchy:
    """Verify the exception class hierarchy."""

    def test_config_is_subclass(self):
        assert issubclass(ConfigError, PriceMonitorError)

    def test_provider_is_subclass(self):
        assert issubclass(ProviderError, PriceMonitorError)

    def test_rate_limit_is_subclass_of_provider(self):
        assert issubclass(RateLimitError, ProviderError)
        assert issubclass(RateLimitError, PriceMonitorError)

    def test_cache_is_subclass(self):
        assert issubclass(CacheError, PriceMonitorError)

    def test_cache_is_not_a_provider_error(self):
        assert not issubclass(CacheError, ProviderError)


class TestExceptionContext:
    """Verify context dict behavior."""

    def test_context_preserved(self):
        exc = ProviderError(
            "yahoo HTTP 503",
            context={"source": "yahoo", "url": "https://query1.finance.yahoo.com"},
        )
        assert exc.context["source"] == "yahoo"
        assert exc.context["url"] == "https://query1.finance.yahoo.com"

    def test_default_context_is_empty_dict(self):
        exc = PriceMonitorError("test error")
        assert exc.context == {}

    def test_str_returns_message(self):
        exc = ConfigError("invalid field")
        assert str(exc) == "invalid field"

    def test_context_none_becomes_empty_dict(self):
        exc = CacheError("db fail", context=None)
        assert exc.context == {}

    def test_rate_limit_caught_as_provider_error(self):
        with pytest.raises(ProviderError):
            raise RateLimitError("too fast", context={"source": "alpha_vantage"})

    def test_exception_can_be_caught_as_base(self):
        with pytest.raises(PriceMonitorError):
            raise CacheError("locked", context={"operation": "put_series"})
