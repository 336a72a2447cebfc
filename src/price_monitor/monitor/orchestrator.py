"""Ordered fallback across price sources.

Sources are tried strictly in sequence; the first one that returns a
non-empty, valid result wins and the rest are never called. Results from
different sources are never merged.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from datetime import datetime

from price_monitor.core.models import Period, PeriodSeries, Quote, Symbol
from price_monitor.monitor.synthetic import SyntheticGenerator
from price_monitor.sources.base import HistorySource, QuoteSource

logger = logging.getLogger(__name__)


class FallbackOrchestrator:
    """Runs the history and quote chains.

    Parameters
    ----------
    history_sources : Sequence[HistorySource]
        Tried in order for historical series.
    quote_sources : Sequence[QuoteSource]
        Tried in order for the current quote.
    generator : SyntheticGenerator
        Produces the simulated quote when the quote chain is exhausted.
    """

    def __init__(
        self,
        history_sources: Sequence[HistorySource],
        quote_sources: Sequence[QuoteSource],
        generator: SyntheticGenerator,
    ) -> None:
        self._history = list(history_sources)
        self._quotes = list(quote_sources)
        self._generator = generator
        self.failures: Counter[str] = Counter()
        self.last_source: str | None = None

    @property
    def history_sources(self) -> list[HistorySource]:
        return list(self._history)

    @property
    def quote_sources(self) -> list[QuoteSource]:
        return list(self._quotes)

    async def fetch_series(self, symbol: Symbol, period: Period) -> PeriodSeries | None:
        """Return the first usable series, or None when every source failed."""
        for source in self._history:
            try:
                series = await source.fetch_series(symbol, period)
            except Exception:
                # Sources report failure with None; anything raised is a bug
                # in the adapter, logged and treated the same way.
                logger.exception("Source %s raised during fetch_series", source.name)
                series = None

            if series is not None and len(series) > 0 and series.period == period:
                logger.info(
                    "History for %s (%s) from %s: %d points",
                    symbol, period.value, source.name, len(series),
                )
                self.last_source = source.name
                return series

            self.failures[source.name] += 1

        logger.warning(
            "All %d history sources failed for %s (%s)",
            len(self._history), symbol, period.value,
        )
        return None

    async def fetch_quote(
        self, symbol: Symbol, anchor_price: float, now: datetime | None = None
    ) -> Quote:
        """Return the first real quote, or a simulated one around ``anchor_price``."""
        for source in self._quotes:
            try:
                quote = await source.fetch_quote(symbol)
            except Exception:
                logger.exception("Source %s raised during fetch_quote", source.name)
                quote = None

            if quote is not None:
                logger.info("Quote for %s from %s: %.2f", symbol, source.name, quote.price)
                self.last_source = source.name
                return quote

            self.failures[source.name] += 1

        logger.warning(
            "All %d quote sources failed for %s; simulating around %.2f",
            len(self._quotes), symbol, anchor_price,
        )
        return self._generator.quote(anchor_price, now=now)
