"""
Price providers for marking share positions to market.

The P&L engine never reads prices from module-level state. It is handed a
``PriceProvider``; ``CachingPriceProvider`` wraps any provider with a TTL
cache and a last-known-price fallback for when the upstream source fails.
"""

import logging
import threading
import time
import warnings
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Protocol

from .exceptions import PriceLookupError, StaleDataWarning
from .models import Number, PriceQuote, normalize_ticker, to_decimal

logger = logging.getLogger(__name__)


class PriceProvider(Protocol):
    """Given a ticker (and optional date), return a price or fail."""

    def fetch_price(self, ticker: str, as_of: Optional[datetime] = None) -> PriceQuote:
        ...


class StaticPriceProvider:
    """
    Dict-backed provider for tests and offline use.

    Tickers missing from the table raise PriceLookupError, like an
    upstream source that has no data for the symbol.
    """

    def __init__(self, prices: Optional[dict[str, Number]] = None, source: str = "static"):
        self.prices = {
            normalize_ticker(t): to_decimal(p, "price") for t, p in (prices or {}).items()
        }
        self.source = source
        self.calls = 0

    def set_price(self, ticker: str, price: Number) -> None:
        self.prices[normalize_ticker(ticker)] = to_decimal(price, "price")

    def remove_price(self, ticker: str) -> None:
        self.prices.pop(normalize_ticker(ticker), None)

    def fetch_price(self, ticker: str, as_of: Optional[datetime] = None) -> PriceQuote:
        self.calls += 1
        ticker = normalize_ticker(ticker)
        if ticker not in self.prices:
            raise PriceLookupError(f"No price data found for {ticker}")
        return PriceQuote(
            ticker=ticker,
            price=self.prices[ticker],
            as_of=as_of or datetime.now(timezone.utc),
            source=self.source,
        )


class FinnhubPriceProvider:
    """Adapts the Finnhub quote client to the PriceProvider contract."""

    def __init__(self, client):
        """
        Args:
            client: src.market_data.FinnhubQuoteClient instance
        """
        self.client = client

    def fetch_price(self, ticker: str, as_of: Optional[datetime] = None) -> PriceQuote:
        from src.market_data.finnhub_client import FinnhubAPIError

        ticker = normalize_ticker(ticker)
        try:
            quote = self.client.get_quote(ticker)
        except (FinnhubAPIError, ValueError) as e:
            raise PriceLookupError(f"Quote lookup failed for {ticker}: {e}") from e

        return PriceQuote(
            ticker=ticker,
            price=to_decimal(quote["price"], "price"),
            as_of=quote["as_of"],
            source="finnhub",
        )


@dataclass
class _CachedQuote:
    quote: PriceQuote
    fetched_at: float

    def is_valid(self, now: float, ttl_seconds: float) -> bool:
        return (now - self.fetched_at) < ttl_seconds


class CachingPriceProvider:
    """
    TTL cache with last-known-price fallback.

    Fresh entries are served without calling the inner provider. When the
    inner provider fails, the most recent quote ever seen for the ticker is
    returned flagged ``stale``; only a ticker that was never priced raises.

    Attributes:
        inner: Provider that does the real lookup
        ttl_seconds: Age after which a cached quote is refreshed
    """

    def __init__(
        self,
        inner: PriceProvider,
        ttl_seconds: float = 900,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds cannot be negative")
        self.inner = inner
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: dict[str, _CachedQuote] = {}
        self._lock = threading.Lock()
        logger.debug(f"CachingPriceProvider initialized with ttl={ttl_seconds}s")

    def fetch_price(self, ticker: str, as_of: Optional[datetime] = None) -> PriceQuote:
        """
        Get a quote, preferring a fresh cache entry.

        Raises:
            PriceLookupError: If the lookup failed and no earlier quote exists
        """
        ticker = normalize_ticker(ticker)
        now = self._clock()

        with self._lock:
            cached = self._cache.get(ticker)
        if cached and cached.is_valid(now, self.ttl_seconds):
            logger.debug(f"Price cache HIT for {ticker}")
            return cached.quote

        try:
            quote = self.inner.fetch_price(ticker, as_of)
        except PriceLookupError as e:
            return self.fallback(ticker, reason=str(e))

        with self._lock:
            self._cache[ticker] = _CachedQuote(quote=quote, fetched_at=self._clock())
        logger.debug(f"Cached price for {ticker}: {quote.price}")
        return quote

    def fallback(self, ticker: str, reason: str) -> PriceQuote:
        """
        Last known quote for a ticker, flagged stale.

        Raises:
            PriceLookupError: If the ticker has never been priced
        """
        ticker = normalize_ticker(ticker)
        with self._lock:
            cached = self._cache.get(ticker)
        if cached is None:
            raise PriceLookupError(f"No price available for {ticker}: {reason}")

        message = (
            f"Using last known price for {ticker} from "
            f"{cached.quote.as_of.isoformat()} ({reason})"
        )
        logger.warning(message)
        warnings.warn(message, StaleDataWarning, stacklevel=2)
        return cached.quote.as_stale()

    def warm(self, tickers: Iterable[str]) -> dict[str, bool]:
        """
        Refresh quotes for a batch of tickers, ignoring the TTL.

        Returns:
            Mapping of ticker to whether a fresh quote was obtained
        """
        results: dict[str, bool] = {}
        for ticker in tickers:
            ticker = normalize_ticker(ticker)
            try:
                quote = self.inner.fetch_price(ticker)
            except PriceLookupError as e:
                logger.warning(f"Price refresh failed for {ticker}: {e}")
                results[ticker] = False
                continue
            with self._lock:
                self._cache[ticker] = _CachedQuote(quote=quote, fetched_at=self._clock())
            results[ticker] = True
        logger.info(
            f"Refreshed {sum(results.values())}/{len(results)} prices"
        )
        return results

    def clear(self) -> None:
        """Clear all cached quotes."""
        with self._lock:
            self._cache.clear()
        logger.debug("Price cache cleared")

    def cached_tickers(self) -> list[str]:
        with self._lock:
            return sorted(self._cache)
