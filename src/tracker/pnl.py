"""
P&L computation for wheel positions.

Three components are computed independently and summed without overlap:

- premium P&L: signed option cash flows (sells positive, buybacks negative)
- realized P&L: share leg, booked when shares are called away
- unrealized P&L: share leg marked to market while shares are held

A failed price lookup makes unrealized P&L unavailable (None) and flags
the result stale; the total then counts it as zero.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from .exceptions import PriceLookupError
from .models import ZERO, Position, PriceQuote, TradeEvent, present_money
from .pricing import PriceProvider

logger = logging.getLogger(__name__)


def premium_pl(events: Iterable[TradeEvent]) -> Decimal:
    """Exact signed sum of option-leg cash flows."""
    return sum((e.cash_flow for e in events), ZERO)


def realized_pl(position: Position) -> Decimal:
    """
    Share-leg P&L booked on disposal.

    Zero until shares bought on assignment are sold by call-away:
    ``(sale_price - cost_basis) * shares_at_sale``.
    """
    return position.realized_pl


def unrealized_pl(position: Position, price: Decimal) -> Decimal:
    """Mark-to-market of held shares; zero when no shares are held."""
    if not position.holds_shares or position.cost_basis_per_share is None:
        return ZERO
    return (price - position.cost_basis_per_share) * position.shares_held


@dataclass(frozen=True)
class PositionPL:
    """
    Per-position economics.

    Attributes:
        position: Position snapshot the numbers were computed from
        premium_pl: Net option premium
        realized_pl: Share-leg P&L from call-away
        unrealized_pl: Mark-to-market P&L, None if the price was unavailable
        market_price: Price used for the mark, if any
        stale: True if the price was a fallback or missing
    """

    position: Position
    premium_pl: Decimal
    realized_pl: Decimal
    unrealized_pl: Optional[Decimal]
    market_price: Optional[Decimal] = None
    stale: bool = False

    @property
    def total_pl(self) -> Decimal:
        return self.premium_pl + self.realized_pl + (self.unrealized_pl or ZERO)

    @property
    def ticker(self) -> str:
        return self.position.ticker

    @property
    def is_closed(self) -> bool:
        return self.position.is_terminal

    @property
    def unrealized_available(self) -> bool:
        return self.unrealized_pl is not None

    def to_dict(self) -> dict:
        """Presentation form: money rounded to cents, camelCase keys."""
        position = self.position
        return {
            "positionId": position.id,
            "ticker": position.ticker,
            "status": position.reporting_status.value,
            "version": position.version,
            "sharesHeld": position.shares_held,
            "costBasisPerShare": present_money(position.cost_basis_per_share),
            "openContracts": position.open_contracts,
            "openedAt": position.opened_at.isoformat(),
            "closedAt": position.closed_at.isoformat() if position.closed_at else None,
            "marketPrice": present_money(self.market_price),
            "premiumPL": present_money(self.premium_pl),
            "realizedPL": present_money(self.realized_pl),
            "unrealizedPL": present_money(self.unrealized_pl),
            "totalPL": present_money(self.total_pl),
            "stale": self.stale,
        }


class PnLEngine:
    """
    Compute P&L for positions using an injected price provider.

    Attributes:
        price_provider: Source of market prices for held shares
        timeout: Seconds to wait for a single price lookup
    """

    def __init__(self, price_provider: PriceProvider, timeout: float = 5.0):
        self.price_provider = price_provider
        self.timeout = timeout

    def compute(self, position: Position, quote: Optional[PriceQuote] = None) -> PositionPL:
        """
        Compute P&L for one position.

        Args:
            position: Position snapshot
            quote: Market quote for the ticker (only used while holding
                shares); None means the price is unavailable

        Returns:
            PositionPL for the position
        """
        premium = premium_pl(position.events)
        realized = realized_pl(position)

        if not position.holds_shares:
            return PositionPL(
                position=position,
                premium_pl=premium,
                realized_pl=realized,
                unrealized_pl=ZERO,
            )

        if quote is None:
            return PositionPL(
                position=position,
                premium_pl=premium,
                realized_pl=realized,
                unrealized_pl=None,
                stale=True,
            )

        return PositionPL(
            position=position,
            premium_pl=premium,
            realized_pl=realized,
            unrealized_pl=unrealized_pl(position, quote.price),
            market_price=quote.price,
            stale=quote.stale,
        )

    async def fetch_quote(self, ticker: str) -> Optional[PriceQuote]:
        """
        Fetch one quote with a timeout.

        On timeout the provider's cached fallback is used when it has one.
        Returns None when no price can be obtained.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.price_provider.fetch_price, ticker),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Price lookup for {ticker} timed out after {self.timeout}s")
            reason = "lookup timed out"
        except PriceLookupError as e:
            logger.warning(f"Price unavailable for {ticker}: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error fetching price for {ticker}: {e}", exc_info=True)
            reason = str(e)

        fallback = getattr(self.price_provider, "fallback", None)
        if fallback is None:
            return None
        try:
            return fallback(ticker, reason=reason)
        except PriceLookupError:
            return None

    async def fetch_quotes(self, tickers: Iterable[str]) -> dict[str, Optional[PriceQuote]]:
        """Fetch quotes for several tickers concurrently."""
        unique = sorted(set(tickers))
        quotes = await asyncio.gather(*(self.fetch_quote(t) for t in unique))
        return dict(zip(unique, quotes))

    async def compute_all(self, positions: Iterable[Position]) -> list[PositionPL]:
        """
        Compute P&L for many positions, one price lookup per held ticker.

        Args:
            positions: Position snapshots

        Returns:
            PositionPL per position, in input order
        """
        positions = list(positions)
        held = [p.ticker for p in positions if p.holds_shares]
        quotes = await self.fetch_quotes(held) if held else {}

        results = [self.compute(p, quotes.get(p.ticker)) for p in positions]
        stale = sorted({r.ticker for r in results if r.stale})
        if stale:
            logger.warning(f"Stale or missing prices for: {', '.join(stale)}")
        return results
