"""
Roll per-position P&L up by time bucket and by ticker.

All functions take the per-position results from ``PnLEngine`` and a
reference ``today`` so they stay deterministic under test.
"""

import calendar
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from .deposits import DepositSummary
from .exceptions import ValidationError
from .models import ZERO, present_money
from .pnl import PositionPL

logger = logging.getLogger(__name__)


class Granularity(Enum):
    """Bucket size for the P&L time series."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class TimeRange(Enum):
    """Reporting windows accepted by the dashboard."""

    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    ALL = "All"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TimeRange":
        """
        Parse a query parameter value; missing means ``All``.

        Raises:
            ValidationError: If the value is not a known range
        """
        if value is None or value == "":
            return cls.ALL
        if isinstance(value, TimeRange):
            return value
        try:
            return cls(value)
        except ValueError as e:
            valid = [r.value for r in cls]
            raise ValidationError(
                f"Invalid time range '{value}'. Valid: {valid}", field="timeRange"
            ) from e

    @property
    def months(self) -> Optional[int]:
        return _RANGE_MONTHS[self]

    @property
    def granularity(self) -> Granularity:
        if self in (TimeRange.ONE_MONTH, TimeRange.THREE_MONTHS):
            return Granularity.DAY
        if self in (TimeRange.SIX_MONTHS, TimeRange.ONE_YEAR):
            return Granularity.WEEK
        return Granularity.MONTH

    def cutoff(self, today: date) -> Optional[date]:
        """First date inside the window, or None for ``All``."""
        if self.months is None:
            return None
        return subtract_months(today, self.months)


_RANGE_MONTHS: dict[TimeRange, Optional[int]] = {
    TimeRange.ONE_MONTH: 1,
    TimeRange.THREE_MONTHS: 3,
    TimeRange.SIX_MONTHS: 6,
    TimeRange.ONE_YEAR: 12,
    TimeRange.ALL: None,
}


def subtract_months(day: date, months: int) -> date:
    """Same day ``months`` calendar months earlier, clamped to month end."""
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def bucket_start(day: date, granularity: Granularity) -> date:
    """Start of the bucket containing ``day`` (ISO weeks start Monday)."""
    if granularity == Granularity.WEEK:
        return day - timedelta(days=day.weekday())
    if granularity == Granularity.MONTH:
        return day.replace(day=1)
    return day


def next_bucket(day: date, granularity: Granularity) -> date:
    if granularity == Granularity.WEEK:
        return day + timedelta(days=7)
    if granularity == Granularity.MONTH:
        return subtract_months(day, -1)
    return day + timedelta(days=1)


def relevant_date(result: PositionPL) -> date:
    """Closed positions count on their close date, open ones on their latest event."""
    position = result.position
    if position.closed_at is not None:
        return position.closed_at
    return position.last_event_at


def filter_positions(
    results: Iterable[PositionPL], time_range: TimeRange, today: date
) -> list[PositionPL]:
    """Keep results whose relevant date falls within ``[cutoff, today]``."""
    cutoff = time_range.cutoff(today)
    return [
        r for r in results
        if (cutoff is None or relevant_date(r) >= cutoff) and relevant_date(r) <= today
    ]


@dataclass(frozen=True)
class PLPoint:
    """Cumulative total P&L at the start of a bucket."""

    date: date
    cumulative_total_pl: Decimal

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "cumulativeTotalPL": present_money(self.cumulative_total_pl),
        }


def pl_over_time(
    results: Iterable[PositionPL], time_range: TimeRange, today: date
) -> list[PLPoint]:
    """
    Cumulative P&L series over the window.

    Contributions are bucketed by day, week or month depending on the
    range. The series runs from the first bucket with data through the
    bucket containing ``today``, carrying the running total forward over
    empty buckets.

    Returns:
        Chronological points; empty when nothing falls in the window
    """
    granularity = time_range.granularity
    per_bucket: dict[date, Decimal] = defaultdict(lambda: ZERO)
    for result in filter_positions(results, time_range, today):
        per_bucket[bucket_start(relevant_date(result), granularity)] += result.total_pl

    if not per_bucket:
        return []

    points: list[PLPoint] = []
    running = ZERO
    current = min(per_bucket)
    last = bucket_start(today, granularity)
    while current <= last:
        running += per_bucket.get(current, ZERO)
        points.append(PLPoint(date=current, cumulative_total_pl=running))
        current = next_bucket(current, granularity)
    return points


@dataclass(frozen=True)
class TickerPL:
    """P&L components summed over a ticker's positions."""

    ticker: str
    realized_pl: Decimal = ZERO
    unrealized_pl: Decimal = ZERO
    premium_pl: Decimal = ZERO
    positions: int = 0
    stale: bool = False

    @property
    def total_pl(self) -> Decimal:
        return self.realized_pl + self.unrealized_pl + self.premium_pl

    def to_dict(self) -> dict:
        return {
            "ticker": self.ticker,
            "realizedPL": present_money(self.realized_pl),
            "unrealizedPL": present_money(self.unrealized_pl),
            "premiumPL": present_money(self.premium_pl),
            "totalPL": present_money(self.total_pl),
        }


def pl_by_ticker(results: Iterable[PositionPL]) -> list[TickerPL]:
    """
    Group results by ticker.

    Returns:
        Rows sorted by descending total P&L, ties broken by ticker
    """
    grouped: dict[str, list[PositionPL]] = defaultdict(list)
    for result in results:
        grouped[result.ticker].append(result)

    rows = [
        TickerPL(
            ticker=ticker,
            realized_pl=sum((r.realized_pl for r in items), ZERO),
            unrealized_pl=sum((r.unrealized_pl or ZERO for r in items), ZERO),
            premium_pl=sum((r.premium_pl for r in items), ZERO),
            positions=len(items),
            stale=any(r.stale for r in items),
        )
        for ticker, items in grouped.items()
    ]
    return sorted(rows, key=lambda row: (-row.total_pl, row.ticker))


@dataclass(frozen=True)
class WinRateData:
    """
    Win rate over closed positions.

    ``win_rate`` is 0 when nothing has closed; the raw counts tell "no
    data" apart from "0% win rate".
    """

    winners: int = 0
    losers: int = 0
    breakeven: int = 0
    closed_positions: int = 0

    @property
    def win_rate(self) -> Decimal:
        if self.closed_positions == 0:
            return ZERO
        return Decimal(self.winners) / Decimal(self.closed_positions)

    def to_dict(self) -> dict:
        return {
            "winRate": float(round(self.win_rate, 4)),
            "winners": self.winners,
            "losers": self.losers,
            "breakeven": self.breakeven,
            "closedPositions": self.closed_positions,
        }


def win_rate(results: Iterable[PositionPL]) -> WinRateData:
    """Winners are closed positions with total P&L above zero."""
    closed = [r for r in results if r.is_closed]
    return WinRateData(
        winners=sum(1 for r in closed if r.total_pl > 0),
        losers=sum(1 for r in closed if r.total_pl < 0),
        breakeven=sum(1 for r in closed if r.total_pl == 0),
        closed_positions=len(closed),
    )


@dataclass(frozen=True)
class DashboardMetrics:
    """Headline numbers for the dashboard."""

    total_pl: Decimal = ZERO
    realized_pl: Decimal = ZERO
    unrealized_pl: Decimal = ZERO
    premium_pl: Decimal = ZERO
    premium_collected: Decimal = ZERO
    open_positions: int = 0
    closed_positions: int = 0
    open_contracts: int = 0
    distinct_stock_count: int = 0
    assignment_rate: Decimal = ZERO
    win_rate: Decimal = ZERO
    cash_deposits: Decimal = ZERO
    stale_tickers: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "totalPL": present_money(self.total_pl),
            "realizedPL": present_money(self.realized_pl),
            "unrealizedPL": present_money(self.unrealized_pl),
            "premiumPL": present_money(self.premium_pl),
            "totalPremiumCollected": present_money(self.premium_collected),
            "openPositions": self.open_positions,
            "closedPositions": self.closed_positions,
            "openContracts": self.open_contracts,
            "distinctStockCount": self.distinct_stock_count,
            "assignmentRate": float(round(self.assignment_rate, 4)),
            "winRate": float(round(self.win_rate, 4)),
            "cashDeposits": present_money(self.cash_deposits),
            "staleTickers": list(self.stale_tickers),
        }


def summary_metrics(
    results: Iterable[PositionPL], deposits: Optional[DepositSummary] = None
) -> DashboardMetrics:
    """
    Compute headline metrics over already-filtered results.

    Args:
        results: Per-position P&L inside the reporting window
        deposits: Cash summary for context; does not affect P&L
    """
    results = list(results)
    positions = [r.position for r in results]
    open_results = [r for r in results if not r.is_closed]
    assigned = sum(1 for p in positions if p.was_assigned)

    return DashboardMetrics(
        total_pl=sum((r.total_pl for r in results), ZERO),
        realized_pl=sum((r.realized_pl for r in results), ZERO),
        unrealized_pl=sum((r.unrealized_pl or ZERO for r in results), ZERO),
        premium_pl=sum((r.premium_pl for r in results), ZERO),
        premium_collected=sum((p.premium_collected for p in positions), ZERO),
        open_positions=len(open_results),
        closed_positions=len(results) - len(open_results),
        open_contracts=sum(
            r.position.open_contracts for r in open_results
            if r.position.status.value.endswith("_OPEN")
        ),
        distinct_stock_count=len({p.ticker for p in positions if p.holds_shares}),
        assignment_rate=(
            Decimal(assigned) / Decimal(len(positions)) if positions else ZERO
        ),
        win_rate=win_rate(results).win_rate,
        cash_deposits=deposits.net_invested if deposits else ZERO,
        stale_tickers=tuple(sorted({r.ticker for r in results if r.stale})),
    )
