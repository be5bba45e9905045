"""
Dashboard facade: one consistent report per request.

``DashboardService`` takes a snapshot of positions, prices them, then runs
the independent sub-reports concurrently. Either every sub-report succeeds
and a complete report is returned, or ``AggregateFailure`` is raised.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Optional

from .aggregation import (
    DashboardMetrics,
    PLPoint,
    TickerPL,
    TimeRange,
    WinRateData,
    filter_positions,
    pl_by_ticker,
    pl_over_time,
    summary_metrics,
    win_rate,
)
from .deposits import DepositSummary, summarize_deposits
from .exceptions import AggregateFailure
from .ledger import LedgerStore, PositionFilter
from .models import Deposit
from .pnl import PnLEngine, PositionPL

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DashboardReport:
    """
    Complete dashboard payload for one time range.

    Attributes:
        time_range: Window the report covers
        metrics: Headline numbers
        pl_over_time: Cumulative P&L series
        pl_by_ticker: Per-ticker breakdown
        win_rate_data: Win/loss counts over closed positions
        as_of: UTC time the position snapshot was taken
        stale: True if any price used was a fallback or missing
        cache_max_age: Seconds the report may be cached by clients
    """

    time_range: TimeRange
    metrics: DashboardMetrics
    pl_over_time: list[PLPoint]
    pl_by_ticker: list[TickerPL]
    win_rate_data: WinRateData
    as_of: datetime
    stale: bool = False
    cache_max_age: int = 0
    stale_tickers: tuple[str, ...] = field(default_factory=tuple)

    def report_dict(self) -> dict:
        """camelCase wire form with money rounded to cents."""
        return {
            "timeRange": self.time_range.value,
            "metrics": self.metrics.to_dict(),
            "plOverTime": [p.to_dict() for p in self.pl_over_time],
            "plByTicker": [row.to_dict() for row in self.pl_by_ticker],
            "winRateData": self.win_rate_data.to_dict(),
            "asOf": self.as_of.isoformat(),
            "stale": self.stale,
            "staleTickers": list(self.stale_tickers),
        }


class DashboardService:
    """
    Builds dashboard reports from a ledger store and a P&L engine.

    Attributes:
        store: Source of position snapshots
        engine: P&L engine with its price provider
        deposits_source: Callable returning the deposit records, if any
        cache_seconds: Client cache lifetime stamped on each report
    """

    def __init__(
        self,
        store: LedgerStore,
        engine: PnLEngine,
        deposits_source: Optional[Callable[[], Iterable[Deposit]]] = None,
        cache_seconds: int = 60,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.engine = engine
        self.deposits_source = deposits_source
        self.cache_seconds = cache_seconds
        self._clock = clock

    async def build_report(self, time_range: TimeRange | str | None = None) -> DashboardReport:
        """
        Build the full report for a time range.

        Args:
            time_range: TimeRange or its string form; None means All

        Returns:
            DashboardReport

        Raises:
            ValidationError: If the time range is not recognized
            AggregateFailure: If any sub-report fails
        """
        time_range = TimeRange.parse(time_range)
        as_of = self._clock()
        today = as_of.date()

        try:
            # Sequential: both reads may share one database session
            positions = await asyncio.to_thread(self.store.list_positions)
            deposits = await asyncio.to_thread(self._deposit_summary)
            results = await self.engine.compute_all(positions)
        except Exception as e:
            logger.error(f"Dashboard snapshot failed: {e}", exc_info=True)
            raise AggregateFailure("Failed to build dashboard report") from e

        in_range = filter_positions(results, time_range, today)

        metrics, series, by_ticker, wins = await self._gather(
            asyncio.to_thread(summary_metrics, in_range, deposits),
            asyncio.to_thread(pl_over_time, results, time_range, today),
            asyncio.to_thread(pl_by_ticker, in_range),
            asyncio.to_thread(win_rate, in_range),
        )

        stale_tickers = tuple(sorted({r.ticker for r in in_range if r.stale}))
        logger.info(
            f"Built {time_range.value} dashboard over {len(in_range)}/{len(results)} positions"
        )
        return DashboardReport(
            time_range=time_range,
            metrics=metrics,
            pl_over_time=series,
            pl_by_ticker=by_ticker,
            win_rate_data=wins,
            as_of=as_of,
            stale=bool(stale_tickers),
            cache_max_age=self.cache_seconds,
            stale_tickers=stale_tickers,
        )

    async def _gather(self, *coros: Awaitable) -> list:
        """
        Run sub-reports concurrently; on the first failure cancel the rest.

        Raises:
            AggregateFailure: Wrapping the first failure
        """
        tasks = [asyncio.ensure_future(c) for c in coros]
        try:
            return await asyncio.gather(*tasks)
        except Exception as e:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.error(f"Dashboard sub-report failed: {e}", exc_info=True)
            raise AggregateFailure("Failed to build dashboard report") from e

    def _deposit_summary(self) -> Optional[DepositSummary]:
        if self.deposits_source is None:
            return None
        return summarize_deposits(self.deposits_source())

    async def position_overview(self, ticker: Optional[str] = None) -> list[PositionPL]:
        """
        Status and P&L of each position, for alerting and overview screens.

        Read-only; never modifies the store.

        Args:
            ticker: Restrict to one ticker
        """
        positions = await asyncio.to_thread(
            self.store.list_positions, PositionFilter(ticker=ticker)
        )
        return await self.engine.compute_all(positions)
