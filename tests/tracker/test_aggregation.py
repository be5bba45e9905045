"""Tests for P&L roll-ups."""

from datetime import date
from decimal import Decimal

import pytest

from src.tracker.aggregation import (
    Granularity,
    TimeRange,
    bucket_start,
    filter_positions,
    next_bucket,
    pl_by_ticker,
    pl_over_time,
    subtract_months,
    summary_metrics,
    win_rate,
)
from src.tracker.deposits import DepositSummary
from src.tracker.exceptions import ValidationError
from src.tracker.lifecycle import fold_events
from src.tracker.state import EventType

TODAY = date(2025, 6, 15)


class TestTimeRange:
    """Tests for range parsing and cutoffs."""

    def test_parse(self) -> None:
        """Range labels parse case-sensitively; empty means All."""
        assert TimeRange.parse("3M") == TimeRange.THREE_MONTHS
        assert TimeRange.parse(None) == TimeRange.ALL
        assert TimeRange.parse("") == TimeRange.ALL

    @pytest.mark.parametrize("bad", ["2W", "all", "1m"])
    def test_invalid(self, bad) -> None:
        """Unknown labels are rejected against the timeRange field."""
        with pytest.raises(ValidationError) as exc_info:
            TimeRange.parse(bad)
        assert exc_info.value.field == "timeRange"

    def test_granularity(self) -> None:
        """Each range charts at its own bucket size."""
        assert TimeRange.ONE_MONTH.granularity == Granularity.DAY
        assert TimeRange.SIX_MONTHS.granularity == Granularity.WEEK
        assert TimeRange.ALL.granularity == Granularity.MONTH

    def test_cutoff(self) -> None:
        """Cutoffs count back from today; All has none."""
        assert TimeRange.ONE_YEAR.cutoff(TODAY) == date(2024, 6, 15)
        assert TimeRange.ALL.cutoff(TODAY) is None


class TestDateHelpers:
    """Tests for month arithmetic and chart buckets."""

    def test_subtract_months_clamps(self) -> None:
        """Month arithmetic clamps to the last day of shorter months."""
        assert subtract_months(date(2024, 3, 31), 1) == date(2024, 2, 29)
        assert subtract_months(date(2025, 3, 31), 1) == date(2025, 2, 28)
        assert subtract_months(date(2025, 1, 15), 1) == date(2024, 12, 15)

    def test_buckets(self) -> None:
        """Buckets start on the day, the Monday or the first of the month."""
        # 2025-06-15 is a Sunday
        assert bucket_start(TODAY, Granularity.WEEK) == date(2025, 6, 9)
        assert bucket_start(TODAY, Granularity.MONTH) == date(2025, 6, 1)
        assert bucket_start(TODAY, Granularity.DAY) == TODAY
        assert next_bucket(date(2025, 12, 1), Granularity.MONTH) == date(2026, 1, 1)


class TestFilterPositions:
    """Tests for selecting positions by time range."""

    def test_forty_day_old_close(self, closed_put, price_engine) -> None:
        """A close forty days back falls outside 1M but inside 3M and longer."""
        result = price_engine.compute(closed_put("p", date(2025, 5, 6)))

        assert filter_positions([result], TimeRange.ONE_MONTH, TODAY) == []
        assert filter_positions([result], TimeRange.THREE_MONTHS, TODAY) == [result]
        assert filter_positions([result], TimeRange.ONE_YEAR, TODAY) == [result]
        assert filter_positions([result], TimeRange.ALL, TODAY) == [result]

    def test_open_position_uses_last_event(self, make_event, price_engine) -> None:
        """Open positions are placed by their most recent event."""
        position = fold_events(
            [make_event(EventType.SELL_TO_OPEN_PUT, date(2025, 6, 1), premium="1.00")], "p"
        )
        result = price_engine.compute(position)
        assert filter_positions([result], TimeRange.ONE_MONTH, TODAY) == [result]


class TestPLOverTime:
    """Tests for the cumulative P&L series."""

    def test_gap_filled_cumulative(self, closed_put, price_engine) -> None:
        """Days without closes carry the running total forward."""
        results = [
            price_engine.compute(closed_put("a", date(2025, 6, 10), premium="1.20")),
            price_engine.compute(closed_put("b", date(2025, 6, 12), premium="1.00")),
        ]

        points = pl_over_time(results, TimeRange.ONE_MONTH, TODAY)

        assert [p.date for p in points] == [date(2025, 6, d) for d in range(10, 16)]
        assert [p.cumulative_total_pl for p in points] == [
            Decimal("120.00"), Decimal("120.00"), Decimal("220.00"),
            Decimal("220.00"), Decimal("220.00"), Decimal("220.00"),
        ]
        assert points[-1].to_dict() == {"date": "2025-06-15", "cumulativeTotalPL": 220.0}

    def test_monthly_for_all(self, closed_put, price_engine) -> None:
        """The All range buckets by month."""
        results = [price_engine.compute(closed_put("a", date(2025, 3, 20)))]
        points = pl_over_time(results, TimeRange.ALL, TODAY)
        assert [p.date for p in points] == [
            date(2025, 3, 1), date(2025, 4, 1), date(2025, 5, 1), date(2025, 6, 1)
        ]

    def test_empty(self, price_engine) -> None:
        """No positions, no points."""
        assert pl_over_time([], TimeRange.ALL, TODAY) == []


class TestByTicker:
    """Tests for the per-ticker breakdown."""

    def test_sorted_by_total_then_ticker(self, closed_put, price_engine) -> None:
        """Rows sort by total P&L descending, ticker breaking ties."""
        results = [
            price_engine.compute(closed_put("a", date(2025, 6, 1), ticker="MSFT", buyback="2.00")),
            price_engine.compute(closed_put("b", date(2025, 6, 2), ticker="F", premium="1.20")),
            price_engine.compute(closed_put("c", date(2025, 6, 3), ticker="AAPL", premium="1.20")),
        ]

        rows = pl_by_ticker(results)

        assert [r.ticker for r in rows] == ["AAPL", "F", "MSFT"]
        assert rows[2].total_pl == Decimal("-100.00")
        assert rows[0].to_dict()["premiumPL"] == 120.0

    def test_groups_positions(self, closed_put, price_engine) -> None:
        """Positions on one ticker share a row."""
        results = [
            price_engine.compute(closed_put("a", date(2025, 5, 1))),
            price_engine.compute(closed_put("b", date(2025, 6, 1))),
        ]
        (row,) = pl_by_ticker(results)
        assert row.positions == 2
        assert row.total_pl == Decimal("200.00")


class TestWinRate:
    """Tests for win rate over closed positions."""

    def test_three_of_five(self, closed_put, price_engine) -> None:
        """Three winners out of five closed positions is 60%."""
        positions = [
            closed_put("w1", date(2025, 6, 1)),
            closed_put("w2", date(2025, 6, 2)),
            closed_put("w3", date(2025, 6, 3)),
            closed_put("l1", date(2025, 6, 4), buyback="1.50"),
            closed_put("l2", date(2025, 6, 5), buyback="2.00"),
        ]

        data = win_rate(price_engine.compute(p) for p in positions)

        assert data.win_rate == Decimal("0.6")
        assert data.winners == 3
        assert data.losers == 2
        assert data.to_dict()["winRate"] == 0.6

    def test_no_closed_positions(self, make_event, price_engine) -> None:
        """Open positions do not count toward the win rate."""
        open_put = fold_events(
            [make_event(EventType.SELL_TO_OPEN_PUT, date(2025, 6, 1), premium="1.00")], "p"
        )
        data = win_rate([price_engine.compute(open_put)])
        assert data.win_rate == Decimal("0")
        assert data.closed_positions == 0

    def test_breakeven_is_not_a_win(self, closed_put, price_engine) -> None:
        """A zero P&L close is breakeven."""
        data = win_rate([price_engine.compute(closed_put("b", date(2025, 6, 1), buyback="1.00"))])
        assert data.breakeven == 1
        assert data.win_rate == Decimal("0")


class TestSummaryMetrics:
    """Tests for the headline metrics."""

    def test_mixed_book(self, called_away_events, closed_put, make_event, price_engine) -> None:
        """Closed, expired and held positions roll up into one set of metrics."""
        held = fold_events(
            [
                make_event(EventType.SELL_TO_OPEN_PUT, date(2025, 5, 1), ticker="F",
                           strike="10", premium="0.30", contracts=2),
                make_event(EventType.ASSIGNMENT, date(2025, 5, 16), ticker="F",
                           strike="10", contracts=2),
            ],
            "held",
        )
        results = [
            price_engine.compute(fold_events(called_away_events, "done")),
            price_engine.compute(closed_put("exp", date(2025, 6, 1))),
            price_engine.compute(held, None),
        ]
        deposits = DepositSummary(total_deposits=Decimal("10000"), total_withdrawals=Decimal("500"))

        metrics = summary_metrics(results, deposits)

        assert metrics.premium_pl == Decimal("360.00")
        assert metrics.realized_pl == Decimal("200")
        assert metrics.unrealized_pl == Decimal("0")
        assert metrics.total_pl == Decimal("560.00")
        assert metrics.open_positions == 1
        assert metrics.closed_positions == 2
        assert metrics.open_contracts == 0
        assert metrics.distinct_stock_count == 1
        assert metrics.cash_deposits == Decimal("9500")
        assert metrics.stale_tickers == ("F",)
        assert metrics.to_dict()["assignmentRate"] == pytest.approx(0.6667)
        assert metrics.to_dict()["winRate"] == 1.0
