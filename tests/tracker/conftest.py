"""Shared fixtures for tracker tests."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from src.tracker.lifecycle import fold_events
from src.tracker.models import TradeEvent
from src.tracker.pnl import PnLEngine
from src.tracker.pricing import StaticPriceProvider
from src.tracker.state import EventType


@pytest.fixture
def make_event():
    """Factory for trade events with sensible defaults."""

    def _make(
        event_type: EventType,
        occurred_at: date,
        strike="150",
        premium="0",
        contracts: int = 1,
        ticker: str = "AAPL",
        **kwargs,
    ) -> TradeEvent:
        return TradeEvent(
            ticker=ticker,
            event_type=event_type,
            strike=Decimal(strike),
            contracts=contracts,
            occurred_at=occurred_at,
            premium_per_contract=Decimal(premium),
            **kwargs,
        )

    return _make


@pytest.fixture
def called_away_events(make_event):
    """Full wheel: put sold, assigned at 150, call sold, called away at 152."""
    return [
        make_event(EventType.SELL_TO_OPEN_PUT, date(2025, 1, 6), strike="150", premium="1.00"),
        make_event(EventType.ASSIGNMENT, date(2025, 1, 17), strike="150"),
        make_event(EventType.SELL_TO_OPEN_CALL, date(2025, 1, 21), strike="152", premium="1.00"),
        make_event(EventType.CALLED_AWAY, date(2025, 1, 31), strike="152"),
    ]


@pytest.fixture
def expired_put_events(make_event):
    """Put sold for 1.20 that expired worthless."""
    return [
        make_event(EventType.SELL_TO_OPEN_PUT, date(2025, 2, 3), strike="100", premium="1.20"),
        make_event(EventType.EXPIRED_WORTHLESS, date(2025, 2, 21), strike="100"),
    ]


@pytest.fixture
def closed_put(make_event):
    """Factory for a put cycle closed on a given date.

    Without ``buyback`` the put expires worthless; with it the put is
    bought back at that price per share.
    """

    def _make(position_id: str, closed_on: date, premium="1.00", buyback=None, ticker="AAPL"):
        opened_on = closed_on - timedelta(days=7)
        closing = (
            make_event(EventType.BUY_TO_CLOSE_PUT, closed_on, premium=buyback, ticker=ticker)
            if buyback
            else make_event(EventType.EXPIRED_WORTHLESS, closed_on, ticker=ticker)
        )
        return fold_events(
            [
                make_event(EventType.SELL_TO_OPEN_PUT, opened_on, premium=premium, ticker=ticker),
                closing,
            ],
            position_id,
        )

    return _make


@pytest.fixture
def price_engine():
    """P&L engine over a static price table."""
    return PnLEngine(StaticPriceProvider({"AAPL": "160"}))
