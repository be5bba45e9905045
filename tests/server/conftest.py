"""Pytest fixtures for FastAPI server tests.

This module provides test fixtures for database sessions, test clients,
a static price table and helpers for recording events.
"""

from datetime import date, timedelta
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from src.server.database.session import Base, get_db
from src.server.dependencies import get_price_provider
from src.server.main import app
from src.tracker.pricing import CachingPriceProvider, StaticPriceProvider

# Import all models to ensure they're registered with Base
from src.server.database.models import (  # noqa: F401
    DepositRecord,
    PositionRecord,
    TradeEventRecord,
)


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """Create a test database session.

    Creates an in-memory SQLite database for testing that is
    destroyed after each test function completes.

    Yields:
        SQLAlchemy session for testing
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # Keep connection alive for in-memory database
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def price_table() -> StaticPriceProvider:
    """Static prices served to the API instead of Finnhub."""
    return StaticPriceProvider({"F": "11", "AAPL": "160"})


@pytest.fixture(scope="function")
def client(test_db: Session, price_table: StaticPriceProvider) -> TestClient:
    """Create a test client with test database and static prices.

    Args:
        test_db: Test database session fixture
        price_table: Static price provider fixture

    Returns:
        FastAPI TestClient for making test requests
    """
    provider = CachingPriceProvider(price_table, ttl_seconds=0)

    def override_get_db():
        """Override database dependency with test database."""
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_price_provider] = lambda: provider

    with TestClient(app) as test_client:
        yield test_client

    test_db.rollback()
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client_no_db() -> TestClient:
    """Create a test client without database mocking.

    Useful for testing endpoints that don't need database access.
    """
    with TestClient(app) as test_client:
        yield test_client


def _days_ago(days: int) -> str:
    return (date.today() - timedelta(days=days)).isoformat()


@pytest.fixture
def days_ago():
    """ISO date ``days`` before today (negative for the future)."""
    return _days_ago


@pytest.fixture
def record_event(client: TestClient):
    """Post an event and return the response.

    Example:
        >>> response = record_event("AAPL", "SELL_TO_OPEN_PUT", 150, premium=2.0)
    """

    def _record(
        ticker: str,
        event_type: str,
        strike: float,
        premium: float = 0.0,
        contracts: int = 1,
        occurred_at: str = None,
        **extra,
    ):
        payload = {
            "ticker": ticker,
            "event_type": event_type,
            "strike": strike,
            "contracts": contracts,
            "premium_per_contract": premium,
            "occurred_at": occurred_at or _days_ago(0),
            **extra,
        }
        return client.post("/api/v1/events", json=payload)

    return _record
