"""FastAPI dependencies shared by the v1 endpoints.

The price cache is process-wide so that the API and the background
refresh job read and warm the same quotes.
"""

import logging
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from src.server.config import settings
from src.server.database.session import get_db
from src.server.repositories.deposit import DepositRepository
from src.server.repositories.ledger import SqlLedgerStore
from src.tracker.dashboard import DashboardService
from src.tracker.pnl import PnLEngine
from src.tracker.pricing import CachingPriceProvider, FinnhubPriceProvider, StaticPriceProvider

logger = logging.getLogger(__name__)

_price_provider: Optional[CachingPriceProvider] = None


def build_price_provider(
    finnhub_api_key: Optional[str], ttl_seconds: float
) -> CachingPriceProvider:
    """Caching provider over Finnhub, or over an empty static table offline."""
    if finnhub_api_key:
        from src.market_data.finnhub_client import FinnhubConfig, FinnhubQuoteClient

        inner = FinnhubPriceProvider(FinnhubQuoteClient(FinnhubConfig(api_key=finnhub_api_key)))
        logger.info("Using Finnhub for share prices")
    else:
        inner = StaticPriceProvider()
        logger.warning("No Finnhub API key configured; unrealized P&L will be unavailable")
    return CachingPriceProvider(inner, ttl_seconds=ttl_seconds)


def get_price_provider() -> CachingPriceProvider:
    """Process-wide caching price provider."""
    global _price_provider
    if _price_provider is None:
        _price_provider = build_price_provider(
            settings.resolve_finnhub_key(), settings.price_ttl_seconds
        )
    return _price_provider


def get_ledger_store(db: Session = Depends(get_db)) -> SqlLedgerStore:
    return SqlLedgerStore(db)


def get_deposit_repository(db: Session = Depends(get_db)) -> DepositRepository:
    return DepositRepository(db)


def get_pnl_engine(
    provider: CachingPriceProvider = Depends(get_price_provider),
) -> PnLEngine:
    return PnLEngine(provider, timeout=settings.price_timeout_seconds)


def get_dashboard_service(
    store: SqlLedgerStore = Depends(get_ledger_store),
    deposits: DepositRepository = Depends(get_deposit_repository),
    engine: PnLEngine = Depends(get_pnl_engine),
) -> DashboardService:
    return DashboardService(
        store,
        engine,
        deposits_source=deposits.list_deposits,
        cache_seconds=settings.dashboard_cache_seconds,
    )
