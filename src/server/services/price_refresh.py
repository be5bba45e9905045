"""Background job that keeps the share price cache warm."""

import logging
from typing import Optional

from sqlalchemy.orm import sessionmaker

from src.server.database.session import get_session_factory
from src.server.dependencies import get_price_provider
from src.server.repositories.ledger import SqlLedgerStore
from src.tracker.pricing import CachingPriceProvider

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "refresh_prices"


def refresh_prices(
    session_factory: Optional[sessionmaker] = None,
    provider: Optional[CachingPriceProvider] = None,
) -> dict[str, bool]:
    """Refresh cached prices for every ticker with shares held.

    Args:
        session_factory: Session factory (defaults to the server's)
        provider: Price cache to warm (defaults to the shared one)

    Returns:
        Mapping of ticker to whether a fresh quote was obtained
    """
    session_factory = session_factory or get_session_factory()
    provider = provider or get_price_provider()

    db = session_factory()
    try:
        tickers = SqlLedgerStore(db).held_tickers()
    finally:
        db.close()

    if not tickers:
        logger.debug("No held shares; skipping price refresh")
        return {}

    logger.info(f"Refreshing prices for {len(tickers)} ticker(s)")
    return provider.warm(tickers)
