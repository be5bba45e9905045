"""
Market data package.

- base_client: HTTP client with retry and backoff
- finnhub_client: Finnhub quote client
"""

from src.market_data.base_client import BaseAPIClient
from src.market_data.finnhub_client import FinnhubAPIError, FinnhubConfig, FinnhubQuoteClient

__all__ = [
    "BaseAPIClient",
    "FinnhubAPIError",
    "FinnhubConfig",
    "FinnhubQuoteClient",
]
