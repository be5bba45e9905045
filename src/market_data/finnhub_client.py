"""
Finnhub quote client.

Fetches the latest trade price for a ticker from Finnhub's ``/quote``
endpoint. API documentation: https://finnhub.io/docs/api/quote
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import requests

from src.market_data.base_client import BaseAPIClient

logger = logging.getLogger(__name__)


class FinnhubAPIError(Exception):
    """Custom exception for Finnhub API errors."""

    pass


@dataclass
class FinnhubConfig:
    """
    Configuration for the Finnhub client.

    Attributes:
        api_key: Finnhub API key
        base_url: Base URL for the Finnhub API
        timeout: Request timeout in seconds
        max_retries: Retry attempts for transient failures
        retry_delay: Initial delay between retries (seconds)
    """

    api_key: str
    base_url: str = "https://finnhub.io/api/v1"
    timeout: float = 10
    max_retries: int = 2
    retry_delay: float = 0.5

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ValueError("API key cannot be empty")
        if self.timeout <= 0:
            raise ValueError("Timeout must be positive")
        if self.max_retries < 0:
            raise ValueError("Max retries cannot be negative")
        if self.retry_delay <= 0:
            raise ValueError("Retry delay must be positive")

    @classmethod
    def from_env(cls, api_key_var: str = "FINNHUB_API_KEY") -> "FinnhubConfig":
        """
        Load configuration from the environment.

        Raises:
            ValueError: If the API key variable is not set
        """
        api_key = os.getenv(api_key_var)
        if not api_key:
            raise ValueError(
                f"{api_key_var} environment variable not set. "
                f"Get your API key from https://finnhub.io/register"
            )
        return cls(api_key=api_key)


class FinnhubQuoteClient(BaseAPIClient):
    """Client for Finnhub real-time quotes."""

    BASE_URL = "https://finnhub.io/api/v1"

    def __init__(self, config: FinnhubConfig):
        super().__init__(
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            timeout=config.timeout,
        )
        self.config = config
        if config.base_url:
            self.BASE_URL = config.base_url

    def _handle_error_response(self, response: requests.Response) -> None:
        raise FinnhubAPIError(f"Finnhub server error ({response.status_code})")

    def get_quote(self, symbol: str) -> dict[str, Any]:
        """
        Fetch the latest quote for a symbol.

        Args:
            symbol: Stock ticker symbol (e.g., "AAPL")

        Returns:
            Dictionary with ``ticker``, ``price``, ``previous_close``,
            ``change`` and ``as_of`` (UTC datetime of the last trade)

        Raises:
            FinnhubAPIError: If the request fails or Finnhub has no data
            ValueError: If the symbol is invalid
        """
        if not symbol or not isinstance(symbol, str):
            raise ValueError(f"Invalid symbol: {symbol}")
        symbol = symbol.upper().strip()
        if not symbol.isalpha():
            raise ValueError(f"Symbol must be alphabetic: {symbol}")

        params = {"symbol": symbol, "token": self.config.api_key}
        logger.debug(f"Fetching quote for {symbol}")

        try:
            response = self.get("/quote", params=params)

            if response.status_code == 401:
                raise FinnhubAPIError("Authentication failed. Check your API key.")
            if response.status_code == 429:
                raise FinnhubAPIError(
                    "Rate limit exceeded. Finnhub free tier allows 60 calls/minute."
                )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise FinnhubAPIError(f"API request failed: {str(e)}") from e
        except ValueError as e:
            raise FinnhubAPIError(f"Invalid JSON response from API: {str(e)}") from e

        return self._parse_quote(symbol, data)

    @staticmethod
    def _parse_quote(symbol: str, data: Any) -> dict[str, Any]:
        if not isinstance(data, dict):
            raise FinnhubAPIError(f"Unexpected quote payload for {symbol}")

        price = data.get("c")
        timestamp = data.get("t")
        # Finnhub answers unknown symbols with an all-zero quote
        if not price or not timestamp:
            raise FinnhubAPIError(f"No quote data for {symbol}")

        return {
            "ticker": symbol,
            "price": price,
            "previous_close": data.get("pc"),
            "change": data.get("d"),
            "as_of": datetime.fromtimestamp(timestamp, tz=timezone.utc),
        }
