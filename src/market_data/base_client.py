"""
Base HTTP client with retry and backoff.

Quote clients inherit from this class to share session handling, retry
on transient failures (timeouts, connection errors, 5xx) and logging.
"""

import logging
import time
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class BaseAPIClient:
    """
    Base class for market data API clients.

    Subclasses set ``BASE_URL`` and may override ``_handle_error_response``
    for provider-specific status codes.

    Attributes:
        max_retries: Retries after the first attempt for transient errors
        retry_delay: Base delay for exponential backoff (seconds)
        timeout: Per-request timeout (seconds)
    """

    BASE_URL: str = ""

    def __init__(
        self,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 10,
    ):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"{self.__class__.__name__}/1.0",
        })

        logger.debug(f"{self.__class__.__name__} initialized")

    def _get_full_url(self, endpoint: str) -> str:
        if not self.BASE_URL:
            raise ValueError(f"{self.__class__.__name__} must set BASE_URL class attribute")
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return f"{self.BASE_URL.rstrip('/')}{endpoint}"

    def _calculate_backoff_delay(self, retry_count: int) -> float:
        """Delay before retry ``retry_count`` (0-indexed)."""
        return self.retry_delay * (2 ** retry_count)

    def _request_with_retry(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        """
        Send a request, retrying transient failures with exponential backoff.

        Returns:
            The final HTTP response (4xx responses are returned, not retried)

        Raises:
            requests.exceptions.RequestException: If every attempt fails
        """
        attempt = 0
        while True:
            logger.debug(f"{method} {url} (attempt {attempt + 1})")
            try:
                response = self.session.request(
                    method, url, params=params, timeout=self.timeout
                )
            except requests.exceptions.RequestException as e:
                if attempt >= self.max_retries:
                    logger.error(f"Request failed after {self.max_retries} retries: {e}")
                    raise
                delay = self._calculate_backoff_delay(attempt)
                logger.warning(
                    f"Network error: {e}. Retrying in {delay}s "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                time.sleep(delay)
                attempt += 1
                continue

            if response.status_code >= 500 and attempt < self.max_retries:
                delay = self._calculate_backoff_delay(attempt)
                logger.warning(
                    f"Server error ({response.status_code}). "
                    f"Retrying in {delay}s (attempt {attempt + 1}/{self.max_retries})"
                )
                time.sleep(delay)
                attempt += 1
                continue

            if response.status_code >= 500:
                logger.error(
                    f"Server error ({response.status_code}) after {self.max_retries} retries"
                )
                self._handle_error_response(response)

            logger.debug(f"Response: {response.status_code}")
            return response

    def _handle_error_response(self, response: requests.Response) -> None:
        """Raise for an error response. Subclasses may map status codes."""
        response.raise_for_status()

    def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        """GET an endpoint relative to ``BASE_URL``."""
        return self._request_with_retry("GET", self._get_full_url(endpoint), params=params)

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
        logger.debug(f"{self.__class__.__name__} closed")

    def __enter__(self) -> "BaseAPIClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
