"""Unit tests for the Finnhub quote client."""

from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest
import requests

from src.market_data.finnhub_client import FinnhubAPIError, FinnhubConfig, FinnhubQuoteClient


def _response(status_code=200, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status_code} error"
        )
    return response


QUOTE = {"c": 191.5, "d": 1.25, "dp": 0.66, "pc": 190.25, "t": 1736182800}


class TestFinnhubConfig:
    """Test suite for FinnhubConfig."""

    def test_defaults(self):
        config = FinnhubConfig(api_key="key")
        assert config.base_url == "https://finnhub.io/api/v1"
        assert config.max_retries == 2

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"api_key": ""},
            {"api_key": "key", "timeout": 0},
            {"api_key": "key", "max_retries": -1},
            {"api_key": "key", "retry_delay": 0},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            FinnhubConfig(**kwargs)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("FINNHUB_API_KEY", "env-key")
        assert FinnhubConfig.from_env().api_key == "env-key"

    def test_from_env_missing(self, monkeypatch):
        monkeypatch.delenv("FINNHUB_API_KEY", raising=False)
        with pytest.raises(ValueError, match="FINNHUB_API_KEY"):
            FinnhubConfig.from_env()


class TestFinnhubQuoteClient:
    """Test suite for FinnhubQuoteClient."""

    @pytest.fixture
    def config(self):
        """Create test configuration."""
        return FinnhubConfig(api_key="test_api_key", timeout=5, max_retries=2, retry_delay=0.1)

    @pytest.fixture
    def client(self, config):
        """Create test client."""
        return FinnhubQuoteClient(config)

    def test_client_initialization(self, client, config):
        """Test client initialization."""
        assert client.config == config
        assert client.session.headers["Accept"] == "application/json"
        assert client.max_retries == 2

    def test_get_quote_success(self, client):
        """Test a successful quote lookup."""
        with patch.object(
            client.session, "request", return_value=_response(payload=QUOTE)
        ) as mock_request:
            quote = client.get_quote("  aapl ")

        assert quote["ticker"] == "AAPL"
        assert quote["price"] == 191.5
        assert quote["previous_close"] == 190.25
        assert quote["as_of"] == datetime.fromtimestamp(1736182800, tz=timezone.utc)

        args, kwargs = mock_request.call_args
        assert args == ("GET", "https://finnhub.io/api/v1/quote")
        assert kwargs["params"] == {"symbol": "AAPL", "token": "test_api_key"}
        assert kwargs["timeout"] == 5

    def test_invalid_symbol_empty(self, client):
        """Test that empty symbol raises ValueError."""
        with pytest.raises(ValueError, match="Invalid symbol"):
            client.get_quote("")

    def test_invalid_symbol_none(self, client):
        """Test that None symbol raises ValueError."""
        with pytest.raises(ValueError, match="Invalid symbol"):
            client.get_quote(None)

    def test_invalid_symbol_non_alpha(self, client):
        """Test that non-alphabetic symbol raises ValueError."""
        with pytest.raises(ValueError, match="Symbol must be alphabetic"):
            client.get_quote("F@#$")

    def test_unknown_symbol(self, client):
        """Test that Finnhub's all-zero quote is treated as no data."""
        payload = {"c": 0, "d": None, "dp": None, "pc": 0, "t": 0}
        with patch.object(client.session, "request", return_value=_response(payload=payload)):
            with pytest.raises(FinnhubAPIError, match="No quote data for ZZZZ"):
                client.get_quote("ZZZZ")

    def test_authentication_error(self, client):
        """Test that 401 maps to an authentication error."""
        with patch.object(client.session, "request", return_value=_response(401)):
            with pytest.raises(FinnhubAPIError, match="Authentication failed"):
                client.get_quote("AAPL")

    def test_rate_limit_error(self, client):
        """Test that 429 maps to a rate limit error without retrying."""
        with patch.object(
            client.session, "request", return_value=_response(429)
        ) as mock_request:
            with pytest.raises(FinnhubAPIError, match="Rate limit exceeded"):
                client.get_quote("AAPL")

        assert mock_request.call_count == 1

    def test_other_client_error(self, client):
        """Test that other 4xx responses are wrapped."""
        with patch.object(client.session, "request", return_value=_response(403)):
            with pytest.raises(FinnhubAPIError, match="API request failed"):
                client.get_quote("AAPL")

    def test_invalid_json(self, client):
        """Test that an unparsable body is wrapped."""
        response = _response()
        response.json.side_effect = ValueError("Expecting value")
        with patch.object(client.session, "request", return_value=response):
            with pytest.raises(FinnhubAPIError, match="Invalid JSON"):
                client.get_quote("AAPL")

    @patch("src.market_data.base_client.time.sleep")
    def test_retry_on_server_error(self, mock_sleep, client):
        """Test that 5xx responses are retried with backoff."""
        responses = [_response(503), _response(payload=QUOTE)]
        with patch.object(client.session, "request", side_effect=responses) as mock_request:
            quote = client.get_quote("AAPL")

        assert quote["price"] == 191.5
        assert mock_request.call_count == 2
        mock_sleep.assert_called_once_with(0.1)

    @patch("src.market_data.base_client.time.sleep")
    def test_server_error_after_retries(self, mock_sleep, client):
        """Test that persistent 5xx responses raise after max_retries."""
        with patch.object(
            client.session, "request", return_value=_response(500)
        ) as mock_request:
            with pytest.raises(FinnhubAPIError, match="server error"):
                client.get_quote("AAPL")

        assert mock_request.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.1, 0.2]

    @patch("src.market_data.base_client.time.sleep")
    def test_network_error_after_retries(self, mock_sleep, client):
        """Test that connection errors are retried then wrapped."""
        with patch.object(
            client.session,
            "request",
            side_effect=requests.exceptions.ConnectionError("connection refused"),
        ) as mock_request:
            with pytest.raises(FinnhubAPIError, match="API request failed"):
                client.get_quote("AAPL")

        assert mock_request.call_count == 3

    def test_context_manager_closes_session(self, config):
        """Test that the client closes its session on exit."""
        client = FinnhubQuoteClient(config)
        with patch.object(client.session, "close") as mock_close:
            with client:
                pass
        mock_close.assert_called_once()
