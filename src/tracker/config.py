"""Configuration management for the wheel tracker CLI.

Settings come from a YAML file with environment variable overrides.
The server reads its own settings from ``src.server.config``.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from .aggregation import TimeRange
from .exceptions import TrackerError, ValidationError

logger = logging.getLogger(__name__)


class ConfigurationError(TrackerError):
    """Exception raised for configuration errors."""

    pass


class TrackerConfig:
    """Configuration for the wheel tracker CLI.

    Attributes:
        db_path: SQLite database file holding the ledger
        finnhub_api_key: Finnhub key for live prices (None disables them)
        price_ttl_seconds: How long a fetched price is reused
        price_timeout_seconds: Timeout for one price lookup
        default_range: Time range used by ``report`` when none is given
        verbose: Enable debug logging
        json_output: Output in JSON format
    """

    def __init__(
        self,
        db_path: str = "~/.wheel_tracker/tracker.db",
        finnhub_api_key: Optional[str] = None,
        price_ttl_seconds: int = 900,
        price_timeout_seconds: float = 5.0,
        default_range: str = "All",
        verbose: bool = False,
        json_output: bool = False,
    ):
        self.db_path = db_path
        self.finnhub_api_key = finnhub_api_key or None
        self.price_ttl_seconds = price_ttl_seconds
        self.price_timeout_seconds = price_timeout_seconds
        self.default_range = default_range
        self.verbose = verbose
        self.json_output = json_output

        self._validate()

    def _validate(self):
        """Validate configuration values.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not self.db_path:
            raise ConfigurationError("db_path is required")
        if self.price_ttl_seconds < 0:
            raise ConfigurationError("price_ttl_seconds cannot be negative")
        if self.price_timeout_seconds <= 0:
            raise ConfigurationError("price_timeout_seconds must be positive")
        try:
            TimeRange.parse(self.default_range)
        except ValidationError as e:
            raise ConfigurationError(f"default_range: {e}") from e

    @property
    def database_file(self) -> Path:
        return Path(self.db_path).expanduser()

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.database_file}"

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Default configuration file path (~/.wheel_tracker/config.yaml)."""
        return Path.home() / ".wheel_tracker" / "config.yaml"

    @classmethod
    def load_from_file(cls, path: Optional[Path] = None) -> "TrackerConfig":
        """Load configuration from YAML file.

        A missing file yields the defaults. Environment variables override
        file values.

        Args:
            path: Optional path to config file

        Returns:
            Configuration instance

        Raises:
            ConfigurationError: If the file is unreadable or invalid
        """
        config_path = path or cls.get_default_config_path()
        config_dict: dict[str, Any] = {}

        if config_path.exists():
            try:
                with open(config_path) as f:
                    file_config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e
            except OSError as e:
                raise ConfigurationError(f"Failed to load configuration file: {e}") from e
            if file_config:
                if not isinstance(file_config, dict):
                    raise ConfigurationError("Configuration file must contain a mapping")
                config_dict = file_config
            logger.debug(f"Loaded configuration from {config_path}")
        else:
            logger.debug(f"Configuration file not found at {config_path}, using defaults")

        return cls.merge_with_defaults(config_dict)

    @classmethod
    def merge_with_defaults(cls, config_dict: dict[str, Any]) -> "TrackerConfig":
        """Merge a config mapping with defaults and environment variables.

        Precedence (highest first): environment, file, defaults.
        """
        database = config_dict.get("database", {}) or {}
        prices = config_dict.get("prices", {}) or {}
        cli = config_dict.get("cli", {}) or {}

        db_path = os.getenv(
            "WHEEL_TRACKER_DB_PATH",
            database.get("path", "~/.wheel_tracker/tracker.db"),
        )
        finnhub_api_key = os.getenv("FINNHUB_API_KEY", prices.get("finnhub_api_key"))

        try:
            return cls(
                db_path=db_path,
                finnhub_api_key=finnhub_api_key,
                price_ttl_seconds=int(prices.get("ttl_seconds", 900)),
                price_timeout_seconds=float(prices.get("timeout_seconds", 5.0)),
                default_range=str(cli.get("default_range", "All")),
                verbose=bool(cli.get("verbose", False)),
                json_output=bool(cli.get("json_output", False)),
            )
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "database": {"path": self.db_path},
            "prices": {
                "finnhub_api_key": self.finnhub_api_key,
                "ttl_seconds": self.price_ttl_seconds,
                "timeout_seconds": self.price_timeout_seconds,
            },
            "cli": {
                "default_range": self.default_range,
                "verbose": self.verbose,
                "json_output": self.json_output,
            },
        }

    def save_to_file(self, path: Optional[Path] = None):
        """Save configuration to YAML file.

        Raises:
            ConfigurationError: If save fails
        """
        config_path = path or self.get_default_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(config_path, "w") as f:
                yaml.dump(self.to_dict(), f, default_flow_style=False)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}") from e
        logger.info(f"Configuration saved to {config_path}")

    def __repr__(self) -> str:
        return (
            f"TrackerConfig(db_path={self.db_path!r}, "
            f"finnhub={'set' if self.finnhub_api_key else 'unset'}, "
            f"price_ttl_seconds={self.price_ttl_seconds}, "
            f"default_range={self.default_range!r})"
        )


def load_config(config_path: Optional[Path] = None) -> TrackerConfig:
    """Load configuration from file or defaults."""
    return TrackerConfig.load_from_file(config_path)
