"""Configuration management for the FastAPI server.

Settings are read from environment variables prefixed ``WHEEL_TRACKER_``
with development defaults.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application configuration settings.

    Attributes:
        app_name: Application name
        version: Application version
        debug: Debug mode flag
        database_path: SQLite database file
        cors_origins: List of allowed CORS origins
        host: Server host address
        port: Server port number
        finnhub_api_key: Finnhub key for live quotes; unset disables them
        price_ttl_seconds: Lifetime of a cached price
        price_timeout_seconds: Timeout for one price lookup
        dashboard_cache_seconds: max-age sent with dashboard responses
        scheduler_enabled: Run the background price refresh job
        price_refresh_minutes: Interval of the price refresh job
    """

    app_name: str = "Wheel Tracker API"
    version: str = "1.0.0"
    debug: bool = False

    # Database configuration
    database_path: str = "~/.wheel_tracker/tracker.db"

    # CORS configuration - allow local development origins
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000

    # Prices
    finnhub_api_key: Optional[str] = None
    price_ttl_seconds: int = 900
    price_timeout_seconds: float = 5.0

    dashboard_cache_seconds: int = 60

    # Scheduler
    scheduler_enabled: bool = False
    price_refresh_minutes: int = 15

    class Config:
        """Pydantic configuration."""
        env_prefix = "WHEEL_TRACKER_"
        case_sensitive = False

    @property
    def database_url(self) -> str:
        """SQLAlchemy database URL."""
        expanded_path = os.path.expanduser(self.database_path)
        return f"sqlite:///{expanded_path}"

    def get_database_path(self) -> Path:
        """Expanded database path."""
        return Path(os.path.expanduser(self.database_path))

    def resolve_finnhub_key(self) -> Optional[str]:
        """Finnhub key from settings, falling back to ``FINNHUB_API_KEY``."""
        return self.finnhub_api_key or os.environ.get("FINNHUB_API_KEY") or None


# Global settings instance
settings = Settings()
