"""Tests for CLI configuration loading."""

from pathlib import Path

import pytest
import yaml

from src.tracker.config import ConfigurationError, TrackerConfig, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("WHEEL_TRACKER_DB_PATH", raising=False)
    monkeypatch.delenv("FINNHUB_API_KEY", raising=False)


class TestTrackerConfig:
    """Tests for TrackerConfig."""

    def test_defaults(self) -> None:
        """Defaults need no file or environment."""
        config = TrackerConfig()
        assert config.db_path == "~/.wheel_tracker/tracker.db"
        assert config.finnhub_api_key is None
        assert config.price_ttl_seconds == 900
        assert config.default_range == "All"
        assert config.database_url.startswith("sqlite:///")
        assert "~" not in config.database_url

    def test_invalid_range(self) -> None:
        """The default range must be a known label."""
        with pytest.raises(ConfigurationError, match="default_range"):
            TrackerConfig(default_range="2W")

    def test_invalid_timeout(self) -> None:
        """The price timeout must be positive."""
        with pytest.raises(ConfigurationError):
            TrackerConfig(price_timeout_seconds=0)

    def test_negative_ttl(self) -> None:
        """The cache TTL cannot be negative."""
        with pytest.raises(ConfigurationError):
            TrackerConfig(price_ttl_seconds=-5)


class TestLoadFromFile:
    """Tests for YAML loading."""

    def test_missing_file_uses_defaults(self, tmp_path) -> None:
        """A missing file is not an error."""
        config = load_config(tmp_path / "absent.yaml")
        assert config.price_ttl_seconds == 900

    def test_file_values(self, tmp_path) -> None:
        """Nested YAML sections map onto flat settings."""
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.dump({
                "database": {"path": str(tmp_path / "ledger.db")},
                "prices": {"finnhub_api_key": "file-key", "ttl_seconds": 60},
                "cli": {"default_range": "3M", "json_output": True},
            })
        )

        config = TrackerConfig.load_from_file(path)

        assert config.database_file == tmp_path / "ledger.db"
        assert config.finnhub_api_key == "file-key"
        assert config.price_ttl_seconds == 60
        assert config.default_range == "3M"
        assert config.json_output is True

    def test_env_overrides_file(self, tmp_path, monkeypatch) -> None:
        """Environment variables win over the file."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"prices": {"finnhub_api_key": "file-key"}}))
        monkeypatch.setenv("FINNHUB_API_KEY", "env-key")
        monkeypatch.setenv("WHEEL_TRACKER_DB_PATH", "/tmp/env.db")

        config = TrackerConfig.load_from_file(path)

        assert config.finnhub_api_key == "env-key"
        assert config.database_file == Path("/tmp/env.db")

    def test_invalid_yaml(self, tmp_path) -> None:
        """Malformed YAML raises ConfigurationError."""
        path = tmp_path / "config.yaml"
        path.write_text("prices: [unclosed")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            TrackerConfig.load_from_file(path)

    def test_not_a_mapping(self, tmp_path) -> None:
        """The top level must be a mapping."""
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            TrackerConfig.load_from_file(path)

    def test_bad_number(self, tmp_path) -> None:
        """Non-numeric values are reported as invalid configuration."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"prices": {"ttl_seconds": "soon"}}))
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            TrackerConfig.load_from_file(path)

    def test_save_and_reload(self, tmp_path) -> None:
        """A saved config loads back unchanged, creating parent directories."""
        path = tmp_path / "nested" / "config.yaml"
        TrackerConfig(price_ttl_seconds=120, default_range="1Y").save_to_file(path)

        reloaded = TrackerConfig.load_from_file(path)

        assert reloaded.price_ttl_seconds == 120
        assert reloaded.default_range == "1Y"
