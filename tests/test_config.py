"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from eventchat.config import Config, load_config


class TestLoadConfig:
    """Test YAML configuration loading."""

    def test_defaults(self):
        """Test an empty config uses the documented policy."""
        config = Config()

        assert config.rate_limit.window_seconds == 60
        assert config.rate_limit.max_per_window == 20
        assert config.trending.interval_minutes == 60
        assert config.trending.going_weight == 10
        assert config.notifications.title == "New Message"
        assert config.notifications.preview_length == 50
        assert config.notifications.push_url is None

    def test_loads_yaml_with_env_expansion(self, tmp_path, monkeypatch):
        """Test ${VAR} values are read from the environment."""
        monkeypatch.setenv("TEST_JWT_SECRET", "s3cret")
        path = tmp_path / "config.yaml"
        path.write_text(
            "database_path: /tmp/x.db\n"
            "rate_limit:\n"
            "  max_per_window: 5\n"
            "server:\n"
            "  jwt_secret: ${TEST_JWT_SECRET}\n"
        )

        config = load_config(path)

        assert config.database_path == "/tmp/x.db"
        assert config.rate_limit.max_per_window == 5
        assert config.rate_limit.window_seconds == 60
        assert config.server.jwt_secret.get_secret_value() == "s3cret"

    def test_empty_file(self, tmp_path):
        """Test an empty file yields the defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(path) == Config()

    def test_missing_file(self, tmp_path):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_missing_env_var(self, tmp_path, monkeypatch):
        """Test an unset variable is reported."""
        monkeypatch.delenv("TEST_UNSET_VAR", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("server:\n  trigger_secret: ${TEST_UNSET_VAR}\n")

        with pytest.raises(ValueError, match="TEST_UNSET_VAR"):
            load_config(path)

    def test_invalid_value(self, tmp_path):
        """Test out-of-range values fail validation."""
        path = tmp_path / "config.yaml"
        path.write_text("rate_limit:\n  max_per_window: 0\n")

        with pytest.raises(ValidationError):
            load_config(path)
