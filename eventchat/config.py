"""Configuration management for the event handlers."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, HttpUrl, SecretStr


class RateLimitConfig(BaseModel):
    """Fixed-window rate limit policy."""

    window_seconds: int = Field(default=60, ge=1, description="Length of one counting window")
    max_per_window: int = Field(default=20, ge=1, description="Allowed actions per window")
    max_attempts: int = Field(
        default=5, ge=1, le=50, description="Read-modify-write attempts before giving up on conflicts"
    )


class TrendingConfig(BaseModel):
    """Trending score recompute job settings."""

    interval_minutes: int = Field(default=60, ge=1, description="Minutes between scheduled runs")
    going_weight: float = Field(default=10, ge=0, description="Score per 'going' RSVP")
    max_batch_size: int = Field(default=500, ge=1, description="Max documents written per batch")
    aggregation_concurrency: int = Field(default=8, ge=1, le=64)
    use_aggregation: bool = Field(
        default=True, description="Count RSVPs in the store; false fetches and filters instead"
    )


class NotificationConfig(BaseModel):
    """Push notification gateway settings."""

    push_url: Optional[HttpUrl] = Field(default=None, description="Push gateway endpoint")
    api_key: Optional[SecretStr] = None
    timeout_seconds: float = Field(default=10.0, gt=0)
    title: str = "New Message"
    preview_length: int = Field(default=50, ge=1)


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    jwt_secret: Optional[SecretStr] = Field(default=None, description="HS256 secret for caller tokens")
    trigger_secret: Optional[SecretStr] = Field(
        default=None, description="Shared secret signing trigger and job deliveries"
    )


class Config(BaseModel):
    """Root configuration model."""

    database_path: str = Field(
        default="~/.eventchat/eventchat.db", description="Path to SQLite database file"
    )
    rate_limit: RateLimitConfig = RateLimitConfig()
    trending: TrendingConfig = TrendingConfig()
    notifications: NotificationConfig = NotificationConfig()
    server: ServerConfig = ServerConfig()


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load and validate configuration from YAML file.

    Supports ${VAR_NAME} syntax for environment variable expansion.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If config is invalid.
        ValueError: If referenced environment variable is not set.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            "Copy config.example.yaml to config.yaml and fill in your values."
        )

    with path.open() as f:
        raw_config = yaml.safe_load(f) or {}

    # Expand environment variables in the format ${VAR_NAME}
    def expand_env_vars(obj):
        if isinstance(obj, dict):
            return {k: expand_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [expand_env_vars(item) for item in obj]
        elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
            env_var = obj[2:-1]
            value = os.getenv(env_var)
            if value is None:
                raise ValueError(f"Environment variable '{env_var}' is not set")
            return value
        return obj

    raw_config = expand_env_vars(raw_config)

    return Config(**raw_config)
