"""Configuration management for the throttler services."""

import os
import re
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field


class DatabaseConfig(BaseModel):
    """Shared datastore settings."""

    url: str = Field(
        default="sqlite+aiosqlite:///~/.throttler/throttler.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = False
    lock_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Max seconds to wait for a throttle row lock"
    )


class RetentionConfig(BaseModel):
    """Event retention settings."""

    default_days: int = Field(default=7, ge=1, description="Purge events older than N days")


class LoggingConfig(BaseModel):
    """Logging settings for the command line entry point."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class Config(BaseModel):
    """Root configuration model."""

    database: DatabaseConfig = DatabaseConfig()
    retention: RetentionConfig = RetentionConfig()
    logging: LoggingConfig = LoggingConfig()


ENV_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _expand_env(value):
    """Replace ${VAR} references in string leaves, e.g. inside a database URL."""
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    if not isinstance(value, str):
        return value

    def substitute(match: re.Match) -> str:
        name = match.group(1)
        if name not in os.environ:
            raise ValueError(f"Environment variable '{name}' is not set")
        return os.environ[name]

    return ENV_REFERENCE.sub(substitute, value)


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load throttler settings from YAML, expanding ${VAR} references.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If a referenced environment variable is not set.
        ValidationError: If a setting is out of range.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open() as f:
        raw_config = yaml.safe_load(f) or {}

    return Config.model_validate(_expand_env(raw_config))
