"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, SecretStr, ValidationError

from outalator.core.exceptions import ConfigError

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config.yaml")


class PagerDutyConfig(BaseModel):
    """PagerDuty REST API configuration."""

    api_key: SecretStr = SecretStr("")
    api_url: str = "https://api.pagerduty.com"
    timeout_secs: float = 30.0


class OpsGenieConfig(BaseModel):
    """OpsGenie REST API configuration."""

    api_key: SecretStr = SecretStr("")
    api_url: str = "https://api.opsgenie.com"
    timeout_secs: float = 30.0


class DatabaseConfig(BaseModel):
    """Outage store connection.

    ``url`` wins when set; otherwise the URL is assembled from the parts.
    """

    url: str = ""
    driver: str = "postgresql+psycopg2"
    host: str = "localhost"
    port: int = 5432
    user: str = "outalator"
    password: SecretStr = SecretStr("")
    dbname: str = "outalator"
    sslmode: str = "disable"


class LoggingConfig(BaseModel):
    """Logging configuration.

    ``sql_echo`` lets SQLAlchemy's statement log through at INFO.
    """

    level: str = "INFO"
    format: str = "console"
    sql_echo: bool = False


class Settings(BaseModel):
    """Root settings container."""

    pagerduty: PagerDutyConfig = PagerDutyConfig()
    opsgenie: OpsGenieConfig = OpsGenieConfig()
    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()


# env var -> (section, field)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "PAGERDUTY_API_KEY": ("pagerduty", "api_key"),
    "OPSGENIE_API_KEY": ("opsgenie", "api_key"),
    "DATABASE_URL": ("database", "url"),
    "DB_HOST": ("database", "host"),
    "DB_PORT": ("database", "port"),
    "DB_USER": ("database", "user"),
    "DB_PASSWORD": ("database", "password"),
    "DB_NAME": ("database", "dbname"),
}


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    for env_var, (section, field) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if not value:
            continue
        current = data.get(section)
        if not isinstance(current, dict):
            current = {}
        data[section] = {**current, field: value}
    return data


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Environment variables (``PAGERDUTY_API_KEY``, ``DB_HOST``, ...) override
    values read from the file.

    Args:
        path: Path to YAML config. Defaults to ``config.yaml``.

    Returns:
        Parsed Settings instance.

    Raises:
        ConfigError: The file is not valid YAML or fails validation.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            try:
                raw = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigError(f"Failed to parse config file {config_path}: {exc}") from exc
            if isinstance(raw, dict):
                data = raw

    try:
        _settings = Settings(**_apply_env_overrides(data))
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
