"""Core module — config, types, logging."""

from outalator.core.config import Settings, get_settings, load_settings, reset_settings
from outalator.core.exceptions import ConfigError
from outalator.core.logging import bind_run_context, setup_logging
from outalator.core.types import (
    Alert,
    AlertPage,
    AlertRecord,
    AlertSource,
    HistoricalFetchOptions,
    Outage,
    OutageStatus,
    Team,
    derive_status,
)

__all__ = [
    "Alert",
    "AlertPage",
    "AlertRecord",
    "AlertSource",
    "ConfigError",
    "HistoricalFetchOptions",
    "Outage",
    "OutageStatus",
    "Settings",
    "Team",
    "derive_status",
    "get_settings",
    "load_settings",
    "reset_settings",
    "bind_run_context",
    "setup_logging",
]
