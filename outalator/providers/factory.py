"""Convenience factory for building the configured provider adapter."""

from __future__ import annotations

from outalator.core.config import Settings
from outalator.core.exceptions import ConfigError
from outalator.core.types import AlertSource
from outalator.providers.base import NotificationProvider
from outalator.providers.opsgenie import OpsGenieProvider
from outalator.providers.pagerduty import PagerDutyProvider


def parse_source(name: str) -> AlertSource:
    """Resolve an operator-supplied service name to an :class:`AlertSource`.

    Raises:
        ConfigError: *name* is empty or not a supported provider.
    """
    if not name:
        raise ConfigError("-service is required (pagerduty or opsgenie)")
    try:
        return AlertSource(name.strip().lower())
    except ValueError:
        valid = ", ".join(s.value for s in AlertSource)
        raise ConfigError(f"-service must be one of: {valid} (got {name!r})") from None


def create_provider(source: AlertSource, settings: Settings) -> NotificationProvider:
    """Build the adapter for *source* from its settings section.

    Raises:
        ConfigError: The provider's API key is not configured.
    """
    match source:
        case AlertSource.PAGERDUTY:
            if not settings.pagerduty.api_key.get_secret_value():
                raise ConfigError("PagerDuty API key not configured")
            return PagerDutyProvider.from_config(settings.pagerduty)
        case AlertSource.OPSGENIE:
            if not settings.opsgenie.api_key.get_secret_value():
                raise ConfigError("OpsGenie API key not configured")
            return OpsGenieProvider.from_config(settings.opsgenie)
