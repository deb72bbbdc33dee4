"""Notification provider adapters — PagerDuty and OpsGenie behind one contract."""

from outalator.providers.base import NotificationProvider
from outalator.providers.exceptions import (
    AlertNotFoundError,
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDecodeError,
    ProviderError,
)
from outalator.providers.factory import create_provider, parse_source
from outalator.providers.opsgenie import OpsGenieProvider
from outalator.providers.pagerduty import PagerDutyProvider

__all__ = [
    "AlertNotFoundError",
    "NotificationProvider",
    "OpsGenieProvider",
    "PagerDutyProvider",
    "ProviderAPIError",
    "ProviderAuthError",
    "ProviderConnectionError",
    "ProviderDecodeError",
    "ProviderError",
    "create_provider",
    "parse_source",
]
