"""Exception hierarchy for notification provider adapters."""

from __future__ import annotations


class ProviderError(Exception):
    """Base exception for all provider errors."""


class ProviderConnectionError(ProviderError):
    """The HTTP request could not be completed (DNS, TLS, timeout...)."""


class ProviderAPIError(ProviderError):
    """The provider answered with a non-success HTTP status."""

    def __init__(self, provider: str, status_code: int, body: str) -> None:
        super().__init__(f"{provider} API error: {body} (status: {status_code})")
        self.provider = provider
        self.status_code = status_code
        self.body = body


class ProviderAuthError(ProviderAPIError):
    """The provider rejected the API key (401/403)."""


class AlertNotFoundError(ProviderAPIError):
    """Single-alert lookup returned 404."""


class ProviderDecodeError(ProviderError):
    """The response body was not JSON or not the documented shape."""
