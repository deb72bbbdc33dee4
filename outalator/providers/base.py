"""Abstract notification provider — HTTP lifecycle, error mapping, page fetch."""

from __future__ import annotations

import abc
from datetime import datetime
from types import TracebackType
from typing import Any, ClassVar, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from outalator.core.types import Alert, AlertPage, AlertSource, HistoricalFetchOptions, Team
from outalator.providers.exceptions import (
    AlertNotFoundError,
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDecodeError,
)

logger = structlog.stdlib.get_logger()

_ModelT = TypeVar("_ModelT", bound=BaseModel)

# Query parameters as ordered pairs so keys like ``team_ids[]`` can repeat
QueryParams = list[tuple[str, str | int]]


class NotificationProvider(abc.ABC):
    """Base class for on-call provider adapters.

    The base class owns the HTTP client, maps transport and status failures
    onto the provider exception hierarchy, and runs the shared page fetch.
    Subclasses supply auth headers, request building and response decoding.

    Usage::

        async with PagerDutyProvider(api_key="...") as provider:
            page = await provider.fetch_historical_alerts(opts)
    """

    source: ClassVar[AlertSource]
    display_name: ClassVar[str]

    def __init__(self, api_key: str, api_url: str, timeout_secs: float = 30.0) -> None:
        self._api_key = api_key
        self._api_url = api_url.rstrip("/")
        self._timeout_secs = timeout_secs
        self._http: httpx.AsyncClient | None = None

    @property
    def connected(self) -> bool:
        """Whether the HTTP client is active."""
        return self._http is not None and not self._http.is_closed

    async def connect(self) -> None:
        """Create the httpx async client with the provider's auth headers."""
        self._http = httpx.AsyncClient(
            base_url=self._api_url,
            headers=self._auth_headers(),
            timeout=httpx.Timeout(self._timeout_secs),
        )

    async def close(self) -> None:
        """Close the httpx async client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> NotificationProvider:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ── Provider-specific hooks ──────────────────────────────────

    @abc.abstractmethod
    def _auth_headers(self) -> dict[str, str]:
        """Headers sent with every request."""

    @abc.abstractmethod
    def _alert_path(self, alert_id: str) -> str:
        """Path of the single-alert endpoint."""

    @abc.abstractmethod
    def _decode_alert(self, body: Any) -> Alert:
        """Decode a single-alert response body."""

    @abc.abstractmethod
    def _history_request(self, opts: HistoricalFetchOptions) -> tuple[str, QueryParams]:
        """Path and query parameters for one page of history."""

    @abc.abstractmethod
    def _decode_history(self, body: Any, opts: HistoricalFetchOptions) -> AlertPage:
        """Decode one page of history, normalising the pagination signal."""

    @abc.abstractmethod
    def _teams_path(self) -> str:
        """Path of the team listing endpoint."""

    @abc.abstractmethod
    def _decode_teams(self, body: Any) -> list[Team]:
        """Decode a team listing response body."""

    # ── Shared operations ────────────────────────────────────────

    async def fetch_alert(self, alert_id: str) -> Alert:
        """Fetch a single alert by its provider identifier.

        Raises:
            AlertNotFoundError: The provider has no alert with that id.
        """
        try:
            body = await self._get_json(self._alert_path(alert_id))
        except ProviderAPIError as exc:
            if exc.status_code == 404:
                raise AlertNotFoundError(self.display_name, exc.status_code, exc.body) from exc
            raise
        return self._decode_alert(body)

    async def fetch_historical_alerts(self, opts: HistoricalFetchOptions) -> AlertPage:
        """Fetch one page of alerts created inside ``[since, until]``.

        The caller advances ``opts.offset`` by the page limit between calls.
        """
        path, params = self._history_request(opts)
        body = await self._get_json(path, params)
        page = self._decode_history(body, opts)
        logger.debug(
            "provider_page_decoded",
            provider=self.source,
            offset=opts.offset,
            limit=opts.effective_limit,
            returned=page.raw_count,
            kept=len(page.alerts),
            has_more=page.has_more,
        )
        return page

    async def fetch_recent_alerts(self, since: datetime) -> list[Alert]:
        """Return the first page of alerts created after *since*."""
        page = await self.fetch_historical_alerts(HistoricalFetchOptions(since=since))
        return page.alerts

    async def list_teams(self) -> list[Team]:
        """List the provider's teams."""
        body = await self._get_json(self._teams_path())
        return self._decode_teams(body)

    # ── Helpers ──────────────────────────────────────────────────

    async def _get_json(self, path: str, params: QueryParams | None = None) -> Any:
        if self._http is None:
            raise ProviderConnectionError(f"{self.display_name} HTTP client not connected")

        try:
            response = await self._http.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise self._status_error(exc.response) from exc
        except httpx.HTTPError as exc:
            raise ProviderConnectionError(
                f"{self.display_name} request to {path} failed: {exc}"
            ) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderDecodeError(
                f"{self.display_name} returned invalid JSON from {path}"
            ) from exc

    def _status_error(self, response: httpx.Response) -> ProviderAPIError:
        status = response.status_code
        body = response.text
        if status in (401, 403):
            return ProviderAuthError(self.display_name, status, body)
        return ProviderAPIError(self.display_name, status, body)

    def _validate(self, model: type[_ModelT], body: Any) -> _ModelT:
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise ProviderDecodeError(
                f"{self.display_name} response did not match {model.__name__}: {exc}"
            ) from exc
