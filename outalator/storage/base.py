"""Store contract consumed by the ingestion pipeline."""

from __future__ import annotations

import abc
import uuid
from types import TracebackType

from outalator.core.types import AlertRecord, AlertSource, Outage


class AlertStore(abc.ABC):
    """Persistence for outages and their alerts.

    Implementations must reject a second alert with an existing
    ``(external_id, source)`` pair by raising ``DuplicateAlertError``.
    """

    async def connect(self) -> None:
        """Open the underlying connection. No-op by default."""

    async def close(self) -> None:
        """Release the underlying connection. No-op by default."""

    async def __aenter__(self) -> AlertStore:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @abc.abstractmethod
    async def get_alert_by_external_id(
        self, external_id: str, source: AlertSource
    ) -> AlertRecord | None:
        """Return the stored alert with this identity key, or None."""

    @abc.abstractmethod
    async def create_outage(self, outage: Outage) -> None:
        """Insert a new outage."""

    @abc.abstractmethod
    async def delete_outage(self, outage_id: uuid.UUID) -> None:
        """Delete an outage (and its alerts). Raises OutageNotFoundError."""

    @abc.abstractmethod
    async def create_alert(self, alert: AlertRecord) -> None:
        """Insert an alert under an existing outage."""

    @abc.abstractmethod
    async def get_outage(self, outage_id: uuid.UUID) -> Outage | None:
        """Return an outage by id, or None."""

    @abc.abstractmethod
    async def list_alerts_by_outage(self, outage_id: uuid.UUID) -> list[AlertRecord]:
        """Alerts attached to an outage, newest trigger first."""

    @abc.abstractmethod
    async def count_outages(self) -> int:
        """Total number of stored outages."""
