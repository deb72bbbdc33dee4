"""In-memory store implementation."""

from __future__ import annotations

import uuid

from outalator.core.types import AlertRecord, AlertSource, Outage
from outalator.storage.base import AlertStore
from outalator.storage.exceptions import DuplicateAlertError, OutageNotFoundError


class InMemoryAlertStore(AlertStore):
    """Dict-backed store with the same uniqueness rules as the SQL schema."""

    def __init__(self) -> None:
        self.outages: dict[uuid.UUID, Outage] = {}
        self.alerts: dict[tuple[str, AlertSource], AlertRecord] = {}

    async def get_alert_by_external_id(
        self, external_id: str, source: AlertSource
    ) -> AlertRecord | None:
        return self.alerts.get((external_id, AlertSource(source)))

    async def create_outage(self, outage: Outage) -> None:
        self.outages[outage.id] = outage.model_copy()

    async def delete_outage(self, outage_id: uuid.UUID) -> None:
        if self.outages.pop(outage_id, None) is None:
            raise OutageNotFoundError(f"outage {outage_id} not found")
        # cascade
        for key in [k for k, a in self.alerts.items() if a.outage_id == outage_id]:
            del self.alerts[key]

    async def create_alert(self, alert: AlertRecord) -> None:
        if alert.identity_key in self.alerts:
            raise DuplicateAlertError(alert.external_id, alert.source)
        if alert.outage_id not in self.outages:
            raise OutageNotFoundError(f"outage {alert.outage_id} not found")
        self.alerts[alert.identity_key] = alert.model_copy()

    async def get_outage(self, outage_id: uuid.UUID) -> Outage | None:
        return self.outages.get(outage_id)

    async def list_alerts_by_outage(self, outage_id: uuid.UUID) -> list[AlertRecord]:
        found = [a for a in self.alerts.values() if a.outage_id == outage_id]
        return sorted(found, key=lambda a: a.triggered_at, reverse=True)

    async def count_outages(self) -> int:
        return len(self.outages)
