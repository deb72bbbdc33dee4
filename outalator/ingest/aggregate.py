"""Outage + alert creation with compensating delete on partial failure."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

import structlog

from outalator.core.timeutil import utcnow
from outalator.core.types import Alert, AlertRecord, Outage, derive_status
from outalator.ingest.dedup import Deduplicator
from outalator.ingest.exceptions import AlertPersistError
from outalator.storage.base import AlertStore
from outalator.storage.exceptions import DuplicateAlertError, StoreError

logger = structlog.stdlib.get_logger()


@dataclass
class CreatedAggregate:
    """Result of a successful :meth:`AggregateCreator.create`."""

    outage_id: uuid.UUID
    alert: AlertRecord
    outage_created: bool


def build_outage(alert: Alert, stamp: datetime) -> Outage:
    """New outage for *alert*; title, description and severity copied verbatim."""
    return Outage(
        title=alert.title,
        description=alert.description,
        status=derive_status(alert),
        severity=alert.severity,
        created_at=stamp,
        updated_at=stamp,
        resolved_at=alert.resolved_at,
    )


def build_alert_record(alert: Alert, outage_id: uuid.UUID) -> AlertRecord:
    return AlertRecord(
        outage_id=outage_id,
        external_id=alert.external_id,
        source=alert.source,
        team_name=alert.team_name,
        title=alert.title,
        description=alert.description,
        severity=alert.severity,
        triggered_at=alert.triggered_at,
        acknowledged_at=alert.acknowledged_at,
        resolved_at=alert.resolved_at,
        created_at=utcnow(),
    )


class AggregateCreator:
    """Creates the outage+alert pair for an alert not seen before.

    With ``outage_id`` the alert is attached to that existing outage;
    without it a new outage is created first. If the alert insert then
    fails, the outage created by the same call is deleted again, so a
    failed call never leaves an orphan outage behind.
    """

    def __init__(self, store: AlertStore) -> None:
        self._store = store
        self._dedup = Deduplicator(store)

    async def create(
        self,
        alert: Alert,
        *,
        outage_id: uuid.UUID | None = None,
        stamp: datetime | None = None,
    ) -> CreatedAggregate:
        """Persist *alert*, creating its outage unless *outage_id* is given.

        Args:
            alert: Canonical alert, already checked against the store.
            outage_id: Existing outage to attach to.
            stamp: ``created_at``/``updated_at`` of a new outage; defaults to now.

        Raises:
            DuplicateAlertError: The identity key was stored concurrently.
            AlertPersistError: Any other store failure.
        """
        outage_created = False
        if outage_id is None:
            outage = build_outage(alert, stamp or utcnow())
            try:
                await self._store.create_outage(outage)
            except StoreError as exc:
                raise AlertPersistError(alert.external_id, f"failed to create outage: {exc}") from exc
            outage_id = outage.id
            outage_created = True

        record = build_alert_record(alert, outage_id)
        try:
            await self._store.create_alert(record)
        except StoreError as exc:
            if outage_created:
                await self._compensate(alert, outage_id)
            if isinstance(exc, DuplicateAlertError):
                raise
            raise AlertPersistError(alert.external_id, f"failed to create alert: {exc}") from exc
        except BaseException:
            # cancellation (Ctrl-C) or an unexpected error must not leave an orphan outage
            if outage_created:
                await self._compensate(alert, outage_id)
            raise

        return CreatedAggregate(outage_id=outage_id, alert=record, outage_created=outage_created)

    async def create_if_absent(
        self,
        alert: Alert,
        *,
        outage_id: uuid.UUID | None = None,
        stamp: datetime | None = None,
    ) -> tuple[AlertRecord, bool]:
        """Return the stored alert for *alert*'s identity key, creating it if needed.

        Returns:
            ``(record, created)`` where *created* is False when the alert
            was already stored.
        """
        existing = await self._dedup.exists(alert.external_id, alert.source)
        if existing is not None:
            return existing, False
        try:
            created = await self.create(alert, outage_id=outage_id, stamp=stamp)
        except DuplicateAlertError:
            existing = await self._dedup.exists(alert.external_id, alert.source)
            if existing is None:
                raise
            return existing, False
        return created.alert, True

    async def _compensate(self, alert: Alert, outage_id: uuid.UUID) -> None:
        try:
            await self._store.delete_outage(outage_id)
        except StoreError:
            logger.exception(
                "outage_compensation_failed",
                external_id=alert.external_id,
                outage_id=str(outage_id),
            )
        else:
            logger.warning(
                "outage_compensated",
                external_id=alert.external_id,
                outage_id=str(outage_id),
            )
