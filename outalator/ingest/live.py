"""Single-alert import by provider id, optionally onto an existing outage."""

from __future__ import annotations

import uuid
from collections.abc import Mapping

import structlog

from outalator.core.exceptions import ConfigError
from outalator.core.timeutil import utcnow
from outalator.core.types import AlertRecord, AlertSource
from outalator.ingest.aggregate import AggregateCreator
from outalator.providers.base import NotificationProvider
from outalator.storage.base import AlertStore

logger = structlog.stdlib.get_logger()


class AlertImporter:
    """Imports one alert on demand.

    Importing an alert that is already stored returns the stored record
    unchanged. A new outage created here is stamped with the current time,
    unlike the backfill which stamps the alert's trigger time.
    """

    def __init__(
        self,
        providers: Mapping[AlertSource, NotificationProvider],
        store: AlertStore,
    ) -> None:
        self._providers = dict(providers)
        self._creator = AggregateCreator(store)

    async def import_alert(
        self,
        source: AlertSource,
        external_id: str,
        outage_id: uuid.UUID | None = None,
    ) -> AlertRecord:
        """Fetch *external_id* from *source* and persist it if new.

        Raises:
            ConfigError: No provider is registered for *source*.
            AlertNotFoundError: The provider has no such alert.
            AlertPersistError: Writing the outage or alert failed.
        """
        provider = self._providers.get(source)
        if provider is None:
            raise ConfigError(f"notification provider {source} not registered")

        alert = await provider.fetch_alert(external_id)
        record, created = await self._creator.create_if_absent(
            alert, outage_id=outage_id, stamp=utcnow()
        )
        if created:
            logger.info(
                "alert_imported",
                source=source,
                external_id=external_id,
                outage_id=str(record.outage_id),
            )
        else:
            logger.info("alert_already_imported", source=source, external_id=external_id)
        return record
