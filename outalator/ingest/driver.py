"""Historical backfill loop — paginate a provider and import each alert once."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime

import structlog

from outalator.core.timeutil import format_rfc3339
from outalator.core.types import DEFAULT_PAGE_LIMIT, Alert, HistoricalFetchOptions
from outalator.ingest.aggregate import AggregateCreator
from outalator.ingest.dedup import Deduplicator
from outalator.ingest.exceptions import IngestError
from outalator.ingest.stats import ImportStats
from outalator.providers.base import NotificationProvider
from outalator.storage.base import AlertStore
from outalator.storage.exceptions import DuplicateAlertError, StoreError

logger = structlog.stdlib.get_logger()

# Fixed pause between page fetches; not adaptive to provider rate-limit signals
_PAGE_DELAY_SECS = 0.5

SleepFn = Callable[[float], Awaitable[None]]


class ImportDriver:
    """Backfills one provider's alerts for a time range into the store.

    Pages are fetched one at a time and their alerts processed in order.
    A failure on a single alert is logged and counted in ``errors``; a
    provider failure propagates and ends the run, leaving earlier pages'
    writes in place. ``stats`` always holds the counters so far.

    In dry-run mode no store is used at all: every fetched alert is
    counted as a would-be new outage and alert.

    Usage::

        driver = ImportDriver(provider, store, batch_size=100)
        stats = await driver.run(since, until, team_ids=["PTEAM1"])
    """

    def __init__(
        self,
        provider: NotificationProvider,
        store: AlertStore | None = None,
        *,
        dry_run: bool = False,
        batch_size: int = DEFAULT_PAGE_LIMIT,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if store is None and not dry_run:
            raise ValueError("a store is required unless dry_run is set")

        self._provider = provider
        self._dry_run = dry_run
        self._batch_size = batch_size
        self._sleep = sleep
        self._dedup: Deduplicator | None = None
        self._creator: AggregateCreator | None = None
        if not dry_run and store is not None:
            self._dedup = Deduplicator(store)
            self._creator = AggregateCreator(store)
        self._stats = ImportStats()

    @property
    def stats(self) -> ImportStats:
        return self._stats

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    async def run(
        self,
        since: datetime,
        until: datetime | None = None,
        team_ids: Sequence[str] = (),
    ) -> ImportStats:
        """Import every alert the provider returns for the range.

        Raises:
            ProviderError: Fetching or decoding a page failed.
        """
        offset = 0
        while True:
            opts = HistoricalFetchOptions(
                since=since,
                until=until,
                team_ids=list(team_ids),
                limit=self._batch_size,
                offset=offset,
            )
            page = await self._provider.fetch_historical_alerts(opts)
            self._stats.pages += 1

            if page.raw_count == 0 and not page.alerts:
                logger.info("import_page_empty", provider=self._provider.source, offset=offset)
                break

            self._stats.total_fetched += len(page.alerts)
            logger.info(
                "import_page_fetched",
                provider=self._provider.source,
                offset=offset,
                count=len(page.alerts),
                has_more=page.has_more,
            )

            for alert in page.alerts:
                await self._process(alert)

            offset += self._batch_size
            if not page.has_more:
                break
            await self._sleep(_PAGE_DELAY_SECS)

        return self._stats

    async def _process(self, alert: Alert) -> None:
        # writers are only built for a real run
        if self._dedup is None or self._creator is None:
            self._preview(alert)
        else:
            await self._persist(alert, self._dedup, self._creator)

    def _preview(self, alert: Alert) -> None:
        logger.info(
            "alert_would_import",
            external_id=alert.external_id,
            title=alert.title,
            team=alert.team_name,
            triggered_at=format_rfc3339(alert.triggered_at),
        )
        self._stats.new_outages += 1
        self._stats.new_alerts += 1

    async def _persist(
        self, alert: Alert, dedup: Deduplicator, creator: AggregateCreator
    ) -> None:
        try:
            if await dedup.exists(alert.external_id, alert.source) is not None:
                logger.info("alert_skipped", external_id=alert.external_id, reason="exists")
                self._stats.skipped += 1
                return
            created = await creator.create(alert, stamp=alert.triggered_at)
        except DuplicateAlertError:
            logger.info("alert_skipped", external_id=alert.external_id, reason="duplicate")
            self._stats.skipped += 1
            return
        except (StoreError, IngestError):
            logger.exception("alert_import_failed", external_id=alert.external_id)
            self._stats.errors += 1
            return

        if created.outage_created:
            self._stats.new_outages += 1
        self._stats.new_alerts += 1
        logger.info(
            "alert_imported",
            external_id=alert.external_id,
            title=alert.title,
            team=alert.team_name,
            outage_id=str(created.outage_id),
        )
