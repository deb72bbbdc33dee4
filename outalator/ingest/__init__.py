"""Alert ingestion — dedup, outage creation, historical backfill, live import."""

from outalator.ingest.aggregate import AggregateCreator, CreatedAggregate
from outalator.ingest.dedup import Deduplicator
from outalator.ingest.driver import ImportDriver
from outalator.ingest.exceptions import AlertPersistError, IngestError
from outalator.ingest.live import AlertImporter
from outalator.ingest.stats import ImportStats, render_summary
from outalator.ingest.teams import TeamLister, render_teams

__all__ = [
    "AggregateCreator",
    "AlertImporter",
    "AlertPersistError",
    "CreatedAggregate",
    "Deduplicator",
    "ImportDriver",
    "ImportStats",
    "IngestError",
    "TeamLister",
    "render_summary",
    "render_teams",
]
