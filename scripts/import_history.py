#!/usr/bin/env python3
"""Historical import CLI — backfill PagerDuty/OpsGenie alerts as outages.

Usage::

    # List teams to build a -teams filter
    python -m scripts.import_history -service pagerduty -list-teams

    # Preview a month of OpsGenie alerts without touching the database
    python -m scripts.import_history -service opsgenie \\
        -since 2024-01-01T00:00:00Z -until 2024-02-01T00:00:00Z -dry-run

    # Import PagerDuty incidents for two teams, 50 per page
    python -m scripts.import_history -service pagerduty \\
        -since 2024-01-01T00:00:00Z -teams PTEAM1,PTEAM2 -batch-size 50

Reruns over the same range are safe: alerts already stored are skipped.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime

import structlog

from outalator.core.config import load_settings
from outalator.core.exceptions import ConfigError
from outalator.core.logging import bind_run_context, setup_logging
from outalator.core.timeutil import format_rfc3339, parse_rfc3339, utcnow
from outalator.core.types import DEFAULT_PAGE_LIMIT
from outalator.ingest.driver import ImportDriver
from outalator.ingest.stats import render_summary
from outalator.ingest.teams import TeamLister, render_teams
from outalator.providers.base import NotificationProvider
from outalator.providers.exceptions import ProviderError
from outalator.providers.factory import create_provider, parse_source
from outalator.storage.base import AlertStore
from outalator.storage.exceptions import StoreConnectionError
from outalator.storage.sql import create_store

logger = structlog.get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import historical alerts from PagerDuty or OpsGenie as outages.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-service", "--service",
        default="",
        help="Service to import from: pagerduty or opsgenie (required)",
    )
    parser.add_argument(
        "-since", "--since",
        default="",
        help="Start of range, RFC3339 (e.g. 2024-01-01T00:00:00Z)",
    )
    parser.add_argument(
        "-until", "--until",
        default="",
        help="End of range, RFC3339 (default: now)",
    )
    parser.add_argument(
        "-teams", "--teams",
        default="",
        help="Comma-separated provider team IDs to import (default: all)",
    )
    parser.add_argument(
        "-list-teams", "--list-teams",
        dest="list_teams",
        action="store_true",
        help="List available teams and exit",
    )
    parser.add_argument(
        "-dry-run", "--dry-run",
        dest="dry_run",
        action="store_true",
        help="Preview what would be imported without connecting to the database",
    )
    parser.add_argument(
        "-config", "--config",
        default="config.yaml",
        help="Path to settings YAML (default: config.yaml)",
    )
    parser.add_argument(
        "-batch-size", "--batch-size",
        dest="batch_size",
        type=int,
        default=DEFAULT_PAGE_LIMIT,
        help=f"Incidents/alerts fetched per API call (default: {DEFAULT_PAGE_LIMIT})",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override (default: from config)",
    )
    return parser.parse_args(argv)


def split_team_ids(raw: str) -> list[str]:
    """``"a, b,,c"`` -> ``["a", "b", "c"]``."""
    return [part.strip() for part in raw.split(",") if part.strip()]


def _fail(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


async def _list_teams(provider: NotificationProvider) -> int:
    print(f"Fetching teams from {provider.display_name}...", file=sys.stderr)
    try:
        async with provider:
            teams = await TeamLister(provider).list_teams()
    except ProviderError as exc:
        return _fail(f"Failed to list teams: {exc}")
    print(render_teams(teams))
    return 0


async def run_import(args: argparse.Namespace) -> int:
    """Validate flags, wire provider and store, run the backfill."""
    try:
        source = parse_source(args.service)
        settings = load_settings(args.config)
        setup_logging(settings.logging, level=args.log_level)
        provider = create_provider(source, settings)
    except ConfigError as exc:
        return _fail(str(exc))

    bind_run_context(provider=str(source), dry_run=args.dry_run)

    if args.list_teams:
        return await _list_teams(provider)

    if not args.since:
        return _fail("-since is required (RFC3339 format, e.g. 2024-01-01T00:00:00Z)")
    try:
        since = parse_rfc3339(args.since)
    except ValueError as exc:
        return _fail(f"Invalid -since date format: {exc}")
    until: datetime
    if args.until:
        try:
            until = parse_rfc3339(args.until)
        except ValueError as exc:
            return _fail(f"Invalid -until date format: {exc}")
    else:
        until = utcnow()
    if args.batch_size <= 0:
        return _fail(f"-batch-size must be positive, got {args.batch_size}")

    team_ids = split_team_ids(args.teams)

    store: AlertStore | None = None
    if not args.dry_run:
        store = create_store(settings.database)
        try:
            await store.connect()
        except StoreConnectionError as exc:
            return _fail(str(exc))

    print(f"Starting import from {source}", file=sys.stderr)
    print(f"Date range: {format_rfc3339(since)} to {format_rfc3339(until)}", file=sys.stderr)
    if team_ids:
        print(f"Team filter: {', '.join(team_ids)}", file=sys.stderr)
    if args.dry_run:
        print("DRY RUN MODE - No changes will be made", file=sys.stderr)

    driver = ImportDriver(
        provider,
        store,
        dry_run=args.dry_run,
        batch_size=args.batch_size,
    )
    aborted = False
    try:
        async with provider:
            await driver.run(since, until, team_ids)
    except ProviderError as exc:
        aborted = True
        logger.error("import_aborted", provider=source, error=str(exc))
        print(f"Error: Import failed: {exc}", file=sys.stderr)
    finally:
        if store is not None:
            await store.close()

    logger.info("import_finished", provider=source, aborted=aborted, **driver.stats.as_dict())
    print()
    print(render_summary(driver.stats, dry_run=args.dry_run, aborted=aborted))
    return 1 if aborted else 0


def main() -> None:
    args = parse_args()
    code = asyncio.run(run_import(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
