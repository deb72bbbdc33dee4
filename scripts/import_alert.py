#!/usr/bin/env python3
"""Live import CLI — pull one alert by id and attach it to an outage.

Usage::

    # New outage for a PagerDuty incident
    python -m scripts.import_alert --service pagerduty --alert-id Q1ABCDEF

    # Attach an OpsGenie alert to an existing outage
    python -m scripts.import_alert --service opsgenie --alert-id 70413a06 \\
        --outage-id 3f0e9d1c-8a4b-4c1e-9d55-0c2a6f5b7e21
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid

from outalator.core.config import load_settings
from outalator.core.exceptions import ConfigError
from outalator.core.logging import bind_run_context, setup_logging
from outalator.ingest.exceptions import IngestError
from outalator.ingest.live import AlertImporter
from outalator.providers.exceptions import ProviderError
from outalator.providers.factory import create_provider, parse_source
from outalator.storage.exceptions import StoreError
from outalator.storage.sql import create_store


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import a single alert from PagerDuty or OpsGenie.",
    )
    parser.add_argument("--service", required=True, help="pagerduty or opsgenie")
    parser.add_argument("--alert-id", required=True, help="Provider alert/incident ID")
    parser.add_argument(
        "--outage-id",
        default=None,
        help="Existing outage UUID to attach the alert to (default: new outage)",
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to settings YAML (default: config.yaml)",
    )
    parser.add_argument("--log-level", default=None, help="Log level override")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    try:
        source = parse_source(args.service)
        settings = load_settings(args.config)
        setup_logging(settings.logging, level=args.log_level)
        provider = create_provider(source, settings)
        outage_id = uuid.UUID(args.outage_id) if args.outage_id else None
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValueError:
        print(f"Error: --outage-id is not a UUID: {args.outage_id}", file=sys.stderr)
        return 1

    bind_run_context(provider=str(source), alert_id=args.alert_id)

    store = create_store(settings.database)
    try:
        async with store, provider:
            importer = AlertImporter({source: provider}, store)
            record = await importer.import_alert(source, args.alert_id, outage_id)
    except (ProviderError, StoreError, IngestError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Alert {record.source}/{record.external_id}: id={record.id} outage={record.outage_id}")
    return 0


def main() -> None:
    args = parse_args()
    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
