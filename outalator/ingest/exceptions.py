"""Ingestion-layer exceptions."""

from __future__ import annotations


class IngestError(Exception):
    """Base exception for ingestion errors."""


class AlertPersistError(IngestError):
    """Writing the outage/alert pair for one alert failed.

    Recovered per alert during a backfill; the run continues.
    """

    def __init__(self, external_id: str, message: str) -> None:
        super().__init__(f"{external_id}: {message}")
        self.external_id = external_id
