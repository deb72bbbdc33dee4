"""Outage store exceptions."""

from __future__ import annotations


class StoreError(Exception):
    """Base exception for outage store errors."""


class StoreConnectionError(StoreError):
    """The store could not be opened or reached."""


class DuplicateAlertError(StoreError):
    """An alert with the same ``(external_id, source)`` is already stored."""

    def __init__(self, external_id: str, source: str) -> None:
        super().__init__(f"alert {source}/{external_id} already exists")
        self.external_id = external_id
        self.source = source


class OutageNotFoundError(StoreError):
    """The referenced outage does not exist."""
