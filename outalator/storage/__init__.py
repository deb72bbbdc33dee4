"""Outage store — contract plus in-memory and SQL implementations."""

from outalator.storage.base import AlertStore
from outalator.storage.exceptions import (
    DuplicateAlertError,
    OutageNotFoundError,
    StoreConnectionError,
    StoreError,
)
from outalator.storage.memory import InMemoryAlertStore
from outalator.storage.sql import SqlAlertStore, build_database_url, create_store

__all__ = [
    "AlertStore",
    "DuplicateAlertError",
    "InMemoryAlertStore",
    "OutageNotFoundError",
    "SqlAlertStore",
    "StoreConnectionError",
    "StoreError",
    "build_database_url",
    "create_store",
]
