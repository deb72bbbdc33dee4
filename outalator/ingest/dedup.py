"""Identity-key lookup performed before any write for an alert."""

from __future__ import annotations

from outalator.core.types import AlertRecord, AlertSource
from outalator.storage.base import AlertStore


class Deduplicator:
    """Answers whether an ``(external_id, source)`` pair is already stored.

    This is a fast path only; the store's uniqueness constraint is what
    actually prevents a second row.
    """

    def __init__(self, store: AlertStore) -> None:
        self._store = store

    async def exists(self, external_id: str, source: AlertSource) -> AlertRecord | None:
        """Return the stored alert for the identity key, or None."""
        return await self._store.get_alert_by_external_id(external_id, source)
