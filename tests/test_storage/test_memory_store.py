"""Tests for InMemoryAlertStore."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from outalator.core.types import AlertRecord, AlertSource, Outage
from outalator.storage.exceptions import DuplicateAlertError, OutageNotFoundError
from outalator.storage.memory import InMemoryAlertStore

_T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

# ── Helpers ─────────────────────────────────────────────────────


def _outage() -> Outage:
    return Outage(title="DB down", severity="high", created_at=_T0, updated_at=_T0)


def _record(
    outage_id: uuid.UUID,
    external_id: str = "P1",
    source: AlertSource = AlertSource.PAGERDUTY,
    triggered_at: datetime = _T0,
) -> AlertRecord:
    return AlertRecord(
        outage_id=outage_id,
        external_id=external_id,
        source=source,
        title="DB down",
        triggered_at=triggered_at,
        created_at=_T0,
    )


class TestInMemoryAlertStore:
    async def test_round_trip(self) -> None:
        store = InMemoryAlertStore()
        outage = _outage()
        await store.create_outage(outage)
        await store.create_alert(_record(outage.id))

        found = await store.get_alert_by_external_id("P1", AlertSource.PAGERDUTY)
        assert found is not None
        assert found.outage_id == outage.id
        assert await store.get_outage(outage.id) == outage

    async def test_lookup_is_per_source(self) -> None:
        store = InMemoryAlertStore()
        outage = _outage()
        await store.create_outage(outage)
        await store.create_alert(_record(outage.id))
        assert await store.get_alert_by_external_id("P1", AlertSource.OPSGENIE) is None

    async def test_same_id_different_source_allowed(self) -> None:
        store = InMemoryAlertStore()
        outage = _outage()
        await store.create_outage(outage)
        await store.create_alert(_record(outage.id, source=AlertSource.PAGERDUTY))
        await store.create_alert(_record(outage.id, source=AlertSource.OPSGENIE))
        assert len(store.alerts) == 2

    async def test_duplicate_rejected(self) -> None:
        store = InMemoryAlertStore()
        outage = _outage()
        await store.create_outage(outage)
        await store.create_alert(_record(outage.id))
        with pytest.raises(DuplicateAlertError) as exc_info:
            await store.create_alert(_record(outage.id))
        assert exc_info.value.external_id == "P1"

    async def test_alert_needs_outage(self) -> None:
        store = InMemoryAlertStore()
        with pytest.raises(OutageNotFoundError):
            await store.create_alert(_record(uuid.uuid4()))

    async def test_delete_cascades(self) -> None:
        store = InMemoryAlertStore()
        keep, drop = _outage(), _outage()
        await store.create_outage(keep)
        await store.create_outage(drop)
        await store.create_alert(_record(keep.id, "P1"))
        await store.create_alert(_record(drop.id, "P2"))

        await store.delete_outage(drop.id)
        assert await store.count_outages() == 1
        assert await store.get_alert_by_external_id("P2", AlertSource.PAGERDUTY) is None
        assert await store.get_alert_by_external_id("P1", AlertSource.PAGERDUTY) is not None

    async def test_delete_missing(self) -> None:
        with pytest.raises(OutageNotFoundError):
            await InMemoryAlertStore().delete_outage(uuid.uuid4())

    async def test_list_newest_first(self) -> None:
        store = InMemoryAlertStore()
        outage = _outage()
        await store.create_outage(outage)
        await store.create_alert(_record(outage.id, "old", triggered_at=_T0))
        await store.create_alert(_record(outage.id, "new", triggered_at=_T0 + timedelta(hours=1)))
        alerts = await store.list_alerts_by_outage(outage.id)
        assert [a.external_id for a in alerts] == ["new", "old"]

    async def test_context_manager(self) -> None:
        async with InMemoryAlertStore() as store:
            assert await store.count_outages() == 0
