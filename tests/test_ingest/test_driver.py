"""Tests for ImportDriver — pagination, dedup, dry run, rollback and abort."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from outalator.core.types import (
    Alert,
    AlertPage,
    AlertRecord,
    AlertSource,
    HistoricalFetchOptions,
    Outage,
    OutageStatus,
)
from outalator.ingest.driver import ImportDriver
from outalator.providers.exceptions import ProviderAPIError
from outalator.providers.opsgenie import OpsGenieProvider
from outalator.storage.base import AlertStore
from outalator.storage.exceptions import StoreError
from outalator.storage.memory import InMemoryAlertStore

_SINCE = datetime(2024, 1, 1, tzinfo=UTC)
_UNTIL = datetime(2024, 2, 1, tzinfo=UTC)

# ── Helpers ─────────────────────────────────────────────────────


def _alert(external_id: str, **overrides: Any) -> Alert:
    data: dict[str, Any] = {
        "external_id": external_id,
        "source": AlertSource.PAGERDUTY,
        "team_name": "SRE",
        "title": f"Incident {external_id}",
        "severity": "high",
        "triggered_at": _SINCE + timedelta(hours=1),
    }
    data.update(overrides)
    return Alert(**data)


class ScriptedProvider:
    """Returns pre-built pages in order and records every request."""

    source = AlertSource.PAGERDUTY
    display_name = "PagerDuty"

    def __init__(self, pages: list[AlertPage | Exception]) -> None:
        self._pages = list(pages)
        self.requests: list[HistoricalFetchOptions] = []

    async def fetch_historical_alerts(self, opts: HistoricalFetchOptions) -> AlertPage:
        self.requests.append(opts)
        item = self._pages.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class SlicingProvider:
    """Serves a fixed alert list by offset/limit like a real paginated API."""

    source = AlertSource.PAGERDUTY
    display_name = "PagerDuty"

    def __init__(self, alerts: list[Alert]) -> None:
        self._alerts = alerts
        self.requests: list[HistoricalFetchOptions] = []

    async def fetch_historical_alerts(self, opts: HistoricalFetchOptions) -> AlertPage:
        self.requests.append(opts)
        chunk = self._alerts[opts.offset : opts.offset + opts.effective_limit]
        return AlertPage(
            alerts=chunk,
            has_more=opts.offset + opts.effective_limit < len(self._alerts),
            raw_count=len(chunk),
        )


def _page(alerts: list[Alert], has_more: bool = False, raw_count: int | None = None) -> AlertPage:
    return AlertPage(
        alerts=alerts,
        has_more=has_more,
        raw_count=len(alerts) if raw_count is None else raw_count,
    )


class FailingAlertStore(InMemoryAlertStore):
    """In-memory store that fails writes for chosen external ids."""

    def __init__(
        self,
        fail_outage_for: set[str] | None = None,
        fail_alert_for: set[str] | None = None,
    ) -> None:
        super().__init__()
        self.fail_outage_for = fail_outage_for or set()
        self.fail_alert_for = fail_alert_for or set()
        self.deleted: list[uuid.UUID] = []

    async def create_outage(self, outage: Outage) -> None:
        if outage.title.removeprefix("Incident ") in self.fail_outage_for:
            raise StoreError("outage insert failed")
        await super().create_outage(outage)

    async def create_alert(self, alert: AlertRecord) -> None:
        if alert.external_id in self.fail_alert_for:
            raise StoreError("alert insert failed")
        await super().create_alert(alert)

    async def delete_outage(self, outage_id: uuid.UUID) -> None:
        self.deleted.append(outage_id)
        await super().delete_outage(outage_id)


class BlindLookupStore(InMemoryAlertStore):
    """Store whose lookup never sees existing rows, as in a concurrent insert race."""

    async def get_alert_by_external_id(
        self, external_id: str, source: AlertSource
    ) -> AlertRecord | None:
        return None


def _driver(provider: Any, store: AlertStore | None, **kwargs: Any) -> tuple[ImportDriver, AsyncMock]:
    sleep = AsyncMock()
    driver = ImportDriver(provider, store, sleep=sleep, **kwargs)
    return driver, sleep


# ── Construction ───────────────────────────────────────────────


class TestImportDriverInit:
    def test_rejects_non_positive_batch(self) -> None:
        with pytest.raises(ValueError, match="batch_size"):
            ImportDriver(ScriptedProvider([]), InMemoryAlertStore(), batch_size=0)  # type: ignore[arg-type]

    def test_store_required_unless_dry_run(self) -> None:
        with pytest.raises(ValueError, match="store"):
            ImportDriver(ScriptedProvider([]))  # type: ignore[arg-type]

    def test_dry_run_without_store(self) -> None:
        driver = ImportDriver(ScriptedProvider([]), dry_run=True)  # type: ignore[arg-type]
        assert driver.dry_run is True


# ── Pagination ─────────────────────────────────────────────────


class TestPagination:
    async def test_two_pages_one_delay(self) -> None:
        provider = ScriptedProvider(
            [
                _page([_alert("A"), _alert("B")], has_more=True),
                _page([_alert("C")], has_more=False),
            ]
        )
        store = InMemoryAlertStore()
        driver, sleep = _driver(provider, store, batch_size=2)

        stats = await driver.run(_SINCE, _UNTIL)

        assert [r.offset for r in provider.requests] == [0, 2]
        assert all(r.limit == 2 for r in provider.requests)
        sleep.assert_awaited_once_with(0.5)
        assert stats.total_fetched == 3
        assert stats.new_outages == 3
        assert stats.new_alerts == 3
        assert stats.skipped == 0
        assert stats.errors == 0
        assert stats.pages == 2
        assert len(store.outages) == 3
        assert len(store.alerts) == 3

    async def test_request_carries_window_and_teams(self) -> None:
        provider = ScriptedProvider([_page([])])
        driver, _ = _driver(provider, InMemoryAlertStore())
        await driver.run(_SINCE, _UNTIL, team_ids=["T1", "T2"])
        req = provider.requests[0]
        assert req.since == _SINCE
        assert req.until == _UNTIL
        assert req.team_ids == ["T1", "T2"]
        assert req.limit == 100

    @pytest.mark.parametrize(("total", "batch", "calls"), [(5, 2, 3), (4, 2, 2), (1, 100, 1)])
    async def test_call_count_is_ceiling(self, total: int, batch: int, calls: int) -> None:
        provider = SlicingProvider([_alert(f"A{i}") for i in range(total)])
        driver, sleep = _driver(provider, InMemoryAlertStore(), batch_size=batch)

        stats = await driver.run(_SINCE)

        assert len(provider.requests) == calls
        assert sleep.await_count == calls - 1
        assert stats.total_fetched == total
        assert stats.new_alerts == total

    async def test_empty_first_page_stops(self) -> None:
        provider = ScriptedProvider([_page([], has_more=True, raw_count=0)])
        driver, sleep = _driver(provider, InMemoryAlertStore())
        stats = await driver.run(_SINCE)
        assert len(provider.requests) == 1
        sleep.assert_not_awaited()
        assert stats.total_fetched == 0

    async def test_filtered_out_page_continues(self) -> None:
        # every item on the first page was dropped by a client-side filter
        provider = ScriptedProvider(
            [
                _page([], has_more=True, raw_count=2),
                _page([_alert("C")], has_more=False),
            ]
        )
        driver, sleep = _driver(provider, InMemoryAlertStore(), batch_size=2)
        stats = await driver.run(_SINCE)
        assert len(provider.requests) == 2
        assert sleep.await_count == 1
        assert stats.total_fetched == 1
        assert stats.new_alerts == 1


# ── Idempotence ────────────────────────────────────────────────


class TestIdempotence:
    async def test_rerun_skips_everything(self) -> None:
        alerts = [_alert("A"), _alert("B"), _alert("C")]
        store = InMemoryAlertStore()

        first, _ = _driver(SlicingProvider(alerts), store, batch_size=2)
        await first.run(_SINCE)
        second, _ = _driver(SlicingProvider(alerts), store, batch_size=2)
        stats = await second.run(_SINCE)

        assert stats.total_fetched == 3
        assert stats.skipped == 3
        assert stats.new_outages == 0
        assert stats.new_alerts == 0
        assert len(store.outages) == 3
        assert len(store.alerts) == 3

    async def test_same_id_other_source_is_new(self) -> None:
        store = InMemoryAlertStore()
        first, _ = _driver(SlicingProvider([_alert("X")]), store)
        await first.run(_SINCE)
        other = _alert("X", source=AlertSource.OPSGENIE)
        second, _ = _driver(SlicingProvider([other]), store)
        stats = await second.run(_SINCE)
        assert stats.new_alerts == 1
        assert len(store.alerts) == 2

    async def test_duplicate_on_insert_counts_as_skipped(self) -> None:
        store = BlindLookupStore()
        first, _ = _driver(SlicingProvider([_alert("A")]), store)
        await first.run(_SINCE)

        second, _ = _driver(SlicingProvider([_alert("A")]), store)
        stats = await second.run(_SINCE)

        assert stats.skipped == 1
        assert stats.errors == 0
        assert stats.new_outages == 0
        # the outage created for the losing insert was removed again
        assert len(store.outages) == 1


# ── Aggregate contents ─────────────────────────────────────────


class TestAggregate:
    async def test_resolved_alert_gives_resolved_outage(self) -> None:
        resolved_at = _SINCE + timedelta(hours=3)
        store = InMemoryAlertStore()
        driver, _ = _driver(SlicingProvider([_alert("A", resolved_at=resolved_at)]), store)
        await driver.run(_SINCE)

        (outage,) = store.outages.values()
        assert outage.status == OutageStatus.RESOLVED
        assert outage.resolved_at == resolved_at

    async def test_open_alert_gives_open_outage(self) -> None:
        store = InMemoryAlertStore()
        driver, _ = _driver(SlicingProvider([_alert("A")]), store)
        await driver.run(_SINCE)
        (outage,) = store.outages.values()
        assert outage.status == OutageStatus.OPEN
        assert outage.resolved_at is None

    async def test_outage_stamped_with_trigger_time(self) -> None:
        alert = _alert("A", description="disk full")
        store = InMemoryAlertStore()
        driver, _ = _driver(SlicingProvider([alert]), store)
        await driver.run(_SINCE)

        (outage,) = store.outages.values()
        assert outage.created_at == alert.triggered_at
        assert outage.updated_at == alert.triggered_at
        assert outage.title == "Incident A"
        assert outage.description == "disk full"
        assert outage.severity == "high"
        record = store.alerts[("A", AlertSource.PAGERDUTY)]
        assert record.outage_id == outage.id
        assert record.team_name == "SRE"


# ── Failures ───────────────────────────────────────────────────


class TestFailures:
    async def test_alert_insert_failure_rolls_back_outage(self) -> None:
        store = FailingAlertStore(fail_alert_for={"B"})
        provider = SlicingProvider([_alert("A"), _alert("B"), _alert("C")])
        driver, _ = _driver(provider, store)

        stats = await driver.run(_SINCE)

        assert stats.errors == 1
        assert stats.new_outages == 2
        assert stats.new_alerts == 2
        assert len(store.deleted) == 1
        assert len(store.outages) == 2
        assert all(o.title != "Incident B" for o in store.outages.values())

    async def test_outage_insert_failure_counts_error(self) -> None:
        store = FailingAlertStore(fail_outage_for={"A"})
        driver, _ = _driver(SlicingProvider([_alert("A"), _alert("B")]), store)

        stats = await driver.run(_SINCE)

        assert stats.errors == 1
        assert stats.new_alerts == 1
        assert store.deleted == []

    async def test_lookup_failure_counts_error(self) -> None:
        store = InMemoryAlertStore()
        store.get_alert_by_external_id = AsyncMock(side_effect=StoreError("db gone"))  # type: ignore[method-assign]
        driver, _ = _driver(SlicingProvider([_alert("A")]), store)
        stats = await driver.run(_SINCE)
        assert stats.errors == 1
        assert store.outages == {}

    async def test_provider_error_aborts_and_keeps_stats(self) -> None:
        provider = ScriptedProvider(
            [
                _page([_alert("A"), _alert("B")], has_more=True),
                ProviderAPIError("PagerDuty", 500, "boom"),
            ]
        )
        store = InMemoryAlertStore()
        driver, _ = _driver(provider, store, batch_size=2)

        with pytest.raises(ProviderAPIError):
            await driver.run(_SINCE)

        assert driver.stats.total_fetched == 2
        assert driver.stats.new_alerts == 2
        assert len(store.alerts) == 2


# ── Dry run ────────────────────────────────────────────────────


class TestDryRun:
    async def test_no_store_calls(self) -> None:
        store = MagicMock(spec=AlertStore)
        provider = ScriptedProvider(
            [
                _page([_alert("A"), _alert("B")], has_more=True),
                _page([_alert("C")]),
            ]
        )
        driver, sleep = _driver(provider, store, dry_run=True, batch_size=2)

        stats = await driver.run(_SINCE)

        assert store.mock_calls == []
        assert stats.total_fetched == 3
        assert stats.new_outages == 3
        assert stats.new_alerts == 3
        assert stats.skipped == 0
        assert sleep.await_count == 1

    async def test_dry_run_ignores_existing_rows(self) -> None:
        store = InMemoryAlertStore()
        real, _ = _driver(SlicingProvider([_alert("A")]), store)
        await real.run(_SINCE)

        dry, _ = _driver(SlicingProvider([_alert("A")]), store, dry_run=True)
        stats = await dry.run(_SINCE)

        assert stats.new_alerts == 1
        assert stats.skipped == 0
        assert len(store.outages) == 1


# ── OpsGenie team filter end to end ────────────────────────────


def _og_alert(alert_id: str, team_id: str) -> dict[str, Any]:
    return {
        "id": alert_id,
        "message": f"Alert {alert_id}",
        "priority": "P3",
        "createdAt": "2024-01-01T06:00:00Z",
        "teams": [{"id": team_id, "name": f"Team {team_id}"}],
    }


def _og_response(alerts: list[dict[str, Any]], next_link: str) -> httpx.Response:
    return httpx.Response(
        status_code=200,
        json={"data": alerts, "paging": {"next": next_link}},
        request=httpx.Request("GET", "https://api.opsgenie.com/v2/alerts"),
    )


class TestOpsGenieTeamFilterImport:
    async def test_only_matching_alerts_persisted_across_pages(self) -> None:
        pages = [
            _og_response(
                [_og_alert("og-1", "team-a"), _og_alert("og-2", "team-b")],
                "https://api.opsgenie.com/v2/alerts?limit=2&offset=2",
            ),
            _og_response([_og_alert("og-3", "team-b"), _og_alert("og-4", "team-a")], ""),
        ]
        store = InMemoryAlertStore()

        async with OpsGenieProvider(api_key="og-key") as provider:
            with patch.object(provider._http, "get", new_callable=AsyncMock) as mock_get:
                mock_get.side_effect = pages
                driver, sleep = _driver(provider, store, batch_size=2)
                stats = await driver.run(_SINCE, _UNTIL, team_ids=["team-a"])

        assert mock_get.await_count == 2
        offsets = [dict(call.kwargs["params"])["offset"] for call in mock_get.call_args_list]
        assert offsets == [0, 2]
        sleep.assert_awaited_once_with(0.5)
        assert sorted(external_id for external_id, _ in store.alerts) == ["og-1", "og-4"]
        assert len(store.outages) == 2
        assert stats.total_fetched == 2
        assert stats.new_alerts == 2
        assert stats.new_outages == 2

    async def test_page_with_no_matches_still_follows_next_link(self) -> None:
        pages = [
            _og_response(
                [_og_alert("og-1", "team-b")],
                "https://api.opsgenie.com/v2/alerts?limit=1&offset=1",
            ),
            _og_response([_og_alert("og-2", "team-a")], ""),
        ]
        store = InMemoryAlertStore()

        async with OpsGenieProvider(api_key="og-key") as provider:
            with patch.object(provider._http, "get", new_callable=AsyncMock) as mock_get:
                mock_get.side_effect = pages
                driver, _ = _driver(provider, store, batch_size=1)
                stats = await driver.run(_SINCE, team_ids=["team-a"])

        assert mock_get.await_count == 2
        assert list(store.alerts) == [("og-2", AlertSource.OPSGENIE)]
        assert stats.total_fetched == 1
