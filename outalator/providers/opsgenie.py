"""OpsGenie adapter — Alert API v2 with client-side team filtering."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from outalator.core.config import OpsGenieConfig
from outalator.core.timeutil import to_epoch_millis
from outalator.core.types import (
    UNKNOWN_TEAM,
    Alert,
    AlertPage,
    AlertSource,
    HistoricalFetchOptions,
    Team,
)
from outalator.providers.base import NotificationProvider, QueryParams


class _TeamReference(BaseModel):
    id: str = ""
    name: str = ""


class _Alert(BaseModel):
    id: str
    message: str | None = ""
    description: str | None = ""
    status: str = ""
    priority: str | None = ""
    created_at: datetime = Field(alias="createdAt")
    acknowledged_at: datetime | None = Field(default=None, alias="acknowledgedAt")
    closed_at: datetime | None = Field(default=None, alias="closedAt")
    teams: list[_TeamReference] = []


class _AlertEnvelope(BaseModel):
    data: _Alert


class _Paging(BaseModel):
    next: str | None = ""


class _AlertList(BaseModel):
    data: list[_Alert]
    paging: _Paging = _Paging()


class _Team(BaseModel):
    id: str
    name: str = ""


class _TeamList(BaseModel):
    data: list[_Team]


def _to_alert(raw: _Alert) -> Alert:
    """Map an OpsGenie alert onto the canonical alert.

    ``message`` is the title, ``priority`` (P1..P5) the severity and
    ``closedAt`` the resolution time.
    """
    team_name = raw.teams[0].name if raw.teams else UNKNOWN_TEAM
    return Alert(
        external_id=raw.id,
        source=AlertSource.OPSGENIE,
        team_name=team_name or UNKNOWN_TEAM,
        title=raw.message or "",
        description=raw.description or "",
        severity=raw.priority or "",
        triggered_at=raw.created_at,
        acknowledged_at=raw.acknowledged_at,
        resolved_at=raw.closed_at,
    )


def _matches_teams(raw: _Alert, team_ids: set[str]) -> bool:
    return any(team.id in team_ids for team in raw.teams)


def _created_at_query(opts: HistoricalFetchOptions) -> str:
    query = f"createdAt>{to_epoch_millis(opts.since)}"
    if opts.until is not None:
        query += f" AND createdAt<{to_epoch_millis(opts.until)}"
    return query


class OpsGenieProvider(NotificationProvider):
    """OpsGenie alerts as canonical alerts.

    The alert search API cannot filter by team, so ``team_ids`` is applied
    to each decoded page. ``has_more`` is true while ``paging.next`` is set,
    regardless of how many alerts the team filter kept.
    """

    source = AlertSource.OPSGENIE
    display_name = "OpsGenie"

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.opsgenie.com",
        timeout_secs: float = 30.0,
    ) -> None:
        super().__init__(api_key=api_key, api_url=api_url, timeout_secs=timeout_secs)

    @classmethod
    def from_config(cls, config: OpsGenieConfig) -> OpsGenieProvider:
        return cls(
            api_key=config.api_key.get_secret_value(),
            api_url=config.api_url,
            timeout_secs=config.timeout_secs,
        )

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"GenieKey {self._api_key}"}

    def _alert_path(self, alert_id: str) -> str:
        return f"/v2/alerts/{alert_id}"

    def _decode_alert(self, body: Any) -> Alert:
        return _to_alert(self._validate(_AlertEnvelope, body).data)

    def _history_request(self, opts: HistoricalFetchOptions) -> tuple[str, QueryParams]:
        params: QueryParams = [
            ("query", _created_at_query(opts)),
            ("order", "desc"),
            ("limit", opts.effective_limit),
            ("offset", opts.offset),
        ]
        return "/v2/alerts", params

    def _decode_history(self, body: Any, opts: HistoricalFetchOptions) -> AlertPage:
        result = self._validate(_AlertList, body)
        wanted = set(opts.team_ids)
        kept = [
            raw for raw in result.data
            if not wanted or _matches_teams(raw, wanted)
        ]
        return AlertPage(
            alerts=[_to_alert(raw) for raw in kept],
            has_more=bool(result.paging.next),
            raw_count=len(result.data),
        )

    def _teams_path(self) -> str:
        return "/v2/teams"

    def _decode_teams(self, body: Any) -> list[Team]:
        result = self._validate(_TeamList, body)
        return [Team(id=team.id, name=team.name) for team in result.data]
