"""PagerDuty adapter — REST API v2 incidents and teams."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from outalator.core.config import PagerDutyConfig
from outalator.core.timeutil import format_rfc3339
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
    summary: str = ""


class _Incident(BaseModel):
    id: str
    title: str | None = ""
    description: str | None = ""
    status: str = ""
    urgency: str | None = ""
    created_at: datetime
    acknowledged_at: datetime | None = None
    resolved_at: datetime | None = None
    teams: list[_TeamReference] = []


class _IncidentEnvelope(BaseModel):
    incident: _Incident


class _IncidentList(BaseModel):
    incidents: list[_Incident]
    more: bool = False


class _Team(BaseModel):
    id: str
    name: str = ""


class _TeamList(BaseModel):
    teams: list[_Team]


def _to_alert(incident: _Incident) -> Alert:
    """Map a PagerDuty incident onto the canonical alert.

    Urgency stands in for severity; the first team's summary is the team name.
    """
    team_name = incident.teams[0].summary if incident.teams else UNKNOWN_TEAM
    return Alert(
        external_id=incident.id,
        source=AlertSource.PAGERDUTY,
        team_name=team_name or UNKNOWN_TEAM,
        title=incident.title or "",
        description=incident.description or "",
        severity=incident.urgency or "",
        triggered_at=incident.created_at,
        acknowledged_at=incident.acknowledged_at,
        resolved_at=incident.resolved_at,
    )


class PagerDutyProvider(NotificationProvider):
    """PagerDuty incidents as canonical alerts.

    Team filtering is done server-side via repeated ``team_ids[]`` parameters
    and ``has_more`` is the envelope's ``more`` flag.
    """

    source = AlertSource.PAGERDUTY
    display_name = "PagerDuty"

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.pagerduty.com",
        timeout_secs: float = 30.0,
    ) -> None:
        super().__init__(api_key=api_key, api_url=api_url, timeout_secs=timeout_secs)

    @classmethod
    def from_config(cls, config: PagerDutyConfig) -> PagerDutyProvider:
        return cls(
            api_key=config.api_key.get_secret_value(),
            api_url=config.api_url,
            timeout_secs=config.timeout_secs,
        )

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Token token={self._api_key}",
            "Accept": "application/vnd.pagerduty+json;version=2",
        }

    def _alert_path(self, alert_id: str) -> str:
        return f"/incidents/{alert_id}"

    def _decode_alert(self, body: Any) -> Alert:
        return _to_alert(self._validate(_IncidentEnvelope, body).incident)

    def _history_request(self, opts: HistoricalFetchOptions) -> tuple[str, QueryParams]:
        params: QueryParams = [("since", format_rfc3339(opts.since))]
        if opts.until is not None:
            params.append(("until", format_rfc3339(opts.until)))
        for team_id in opts.team_ids:
            params.append(("team_ids[]", team_id))
        params.append(("limit", opts.effective_limit))
        params.append(("offset", opts.offset))
        return "/incidents", params

    def _decode_history(self, body: Any, opts: HistoricalFetchOptions) -> AlertPage:
        result = self._validate(_IncidentList, body)
        return AlertPage(
            alerts=[_to_alert(incident) for incident in result.incidents],
            has_more=result.more,
            raw_count=len(result.incidents),
        )

    def _teams_path(self) -> str:
        return "/teams"

    def _decode_teams(self, body: Any) -> list[Team]:
        result = self._validate(_TeamList, body)
        return [Team(id=team.id, name=team.name) for team in result.teams]
