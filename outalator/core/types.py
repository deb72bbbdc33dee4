"""Domain types for alert ingestion — canonical alerts and the outage aggregate."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

DEFAULT_PAGE_LIMIT = 100

UNKNOWN_TEAM = "unknown"


class AlertSource(StrEnum):
    """On-call notification provider an alert was paged through."""

    PAGERDUTY = "pagerduty"
    OPSGENIE = "opsgenie"


class OutageStatus(StrEnum):
    """Outage lifecycle states set by ingestion."""

    OPEN = "open"
    RESOLVED = "resolved"


class Alert(BaseModel):
    """Provider-normalised paging event.

    ``(external_id, source)`` is the identity key; ``resolved_at`` being set
    is the only signal of resolution.
    """

    external_id: str
    source: AlertSource
    team_name: str = UNKNOWN_TEAM
    title: str = ""
    description: str = ""
    severity: str = ""
    triggered_at: datetime
    acknowledged_at: datetime | None = None
    resolved_at: datetime | None = None

    @property
    def identity_key(self) -> tuple[str, AlertSource]:
        return (self.external_id, self.source)

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None


class Team(BaseModel):
    """A provider team, used to build ``team_ids`` filters."""

    id: str
    name: str = ""


class HistoricalFetchOptions(BaseModel):
    """Query window and page cursor for a historical fetch."""

    since: datetime
    until: datetime | None = None
    team_ids: list[str] = Field(default_factory=list)
    limit: int = 0
    offset: int = 0

    @property
    def effective_limit(self) -> int:
        return self.limit if self.limit > 0 else DEFAULT_PAGE_LIMIT


class AlertPage(BaseModel):
    """One page of historical alerts.

    ``raw_count`` is the number of items the provider returned before any
    client-side team filtering; ``has_more`` is the provider's own signal.
    """

    alerts: list[Alert] = Field(default_factory=list)
    has_more: bool = False
    raw_count: int = 0


class Outage(BaseModel):
    """Persisted incident aggregate that alerts attach to."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    title: str
    description: str = ""
    status: OutageStatus = OutageStatus.OPEN
    severity: str = ""
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None = None


class AlertRecord(BaseModel):
    """Persisted alert, child of an :class:`Outage`."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    outage_id: uuid.UUID
    external_id: str
    source: AlertSource
    team_name: str = UNKNOWN_TEAM
    title: str = ""
    description: str = ""
    severity: str = ""
    triggered_at: datetime
    acknowledged_at: datetime | None = None
    resolved_at: datetime | None = None
    created_at: datetime

    @property
    def identity_key(self) -> tuple[str, AlertSource]:
        return (self.external_id, self.source)


def derive_status(alert: Alert) -> OutageStatus:
    """Outage status implied by an alert: resolved iff it has ``resolved_at``."""
    return OutageStatus.RESOLVED if alert.resolved_at is not None else OutageStatus.OPEN
