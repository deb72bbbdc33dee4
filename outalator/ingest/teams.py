"""Team discovery for building ``-teams`` filters."""

from __future__ import annotations

import structlog

from outalator.core.types import Team
from outalator.providers.base import NotificationProvider

logger = structlog.stdlib.get_logger()


class TeamLister:
    """Read-only listing of a provider's teams. Errors always propagate."""

    def __init__(self, provider: NotificationProvider) -> None:
        self._provider = provider

    async def list_teams(self) -> list[Team]:
        logger.info("teams_fetching", provider=self._provider.source)
        teams = await self._provider.list_teams()
        logger.info("teams_fetched", provider=self._provider.source, count=len(teams))
        return teams


def render_teams(teams: list[Team]) -> str:
    if not teams:
        return "No teams found."
    lines = ["Available teams:"]
    lines.extend(f"  ID: {team.id}\tName: {team.name}" for team in teams)
    return "\n".join(lines)
