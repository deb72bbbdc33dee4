"""Run counters for a historical import."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass
class ImportStats:
    """Counters accumulated over a whole run and reported once at the end."""

    total_fetched: int = 0
    new_outages: int = 0
    new_alerts: int = 0
    skipped: int = 0
    errors: int = 0
    pages: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def render_summary(stats: ImportStats, *, dry_run: bool = False, aborted: bool = False) -> str:
    """Operator-facing summary of a run."""
    if aborted:
        headline = "Import aborted: counts reflect work completed before the failure."
    elif dry_run:
        headline = "Dry run completed (nothing was written)."
    else:
        headline = "Import completed!"
    lines = [
        headline,
        f"Total incidents/alerts fetched: {stats.total_fetched}",
        f"New outages created: {stats.new_outages}",
        f"New alerts created: {stats.new_alerts}",
        f"Skipped (already exists): {stats.skipped}",
        f"Errors encountered: {stats.errors}",
    ]
    return "\n".join(lines)
