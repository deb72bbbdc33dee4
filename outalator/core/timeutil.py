"""RFC3339 helpers shared by the CLI and the provider adapters."""

from __future__ import annotations

import re
from datetime import UTC, datetime

# date "T" time, optional fraction, then "Z" or a numeric offset; nothing else
_RFC3339_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d{1,9}))?"
    r"(?P<offset>Z|[+-]\d{2}:\d{2})$"
)


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC3339 timestamp such as ``2024-01-01T00:00:00Z``.

    Only the full ``YYYY-MM-DDTHH:MM:SS[.frac](Z|+HH:MM)`` form is accepted;
    basic ISO 8601 forms and truncated times are rejected. Fractions finer
    than microseconds are truncated.

    Raises:
        ValueError: The string is malformed or carries no UTC offset.
    """
    match = _RFC3339_RE.match(value.strip())
    if match is None:
        raise ValueError(
            f"timestamp {value!r} is not RFC3339 with a UTC offset (e.g. 2024-01-01T00:00:00Z)"
        )
    text = match["base"]
    if match["frac"]:
        text += "." + match["frac"][:6].ljust(6, "0")
    offset = match["offset"]
    text += "+00:00" if offset == "Z" else offset
    return datetime.fromisoformat(text)


def format_rfc3339(value: datetime) -> str:
    """Render *value* in UTC with a ``Z`` suffix (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def to_epoch_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp()) * 1000
