"""
RFC3339 timestamps.

All stamps are UTC with second precision: 2006-01-02T15:04:05Z. The clock
can be pinned per invocation with --time for deterministic runs.
"""

from datetime import datetime, timezone
from typing import Optional

from agentpm.errors import UsageError

RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def format_timestamp(value: Optional[datetime]) -> str:
    """Format a datetime as RFC3339 UTC, or '' for None."""
    if value is None:
        return ""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(RFC3339_FORMAT)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC3339 string into an aware UTC datetime.

    Returns None for empty input. Raises ValueError for malformed input.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).replace(microsecond=0)


def resolve_clock(value: Optional[str]) -> datetime:
    """Timestamp for this invocation: the --time override or the current time."""
    if not value:
        return now()
    try:
        return parse_timestamp(value)
    except ValueError:
        raise UsageError(f"Invalid --time value: {value} (expected RFC3339, e.g. 2025-01-15T10:30:00Z)") from None
