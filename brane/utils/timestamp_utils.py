"""
Timestamp utilities for consistent time handling across the system.
"""

from datetime import datetime, timezone
from typing import Optional


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 date or date-time string.

    A trailing ``Z`` is accepted. Values without an offset are treated as UTC.

    Args:
        value: ISO-8601 string such as ``2024-05-01`` or ``2024-05-01T09:30:00+02:00``

    Returns:
        Timezone-aware datetime

    Raises:
        ValueError: If the string is not ISO-8601
    """
    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Convert a datetime to an ISO-8601 string, passing None through."""
    if value is None:
        return None
    return value.isoformat()
