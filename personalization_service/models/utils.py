"""
Small helpers shared by the model classes.
"""

from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 string or datetime into an aware UTC datetime.

    Naive values are assumed to be UTC. Returns None for empty or unparseable
    input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            # Accept 'Z' by replacing with +00:00
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def hours_between(earlier: Optional[datetime], later: datetime) -> float:
    """Hours elapsed from earlier to later, never negative."""
    if earlier is None:
        return 0.0
    return max((later - earlier).total_seconds() / 3600.0, 0.0)
