"""Date manipulation utilities"""

from datetime import datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Current instant as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Coerce an ISO-8601 string or datetime into an aware UTC datetime.

    Naive values are taken to be UTC. Returns None for missing or
    unparseable input instead of raising.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def whole_days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end, truncated toward zero"""
    seconds = (end - start).total_seconds()
    days = int(abs(seconds) // 86400)
    return days if seconds >= 0 else -days
