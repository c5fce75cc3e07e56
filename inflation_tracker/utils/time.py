"""Time utility functions for on-chain event data."""

from datetime import datetime, timezone
from typing import Union

SECONDS_PER_HOUR = 3600
HOURS_PER_DAY = 24


def hour_bucket(timestamp: int) -> int:
    """UTC hour-of-day (0..23) of a unix timestamp."""
    return (int(timestamp) // SECONDS_PER_HOUR) % HOURS_PER_DAY


def to_utc_timestamp(timestamp: Union[int, float, datetime]) -> datetime:
    """Convert various timestamp formats to UTC datetime."""
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc)

    elif isinstance(timestamp, (int, float)):
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)

    else:
        raise ValueError(f"Unsupported timestamp type: {type(timestamp)}")


def format_timestamp(timestamp: int) -> str:
    """Render a unix timestamp as an ISO-8601 UTC string."""
    return to_utc_timestamp(timestamp).strftime("%Y-%m-%dT%H:%M:%SZ")


def date_stamp(timestamp: int) -> str:
    """UTC calendar date (YYYY-MM-DD) of a unix timestamp."""
    return to_utc_timestamp(timestamp).strftime("%Y-%m-%d")
