"""Utility functions and helpers."""

from inflation_tracker.utils.amounts import to_decimal, to_amount, display_name, short_address
from inflation_tracker.utils.time import hour_bucket, to_utc_timestamp, format_timestamp, date_stamp

__all__ = [
    "to_decimal",
    "to_amount",
    "display_name",
    "short_address",
    "hour_bucket",
    "to_utc_timestamp",
    "format_timestamp",
    "date_stamp",
]
