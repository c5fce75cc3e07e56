"""Helpers for parsing Subscan record fields."""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional


def to_decimal(value: Any) -> Decimal:
    """Parse an API amount string, treating blanks and garbage as zero."""
    if value in (None, ""):
        return Decimal('0')
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal('0')


def to_amount(value: Any) -> Decimal:
    """
    Parse a token amount carried by an event record.

    Raises:
        ValueError: the amount is negative, NaN or infinite
    """
    amount = to_decimal(value)
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def display_name(record: Dict[str, Any], key: str) -> Optional[str]:
    """Extract the on-chain identity display from an account_display block."""
    display = record.get(key)
    if not isinstance(display, dict):
        return None
    return display.get('display') or None


def short_address(address: str) -> str:
    """Abbreviate an address for console and HTML output."""
    if len(address) <= 16:
        return address
    return f"{address[:8]}...{address[-6:]}"
