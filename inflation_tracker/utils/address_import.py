"""Import cohort addresses from files in assorted formats."""

import csv
import io
import json
import re
from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional, Union
import structlog

from inflation_tracker.core.errors import AddressImportError
from inflation_tracker.models.events import RewardReceiver
from inflation_tracker.utils.amounts import to_decimal

logger = structlog.get_logger(__name__)

FORMATS = ("text", "csv", "json-array", "json-object", "json-detailed")
MIN_ADDRESS_LENGTH = 47
MAX_ADDRESS_LENGTH = 48
# Shortest line the text format considers a candidate address
TEXT_MIN_LENGTH = 40

_LINK_TEXT = re.compile(r">([^<]+)</a>\s*$")
_SS58_PARAM = re.compile(r"nominator_ss58[^=]*=([^'\"&>\s]+)")


def is_valid_polkadot_address(address: Optional[str]) -> bool:
    """Polkadot (SS58 prefix 0) addresses start with '1' and are 47-48 chars."""
    return bool(address) and address.startswith('1') and MIN_ADDRESS_LENGTH <= len(address) <= MAX_ADDRESS_LENGTH


def clean_address(raw: Optional[str]) -> Optional[str]:
    """
    Strip explorer link markup from an address.

    Example: "16ZL8y...zzBD target=_blank>16ZL...zzBD</a>" -> "16ZL8y...zzBD"
    """
    if not raw:
        return None
    if 'target=' in raw:
        head = raw.split(' target=', 1)[0].strip()
        if head:
            return head
    return raw.strip()


def detect_format(content: str) -> str:
    """Guess the format of an address list."""
    trimmed = content.strip()

    if trimmed.startswith('[') and trimmed.endswith(']'):
        try:
            parsed = json.loads(trimmed)
        except ValueError:
            parsed = None
        if isinstance(parsed, list) and parsed:
            if isinstance(parsed[0], str):
                return "json-array"
            if isinstance(parsed[0], dict):
                return "json-detailed"

    if trimmed.startswith('{') and trimmed.endswith('}'):
        return "json-object"

    if ',' in trimmed:
        return "csv"

    return "text"


def _load_json(content: str, fmt: str) -> Any:
    try:
        return json.loads(content)
    except ValueError as e:
        raise AddressImportError(f"Content is not valid {fmt}: {e}") from e


def parse_addresses(content: str, fmt: str = "text") -> List[str]:
    """
    Extract valid addresses from `content` in format `fmt`.

    Duplicates are dropped keeping first occurrence.

    Raises:
        AddressImportError: unknown format or malformed JSON
    """
    if fmt not in FORMATS:
        raise AddressImportError(f"Unknown address format: {fmt} (expected one of {', '.join(FORMATS)})")

    candidates: List[Any] = []
    if fmt == "json-array":
        data = _load_json(content, fmt)
        if not isinstance(data, list):
            raise AddressImportError("json-array content must be a JSON list")
        candidates.extend(data)
    elif fmt == "json-object":
        data = _load_json(content, fmt)
        if not isinstance(data, dict):
            raise AddressImportError("json-object content must be a JSON object")
        candidates.extend(data.keys())
    elif fmt == "json-detailed":
        data = _load_json(content, fmt)
        if not isinstance(data, list):
            raise AddressImportError("json-detailed content must be a JSON list")
        candidates.extend(item.get('address') for item in data if isinstance(item, dict))
    elif fmt == "csv":
        for line in content.splitlines():
            first = line.split(',', 1)[0].strip()
            if first:
                candidates.append(first)
    else:
        for line in content.splitlines():
            trimmed = line.strip()
            if len(trimmed) > TEXT_MIN_LENGTH:
                candidates.append(trimmed)

    addresses = [
        clean_address(c) for c in candidates if isinstance(c, str)
    ]
    return list(dict.fromkeys(a for a in addresses if is_valid_polkadot_address(a)))


def extract_link_address(cell: str) -> Optional[str]:
    """Address from an explorer link cell, falling back to its ss58 URL parameter."""
    match = _LINK_TEXT.search(cell)
    if not match:
        return None
    text = match.group(1).strip()
    if '...' in text:
        param = _SS58_PARAM.search(cell)
        if param:
            return param.group(1)
    return text


def parse_nominators_csv(content: str, limit: int = 300) -> List[RewardReceiver]:
    """
    Parse a ranked nominator export.

    Columns used: 0 rank, 2 nominator link, 5 delegated amount, 6 staking rewards.
    The header row is skipped.
    """
    receivers = []
    rows = csv.reader(io.StringIO(content))
    next(rows, None)
    for parts in rows:
        if len(receivers) >= limit:
            break
        if len(parts) < 3:
            continue
        address = extract_link_address(parts[2])
        if not is_valid_polkadot_address(address):
            continue

        try:
            rank = int(parts[0])
        except ValueError:
            rank = None

        receivers.append(RewardReceiver(
            address=address,
            identity='pos.dog' if 'pos.dog' in parts[2] else f"Nominator #{rank}",
            balance=to_decimal(parts[5]) if len(parts) > 5 else Decimal('0'),
            rank=rank,
            total_rewards=to_decimal(parts[6]) if len(parts) > 6 else Decimal('0'),
            source="nominators-csv",
        ))

    return receivers


def import_addresses(path: Union[str, Path], fmt: str = "auto") -> List[RewardReceiver]:
    """
    Read an address file and convert it to ranked cohort members.

    Raises:
        AddressImportError: file unreadable, malformed or holding no valid address
    """
    try:
        content = Path(path).read_text(encoding='utf-8')
    except OSError as e:
        raise AddressImportError(f"Cannot read {path}: {e}") from e

    actual = detect_format(content) if fmt == "auto" else fmt
    logger.info("Importing addresses", path=str(path), format=actual)

    addresses = parse_addresses(content, actual)
    if not addresses:
        raise AddressImportError(f"No valid addresses found in {path}")

    logger.info("Parsed addresses", count=len(addresses))
    return [
        RewardReceiver(address=address, rank=rank, source=str(path))
        for rank, address in enumerate(addresses, start=1)
    ]
