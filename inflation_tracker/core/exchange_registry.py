"""Registry of known exchange and DeFi addresses."""

import json
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Dict, Any, List, Optional, Union, Mapping, Iterable, Sequence
import structlog
from pydantic import BaseModel, Field, ValidationError

from inflation_tracker.core.errors import RegistryLoadError
from inflation_tracker.models.events import (
    ExchangeFlow,
    ExchangeVenue,
    FlowDirection,
    RewardEvent,
    RewardReceiver,
    TransferEvent,
    VenueType,
)

logger = structlog.get_logger(__name__)

QUICK_SELL_SECONDS = 3600
REGULAR_SELL_SECONDS = 86400
DELAYED_SELL_SECONDS = 604800
LARGEST_TRANSFERS_KEPT = 10


class VenueEntry(BaseModel):
    """One venue in the registry file."""
    name: str = Field(..., min_length=1, description="Display name")
    type: VenueType = Field(default=VenueType.EXCHANGE, description="Venue kind (exchange|defi)")
    addresses: List[str] = Field(default_factory=list, description="Known venue addresses")
    note: Optional[str] = Field(default=None, description="Free-form provenance note")


@dataclass
class VenueFlowStats:
    """Deposit and withdrawal totals for one venue."""
    venue_type: VenueType
    deposits: Decimal = Decimal('0')
    withdrawals: Decimal = Decimal('0')
    deposit_count: int = 0
    withdrawal_count: int = 0

    @property
    def net_flow(self) -> Decimal:
        return self.deposits - self.withdrawals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.venue_type.value,
            "deposits": float(self.deposits),
            "withdrawals": float(self.withdrawals),
            "deposit_count": self.deposit_count,
            "withdrawal_count": self.withdrawal_count,
            "net_flow": float(self.net_flow),
        }


@dataclass
class ExchangeFlowSummary:
    """Venue-side view of a set of exchange flows."""
    total_deposits: Decimal = Decimal('0')
    total_withdrawals: Decimal = Decimal('0')
    deposit_count: int = 0
    withdrawal_count: int = 0
    by_venue: Dict[str, VenueFlowStats] = field(default_factory=dict)
    largest_deposits: List[ExchangeFlow] = field(default_factory=list)
    largest_withdrawals: List[ExchangeFlow] = field(default_factory=list)

    @property
    def net_flow(self) -> Decimal:
        return self.total_deposits - self.total_withdrawals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_deposits": float(self.total_deposits),
            "total_withdrawals": float(self.total_withdrawals),
            "deposit_count": self.deposit_count,
            "withdrawal_count": self.withdrawal_count,
            "by_exchange": {name: stats.to_dict() for name, stats in self.by_venue.items()},
            "largest_deposits": [f.to_dict() for f in self.largest_deposits],
            "largest_withdrawals": [f.to_dict() for f in self.largest_withdrawals],
            "net_flow": float(self.net_flow),
        }


@dataclass
class AddressCategories:
    """Cohort addresses grouped by how quickly they move rewards to venues."""
    quick_sellers: List[str] = field(default_factory=list)
    regular_sellers: List[str] = field(default_factory=list)
    delayed_sellers: List[str] = field(default_factory=list)
    holders: List[str] = field(default_factory=list)
    exchange_accounts: List[str] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "quick_sellers": list(self.quick_sellers),
            "regular_sellers": list(self.regular_sellers),
            "delayed_sellers": list(self.delayed_sellers),
            "holders": list(self.holders),
            "exchange_accounts": list(self.exchange_accounts),
            "unmatched": list(self.unmatched),
        }


class ExchangeRegistry:
    """
    Read-only address -> venue lookup.

    Built once per run by inverting the venue -> addresses listing, so
    classification is a single dict lookup. An address that is not listed
    simply is not a venue.
    """

    def __init__(self, venues: Iterable[ExchangeVenue] = ()):
        self._venues: Dict[str, ExchangeVenue] = {}
        self._by_address: Dict[str, ExchangeVenue] = {}
        for venue in venues:
            self._venues[venue.id] = venue
            for address in venue.addresses:
                self._by_address[address] = venue
        self.logger = logger.bind(component="exchange_registry")

    @classmethod
    def load(cls, source: Union[str, Path, Mapping[str, Any]]) -> "ExchangeRegistry":
        """
        Load a registry from a JSON file path or an already-parsed mapping.

        Raises:
            RegistryLoadError: file missing, unreadable or malformed
        """
        if isinstance(source, Mapping):
            raw = source
            origin = "<mapping>"
        else:
            origin = str(source)
            try:
                with open(source, 'r', encoding='utf-8') as f:
                    raw = json.load(f)
            except (OSError, ValueError) as e:
                logger.error("Failed to read exchange registry", path=origin, error=str(e))
                raise RegistryLoadError(f"Cannot read exchange registry {origin}: {e}") from e

        if not isinstance(raw, Mapping):
            raise RegistryLoadError(f"Exchange registry {origin} must be a JSON object")

        venues = []
        try:
            for venue_id, data in raw.items():
                entry = VenueEntry.model_validate(data)
                venues.append(ExchangeVenue(
                    id=venue_id,
                    display_name=entry.name,
                    venue_type=entry.type,
                    addresses=frozenset(a.strip() for a in entry.addresses if a.strip()),
                    note=entry.note,
                ))
        except ValidationError as e:
            logger.error("Invalid exchange registry", source=origin, error=str(e))
            raise RegistryLoadError(f"Invalid exchange registry {origin}: {e}") from e

        registry = cls(venues)
        logger.info("Loaded exchange addresses",
                    source=origin,
                    addresses=len(registry._by_address),
                    venues=len(registry._venues))
        return registry

    @property
    def venues(self) -> Dict[str, ExchangeVenue]:
        return dict(self._venues)

    def __len__(self) -> int:
        return len(self._by_address)

    def classify(self, address: str) -> Optional[ExchangeVenue]:
        """Return the venue owning `address`, or None."""
        return self._by_address.get(address)

    def is_exchange(self, address: str) -> bool:
        return address in self._by_address

    def all_addresses(self) -> List[Dict[str, str]]:
        """Every known venue address with its venue name and type."""
        return [
            {"address": address, "exchange": venue.display_name, "type": venue.venue_type.value}
            for address, venue in self._by_address.items()
        ]

    def detect_exchange_transfers(self, transfers: Iterable[TransferEvent]) -> List[ExchangeFlow]:
        """
        Classify transfers touching venue addresses.

        A transfer to a venue is a deposit, a transfer from a venue is a
        withdrawal. A venue-to-venue transfer yields both.
        """
        flows = []
        for transfer in transfers:
            to_venue = self.classify(transfer.recipient)
            if to_venue is not None:
                flows.append(ExchangeFlow(transfer, FlowDirection.DEPOSIT, to_venue, transfer.recipient))

            from_venue = self.classify(transfer.sender)
            if from_venue is not None:
                flows.append(ExchangeFlow(transfer, FlowDirection.WITHDRAWAL, from_venue, transfer.sender))

        self.logger.info("Detected exchange transfers", count=len(flows))
        return flows

    def summarize_flows(self, flows: Iterable[ExchangeFlow]) -> ExchangeFlowSummary:
        """Aggregate flows into per-venue totals and the largest movements."""
        summary = ExchangeFlowSummary()

        for flow in flows:
            name = flow.venue.display_name
            stats = summary.by_venue.get(name)
            if stats is None:
                stats = summary.by_venue[name] = VenueFlowStats(venue_type=flow.venue.venue_type)

            if flow.is_deposit:
                summary.total_deposits += flow.amount
                summary.deposit_count += 1
                stats.deposits += flow.amount
                stats.deposit_count += 1
                summary.largest_deposits.append(flow)
            else:
                summary.total_withdrawals += flow.amount
                summary.withdrawal_count += 1
                stats.withdrawals += flow.amount
                stats.withdrawal_count += 1
                summary.largest_withdrawals.append(flow)

        summary.largest_deposits.sort(key=lambda f: f.amount, reverse=True)
        summary.largest_withdrawals.sort(key=lambda f: f.amount, reverse=True)
        del summary.largest_deposits[LARGEST_TRANSFERS_KEPT:]
        del summary.largest_withdrawals[LARGEST_TRANSFERS_KEPT:]
        return summary

    def categorize_addresses(self,
                             cohort: Sequence[Union[str, RewardReceiver]],
                             flows: Iterable[ExchangeFlow],
                             rewards: Iterable[RewardEvent]) -> AddressCategories:
        """
        Group cohort addresses by reward-to-deposit delay.

        The delay runs from the most recent reward strictly before the
        address's first deposit. Addresses that deposited without any such
        reward cannot be timed and land in `unmatched`.
        """
        addresses = [m.address if isinstance(m, RewardReceiver) else m for m in cohort]
        cohort_set = set(addresses)

        first_deposit: Dict[str, int] = {}
        for flow in flows:
            if flow.is_deposit and flow.sender in cohort_set:
                current = first_deposit.get(flow.sender)
                if current is None or flow.timestamp < current:
                    first_deposit[flow.sender] = flow.timestamp

        reward_times: Dict[str, List[int]] = {}
        for reward in rewards:
            reward_times.setdefault(reward.address, []).append(reward.timestamp)

        categories = AddressCategories()
        for address in addresses:
            if self.is_exchange(address):
                categories.exchange_accounts.append(address)
                continue

            deposit_at = first_deposit.get(address)
            if deposit_at is None:
                categories.holders.append(address)
                continue

            prior = [t for t in reward_times.get(address, ()) if t < deposit_at]
            if not prior:
                categories.unmatched.append(address)
                continue

            delay = deposit_at - max(prior)
            if delay < QUICK_SELL_SECONDS:
                categories.quick_sellers.append(address)
            elif delay < REGULAR_SELL_SECONDS:
                categories.regular_sellers.append(address)
            elif delay < DELAYED_SELL_SECONDS:
                categories.delayed_sellers.append(address)
            else:
                categories.holders.append(address)

        return categories
