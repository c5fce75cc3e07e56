"""On-chain event data models for reward and transfer tracking."""

from decimal import Decimal
from enum import Enum
from typing import Optional, FrozenSet, Dict, Any
from dataclasses import dataclass, field

from inflation_tracker.utils.time import SECONDS_PER_HOUR


@dataclass(frozen=True)
class TimeWindow:
    """Closed time range [start, end] in unix seconds."""
    start: int
    end: int

    @classmethod
    def ending_at(cls, reference_time: int, hours: int) -> "TimeWindow":
        """Build the window covering the `hours` before `reference_time`."""
        end = int(reference_time)
        return cls(start=end - int(hours) * SECONDS_PER_HOUR, end=end)

    def contains(self, timestamp: int) -> bool:
        return self.start <= timestamp <= self.end

    @property
    def hours(self) -> float:
        return (self.end - self.start) / SECONDS_PER_HOUR

    def to_dict(self) -> Dict[str, int]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class RewardEvent:
    """A staking reward paid to a cohort address."""
    address: str
    amount: Decimal
    block_height: int
    timestamp: int
    event_id: Optional[str] = None
    extrinsic_hash: Optional[str] = None
    event_type: str = "staking_reward"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "amount": float(self.amount),
            "block_height": self.block_height,
            "timestamp": self.timestamp,
            "event_id": self.event_id,
            "extrinsic_hash": self.extrinsic_hash,
            "type": self.event_type,
        }


@dataclass(frozen=True)
class TransferEvent:
    """A balance transfer between two accounts."""
    sender: str
    recipient: str
    amount: Decimal
    timestamp: int
    block_height: int
    success: bool = True
    extrinsic_hash: Optional[str] = None
    fee: Decimal = Decimal('0')
    sender_identity: Optional[str] = None
    recipient_identity: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.sender,
            "to": self.recipient,
            "amount": float(self.amount),
            "timestamp": self.timestamp,
            "block_height": self.block_height,
            "success": self.success,
            "extrinsic_hash": self.extrinsic_hash,
            "fee": float(self.fee),
            "from_identity": self.sender_identity,
            "to_identity": self.recipient_identity,
        }


class TransferDirection(str, Enum):
    """Direction of a transfer relative to the queried address."""
    OUTGOING = "from"
    INCOMING = "to"


class VenueType(str, Enum):
    """Kind of venue an address belongs to."""
    EXCHANGE = "exchange"
    DEFI = "defi"


@dataclass(frozen=True)
class ExchangeVenue:
    """A custodial exchange or DeFi protocol and its known addresses."""
    id: str
    display_name: str
    venue_type: VenueType
    addresses: FrozenSet[str] = field(default_factory=frozenset)
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.display_name,
            "type": self.venue_type.value,
        }


class FlowDirection(str, Enum):
    """Direction of an exchange flow."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


@dataclass(frozen=True)
class ExchangeFlow:
    """A transfer that touches a known venue address.

    Amount and timing are read from the underlying transfer, so a flow can
    never report a different amount than the transfer it was derived from.
    """
    transfer: TransferEvent
    direction: FlowDirection
    venue: ExchangeVenue
    venue_address: str

    @property
    def amount(self) -> Decimal:
        return self.transfer.amount

    @property
    def sender(self) -> str:
        return self.transfer.sender

    @property
    def recipient(self) -> str:
        return self.transfer.recipient

    @property
    def timestamp(self) -> int:
        return self.transfer.timestamp

    @property
    def is_deposit(self) -> bool:
        return self.direction == FlowDirection.DEPOSIT

    def to_dict(self) -> Dict[str, Any]:
        data = self.transfer.to_dict()
        data.update({
            "type": self.direction.value,
            "exchange": self.venue.to_dict(),
            "exchange_address": self.venue_address,
        })
        return data


@dataclass(frozen=True)
class RewardReceiver:
    """A member of the tracked cohort."""
    address: str
    identity: Optional[str] = None
    balance: Decimal = Decimal('0')
    rank: Optional[int] = None
    total_rewards: Decimal = Decimal('0')
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "identity": self.identity,
            "balance": float(self.balance),
            "rank": self.rank,
            "total_rewards": float(self.total_rewards),
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RewardReceiver":
        return cls(
            address=data["address"],
            identity=data.get("identity"),
            balance=Decimal(str(data.get("balance") or 0)),
            rank=data.get("rank"),
            total_rewards=Decimal(str(data.get("total_rewards") or 0)),
            source=data.get("source"),
        )
