"""Data models for flow analysis results."""

from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Any, List, Mapping, Tuple
from dataclasses import dataclass, field

from inflation_tracker.models.events import TimeWindow
from inflation_tracker.utils.time import HOURS_PER_DAY


def _to_jsonable(value: Any) -> Any:
    """Convert Decimals nested in evidence payloads to floats."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def _dec(value: Any) -> Decimal:
    return Decimal(str(value if value is not None else 0))


@dataclass
class AddressAggregate:
    """Per-address accumulator built during a single analysis pass."""
    address: str
    total_reward_amount: Decimal = Decimal('0')
    reward_count: int = 0
    total_transfer_amount: Decimal = Decimal('0')
    transfer_count: int = 0
    total_exchange_amount: Decimal = Decimal('0')
    exchange_event_count: int = 0
    is_quick_seller: bool = False

    @property
    def has_exchange_flow(self) -> bool:
        return self.exchange_event_count > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "total_rewards": float(self.total_reward_amount),
            "reward_count": self.reward_count,
            "total_transfers": float(self.total_transfer_amount),
            "transfer_count": self.transfer_count,
            "total_exchange": float(self.total_exchange_amount),
            "exchange_count": self.exchange_event_count,
            "quick_seller": self.is_quick_seller,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AddressAggregate":
        return cls(
            address=data["address"],
            total_reward_amount=_dec(data.get("total_rewards")),
            reward_count=int(data.get("reward_count", 0)),
            total_transfer_amount=_dec(data.get("total_transfers")),
            transfer_count=int(data.get("transfer_count", 0)),
            total_exchange_amount=_dec(data.get("total_exchange")),
            exchange_event_count=int(data.get("exchange_count", 0)),
            is_quick_seller=bool(data.get("quick_seller", False)),
        )


@dataclass(frozen=True)
class Pattern:
    """An advisory anomaly detected in the flow data."""
    kind: str
    severity: str  # 'high' | 'medium'
    description: str
    evidence: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "severity": self.severity,
            "description": self.description,
            "details": _to_jsonable(self.evidence),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pattern":
        return cls(
            kind=data["type"],
            severity=data["severity"],
            description=data["description"],
            evidence=data.get("details") or {},
        )


@dataclass(frozen=True)
class SellPressureSummary:
    """Headline statistics for one analysis period."""
    total_rewards: Decimal = Decimal('0')
    total_transfers: Decimal = Decimal('0')
    exchange_flow: Decimal = Decimal('0')
    sell_pressure_percent: Decimal = Decimal('0')
    quick_sellers: int = 0
    holders: int = 0
    average_time_to_exchange_hours: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_rewards": float(self.total_rewards),
            "total_transfers": float(self.total_transfers),
            "exchange_flow": float(self.exchange_flow),
            "sell_pressure_percent": float(self.sell_pressure_percent),
            "quick_sellers": self.quick_sellers,
            "holders": self.holders,
            "average_time_to_exchange": self.average_time_to_exchange_hours,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SellPressureSummary":
        return cls(
            total_rewards=_dec(data.get("total_rewards")),
            total_transfers=_dec(data.get("total_transfers")),
            exchange_flow=_dec(data.get("exchange_flow")),
            sell_pressure_percent=_dec(data.get("sell_pressure_percent")),
            quick_sellers=int(data.get("quick_sellers", 0)),
            holders=int(data.get("holders", 0)),
            average_time_to_exchange_hours=float(data.get("average_time_to_exchange", 0.0)),
        )


@dataclass(frozen=True)
class SellerEntry:
    """Ranked address by amount deposited to venues."""
    address: str
    amount: Decimal
    count: int
    quick_sell: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "amount": float(self.amount),
            "count": self.count,
            "quick_sell": self.quick_sell,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SellerEntry":
        return cls(data["address"], _dec(data["amount"]), int(data["count"]), bool(data["quick_sell"]))


@dataclass(frozen=True)
class HolderEntry:
    """Ranked address by rewards kept off venues."""
    address: str
    rewards: Decimal
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "rewards": float(self.rewards), "count": self.count}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HolderEntry":
        return cls(data["address"], _dec(data["rewards"]), int(data["count"]))


@dataclass(frozen=True)
class TrendPoint:
    """Cumulative totals over hour-of-day buckets 0..hour."""
    hour: int
    rewards: Decimal
    exchange: Decimal
    pressure: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hour": self.hour,
            "rewards": float(self.rewards),
            "exchange": float(self.exchange),
            "pressure": float(self.pressure),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrendPoint":
        return cls(int(data["hour"]), _dec(data["rewards"]), _dec(data["exchange"]), _dec(data["pressure"]))


@dataclass(frozen=True)
class VenueBreakdown:
    """Deposits received by one venue during the period."""
    venue_id: str
    venue_name: str
    deposits: Decimal
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.venue_id,
            "name": self.venue_name,
            "deposits": float(self.deposits),
            "count": self.count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VenueBreakdown":
        return cls(data["id"], data["name"], _dec(data["deposits"]), int(data["count"]))


@dataclass(frozen=True)
class AnalysisResult:
    """Self-describing output of one flow analysis run."""
    period: TimeWindow
    summary: SellPressureSummary
    aggregates: Mapping[str, AddressAggregate]
    top_sellers: Tuple[SellerEntry, ...] = ()
    top_holders: Tuple[HolderEntry, ...] = ()
    patterns: Tuple[Pattern, ...] = ()
    hourly_rewards: Tuple[Decimal, ...] = (Decimal('0'),) * HOURS_PER_DAY
    hourly_exchange_flows: Tuple[Decimal, ...] = (Decimal('0'),) * HOURS_PER_DAY
    cumulative_trend: Tuple[TrendPoint, ...] = ()
    venue_breakdown: Tuple[VenueBreakdown, ...] = ()
    cohort_size: int = 0

    def __post_init__(self):
        object.__setattr__(self, "aggregates", MappingProxyType(dict(self.aggregates)))

    @property
    def timestamp(self) -> int:
        return self.period.end

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "period": self.period.to_dict(),
            "cohort_size": self.cohort_size,
            "summary": self.summary.to_dict(),
            "details": {
                "addresses": [agg.to_dict() for agg in self.aggregates.values()],
                "top_sellers": [s.to_dict() for s in self.top_sellers],
                "top_holders": [h.to_dict() for h in self.top_holders],
                "suspicious_patterns": [p.to_dict() for p in self.patterns],
                "exchange_breakdown": [v.to_dict() for v in self.venue_breakdown],
            },
            "trends": {
                "hourly_rewards": [float(v) for v in self.hourly_rewards],
                "hourly_exchange_flows": [float(v) for v in self.hourly_exchange_flows],
                "cumulative_sell_pressure": [t.to_dict() for t in self.cumulative_trend],
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        details = data.get("details", {})
        trends = data.get("trends", {})
        aggregates: List[AddressAggregate] = [
            AddressAggregate.from_dict(a) for a in details.get("addresses", [])
        ]
        return cls(
            period=TimeWindow(**data["period"]),
            summary=SellPressureSummary.from_dict(data.get("summary", {})),
            aggregates={agg.address: agg for agg in aggregates},
            top_sellers=tuple(SellerEntry.from_dict(s) for s in details.get("top_sellers", [])),
            top_holders=tuple(HolderEntry.from_dict(h) for h in details.get("top_holders", [])),
            patterns=tuple(Pattern.from_dict(p) for p in details.get("suspicious_patterns", [])),
            hourly_rewards=tuple(_dec(v) for v in trends.get("hourly_rewards", [0] * HOURS_PER_DAY)),
            hourly_exchange_flows=tuple(_dec(v) for v in trends.get("hourly_exchange_flows", [0] * HOURS_PER_DAY)),
            cumulative_trend=tuple(TrendPoint.from_dict(t) for t in trends.get("cumulative_sell_pressure", [])),
            venue_breakdown=tuple(VenueBreakdown.from_dict(v) for v in details.get("exchange_breakdown", [])),
            cohort_size=int(data.get("cohort_size", 0)),
        )
