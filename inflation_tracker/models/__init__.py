"""Data models and configuration."""

from inflation_tracker.models.config import TrackerConfig
from inflation_tracker.models.events import (
    TimeWindow,
    RewardEvent,
    TransferEvent,
    TransferDirection,
    VenueType,
    ExchangeVenue,
    FlowDirection,
    ExchangeFlow,
    RewardReceiver,
)
from inflation_tracker.models.analysis import (
    AddressAggregate,
    Pattern,
    SellPressureSummary,
    SellerEntry,
    HolderEntry,
    TrendPoint,
    VenueBreakdown,
    AnalysisResult,
)

__all__ = [
    "TrackerConfig",
    "TimeWindow",
    "RewardEvent",
    "TransferEvent",
    "TransferDirection",
    "VenueType",
    "ExchangeVenue",
    "FlowDirection",
    "ExchangeFlow",
    "RewardReceiver",
    "AddressAggregate",
    "Pattern",
    "SellPressureSummary",
    "SellerEntry",
    "HolderEntry",
    "TrendPoint",
    "VenueBreakdown",
    "AnalysisResult",
]
