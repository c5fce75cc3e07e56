"""Core collection and analysis components."""

from inflation_tracker.core.errors import (
    TrackerError,
    SubscanError,
    SubscanAPIError,
    SubscanTransportError,
    RegistryLoadError,
    CohortDiscoveryError,
    AddressImportError,
)
from inflation_tracker.core.rate_limiter import RateLimiter
from inflation_tracker.core.subscan_client import SubscanClient, PageQuery
from inflation_tracker.core.reward_collector import RewardCollector
from inflation_tracker.core.transfer_collector import TransferCollector
from inflation_tracker.core.collector import (
    CollectionOrchestrator,
    CollectionReport,
    CollectionResult,
    CollectionRun,
    FetchOutcome,
)
from inflation_tracker.core.exchange_registry import ExchangeRegistry, ExchangeFlowSummary, AddressCategories
from inflation_tracker.core.flow_analyzer import FlowAnalyzer, AnalyzerConfig
from inflation_tracker.core.tracker import InflationTracker, CycleResult

__all__ = [
    "TrackerError",
    "SubscanError",
    "SubscanAPIError",
    "SubscanTransportError",
    "RegistryLoadError",
    "CohortDiscoveryError",
    "AddressImportError",
    "RateLimiter",
    "SubscanClient",
    "PageQuery",
    "RewardCollector",
    "TransferCollector",
    "CollectionOrchestrator",
    "CollectionReport",
    "CollectionResult",
    "CollectionRun",
    "FetchOutcome",
    "ExchangeRegistry",
    "ExchangeFlowSummary",
    "AddressCategories",
    "FlowAnalyzer",
    "AnalyzerConfig",
    "InflationTracker",
    "CycleResult",
]
