"""
Reward Flow Tracker

Tracks where Polkadot staking rewards go after issuance: collects reward and
transfer events for a cohort of top reward receivers from the Subscan API,
classifies transfers against known exchange addresses and measures the share
of new issuance sent to exchanges (sell pressure).
"""

__version__ = "1.0.0"
__description__ = "Staking reward sell pressure tracker for Polkadot"

from inflation_tracker.core.tracker import InflationTracker
from inflation_tracker.core.flow_analyzer import FlowAnalyzer, AnalyzerConfig
from inflation_tracker.core.exchange_registry import ExchangeRegistry
from inflation_tracker.models.config import TrackerConfig

__all__ = [
    "InflationTracker",
    "FlowAnalyzer",
    "AnalyzerConfig",
    "ExchangeRegistry",
    "TrackerConfig",
]
