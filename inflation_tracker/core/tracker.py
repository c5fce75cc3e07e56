"""
Tracker run cycle: cohort -> collection -> classification -> analysis -> storage.

    [ Subscan API ] -> RewardCollector / TransferCollector
                              |
                    CollectionOrchestrator (batched, rate limited)
                              |
                    ExchangeRegistry.detect_exchange_transfers
                              |
                    FlowAnalyzer.analyze_flows
                              |
                    FileStorage / Reporter

One reference time is captured per cycle and used for both the collection
window and the analysis period, so a cycle is reproducible from its inputs.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Any, List, Optional
import structlog

from inflation_tracker.core.collector import CollectionOrchestrator, CollectionReport
from inflation_tracker.core.exchange_registry import ExchangeRegistry, ExchangeFlowSummary
from inflation_tracker.core.flow_analyzer import FlowAnalyzer
from inflation_tracker.core.rate_limiter import RateLimiter
from inflation_tracker.core.reward_collector import RewardCollector
from inflation_tracker.core.subscan_client import SubscanClient
from inflation_tracker.core.transfer_collector import TransferCollector
from inflation_tracker.models.analysis import AnalysisResult
from inflation_tracker.models.config import TrackerConfig
from inflation_tracker.models.events import ExchangeFlow, RewardReceiver, TimeWindow
from inflation_tracker.reporting.reporter import Reporter, RenderedReport
from inflation_tracker.storage.file_storage import FileStorage

logger = structlog.get_logger(__name__)

SUMMARY_RULE = "═" * 50


@dataclass
class CycleResult:
    """Outcome of one tracking cycle."""
    reference_time: int
    window: TimeWindow
    analysis: AnalysisResult
    exchange_flows: List[ExchangeFlow]
    flow_summary: ExchangeFlowSummary
    reward_report: CollectionReport
    transfer_report: CollectionReport
    saved: bool

    @property
    def complete(self) -> bool:
        """True when every cohort address was fetched for both data kinds."""
        return not self.reward_report.failed and not self.transfer_report.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference_time": self.reference_time,
            "window": self.window.to_dict(),
            "summary": self.analysis.summary.to_dict(),
            "exchange_flows": self.flow_summary.to_dict(),
            "collection": {
                "rewards": self.reward_report.to_dict(),
                "transfers": self.transfer_report.to_dict(),
            },
            "saved": self.saved,
        }


class InflationTracker:
    """Runs tracking cycles and reports over injected components."""

    def __init__(self,
                 config: TrackerConfig,
                 registry: ExchangeRegistry,
                 orchestrator: CollectionOrchestrator,
                 reward_collector: RewardCollector,
                 analyzer: FlowAnalyzer,
                 storage: FileStorage,
                 reporter: Reporter,
                 clock: Callable[[], float] = time.time,
                 client: Optional[SubscanClient] = None):
        self.config = config
        self.registry = registry
        self.orchestrator = orchestrator
        self.reward_collector = reward_collector
        self.analyzer = analyzer
        self.storage = storage
        self.reporter = reporter
        self.client = client
        self._clock = clock
        self.logger = logger.bind(component="inflation_tracker")

    @classmethod
    def from_config(cls, config: TrackerConfig) -> "InflationTracker":
        """
        Build the full component graph from configuration.

        Raises:
            RegistryLoadError: the exchange registry cannot be loaded
        """
        registry = ExchangeRegistry.load(config.exchange_registry_path)

        limiter = RateLimiter(
            min_interval=config.rate_limit_min_interval,
            max_concurrent=config.rate_limit_max_concurrent,
        )
        client = SubscanClient(
            base_url=config.subscan_api_url,
            api_key=config.subscan_api_key,
            limiter=limiter,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            retry_backoff=config.retry_backoff,
        )
        reward_collector = RewardCollector(client, config)
        transfer_collector = TransferCollector(client, config)

        return cls(
            config=config,
            registry=registry,
            orchestrator=CollectionOrchestrator(reward_collector, transfer_collector, config),
            reward_collector=reward_collector,
            analyzer=FlowAnalyzer(config.analyzer_config()),
            storage=FileStorage(config.data_dir),
            reporter=Reporter(),
            client=client,
        )

    def refresh_cohort(self, limit: Optional[int] = None) -> List[RewardReceiver]:
        """
        Discover the top reward receivers and store them as the cohort.

        Raises:
            CohortDiscoveryError: discovery failed
        """
        receivers = self.reward_collector.fetch_top_reward_receivers(limit or self.config.cohort_limit)
        self.storage.save_cohort(receivers)
        return receivers

    def initialize(self) -> List[RewardReceiver]:
        """Return the stored cohort, discovering one first when none exists."""
        self.logger.info("Initializing tracker", registry_addresses=len(self.registry))
        cohort = self.storage.load_cohort()
        if not cohort:
            self.logger.info("No stored cohort, fetching top reward receivers")
            cohort = self.refresh_cohort()
        self.logger.info("Initialization complete", cohort_size=len(cohort))
        return cohort

    def run_cycle(self, hours: Optional[int] = None,
                  reference_time: Optional[int] = None) -> CycleResult:
        """
        Run one tracking cycle.

        Args:
            hours: Window length, defaults to config.window_hours
            reference_time: Window end in unix seconds, defaults to now

        Returns:
            CycleResult with the analysis and collection completeness

        Raises:
            CohortDiscoveryError: no cohort stored and discovery failed
        """
        reference_time = int(self._clock()) if reference_time is None else int(reference_time)
        window = TimeWindow.ending_at(
            reference_time, self.config.window_hours if hours is None else hours
        )

        cohort = self.initialize()
        addresses = [member.address for member in cohort]
        self.logger.info("Starting tracking cycle",
                         cohort_size=len(addresses),
                         window_start=window.start,
                         window_end=window.end)

        run = self.orchestrator.collect(addresses, window)
        flows = self.registry.detect_exchange_transfers(run.transfers)
        analysis = self.analyzer.analyze_flows(run.rewards, run.transfers, flows, addresses, window)
        saved = self.storage.save_analysis(analysis)

        if run.reward_report.failed or run.transfer_report.failed:
            self.logger.warning("Collection incomplete",
                                reward_failures=len(run.reward_report.failed),
                                transfer_failures=len(run.transfer_report.failed))

        self.logger.info("Tracking cycle complete\n" + self.format_quick_summary(analysis))
        if self.client is not None:
            self.logger.debug("Rate limiter stats", **self.client.limiter.get_stats())

        return CycleResult(
            reference_time=reference_time,
            window=window,
            analysis=analysis,
            exchange_flows=flows,
            flow_summary=self.registry.summarize_flows(flows),
            reward_report=run.reward_report,
            transfer_report=run.transfer_report,
            saved=saved,
        )

    def generate_report(self, report_type: str = "daily") -> Optional[RenderedReport]:
        """Render and save a report from the latest stored analysis."""
        analysis = self.storage.load_latest_analysis()
        if analysis is None:
            self.logger.warning("No analysis available for report", report_type=report_type)
            return None

        report = self.reporter.render(analysis, report_type)
        self.storage.save_report(report)
        return report

    def format_quick_summary(self, result: AnalysisResult) -> str:
        summary = result.summary
        return "\n".join([
            SUMMARY_RULE,
            "INFLATION TRACKING SUMMARY".center(len(SUMMARY_RULE)),
            SUMMARY_RULE,
            f"{result.period.hours:g}H METRICS:",
            f"- Total Rewards: {float(summary.total_rewards):,.2f} DOT",
            f"- Sent to Exchanges: {float(summary.exchange_flow):,.2f} DOT",
            f"- Sell Pressure: {float(summary.sell_pressure_percent):.1f}%",
            f"- Quick Sellers: {summary.quick_sellers} addresses",
            f"- Holders: {summary.holders} addresses",
            SUMMARY_RULE,
        ])

    def close(self):
        if self.client is not None:
            self.client.close()
