"""Batched collection of reward and transfer events across a cohort."""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Any, List, Optional, Sequence, Tuple
import structlog

from inflation_tracker.core.errors import SubscanError
from inflation_tracker.core.reward_collector import RewardCollector
from inflation_tracker.core.transfer_collector import TransferCollector
from inflation_tracker.models.config import TrackerConfig
from inflation_tracker.models.events import (
    RewardEvent,
    TransferEvent,
    TransferDirection,
    TimeWindow,
)

logger = structlog.get_logger(__name__)

# Failures that mean "no data for this address" rather than "abort the run"
RECOVERABLE_ERRORS = (SubscanError, ValueError, TypeError, ArithmeticError)


@dataclass(frozen=True)
class FetchOutcome:
    """Result of fetching one address: events on success, a reason on failure."""
    address: str
    events: Tuple[Any, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class CollectionReport:
    """Which cohort addresses were fetched and which failed."""
    kind: str
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    def record(self, outcome: FetchOutcome) -> None:
        if outcome.ok:
            self.succeeded.append(outcome.address)
        else:
            self.failed[outcome.address] = outcome.error

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def completeness(self) -> float:
        """Fraction of attempted addresses fetched successfully (1.0 when none attempted)."""
        if self.attempted == 0:
            return 1.0
        return len(self.succeeded) / self.attempted

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "succeeded": list(self.succeeded),
            "failed": dict(self.failed),
            "completeness": round(self.completeness, 4),
        }


@dataclass
class CollectionResult:
    """Merged events of one data kind plus the per-address report."""
    events: List[Any]
    report: CollectionReport


@dataclass
class CollectionRun:
    """Everything collected for one cohort over one window."""
    window: TimeWindow
    rewards: List[RewardEvent]
    transfers: List[TransferEvent]
    reward_report: CollectionReport
    transfer_report: CollectionReport


class CollectionOrchestrator:
    """
    Drives the collectors across a cohort in sequential batches.

    Addresses inside a batch are fetched concurrently; the shared rate limiter
    behind the collectors' client bounds how many requests are in flight.
    Batches are separated by a short pause to stay below upstream rate limits.
    """

    def __init__(self,
                 reward_collector: RewardCollector,
                 transfer_collector: TransferCollector,
                 config: TrackerConfig,
                 sleep: Callable[[float], None] = time.sleep):
        self.reward_collector = reward_collector
        self.transfer_collector = transfer_collector
        self.config = config
        self._sleep = sleep
        self.logger = logger.bind(component="collection_orchestrator")

    def _fetch_one(self, kind: str, address: str,
                   fetch: Callable[[str], List[Any]]) -> FetchOutcome:
        try:
            return FetchOutcome(address=address, events=tuple(fetch(address)))
        except RECOVERABLE_ERRORS as e:
            self.logger.debug("No data for address", kind=kind, address=address, error=str(e))
            return FetchOutcome(address=address, error=str(e))

    def _run_batch(self, kind: str, batch: Sequence[str],
                   fetch: Callable[[str], List[Any]]) -> List[FetchOutcome]:
        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            futures = [executor.submit(self._fetch_one, kind, address, fetch) for address in batch]
            # Submission order keeps the merged event list in cohort order
            return [future.result() for future in futures]

    def _collect(self, kind: str, cohort: Sequence[str], batch_size: int,
                 fetch: Callable[[str], List[Any]]) -> CollectionResult:
        addresses = list(cohort)
        total = len(addresses)
        batch_size = max(1, batch_size)
        events: List[Any] = []
        report = CollectionReport(kind=kind)

        self.logger.info("Starting collection", kind=kind, addresses=total, batch_size=batch_size)

        for start in range(0, total, batch_size):
            batch = addresses[start:start + batch_size]
            for outcome in self._run_batch(kind, batch, fetch):
                report.record(outcome)
                events.extend(outcome.events)

            processed = min(start + batch_size, total)
            self.logger.info("Processed addresses", kind=kind, processed=processed, total=total)

            if processed < total and self.config.batch_pause_seconds > 0:
                self._sleep(self.config.batch_pause_seconds)

        self.logger.info("Collection complete",
                         kind=kind,
                         events=len(events),
                         failed=len(report.failed))
        return CollectionResult(events=events, report=report)

    def collect_rewards(self, cohort: Sequence[str], window: TimeWindow) -> CollectionResult:
        """Collect reward events for every cohort address within `window`."""
        return self._collect(
            "rewards", cohort, self.config.reward_batch_size,
            lambda address: self.reward_collector.fetch_rewards_for_address(address, window),
        )

    def collect_transfers(self, cohort: Sequence[str], window: TimeWindow,
                          direction: TransferDirection = TransferDirection.OUTGOING
                          ) -> CollectionResult:
        """Collect transfers for every cohort address within `window` (outgoing by default)."""
        return self._collect(
            f"transfers_{direction.name.lower()}", cohort, self.config.transfer_batch_size,
            lambda address: self.transfer_collector.fetch_transfers_for_address(address, window, direction),
        )

    def collect(self, cohort: Sequence[str], window: TimeWindow) -> CollectionRun:
        """Collect rewards and outgoing transfers for the cohort."""
        rewards = self.collect_rewards(cohort, window)
        transfers = self.collect_transfers(cohort, window)
        return CollectionRun(
            window=window,
            rewards=rewards.events,
            transfers=transfers.events,
            reward_report=rewards.report,
            transfer_report=transfers.report,
        )

    def collect_transfers_between(self, sources: Sequence[str], targets: Sequence[str],
                                  window: TimeWindow) -> CollectionResult:
        """Collect outgoing transfers from `sources` that land on any of `targets`."""
        target_set = set(targets)
        result = self.collect_transfers(sources, window)
        matched = [t for t in result.events if t.recipient in target_set]
        self.logger.info("Found transfers to target addresses",
                         sources=len(sources),
                         targets=len(target_set),
                         matched=len(matched))
        return CollectionResult(events=matched, report=result.report)

    def transfer_history(self, address: str,
                         window: TimeWindow) -> List[Tuple[TransferDirection, TransferEvent]]:
        """
        Full transfer history for one address, newest first.

        Unlike cohort collection, a failure here propagates to the caller.
        """
        with ThreadPoolExecutor(max_workers=2) as executor:
            outgoing = executor.submit(self.transfer_collector.fetch_transfers_for_address,
                                       address, window, TransferDirection.OUTGOING)
            incoming = executor.submit(self.transfer_collector.fetch_transfers_for_address,
                                       address, window, TransferDirection.INCOMING)
            history = [(TransferDirection.OUTGOING, t) for t in outgoing.result()]
            history.extend((TransferDirection.INCOMING, t) for t in incoming.result())

        history.sort(key=lambda item: item[1].timestamp, reverse=True)
        return history
