"""
Sell-pressure analysis over collected reward, transfer and exchange-flow events.

The analyzer is a pure function of its inputs: it performs no I/O, reads no
clock and keeps no state between calls. The analysis period is supplied by
the caller and hour buckets are derived from event timestamps only.
"""

from bisect import bisect_left
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Union
import numpy as np
import structlog

from inflation_tracker.models.analysis import (
    AddressAggregate,
    AnalysisResult,
    HolderEntry,
    Pattern,
    SellerEntry,
    SellPressureSummary,
    TrendPoint,
    VenueBreakdown,
)
from inflation_tracker.models.events import (
    ExchangeFlow,
    RewardEvent,
    RewardReceiver,
    TimeWindow,
    TransferEvent,
)
from inflation_tracker.utils.time import HOURS_PER_DAY, SECONDS_PER_HOUR, hour_bucket

logger = structlog.get_logger(__name__)

ZERO = Decimal('0')
HUNDRED = Decimal('100')
TOP_N = 10
COORDINATED_MIN_PARTICIPANTS = 3
HIGH_PRESSURE_PERCENT = Decimal('50')
RAPID_SELLING_MIN_ADDRESSES = 10


@dataclass(frozen=True)
class AnalyzerConfig:
    """Tunable thresholds of the flow analyzer."""
    rapid_sell_threshold_seconds: int = 3600
    large_flow_threshold: Decimal = Decimal('10000')


class FlowAnalyzer:
    """Aggregates events per address and derives sell-pressure statistics."""

    def __init__(self, config: Optional[AnalyzerConfig] = None):
        self.config = config or AnalyzerConfig()
        self.logger = logger.bind(component="flow_analyzer")

    def analyze_flows(self,
                      rewards: Sequence[RewardEvent],
                      transfers: Sequence[TransferEvent],
                      exchange_flows: Sequence[ExchangeFlow],
                      cohort: Sequence[Union[str, RewardReceiver]],
                      period: TimeWindow) -> AnalysisResult:
        """
        Run the full analysis pipeline.

        Args:
            rewards: Reward events inside the period
            transfers: Outgoing transfers of the cohort inside the period
            exchange_flows: Flows classified from `transfers`
            cohort: Observed addresses (plain strings or RewardReceiver)
            period: Analysis window, carried on the result as-is

        Returns:
            AnalysisResult for the period
        """
        aggregates: Dict[str, AddressAggregate] = {}
        for member in cohort:
            address = member.address if isinstance(member, RewardReceiver) else member
            aggregates.setdefault(address, AddressAggregate(address=address))

        def aggregate_for(address: str) -> AddressAggregate:
            agg = aggregates.get(address)
            if agg is None:
                agg = aggregates[address] = AddressAggregate(address=address)
            return agg

        # 1. Rewards
        total_rewards = ZERO
        hourly_rewards = [ZERO] * HOURS_PER_DAY
        reward_times: Dict[str, List[int]] = {}
        for reward in rewards:
            agg = aggregate_for(reward.address)
            agg.total_reward_amount += reward.amount
            agg.reward_count += 1
            total_rewards += reward.amount
            hourly_rewards[hour_bucket(reward.timestamp)] += reward.amount
            reward_times.setdefault(reward.address, []).append(reward.timestamp)

        for times in reward_times.values():
            times.sort()

        # 2. Transfers (denominator check only)
        total_transfers = ZERO
        for transfer in transfers:
            agg = aggregate_for(transfer.sender)
            agg.total_transfer_amount += transfer.amount
            agg.transfer_count += 1
            total_transfers += transfer.amount

        # 3. Deposits to venues
        exchange_flow = ZERO
        quick_sellers = 0
        time_diffs: List[int] = []
        hourly_exchange = [ZERO] * HOURS_PER_DAY
        depositors: Dict[str, AddressAggregate] = {}
        deposits = [flow for flow in exchange_flows if flow.is_deposit]

        for flow in deposits:
            agg = aggregate_for(flow.sender)
            agg.total_exchange_amount += flow.amount
            agg.exchange_event_count += 1
            depositors.setdefault(flow.sender, agg)
            exchange_flow += flow.amount
            hourly_exchange[hour_bucket(flow.timestamp)] += flow.amount

            last_reward = self._last_reward_before(reward_times.get(flow.sender), flow.timestamp)
            if last_reward is None:
                continue

            time_diff = flow.timestamp - last_reward
            time_diffs.append(time_diff)
            if time_diff < self.config.rapid_sell_threshold_seconds and not agg.is_quick_seller:
                agg.is_quick_seller = True
                quick_sellers += 1

        # 4. Summary
        sell_pressure = exchange_flow / total_rewards * HUNDRED if total_rewards > 0 else ZERO
        holder_addresses = [a for a in reward_times if a not in depositors]
        average_hours = float(np.mean(time_diffs)) / SECONDS_PER_HOUR if time_diffs else 0.0

        summary = SellPressureSummary(
            total_rewards=total_rewards,
            total_transfers=total_transfers,
            exchange_flow=exchange_flow,
            sell_pressure_percent=sell_pressure,
            quick_sellers=quick_sellers,
            holders=len(holder_addresses),
            average_time_to_exchange_hours=average_hours,
        )

        # 5. Rankings (sorted() is stable, ties keep first-seen order)
        top_sellers = tuple(
            SellerEntry(agg.address, agg.total_exchange_amount, agg.exchange_event_count, agg.is_quick_seller)
            for agg in sorted(depositors.values(), key=lambda a: a.total_exchange_amount, reverse=True)[:TOP_N]
        )
        top_holders = tuple(
            HolderEntry(agg.address, agg.total_reward_amount, agg.reward_count)
            for agg in sorted((aggregates[a] for a in holder_addresses),
                              key=lambda a: a.total_reward_amount, reverse=True)[:TOP_N]
        )

        # 6. Patterns
        patterns = self._detect_patterns(deposits, summary)

        # 7. Trends
        cumulative_trend = self._cumulative_trend(hourly_rewards, hourly_exchange)

        result = AnalysisResult(
            period=period,
            summary=summary,
            aggregates=aggregates,
            top_sellers=top_sellers,
            top_holders=top_holders,
            patterns=tuple(patterns),
            hourly_rewards=tuple(hourly_rewards),
            hourly_exchange_flows=tuple(hourly_exchange),
            cumulative_trend=cumulative_trend,
            venue_breakdown=self._venue_breakdown(deposits),
            cohort_size=len(cohort),
        )

        self.logger.info("Flow analysis complete",
                         rewards=len(rewards),
                         transfers=len(transfers),
                         deposits=len(deposits),
                         sell_pressure_percent=float(sell_pressure),
                         quick_sellers=quick_sellers,
                         holders=summary.holders,
                         patterns=len(patterns))
        return result

    @staticmethod
    def _last_reward_before(times: Optional[List[int]], timestamp: int) -> Optional[int]:
        """Most recent reward time strictly before `timestamp` (times must be sorted)."""
        if not times:
            return None
        index = bisect_left(times, timestamp)
        return times[index - 1] if index > 0 else None

    def _detect_patterns(self, deposits: Sequence[ExchangeFlow],
                         summary: SellPressureSummary) -> List[Pattern]:
        patterns = []

        large_by_hour: Dict[int, List[ExchangeFlow]] = {}
        for flow in deposits:
            if flow.amount > self.config.large_flow_threshold:
                large_by_hour.setdefault(hour_bucket(flow.timestamp), []).append(flow)

        for hour in sorted(large_by_hour):
            flows = large_by_hour[hour]
            participants = list(dict.fromkeys(f.sender for f in flows))
            if len(participants) < COORDINATED_MIN_PARTICIPANTS:
                continue
            total = sum((f.amount for f in flows), ZERO)
            patterns.append(Pattern(
                kind="coordinated_selling",
                severity="high",
                description=f"{len(participants)} large sellers moved {total:,.2f} DOT to exchanges in hour {hour}",
                evidence={
                    "hour": hour,
                    "participants": len(participants),
                    "total_amount": total,
                    "sellers": [
                        {"address": f.sender, "amount": f.amount, "exchange": f.venue.display_name}
                        for f in flows
                    ],
                },
            ))

        if summary.sell_pressure_percent > HIGH_PRESSURE_PERCENT:
            patterns.append(Pattern(
                kind="high_sell_pressure",
                severity="medium",
                description=f"Sell pressure at {summary.sell_pressure_percent:.1f}% - significantly above normal",
                evidence={
                    "total_rewards": summary.total_rewards,
                    "exchange_flow": summary.exchange_flow,
                },
            ))

        if summary.quick_sellers > RAPID_SELLING_MIN_ADDRESSES:
            threshold_hours = self.config.rapid_sell_threshold_seconds / SECONDS_PER_HOUR
            patterns.append(Pattern(
                kind="rapid_selling",
                severity="medium",
                description=(f"{summary.quick_sellers} addresses moved rewards to exchanges "
                             f"within {threshold_hours:g} hour(s)"),
                evidence={
                    "quick_sellers": summary.quick_sellers,
                    "average_time_to_exchange": summary.average_time_to_exchange_hours,
                },
            ))

        return patterns

    @staticmethod
    def _cumulative_trend(hourly_rewards: Sequence[Decimal],
                          hourly_exchange: Sequence[Decimal]) -> tuple:
        # Hour-of-day histogram accumulated over bucket index, not a chronological series
        trend = []
        rewards = ZERO
        exchange = ZERO
        for hour in range(HOURS_PER_DAY):
            rewards += hourly_rewards[hour]
            exchange += hourly_exchange[hour]
            pressure = exchange / rewards * HUNDRED if rewards > 0 else ZERO
            trend.append(TrendPoint(hour=hour, rewards=rewards, exchange=exchange, pressure=pressure))
        return tuple(trend)

    @staticmethod
    def _venue_breakdown(deposits: Sequence[ExchangeFlow]) -> tuple:
        by_venue: Dict[str, VenueBreakdown] = {}
        for flow in deposits:
            current = by_venue.get(flow.venue.id)
            if current is None:
                by_venue[flow.venue.id] = VenueBreakdown(flow.venue.id, flow.venue.display_name, flow.amount, 1)
            else:
                by_venue[flow.venue.id] = VenueBreakdown(
                    current.venue_id, current.venue_name, current.deposits + flow.amount, current.count + 1
                )
        return tuple(sorted(by_venue.values(), key=lambda v: v.deposits, reverse=True))
