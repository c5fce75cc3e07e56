"""Staking reward and cohort discovery collection from Subscan."""

from decimal import Decimal
from typing import Dict, Any, List, Optional
import structlog

from inflation_tracker.core.errors import SubscanError, CohortDiscoveryError
from inflation_tracker.core.subscan_client import SubscanClient, PageQuery
from inflation_tracker.models.config import TrackerConfig
from inflation_tracker.models.events import RewardEvent, RewardReceiver, TimeWindow
from inflation_tracker.utils.amounts import to_amount, to_decimal, display_name

logger = structlog.get_logger(__name__)


class RewardCollector:
    """Collects the reward cohort and per-address reward events."""

    ACCOUNTS_ENDPOINT = "/api/scan/accounts"
    REWARDS_ENDPOINT = "/api/scan/account/reward_slash"

    def __init__(self, client: SubscanClient, config: TrackerConfig):
        self.client = client
        self.config = config
        self.planck = Decimal(config.planck_per_token)
        self.logger = logger.bind(component="reward_collector")

    def fetch_top_reward_receivers(self, limit: Optional[int] = None) -> List[RewardReceiver]:
        """
        Discover the cohort: validator accounts ordered by balance.

        Any page failure aborts discovery.

        Raises:
            CohortDiscoveryError: a page could not be fetched
        """
        limit = limit or self.config.cohort_limit
        self.logger.info("Fetching top reward receivers", limit=limit)

        query = PageQuery(
            page_size=self.config.page_size,
            order="desc",
            order_field="balance",
            extra={"filter": "validator"},
        )
        try:
            accounts = self.client.paginate(self.ACCOUNTS_ENDPOINT, query, limit=limit)
        except SubscanError as e:
            self.logger.error("Reward receiver discovery failed", error=str(e))
            raise CohortDiscoveryError(f"Failed to discover reward receivers: {e}") from e

        receivers = [
            RewardReceiver(
                address=account.get('address', ''),
                identity=display_name(account, 'account_display') or display_name(account, 'display'),
                balance=to_decimal(account.get('balance')),
                rank=rank,
                source="subscan",
            )
            for rank, account in enumerate(accounts[:limit], start=1)
            if account.get('address')
        ]

        self.logger.info("Collected top reward receivers", count=len(receivers))
        return receivers

    def parse_reward(self, address: str, record: Dict[str, Any]) -> RewardEvent:
        """Convert a reward_slash record to a RewardEvent (amount in tokens)."""
        return RewardEvent(
            address=address,
            amount=to_amount(record.get('amount')) / self.planck,
            block_height=int(record.get('block_num') or 0),
            timestamp=int(record.get('block_timestamp') or 0),
            event_id=record.get('event_id'),
            extrinsic_hash=record.get('extrinsic_hash'),
        )

    def fetch_rewards_for_address(self, address: str, window: TimeWindow) -> List[RewardEvent]:
        """
        Fetch reward events for one address inside `window`.

        Page errors propagate so the orchestrator can record the failure.
        Slash events share the endpoint and are not issuance, so they are skipped.
        """
        query = PageQuery(page_size=self.config.reward_page_size, address=address)
        records = self.client.paginate(
            self.REWARDS_ENDPOINT, query, limit=self.config.reward_max_records
        )

        rewards = []
        skipped_slashes = 0
        for record in records:
            if 'slash' in str(record.get('event_id') or '').lower():
                skipped_slashes += 1
                continue
            reward = self.parse_reward(address, record)
            if window.contains(reward.timestamp):
                rewards.append(reward)

        self.logger.debug("Fetched rewards",
                          address=address,
                          fetched=len(records),
                          in_window=len(rewards),
                          skipped_slashes=skipped_slashes)
        return rewards
