"""Balance transfer collection from Subscan."""

from decimal import Decimal
from typing import Dict, Any, List
import structlog

from inflation_tracker.core.subscan_client import SubscanClient, PageQuery
from inflation_tracker.models.config import TrackerConfig
from inflation_tracker.models.events import TransferEvent, TransferDirection, TimeWindow
from inflation_tracker.utils.amounts import to_amount, display_name

logger = structlog.get_logger(__name__)


class TransferCollector:
    """Collects directional transfers for single addresses."""

    TRANSFERS_ENDPOINT = "/api/scan/transfers"

    def __init__(self, client: SubscanClient, config: TrackerConfig):
        self.client = client
        self.config = config
        self.planck = Decimal(config.planck_per_token)
        self.logger = logger.bind(component="transfer_collector")

    def parse_transfer(self, record: Dict[str, Any]) -> TransferEvent:
        """Convert a Subscan transfer record to a TransferEvent."""
        return TransferEvent(
            sender=record.get('from', ''),
            recipient=record.get('to', ''),
            amount=to_amount(record.get('amount')),
            timestamp=int(record.get('block_timestamp') or 0),
            block_height=int(record.get('block_num') or 0),
            success=bool(record.get('success', True)),
            extrinsic_hash=record.get('extrinsic_hash'),
            fee=to_amount(record.get('fee')) / self.planck,
            sender_identity=display_name(record, 'from_account_display'),
            recipient_identity=display_name(record, 'to_account_display'),
        )

    def fetch_transfers_for_address(self, address: str, window: TimeWindow,
                                    direction: TransferDirection = TransferDirection.OUTGOING
                                    ) -> List[TransferEvent]:
        """
        Fetch transfers sent by (or to) `address` inside `window`.

        Page errors propagate so the orchestrator can record the failure.
        """
        query = PageQuery(
            page_size=self.config.page_size,
            address=address,
            window_start=window.start,
            window_end=window.end,
            direction=direction.value,
        )
        records = self.client.paginate(self.TRANSFERS_ENDPOINT, query, list_key="transfers")

        transfers = [
            transfer for transfer in (self.parse_transfer(r) for r in records)
            if window.contains(transfer.timestamp)
        ]

        self.logger.debug("Fetched transfers",
                          address=address,
                          direction=direction.value,
                          fetched=len(records),
                          in_window=len(transfers))
        return transfers
