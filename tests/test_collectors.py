"""Unit tests for the reward and transfer collectors."""

import pytest
from decimal import Decimal

from inflation_tracker.core.errors import CohortDiscoveryError, SubscanTransportError
from inflation_tracker.core.reward_collector import RewardCollector
from inflation_tracker.core.transfer_collector import TransferCollector
from inflation_tracker.models.events import TransferDirection
from tests.conftest import ADDR_A, ADDR_B, EXCHANGE_X, T0


def reward_record(amount_planck, timestamp, event_id="Reward", block=100):
    return {
        "amount": str(amount_planck),
        "block_timestamp": timestamp,
        "block_num": block,
        "event_id": event_id,
        "extrinsic_hash": "0xabc",
    }


def transfer_record(sender, recipient, amount, timestamp, fee="1560000000"):
    return {
        "from": sender,
        "to": recipient,
        "amount": amount,
        "block_timestamp": timestamp,
        "block_num": 200,
        "success": True,
        "extrinsic_hash": "0xdef",
        "fee": fee,
        "to_account_display": {"display": "Exchange X Hot"},
    }


class TestRewardCollector:

    def test_parse_reward_converts_planck(self, mock_client, tracker_config):
        collector = RewardCollector(mock_client, tracker_config)

        event = collector.parse_reward(ADDR_A, reward_record(15_000_000_000, T0))

        assert event.amount == Decimal("1.5")
        assert event.address == ADDR_A
        assert event.timestamp == T0
        assert event.block_height == 100

    def test_rewards_outside_window_are_discarded(self, mock_client, tracker_config, window):
        mock_client.paginate.return_value = [
            reward_record(10 ** 10, window.start - 1),
            reward_record(10 ** 10, window.start),
            reward_record(10 ** 10, window.end),
            reward_record(10 ** 10, window.end + 1),
        ]
        collector = RewardCollector(mock_client, tracker_config)

        rewards = collector.fetch_rewards_for_address(ADDR_A, window)

        assert [r.timestamp for r in rewards] == [window.start, window.end]

    def test_slash_events_are_skipped(self, mock_client, tracker_config, window):
        mock_client.paginate.return_value = [
            reward_record(10 ** 10, T0, event_id="Slash"),
            reward_record(2 * 10 ** 10, T0, event_id="Rewarded"),
        ]
        collector = RewardCollector(mock_client, tracker_config)

        rewards = collector.fetch_rewards_for_address(ADDR_A, window)

        assert len(rewards) == 1
        assert rewards[0].amount == Decimal("2")

    def test_reward_query_uses_reward_page_size_and_cap(self, mock_client, tracker_config, window):
        collector = RewardCollector(mock_client, tracker_config)

        collector.fetch_rewards_for_address(ADDR_A, window)

        endpoint, query = mock_client.paginate.call_args.args
        assert endpoint == RewardCollector.REWARDS_ENDPOINT
        assert query.page_size == tracker_config.reward_page_size
        assert query.address == ADDR_A
        assert mock_client.paginate.call_args.kwargs["limit"] == tracker_config.reward_max_records

    def test_page_failure_propagates(self, mock_client, tracker_config, window):
        mock_client.paginate.side_effect = SubscanTransportError("timeout")
        collector = RewardCollector(mock_client, tracker_config)

        with pytest.raises(SubscanTransportError):
            collector.fetch_rewards_for_address(ADDR_A, window)

    @pytest.mark.parametrize("amount", ["-50000000000", "NaN", "Infinity", "-Infinity"])
    def test_parse_reward_rejects_invalid_amount(self, mock_client, tracker_config, amount):
        collector = RewardCollector(mock_client, tracker_config)

        with pytest.raises(ValueError, match="Invalid amount"):
            collector.parse_reward(ADDR_A, reward_record(amount, T0))

    def test_invalid_amount_fails_the_address(self, mock_client, tracker_config, window):
        mock_client.paginate.return_value = [
            reward_record(10 ** 10, T0),
            reward_record("NaN", T0),
        ]
        collector = RewardCollector(mock_client, tracker_config)

        with pytest.raises(ValueError):
            collector.fetch_rewards_for_address(ADDR_A, window)

    def test_top_receivers_are_ranked(self, mock_client, tracker_config):
        mock_client.paginate.return_value = [
            {"address": ADDR_A, "balance": "1000.5", "account_display": {"display": "Validator A"}},
            {"address": "", "balance": "1"},
            {"address": ADDR_B, "balance": "900"},
        ]
        collector = RewardCollector(mock_client, tracker_config)

        receivers = collector.fetch_top_reward_receivers(limit=10)

        assert [r.address for r in receivers] == [ADDR_A, ADDR_B]
        assert receivers[0].identity == "Validator A"
        assert receivers[0].balance == Decimal("1000.5")
        assert receivers[0].rank == 1
        query = mock_client.paginate.call_args.args[1]
        assert query.to_payload()["filter"] == "validator"
        assert query.order == "desc"

    def test_top_receivers_sliced_to_limit(self, mock_client, tracker_config):
        mock_client.paginate.return_value = [{"address": f"1{i:046d}"} for i in range(100)]
        collector = RewardCollector(mock_client, tracker_config)

        assert len(collector.fetch_top_reward_receivers(limit=30)) == 30

    def test_discovery_failure_is_fatal(self, mock_client, tracker_config):
        mock_client.paginate.side_effect = SubscanTransportError("down")
        collector = RewardCollector(mock_client, tracker_config)

        with pytest.raises(CohortDiscoveryError):
            collector.fetch_top_reward_receivers()


class TestTransferCollector:

    def test_parse_transfer(self, mock_client, tracker_config):
        collector = TransferCollector(mock_client, tracker_config)

        event = collector.parse_transfer(transfer_record(ADDR_A, EXCHANGE_X, "125.5", T0))

        assert event.sender == ADDR_A
        assert event.recipient == EXCHANGE_X
        assert event.amount == Decimal("125.5")
        assert event.fee == Decimal("0.156")
        assert event.recipient_identity == "Exchange X Hot"
        assert event.sender_identity is None

    def test_outgoing_query_and_window_filter(self, mock_client, tracker_config, window):
        mock_client.paginate.return_value = [
            transfer_record(ADDR_A, EXCHANGE_X, "10", T0),
            transfer_record(ADDR_A, ADDR_B, "5", window.end + 10),
        ]
        collector = TransferCollector(mock_client, tracker_config)

        transfers = collector.fetch_transfers_for_address(ADDR_A, window)

        assert len(transfers) == 1
        endpoint, query = mock_client.paginate.call_args.args
        assert endpoint == TransferCollector.TRANSFERS_ENDPOINT
        assert query.direction == "from"
        assert query.window_start == window.start
        assert query.window_end == window.end
        assert mock_client.paginate.call_args.kwargs["list_key"] == "transfers"

    def test_incoming_direction(self, mock_client, tracker_config, window):
        collector = TransferCollector(mock_client, tracker_config)

        collector.fetch_transfers_for_address(ADDR_A, window, TransferDirection.INCOMING)

        assert mock_client.paginate.call_args.args[1].direction == "to"

    @pytest.mark.parametrize("amount,fee", [
        ("-3", "1560000000"),
        ("NaN", "1560000000"),
        ("3", "-1"),
        ("3", "Infinity"),
    ])
    def test_parse_transfer_rejects_invalid_amount_or_fee(self, mock_client, tracker_config, amount, fee):
        collector = TransferCollector(mock_client, tracker_config)

        with pytest.raises(ValueError, match="Invalid amount"):
            collector.parse_transfer(transfer_record(ADDR_A, EXCHANGE_X, amount, T0, fee=fee))

    def test_missing_fee_is_zero(self, mock_client, tracker_config):
        collector = TransferCollector(mock_client, tracker_config)

        event = collector.parse_transfer(transfer_record(ADDR_A, EXCHANGE_X, "3", T0, fee=None))

        assert event.fee == Decimal("0")
