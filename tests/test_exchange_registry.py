"""Unit tests for the exchange address registry."""

import json
import pytest
from decimal import Decimal

from inflation_tracker.core.errors import RegistryLoadError
from inflation_tracker.core.exchange_registry import ExchangeRegistry, LARGEST_TRANSFERS_KEPT
from inflation_tracker.models.events import FlowDirection, VenueType
from tests.conftest import (
    ADDR_A, ADDR_B, ADDR_C, ADDR_D, ADDR_E, DEFI_POOL, EXCHANGE_X, EXCHANGE_Y, STRANGER, T0,
    reward, transfer,
)


class TestRegistryLoading:

    def test_load_from_mapping(self, registry):
        assert len(registry) == 3
        assert registry.classify(EXCHANGE_X).display_name == "Exchange X"
        assert registry.classify(DEFI_POOL).venue_type == VenueType.DEFI
        assert registry.classify(STRANGER) is None
        assert registry.is_exchange(EXCHANGE_Y)
        assert not registry.is_exchange(ADDR_A)

    def test_load_from_file(self, tmp_path, registry_data):
        path = tmp_path / "exchanges.json"
        path.write_text(json.dumps(registry_data))

        registry = ExchangeRegistry.load(path)

        assert set(registry.venues) == {"exchange_x", "exchange_y", "pool"}
        assert registry.venues["exchange_x"].note == "test venue"

    def test_blank_addresses_dropped(self):
        registry = ExchangeRegistry.load({
            "ex": {"name": "Ex", "addresses": [f"  {EXCHANGE_X} ", "", "   "]},
        })

        assert len(registry) == 1
        assert registry.is_exchange(EXCHANGE_X)

    def test_type_defaults_to_exchange(self):
        registry = ExchangeRegistry.load({"ex": {"name": "Ex", "addresses": [EXCHANGE_X]}})

        assert registry.classify(EXCHANGE_X).venue_type == VenueType.EXCHANGE

    def test_missing_file(self, tmp_path):
        with pytest.raises(RegistryLoadError):
            ExchangeRegistry.load(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "exchanges.json"
        path.write_text("{not json")

        with pytest.raises(RegistryLoadError):
            ExchangeRegistry.load(path)

    def test_non_object_file(self, tmp_path):
        path = tmp_path / "exchanges.json"
        path.write_text(json.dumps([EXCHANGE_X]))

        with pytest.raises(RegistryLoadError, match="JSON object"):
            ExchangeRegistry.load(path)

    def test_unknown_venue_type(self):
        with pytest.raises(RegistryLoadError):
            ExchangeRegistry.load({"ex": {"name": "Ex", "type": "bank", "addresses": []}})

    def test_missing_name(self):
        with pytest.raises(RegistryLoadError):
            ExchangeRegistry.load({"ex": {"addresses": [EXCHANGE_X]}})

    def test_all_addresses(self, registry):
        entries = {e["address"]: e for e in registry.all_addresses()}

        assert entries[DEFI_POOL] == {"address": DEFI_POOL, "exchange": "Pool", "type": "defi"}
        assert len(entries) == 3


class TestFlowDetection:

    def test_deposit_and_withdrawal(self, registry):
        transfers = [
            transfer(ADDR_A, EXCHANGE_X, 100, T0),
            transfer(EXCHANGE_Y, ADDR_B, 40, T0 + 10),
            transfer(ADDR_A, ADDR_B, 5, T0 + 20),
        ]

        flows = registry.detect_exchange_transfers(transfers)

        assert [(f.direction, f.venue.id) for f in flows] == [
            (FlowDirection.DEPOSIT, "exchange_x"),
            (FlowDirection.WITHDRAWAL, "exchange_y"),
        ]
        assert flows[0].amount == Decimal("100")
        assert flows[0].transfer is transfers[0]
        assert flows[1].venue_address == EXCHANGE_Y

    def test_venue_to_venue_yields_both(self, registry):
        flows = registry.detect_exchange_transfers([transfer(EXCHANGE_X, EXCHANGE_Y, 7, T0)])

        assert [f.direction for f in flows] == [FlowDirection.DEPOSIT, FlowDirection.WITHDRAWAL]
        assert flows[0].venue.id == "exchange_y"
        assert flows[1].venue.id == "exchange_x"

    def test_no_venues(self):
        assert ExchangeRegistry().detect_exchange_transfers([transfer(ADDR_A, EXCHANGE_X, 1, T0)]) == []


class TestFlowSummary:

    def test_totals_and_per_venue(self, registry):
        flows = registry.detect_exchange_transfers([
            transfer(ADDR_A, EXCHANGE_X, 100, T0),
            transfer(ADDR_B, EXCHANGE_X, 50, T0),
            transfer(EXCHANGE_X, ADDR_C, 30, T0),
            transfer(ADDR_C, DEFI_POOL, 20, T0),
        ])

        summary = registry.summarize_flows(flows)

        assert summary.total_deposits == Decimal("170")
        assert summary.total_withdrawals == Decimal("30")
        assert summary.net_flow == Decimal("140")
        assert summary.deposit_count == 3
        assert summary.withdrawal_count == 1
        assert summary.by_venue["Exchange X"].net_flow == Decimal("120")
        assert summary.by_venue["Pool"].venue_type == VenueType.DEFI
        assert [float(f.amount) for f in summary.largest_deposits] == [100.0, 50.0, 20.0]

        data = summary.to_dict()
        assert data["by_exchange"]["Exchange X"]["deposit_count"] == 2
        assert data["net_flow"] == 140.0

    def test_largest_lists_are_capped(self, registry):
        flows = registry.detect_exchange_transfers(
            [transfer(ADDR_A, EXCHANGE_X, amount, T0) for amount in range(1, 16)]
        )

        summary = registry.summarize_flows(flows)

        assert len(summary.largest_deposits) == LARGEST_TRANSFERS_KEPT
        assert summary.largest_deposits[0].amount == Decimal("15")
        assert summary.deposit_count == 15


class TestCategorization:

    def test_all_categories(self, registry):
        rewards = [
            reward(ADDR_A, 10, T0),
            reward(ADDR_B, 10, T0),
            reward(ADDR_C, 10, T0),
            reward(ADDR_E, 10, T0),
        ]
        transfers = [
            transfer(ADDR_A, EXCHANGE_X, 10, T0 + 600),         # 10 minutes
            transfer(ADDR_B, EXCHANGE_X, 10, T0 + 5 * 3600),    # 5 hours
            transfer(ADDR_C, EXCHANGE_Y, 10, T0 + 3 * 86400),   # 3 days
            transfer(ADDR_D, EXCHANGE_Y, 10, T0),                # no reward at all
        ]
        flows = registry.detect_exchange_transfers(transfers)

        categories = registry.categorize_addresses(
            [ADDR_A, ADDR_B, ADDR_C, ADDR_D, ADDR_E, EXCHANGE_X], flows, rewards
        )

        assert categories.quick_sellers == [ADDR_A]
        assert categories.regular_sellers == [ADDR_B]
        assert categories.delayed_sellers == [ADDR_C]
        assert categories.unmatched == [ADDR_D]
        assert categories.holders == [ADDR_E]
        assert categories.exchange_accounts == [EXCHANGE_X]

    def test_delay_uses_latest_reward_before_first_deposit(self, registry):
        rewards = [reward(ADDR_A, 1, T0), reward(ADDR_A, 1, T0 + 9000)]
        flows = registry.detect_exchange_transfers([
            transfer(ADDR_A, EXCHANGE_X, 1, T0 + 9500),
            transfer(ADDR_A, EXCHANGE_X, 1, T0 + 20000),
        ])

        categories = registry.categorize_addresses([ADDR_A], flows, rewards)

        assert categories.quick_sellers == [ADDR_A]

    def test_reward_at_deposit_time_does_not_count(self, registry):
        flows = registry.detect_exchange_transfers([transfer(ADDR_A, EXCHANGE_X, 1, T0)])

        categories = registry.categorize_addresses([ADDR_A], flows, [reward(ADDR_A, 1, T0)])

        assert categories.unmatched == [ADDR_A]

    def test_very_late_deposit_counts_as_holder(self, registry):
        flows = registry.detect_exchange_transfers([transfer(ADDR_A, EXCHANGE_X, 1, T0 + 8 * 86400)])

        categories = registry.categorize_addresses([ADDR_A], flows, [reward(ADDR_A, 1, T0)])

        assert categories.holders == [ADDR_A]
