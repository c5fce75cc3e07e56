"""Pytest configuration and fixtures for reward flow tracker tests."""

import os
import pytest
from decimal import Decimal
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock, patch

from inflation_tracker.core.exchange_registry import ExchangeRegistry
from inflation_tracker.core.flow_analyzer import FlowAnalyzer
from inflation_tracker.models.config import TrackerConfig
from inflation_tracker.models.events import RewardEvent, TransferEvent, TimeWindow


# ============================================================================
# ADDRESSES AND TIME
# ============================================================================

def make_address(tag: str) -> str:
    """Polkadot-shaped address (starts with '1', 47 chars) unique per tag."""
    return ("1" + tag + "x" * 46)[:47]


ADDR_A = make_address("AAA")
ADDR_B = make_address("BBB")
ADDR_C = make_address("CCC")
ADDR_D = make_address("DDD")
ADDR_E = make_address("EEE")
EXCHANGE_X = make_address("EXX")
EXCHANGE_Y = make_address("EXY")
DEFI_POOL = make_address("DEF")
STRANGER = make_address("ZZZ")

# 2023-11-14T22:00:00Z, the start of UTC hour bucket 22
HOUR_START = 1_699_999_200
T0 = HOUR_START + 60


@pytest.fixture(autouse=True)
def isolated_env():
    """Keep TRACKER_* variables from the developer shell out of tests."""
    clean = {k: v for k, v in os.environ.items() if not k.startswith("TRACKER_")}
    with patch.dict(os.environ, clean, clear=True):
        yield


@pytest.fixture
def window():
    return TimeWindow.ending_at(T0 + 12 * 3600, 24)


@pytest.fixture
def tracker_config(tmp_path):
    """Configuration without pauses, log files or network defaults."""
    return TrackerConfig(
        _env_file=None,
        batch_pause_seconds=0.5,
        reward_batch_size=5,
        transfer_batch_size=10,
        data_dir=str(tmp_path / "data"),
        exchange_registry_path=str(tmp_path / "exchanges.json"),
        log_file=None,
    )


@pytest.fixture
def registry_data() -> Dict[str, Any]:
    return {
        "exchange_x": {
            "name": "Exchange X",
            "type": "exchange",
            "addresses": [EXCHANGE_X],
            "note": "test venue",
        },
        "exchange_y": {
            "name": "Exchange Y",
            "type": "exchange",
            "addresses": [EXCHANGE_Y],
        },
        "pool": {
            "name": "Pool",
            "type": "defi",
            "addresses": [DEFI_POOL],
        },
    }


@pytest.fixture
def registry(registry_data):
    return ExchangeRegistry.load(registry_data)


# ============================================================================
# EVENT FACTORIES
# ============================================================================

def reward(address: str, amount, timestamp: int, block: int = 1) -> RewardEvent:
    return RewardEvent(address=address, amount=Decimal(str(amount)),
                       block_height=block, timestamp=timestamp)


def transfer(sender: str, recipient: str, amount, timestamp: int, block: int = 1) -> TransferEvent:
    return TransferEvent(sender=sender, recipient=recipient, amount=Decimal(str(amount)),
                         timestamp=timestamp, block_height=block)


# ============================================================================
# HTTP FAKES
# ============================================================================

class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, body: Optional[Dict[str, Any]] = None, status_code: int = 200,
                 headers: Optional[Dict[str, str]] = None, invalid_json: bool = False):
        self._body = body
        self.status_code = status_code
        self.headers = headers or {}
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("Expecting value")
        return self._body


class FakeSession:
    """Replays queued responses (or exceptions) and records every POST."""

    def __init__(self, responses: List[Any]):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.headers: Dict[str, str] = {}
        self.closed = False

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


def ok(data: Dict[str, Any]) -> FakeResponse:
    return FakeResponse({"code": 0, "message": "Success", "data": data})


def page(records: List[Dict[str, Any]], list_key: str = "list") -> FakeResponse:
    return ok({list_key: records, "count": len(records)})


@pytest.fixture
def sleep_calls():
    return []


@pytest.fixture
def fake_sleep(sleep_calls):
    return sleep_calls.append


@pytest.fixture
def mock_client():
    """SubscanClient double for collector tests."""
    client = MagicMock()
    client.paginate.return_value = []
    return client


# ============================================================================
# ANALYSIS FIXTURES
# ============================================================================

@pytest.fixture
def sample_analysis(registry, window):
    """Analysis with one quick seller, one slow seller and one holder."""
    rewards = [reward(ADDR_A, 100, T0), reward(ADDR_B, 50, T0), reward(ADDR_C, 30, T0)]
    transfers = [
        transfer(ADDR_A, EXCHANGE_X, 60, T0 + 600),
        transfer(ADDR_B, EXCHANGE_Y, 30, T0 + 4 * 3600),
    ]
    flows = registry.detect_exchange_transfers(transfers)
    return FlowAnalyzer().analyze_flows(rewards, transfers, flows, [ADDR_A, ADDR_B, ADDR_C], window)
