"""
Shared fixtures: a scripted fake chain, raw payload builders, and settings.
"""
import threading
from typing import Any, Dict, List, Optional, Set

import pytest

from config.settings import Settings
from sommstats.cache import CacheStore
from sommstats.errors import EndpointError
from sommstats.retry import RetryPolicy

NODE_A = "http://node-a:1317"
NODE_B = "http://node-b:1317"
FOUNDATION = "somm1foundation"
VESTING = "somm1vesting"
TOKEN_DENOM = "gravity0xabc"


# =============================================================================
# Raw payload builders (node REST shapes)
# =============================================================================

def raw_auction(auction_id: int = 1, denom: str = TOKEN_DENOM, price: str = "1500000000000000000") -> Dict[str, Any]:
    return {
        "id": auction_id,
        "starting_tokens_for_sale": {"denom": denom, "amount": "1000"},
        "start_block": "100",
        "end_block": "0",
        "initial_price_decrease_rate": "50000000000000000",
        "current_price_decrease_rate": "50000000000000000",
        "price_decrease_block_interval": "10",
        "initial_unit_price_in_usomm": "2000000000000000000",
        "current_unit_price_in_usomm": price,
        "remaining_tokens_for_sale": {"denom": denom, "amount": "600"},
        "funding_module_account": "cellarfees",
        "proceeds_module_account": "cellarfees",
    }


def raw_bid(bid_id: int = 1, auction_id: int = 1, max_bid: Optional[str] = "12345") -> Dict[str, Any]:
    bid = {
        "id": str(bid_id),
        "auction_id": auction_id,
        "bidder": "somm1bidder",
        "sale_token_minimum_amount": {"denom": TOKEN_DENOM, "amount": "10"},
        "total_fulfilled_sale_tokens": {"denom": TOKEN_DENOM, "amount": "8"},
        "sale_token_unit_price_in_usomm": "1500000000000000000",
        "total_usomm_paid": {"denom": "usomm", "amount": "12"},
        "block_height": "4242",
    }
    if max_bid is not None:
        bid["max_bid_in_usomm"] = {"denom": "usomm", "amount": max_bid}
    return bid


def delayed_vesting_account(amount: str, end_time: int) -> Dict[str, Any]:
    return {
        "@type": "/cosmos.vesting.v1beta1.DelayedVestingAccount",
        "base_vesting_account": {
            "base_account": {"address": VESTING},
            "original_vesting": [{"denom": "usomm", "amount": amount}],
            "end_time": str(end_time),
        },
    }


# =============================================================================
# Fake chain
# =============================================================================

class FakeChain:
    """
    Scripted chain state shared by every per-endpoint client.

    Endpoints listed in ``failing`` raise EndpointError on every call.
    Every call is recorded as (endpoint, method, args).
    """

    def __init__(self):
        self.balances: Dict[str, str] = {FOUNDATION: "100"}
        self.community_pool: List[Dict[str, str]] = [
            {"denom": "usomm", "amount": "20.500000000000000000"}
        ]
        self.staking_pool: Dict[str, str] = {"bonded_tokens": "50", "not_bonded_tokens": "5"}
        self.accounts: Dict[str, Dict[str, Any]] = {
            VESTING: delayed_vesting_account("10", end_time=4_000_000_000),
        }
        self.active_auctions: List[Dict[str, Any]] = [raw_auction(1)]
        self.ended_auctions: List[Dict[str, Any]] = [raw_auction(7)]
        self.bids: Dict[int, List[Dict[str, Any]]] = {1: [raw_bid(1), raw_bid(2)]}
        self.failing: Set[str] = set()
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def client(self, endpoint: str) -> "FakeClient":
        return FakeClient(self, endpoint)

    def record(self, endpoint: str, method: str, *args) -> None:
        with self._lock:
            self.calls.append((endpoint, method, args))
        if endpoint in self.failing:
            raise EndpointError(endpoint, f"{method} unavailable")

    def calls_to(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[1] == method]


class FakeClient:
    def __init__(self, chain: FakeChain, endpoint: str):
        self.chain = chain
        self.endpoint = endpoint

    def query_balance(self, address, denom):
        self.chain.record(self.endpoint, "query_balance", address, denom)
        amount = self.chain.balances.get(address)
        return None if amount is None else {"denom": denom, "amount": amount}

    def query_community_pool(self):
        self.chain.record(self.endpoint, "query_community_pool")
        return self.chain.community_pool

    def query_staking_pool(self):
        self.chain.record(self.endpoint, "query_staking_pool")
        return self.chain.staking_pool

    def query_account_raw(self, address):
        self.chain.record(self.endpoint, "query_account_raw", address)
        account = self.chain.accounts[address]
        return account["@type"], account

    def query_active_auctions(self):
        self.chain.record(self.endpoint, "query_active_auctions")
        return self.chain.active_auctions

    def query_ended_auctions(self):
        self.chain.record(self.endpoint, "query_ended_auctions")
        return self.chain.ended_auctions

    def query_auction_bids(self, auction_id):
        self.chain.record(self.endpoint, "query_auction_bids", auction_id)
        return self.chain.bids.get(auction_id, [])


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def store():
    return CacheStore()


@pytest.fixture
def no_sleep_retry():
    """Retry policy with one retry and no real sleeping."""
    return RetryPolicy(max_retries=1, base_delay=0.01, sleep=lambda seconds: None)


@pytest.fixture
def settings():
    return Settings(
        endpoints=[NODE_A, NODE_B],
        foundation_addresses=[FOUNDATION],
        vesting_accounts=[VESTING],
        total_supply=1000,
        base_unit_exponent=0,
        failed_query_retries=1,
        retry_base_delay_seconds=0.01,
        snapshot_enabled=False,
    )
